# mechconnect/queries/proposal_queries.py
from typing import Any, Dict, List, Optional, Set

from ..models.proposal import Proposal, ProposalStatus
from ..store import DocumentStore

PROPOSALS = "proposals"

async def create_proposal(store: DocumentStore, data: Dict[str, Any]) -> Proposal:
    """Append a pending proposal; the store rejects a second one per mechanic and request"""
    proposal_id = await store.add(PROPOSALS, {**data, "status": ProposalStatus.PENDING.value})
    return await get_proposal(store, proposal_id)

async def get_proposal(store: DocumentStore, proposal_id: str) -> Optional[Proposal]:
    doc = await store.get(PROPOSALS, proposal_id)
    return Proposal(**doc) if doc else None

async def list_proposals_for_request(
    store: DocumentStore,
    request_id: str,
    status: Optional[ProposalStatus] = None
) -> List[Proposal]:
    filters = [("request_id", "==", request_id)]
    if status:
        filters.append(("status", "==", status.value))
    docs = await store.query(PROPOSALS, filters, order_by="created_at", descending=True)
    return [Proposal(**doc) for doc in docs]

async def list_answered_request_ids(store: DocumentStore, mechanic_id: str) -> Set[str]:
    """Ids of every request the mechanic has already sent a proposal for"""
    docs = await store.query(PROPOSALS, [("mechanic_id", "==", mechanic_id)])
    return {doc["request_id"] for doc in docs}

async def update_proposal_status(
    store: DocumentStore,
    proposal_id: str,
    status: ProposalStatus,
    expect_status: Optional[ProposalStatus] = None
) -> Optional[Proposal]:
    expect = {"status": expect_status.value} if expect_status else None
    doc = await store.update(PROPOSALS, proposal_id, {"status": status.value}, expect=expect)
    return Proposal(**doc) if doc else None
