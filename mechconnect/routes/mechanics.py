# mechconnect/routes/mechanics.py
from fastapi import APIRouter, Depends, Query
from typing import List, Optional

from ..database import get_store
from ..errors import NotFound
from ..models.common import GeoPoint, ServiceCategory
from ..models.mechanic import MechanicOut, MechanicStatusUpdate, NearbyMechanic
from ..queries.mechanic_queries import get_mechanic, update_mechanic
from ..services.matching import find_nearby_mechanics
from ..store import DocumentStore
from ..utils.auth import get_current_user, require_mechanic

mechanics_router = APIRouter(prefix="/mechanics", tags=["Mechanics"])

@mechanics_router.get("/me", response_model=MechanicOut)
async def get_my_profile(
    current_user: dict = Depends(require_mechanic),
    store: DocumentStore = Depends(get_store)
):
    mechanic = await get_mechanic(store, current_user["id"])
    if not mechanic:
        raise NotFound.resource("Mechanic")
    return MechanicOut.from_mechanic(mechanic)

@mechanics_router.put("/me/location", response_model=MechanicOut)
async def update_my_location(
    location: GeoPoint,
    current_user: dict = Depends(require_mechanic),
    store: DocumentStore = Depends(get_store)
):
    mechanic = await update_mechanic(store, current_user["id"], location=location.model_dump())
    return MechanicOut.from_mechanic(mechanic)

@mechanics_router.put("/me/status", response_model=MechanicOut)
async def update_my_status(
    payload: MechanicStatusUpdate,
    current_user: dict = Depends(require_mechanic),
    store: DocumentStore = Depends(get_store)
):
    mechanic = await update_mechanic(store, current_user["id"], is_online=payload.is_online)
    return MechanicOut.from_mechanic(mechanic)

@mechanics_router.get("/nearby", response_model=List[NearbyMechanic])
async def get_nearby_mechanics(
    category: ServiceCategory,
    latitude: float = Query(..., ge=-90, le=90),
    longitude: float = Query(..., ge=-180, le=180),
    radius_km: Optional[float] = Query(None, gt=0, le=100, description="Search radius in km"),
    current_user: dict = Depends(get_current_user),
    store: DocumentStore = Depends(get_store)
):
    """Verified mechanics of a category near a point, nearest first"""
    point = GeoPoint(latitude=latitude, longitude=longitude)
    return await find_nearby_mechanics(store, category.value, point, radius_km)
