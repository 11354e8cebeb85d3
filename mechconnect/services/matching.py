# mechconnect/services/matching.py
import logging
from typing import List, Optional

from ..config import settings
from ..models.common import GeoPoint
from ..models.notification import NotificationType
from ..models.mechanic import NearbyMechanic
from ..models.service_request import ServiceRequest
from ..queries.mechanic_queries import find_eligible_mechanics
from ..store import DocumentStore
from ..utils.haversine import calculate_distance
from .notifier import Notifier

logger = logging.getLogger(__name__)

async def find_nearby_mechanics(
    store: DocumentStore,
    category: str,
    point: GeoPoint,
    radius_km: Optional[float] = None,
    limit: Optional[int] = None
) -> List[NearbyMechanic]:
    """Eligible mechanics of a category within ``radius_km`` of a point, nearest first.

    Only the first ``limit`` eligible mechanics are considered; mechanics
    with no known location are skipped.
    """
    radius_km = settings.matching_radius_km if radius_km is None else radius_km
    limit = limit or settings.matching_fanout_limit

    results = []
    for mechanic in await find_eligible_mechanics(store, category, limit):
        if mechanic.location is None:
            continue
        distance = calculate_distance(point.as_tuple(), mechanic.location.as_tuple())
        if distance > radius_km:
            continue
        results.append(NearbyMechanic(
            mechanic_id=mechanic.id,
            name=mechanic.name,
            categories=mechanic.categories,
            rating=mechanic.average_rating,
            rating_count=mechanic.rating_count,
            completed_jobs=mechanic.completed_jobs,
            is_online=mechanic.is_online,
            distance_km=distance
        ))

    results.sort(key=lambda m: m.distance_km)
    return results

async def notify_nearby_mechanics(
    store: DocumentStore,
    notifier: Notifier,
    request: ServiceRequest
) -> List[NearbyMechanic]:
    """Tell every nearby mechanic about a new request; one failed send does not stop the rest"""
    nearby = await find_nearby_mechanics(store, request.category.value, request.location)
    logger.info(f"Request {request.id}: {len(nearby)} mechanics within range")

    category = request.category.value.replace("_", " ")
    for mechanic in nearby:
        try:
            await notifier.send(
                mechanic.mechanic_id,
                NotificationType.NEW_SERVICE_REQUEST,
                "New service request",
                f"New {category} request {mechanic.distance_km} km away",
                {"request_id": request.id, "distance_km": mechanic.distance_km}
            )
        except Exception as e:
            logger.warning(f"Could not notify mechanic {mechanic.mechanic_id}: {str(e)}")
    return nearby
