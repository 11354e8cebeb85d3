# mechconnect/routes/bookings.py
from fastapi import APIRouter, Depends
from typing import List, Optional

from ..database import get_store
from ..models.booking import (
    Booking,
    BookingCancel,
    BookingReschedule,
    LocationUpdateOut,
    RouteInfo
)
from ..models.common import GeoPoint
from ..services import bookings as booking_service
from ..services.google_maps import GoogleMapsService, get_maps_service
from ..services.notifier import Notifier, get_notifier
from ..store import DocumentStore
from ..utils.auth import get_current_user, require_customer, require_mechanic

bookings_router = APIRouter(prefix="/bookings", tags=["Bookings"])

@bookings_router.get("/", response_model=List[Booking])
async def get_bookings(
    status: Optional[str] = None,
    current_user: dict = Depends(get_current_user),
    store: DocumentStore = Depends(get_store)
):
    return await booking_service.list_bookings(store, current_user["id"], current_user["type"], status)

@bookings_router.get("/active", response_model=Optional[Booking])
async def get_active_booking(
    current_user: dict = Depends(get_current_user),
    store: DocumentStore = Depends(get_store)
):
    """The booking currently in progress for the caller, or null"""
    return await booking_service.get_active_booking(store, current_user["id"], current_user["type"])

@bookings_router.get("/{booking_id}", response_model=Booking)
async def get_booking(
    booking_id: str,
    current_user: dict = Depends(get_current_user),
    store: DocumentStore = Depends(get_store)
):
    return await booking_service.get_booking_for(store, current_user, booking_id)

@bookings_router.post("/{booking_id}/confirm", response_model=Booking)
async def confirm_booking(
    booking_id: str,
    current_user: dict = Depends(require_mechanic),
    store: DocumentStore = Depends(get_store),
    notifier: Notifier = Depends(get_notifier)
):
    return await booking_service.confirm_booking(store, notifier, current_user["id"], booking_id)

@bookings_router.post("/{booking_id}/start", response_model=Booking)
async def start_job(
    booking_id: str,
    current_user: dict = Depends(require_mechanic),
    store: DocumentStore = Depends(get_store),
    notifier: Notifier = Depends(get_notifier)
):
    return await booking_service.start_job(store, notifier, current_user["id"], booking_id)

@bookings_router.put("/{booking_id}/location", response_model=LocationUpdateOut)
async def update_location(
    booking_id: str,
    location: GeoPoint,
    current_user: dict = Depends(require_mechanic),
    store: DocumentStore = Depends(get_store),
    notifier: Notifier = Depends(get_notifier)
):
    return await booking_service.update_live_location(store, notifier, current_user["id"], booking_id, location)

@bookings_router.post("/{booking_id}/complete", response_model=Booking)
async def complete_job(
    booking_id: str,
    current_user: dict = Depends(require_mechanic),
    store: DocumentStore = Depends(get_store),
    notifier: Notifier = Depends(get_notifier)
):
    return await booking_service.complete_job(store, notifier, current_user["id"], booking_id)

@bookings_router.post("/{booking_id}/cancel", response_model=Booking)
async def cancel_booking(
    booking_id: str,
    payload: BookingCancel,
    current_user: dict = Depends(get_current_user),
    store: DocumentStore = Depends(get_store),
    notifier: Notifier = Depends(get_notifier)
):
    return await booking_service.cancel_booking(store, notifier, current_user, booking_id, payload.reason)

@bookings_router.put("/{booking_id}/reschedule", response_model=Booking)
async def reschedule_booking(
    booking_id: str,
    payload: BookingReschedule,
    current_user: dict = Depends(require_customer),
    store: DocumentStore = Depends(get_store),
    notifier: Notifier = Depends(get_notifier)
):
    return await booking_service.reschedule_booking(store, notifier, current_user["id"], booking_id, payload)

@bookings_router.get("/{booking_id}/route", response_model=RouteInfo)
async def get_route(
    booking_id: str,
    current_user: dict = Depends(get_current_user),
    store: DocumentStore = Depends(get_store),
    maps: GoogleMapsService = Depends(get_maps_service)
):
    booking = await booking_service.get_booking_for(store, current_user, booking_id)
    return await booking_service.get_route(booking, maps)
