# mechconnect/services/__init__.py
from .google_maps import google_maps_service, get_maps_service
from .notifier import Notifier, get_notifier

__all__ = [
    "google_maps_service",
    "get_maps_service",
    "Notifier",
    "get_notifier"
]
