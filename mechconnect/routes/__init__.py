# mechconnect/routes/__init__.py
from .auth import auth_router
from .requests import requests_router
from .proposals import proposals_router
from .bookings import bookings_router
from .mechanics import mechanics_router
from .wallet import wallet_router
from .reviews import reviews_router
from .notifications import notifications_router
from .chats import chats_router
from .admin import admin_router

routers = [
    auth_router,
    requests_router,
    proposals_router,
    bookings_router,
    mechanics_router,
    wallet_router,
    reviews_router,
    notifications_router,
    chats_router,
    admin_router
]

__all__ = ["routers"]
