# mechconnect/config.py
from pydantic_settings import BaseSettings
from typing import List, Optional

class Settings(BaseSettings):
    # Database
    database_backend: str = "postgres"  # "postgres" or "memory"
    database_username: str = "postgres"
    database_password: str = "postgres"
    database_hostname: str = "localhost"
    database_port: int = 5432
    database_name: str = "mechconnect"
    database_pool_size: int = 10
    database_acquire_timeout: float = 10.0

    # Auth
    secret_key: str = "change-me"
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 60 * 24 * 7
    admin_api_key: Optional[str] = None

    # External APIs
    google_maps_api_key: Optional[str] = None

    # Matching
    matching_radius_km: float = 10.0
    matching_fanout_limit: int = 50
    live_request_window_minutes: int = 10

    # Wallet
    diamond_cost_per_proposal: int = 1

    # Tracking
    arrival_threshold_km: float = 0.1

    # Uploads
    upload_dir: str = "uploads"

    # CORS
    allowed_origins: List[str] = ["*"]

    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        extra = "ignore"

allowed_attachment_types = ["image/jpeg", "image/png", "audio/mpeg", "audio/mp4", "audio/aac", "audio/m4a"]

# (package id, diamonds, price in PKR)
diamond_packages = [
    {"id": "10_diamonds", "diamonds": 10, "price": 500, "popular": False, "discount": None},
    {"id": "25_diamonds", "diamonds": 25, "price": 1000, "popular": False, "discount": None},
    {"id": "50_diamonds", "diamonds": 50, "price": 1800, "popular": True, "discount": "10%"},
    {"id": "100_diamonds", "diamonds": 100, "price": 3200, "popular": False, "discount": "20%"},
]

settings = Settings()
