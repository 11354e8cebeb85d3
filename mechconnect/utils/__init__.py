# mechconnect/utils/__init__.py
from .haversine import haversine, calculate_distance

__all__ = ["haversine", "calculate_distance"]
