# mechconnect/utils/haversine.py
import math
from typing import Tuple

EARTH_RADIUS_KM = 6371

def haversine(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Calculate the great-circle distance between two points
    on the Earth (specified in decimal degrees)
    """
    # Convert decimal degrees to radians
    lon1, lat1, lon2, lat2 = map(math.radians, [lon1, lat1, lon2, lat2])

    # Haversine formula
    dlon = lon2 - lon1
    dlat = lat2 - lat1
    a = math.sin(dlat/2)**2 + math.cos(lat1) * math.cos(lat2) * math.sin(dlon/2)**2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1-a))
    return c * EARTH_RADIUS_KM

def calculate_distance(point1: Tuple[float, float], point2: Tuple[float, float]) -> float:
    """Distance in kilometers between two (latitude, longitude) pairs, rounded to 1 decimal"""
    lat1, lon1 = point1
    lat2, lon2 = point2
    return round(haversine(lat1, lon1, lat2, lon2), 1)
