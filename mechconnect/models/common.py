# mechconnect/models/common.py
from pydantic import BaseModel, Field
from enum import Enum

class ServiceCategory(str, Enum):
    BIKE_MECHANIC = "bike_mechanic"
    CAR_MECHANIC = "car_mechanic"
    PLUMBER = "plumber"
    ELECTRICIAN = "electrician"
    AC_FRIDGE = "ac_fridge"
    MOBILE_REPAIR = "mobile_repair"
    CARPENTER = "carpenter"
    GENERAL_MART = "general_mart"

class GeoPoint(BaseModel):
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)

    def as_tuple(self):
        return (self.latitude, self.longitude)

class Address(GeoPoint):
    address: str = ""
