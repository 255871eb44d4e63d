# backend/checkin_app/services/geofence_service.py
"""Geofence verification service."""
from dataclasses import dataclass
from typing import Iterable, Optional
import math

EARTH_RADIUS_METERS = 6371000

@dataclass(frozen=True)
class Geofence:
    """Snapshot of an active attendance location."""
    name: str
    latitude: float
    longitude: float
    radius_meters: int
    id: Optional[int] = None
    
    @classmethod
    def from_location(cls, location) -> 'Geofence':
        return cls(
            name=location.name,
            latitude=location.latitude,
            longitude=location.longitude,
            radius_meters=location.radius_meters,
            id=location.id
        )

@dataclass(frozen=True)
class GeofenceEvaluation:
    """Outcome of scoring a coordinate against a set of geofences."""
    admitted: bool
    distance_meters: Optional[int]
    nearest: Optional[Geofence]
    
    @property
    def no_geofences(self) -> bool:
        return self.nearest is None

def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))

class GeofenceService:
    """Service for GPS and location verification."""
    
    @staticmethod
    def calculate_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
        """Calculate distance between two GPS points in meters."""
        lat1_rad = math.radians(lat1)
        lat2_rad = math.radians(lat2)
        delta_lat = math.radians(lat2 - lat1)
        delta_lon = math.radians(lon2 - lon1)
        
        a = (math.sin(delta_lat/2) ** 2 + 
             math.cos(lat1_rad) * math.cos(lat2_rad) * 
             math.sin(delta_lon/2) ** 2)
        c = 2 * math.atan2(math.sqrt(a), math.sqrt(1-a))
        
        return EARTH_RADIUS_METERS * c
    
    @staticmethod
    def evaluate(latitude: float, longitude: float,
                 geofences: Iterable[Geofence]) -> GeofenceEvaluation:
        """Score a coordinate against geofences in their given order.

        Iteration stops at the first geofence whose own radius contains the
        point. ``nearest`` is the closest geofence seen up to that point,
        which may be an earlier one rather than the admitting one.
        """
        nearest = None
        min_distance = math.inf
        
        for geofence in geofences:
            distance = GeofenceService.calculate_distance(
                latitude, longitude,
                geofence.latitude, geofence.longitude
            )
            
            if distance < min_distance:
                min_distance = distance
                nearest = geofence
            
            if distance <= geofence.radius_meters:
                return GeofenceEvaluation(
                    admitted=True,
                    distance_meters=round_half_up(min_distance),
                    nearest=nearest
                )
        
        if nearest is None:
            return GeofenceEvaluation(admitted=False, distance_meters=None, nearest=None)
        
        return GeofenceEvaluation(
            admitted=False,
            distance_meters=round_half_up(min_distance),
            nearest=nearest
        )
