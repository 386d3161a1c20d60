#!/usr/bin/env python3
"""
Location Scoring - Distance falloff between volunteer and event.
"""

from typing import Optional, Tuple

from core.config_loader import LocationConfig
from core.utils import haversine_km, round_half_up


def calculate_location_score(
    volunteer_lat: Optional[float],
    volunteer_lon: Optional[float],
    event_lat: Optional[float],
    event_lon: Optional[float],
    config: LocationConfig
) -> Tuple[int, Optional[float]]:
    """
    Score proximity as floor + (100 - floor) * (1 - d/radius)^2 within the
    radius, floor beyond it.

    Returns:
        (score 0-100, distance in km or None when coordinates are missing)
    """
    if None in (volunteer_lat, volunteer_lon, event_lat, event_lon):
        return round_half_up(config.neutral_score), None

    distance = haversine_km(volunteer_lat, volunteer_lon, event_lat, event_lon)
    if distance >= config.radius_km:
        return round_half_up(config.floor_score), distance

    falloff = (1 - distance / config.radius_km) ** 2
    score = config.floor_score + (100 - config.floor_score) * falloff
    return round_half_up(score), distance
