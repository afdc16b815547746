"""Great-circle distance helpers."""

import math

import numpy as np
from numpy.typing import NDArray

EARTH_RADIUS_KM = 6371.0


def haversine_distance(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Great-circle distance between two points in kilometers."""
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lng2 - lng1)

    a = (
        math.sin(d_phi / 2) ** 2
        + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    )
    return 2 * EARTH_RADIUS_KM * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def haversine_matrix(points: list[tuple[float, float]]) -> NDArray[np.float64]:
    """Pairwise great-circle distances in meters for (lat, lng) points."""
    if not points:
        return np.zeros((0, 0), dtype=np.float64)

    coords = np.radians(np.asarray(points, dtype=np.float64))
    lat = coords[:, 0][:, None]
    lng = coords[:, 1][:, None]

    d_lat = lat - lat.T
    d_lng = lng - lng.T
    a = np.sin(d_lat / 2) ** 2 + np.cos(lat) * np.cos(lat.T) * np.sin(d_lng / 2) ** 2
    a = np.clip(a, 0.0, 1.0)
    return 2 * EARTH_RADIUS_KM * 1000 * np.arctan2(np.sqrt(a), np.sqrt(1 - a))
