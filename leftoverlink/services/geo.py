# leftoverlink/services/geo.py
import math
from collections import defaultdict
from typing import Dict, List, Set, Tuple

EARTH_RADIUS_M = 6_371_008.8


def km_to_m(km: float) -> float:
    return km * 1000.0


def haversine_m(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Great-circle distance in meters between two WGS84 points."""
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    dphi = math.radians(lat2 - lat1)
    dlam = math.radians(lng2 - lng1)
    a = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlam / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_M * c


class GridGeoIndex:
    """
    Spatial index over (lng, lat) points bucketed into a fixed degree grid.

    ``within`` only visits the cells overlapping the query's bounding box and
    returns exact haversine distances, nearest first. Queries whose box
    touches a pole or wraps the antimeridian visit every cell.
    """

    def __init__(self, cell_deg: float = 0.5):
        self.cell_deg = cell_deg
        self._points: Dict[str, Tuple[float, float]] = {}
        self._cells: Dict[Tuple[int, int], Set[str]] = defaultdict(set)

    def __len__(self) -> int:
        return len(self._points)

    def _cell(self, lng: float, lat: float) -> Tuple[int, int]:
        return (math.floor(lng / self.cell_deg), math.floor(lat / self.cell_deg))

    def insert(self, key: str, lng: float, lat: float) -> None:
        self.remove(key)
        self._points[key] = (lng, lat)
        self._cells[self._cell(lng, lat)].add(key)

    def remove(self, key: str) -> None:
        old = self._points.pop(key, None)
        if old is None:
            return
        cell = self._cell(*old)
        self._cells[cell].discard(key)
        if not self._cells[cell]:
            del self._cells[cell]

    def _candidates(self, lng: float, lat: float, radius_m: float):
        ang = radius_m / EARTH_RADIUS_M
        dlat = math.degrees(ang)
        lat_lo, lat_hi = lat - dlat, lat + dlat
        if lat_lo <= -90 or lat_hi >= 90:
            return list(self._points)
        ratio = math.sin(ang) / math.cos(math.radians(lat))
        if ratio >= 1:
            return list(self._points)
        dlng = math.degrees(math.asin(ratio))
        lng_lo, lng_hi = lng - dlng, lng + dlng
        if lng_lo < -180 or lng_hi > 180:
            return list(self._points)

        x0, y0 = self._cell(lng_lo, lat_lo)
        x1, y1 = self._cell(lng_hi, lat_hi)
        keys: List[str] = []
        for x in range(x0, x1 + 1):
            for y in range(y0, y1 + 1):
                keys.extend(self._cells.get((x, y), ()))
        return keys

    def within(self, lng: float, lat: float, radius_m: float) -> List[Tuple[str, float]]:
        hits = []
        for key in self._candidates(lng, lat, radius_m):
            p_lng, p_lat = self._points[key]
            d = haversine_m(lat, lng, p_lat, p_lng)
            if d <= radius_m:
                hits.append((key, d))
        hits.sort(key=lambda h: h[1])
        return hits
