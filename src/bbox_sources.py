"""
Where bounding boxes come from.

Anything with an obtain_bounding_box() method can feed the pipeline: literal
constants, a TerrainConfig, or a rectangle drawn on a web map and exported
as GeoJSON. Keeping the map UI behind this interface lets the acquisition
logic run and be tested without any widget toolkit.
"""

import json
from pathlib import Path
from typing import Any, Dict, Iterable, List, Protocol, Union

from src.data_types import BoundingBox, Point, TerrainConfig


class BoundingBoxSource(Protocol):
    def obtain_bounding_box(self) -> BoundingBox:
        ...


class StaticBoundingBoxSource:
    """Fixed corners, e.g. constants copied from a previous session."""

    def __init__(self, p1: Point, p2: Point):
        self.bbox = BoundingBox(p1=tuple(p1), p2=tuple(p2))

    def obtain_bounding_box(self) -> BoundingBox:
        return self.bbox


class ConfigBoundingBoxSource:
    """Bounds taken from a TerrainConfig (settings.json or CLI flags)."""

    def __init__(self, terrain_config: TerrainConfig):
        self.terrain_config = terrain_config

    def obtain_bounding_box(self) -> BoundingBox:
        return self.terrain_config.bounding_box()


class GeoJSONBoundingBoxSource:
    """
    Rectangle drawn on a web map and exported as GeoJSON.

    Accepts a FeatureCollection, a Feature or a bare Polygon geometry, either
    as a dict or a path to a .geojson file. The first polygon found is used
    and its coordinate extent becomes the bounding box, west-south to east-north.
    """

    def __init__(self, geojson: Union[str, Path, Dict[str, Any]]):
        self.geojson = geojson

    def _load(self) -> Dict[str, Any]:
        if isinstance(self.geojson, dict):
            return self.geojson
        with open(self.geojson, 'r') as f:
            return json.load(f)

    @staticmethod
    def _first_polygon(data: Dict[str, Any]) -> List[List[float]]:
        geo_type = data.get('type')
        if geo_type == 'FeatureCollection':
            for feature in data.get('features') or []:
                try:
                    return GeoJSONBoundingBoxSource._first_polygon(feature)
                except ValueError:
                    continue
            raise ValueError("GeoJSON FeatureCollection contains no polygon")
        if geo_type == 'Feature':
            geometry = data.get('geometry')
            if not geometry:
                raise ValueError("GeoJSON Feature has no geometry")
            return GeoJSONBoundingBoxSource._first_polygon(geometry)
        if geo_type == 'Polygon':
            rings = data.get('coordinates') or []
            if not rings or not rings[0]:
                raise ValueError("GeoJSON Polygon has no coordinates")
            return rings[0]
        if geo_type == 'MultiPolygon':
            polygons = data.get('coordinates') or []
            if not polygons or not polygons[0] or not polygons[0][0]:
                raise ValueError("GeoJSON MultiPolygon has no coordinates")
            return polygons[0][0]
        raise ValueError(f"Unsupported GeoJSON type for a bounding box: {geo_type}")

    @staticmethod
    def _extent(ring: Iterable[List[float]]) -> BoundingBox:
        lons = [pt[0] for pt in ring]
        lats = [pt[1] for pt in ring]
        return BoundingBox.from_bounds(min(lons), min(lats), max(lons), max(lats))

    def obtain_bounding_box(self) -> BoundingBox:
        ring = self._first_polygon(self._load())
        return self._extent(ring)
