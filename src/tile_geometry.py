"""
Tile geometry and filename utilities.

This module handles the geometric calculations shared by both fetchers:
- Aspect ratio of a bounding box
- Aspect-preserving pixel size from a target major dimension
- Coordinate-based filenames for downloaded tiles

The elevation raster and the overlay image must be requested at the same
pixel size so the overlay drapes exactly onto the terrain grid.
"""

import re
from typing import Tuple

from src import config
from src.data_types import BoundingBox, ImageSize


def aspect_ratio(bbox: BoundingBox) -> float:
    """
    Width/height ratio of a bounding box in degrees.

    Raises:
        DegenerateBoundingBox: if either span is zero
    """
    bbox.require_non_degenerate()
    return abs(bbox.lon_span / bbox.lat_span)


def compute_image_size(bbox: BoundingBox, major_dim: int) -> ImageSize:
    """
    Calculate pixel dimensions preserving the bounding box aspect ratio.

    The longer side gets major_dim pixels and the shorter side is scaled by
    the aspect ratio. A square box (ratio exactly 1) takes the height-fixed
    branch, so its width is computed rather than assigned.

    Args:
        bbox: Non-degenerate bounding box
        major_dim: Pixel count for the longer side (positive)

    Returns:
        ImageSize with width, height and the "width,height" size string

    Example:
        bbox (-121.79031, 45.30387) to (-121.58707, 45.44375), major_dim=400
        ratio 1.453 -> ImageSize(width=400, height=275)
    """
    if major_dim <= 0:
        raise ValueError(f"major_dim must be a positive integer, got {major_dim}")

    ratio = aspect_ratio(bbox)
    if ratio > 1:
        width = major_dim
        height = int(round(major_dim / ratio))
    else:
        height = major_dim
        width = int(round(major_dim * ratio))

    return ImageSize(width=width, height=height)


def _coordinate_label(lon: float, lat: float) -> str:
    ns = 'N' if lat >= 0 else 'S'
    ew = 'E' if lon >= 0 else 'W'
    return f"{ns}{abs(lat):.5f}_{ew}{abs(lon):.5f}"


def _safe_label(text: str) -> str:
    # Service names may contain folders, e.g. 'Elevation/World_Hillshade'
    return re.sub(r'[^A-Za-z0-9_-]+', '-', text)


def tile_basename(bbox: BoundingBox, size: ImageSize) -> str:
    """
    Deterministic base name for a bbox and pixel size.

    e.g. 'N45.30387_W121.79031_N45.44375_W121.58707_400x275'

    Both corners of the extent are included (south-west first), so boxes
    that share a corner but differ in size never share a name.
    """
    xmin, ymin, xmax, ymax = bbox.extent()
    return f"{_coordinate_label(xmin, ymin)}_{_coordinate_label(xmax, ymax)}_{size.width}x{size.height}"


def output_filenames(bbox: BoundingBox, size: ImageSize,
                     map_type: str = config.DEFAULT_MAP_TYPE,
                     source_srid: int = config.DEFAULT_SRID,
                     target_srid: int = config.DEFAULT_SRID) -> Tuple[str, str]:
    """
    Return (elevation_filename, overlay_filename) for one request.

    Each name carries every input its file depends on: the elevation raster
    its source and target SRIDs, the overlay its base map and source SRID.
    """
    base = tile_basename(bbox, size)
    dem_name = f"{base}_epsg{source_srid}-{target_srid}_dem.tif"
    overlay_name = f"{base}_{_safe_label(map_type)}_epsg{source_srid}_overlay.png"
    return dem_name, overlay_name
