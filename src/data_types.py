"""
Data type definitions for the terrain-tiles project.

DATA FLOW:
    BoundingBox (drawn or literal)
         ->
    ImageSize (aspect-preserving pixel dimensions)
         ->
    Elevation GeoTIFF + overlay PNG on disk
         ->
    RenderState (elevation grid + colour layer, transformed step by step)

BoundingBox and ImageSize are immutable once built. TerrainConfig holds every
tunable value of a run and is passed explicitly into the pipeline.
"""

from dataclasses import dataclass, field, asdict, fields
from typing import Optional, Dict, Any, Tuple
from pathlib import Path

import numpy as np

from src import config
from src.errors import DegenerateBoundingBox

Point = Tuple[float, float]  # (longitude, latitude)


# ============================================================================
# GEOMETRY
# ============================================================================

@dataclass(frozen=True)
class BoundingBox:
    """
    Rectangle defined by two opposite corners, each (longitude, latitude).

    Corner order is preserved exactly as given. Use extent() or normalized()
    when the caller needs west/south/east/north regardless of drawing order.
    """
    p1: Point
    p2: Point

    def __post_init__(self):
        """Validate coordinate ranges."""
        for lon, lat in (self.p1, self.p2):
            if not -180 <= lon <= 180:
                raise ValueError(f"Longitude out of range: {lon}")
            if not -90 <= lat <= 90:
                raise ValueError(f"Latitude out of range: {lat}")

    @classmethod
    def from_bounds(cls, west: float, south: float, east: float, north: float) -> "BoundingBox":
        return cls(p1=(west, south), p2=(east, north))

    @property
    def lon_span(self) -> float:
        return self.p1[0] - self.p2[0]

    @property
    def lat_span(self) -> float:
        return self.p1[1] - self.p2[1]

    def is_degenerate(self) -> bool:
        return self.lon_span == 0 or self.lat_span == 0

    def require_non_degenerate(self) -> None:
        if self.is_degenerate():
            raise DegenerateBoundingBox(
                f"Bounding box has zero span (lon span {self.lon_span}, lat span {self.lat_span})",
                lon_span=self.lon_span,
                lat_span=self.lat_span,
            )

    def extent(self) -> Tuple[float, float, float, float]:
        """Return (xmin, ymin, xmax, ymax) independent of corner order."""
        xs = (self.p1[0], self.p2[0])
        ys = (self.p1[1], self.p2[1])
        return (min(xs), min(ys), max(xs), max(ys))

    def normalized(self) -> "BoundingBox":
        xmin, ymin, xmax, ymax = self.extent()
        return BoundingBox(p1=(xmin, ymin), p2=(xmax, ymax))

    def to_query_string(self) -> str:
        """Format as 'lon1,lat1,lon2,lat2' in corner order."""
        return f"{self.p1[0]},{self.p1[1]},{self.p2[0]},{self.p2[1]}"

    def to_dict(self) -> Dict[str, Any]:
        return {"p1": list(self.p1), "p2": list(self.p2)}


@dataclass(frozen=True)
class ImageSize:
    """Pixel dimensions shared by the elevation raster and the overlay image."""
    width: int
    height: int

    @classmethod
    def from_size_string(cls, size_string: str) -> "ImageSize":
        """Parse a 'width,height' string as sent to the export services."""
        try:
            width, height = (int(part) for part in size_string.split(','))
        except ValueError:
            raise ValueError(f"Invalid size string '{size_string}', expected 'width,height'")
        return cls(width=width, height=height)

    @property
    def size_string(self) -> str:
        return f"{self.width},{self.height}"

    @property
    def major(self) -> int:
        return max(self.width, self.height)

    def __str__(self) -> str:
        return f"{self.width}x{self.height}"


# ============================================================================
# CONFIGURATION
# ============================================================================

@dataclass
class TerrainConfig:
    """
    Everything a single acquisition + render run needs.

    Bounds are stored as min/max so a config always describes a west-south
    to east-north box; drawn boxes with arbitrary corner order go through a
    BoundingBoxSource instead.
    """
    min_lon: float
    min_lat: float
    max_lon: float
    max_lat: float
    major_dimension: int = config.DEFAULT_MAJOR_DIMENSION
    texture: str = config.DEFAULT_TEXTURE
    shadow_darken_factor: float = config.DEFAULT_SHADOW_DARKEN_FACTOR
    overlay_alpha: float = config.DEFAULT_OVERLAY_ALPHA
    z_scale: float = config.DEFAULT_Z_SCALE
    map_type: str = config.DEFAULT_MAP_TYPE
    source_srid: int = config.DEFAULT_SRID
    target_srid: int = config.DEFAULT_SRID
    output_dir: str = config.DEFAULT_OUTPUT_DIR
    camera_theta: float = config.DEFAULT_CAMERA_THETA
    camera_phi: float = config.DEFAULT_CAMERA_PHI

    def bounding_box(self) -> BoundingBox:
        return BoundingBox.from_bounds(self.min_lon, self.min_lat, self.max_lon, self.max_lat)

    def validate(self) -> None:
        """Raise ValueError if any field is outside its usable range."""
        if self.major_dimension <= 0:
            raise ValueError(f"major_dimension must be positive, got {self.major_dimension}")
        if not 0.0 <= self.overlay_alpha <= 1.0:
            raise ValueError(f"overlay_alpha must be in [0, 1], got {self.overlay_alpha}")
        if not 0.0 <= self.shadow_darken_factor <= 1.0:
            raise ValueError(f"shadow_darken_factor must be in [0, 1], got {self.shadow_darken_factor}")
        if self.z_scale <= 0:
            raise ValueError(f"z_scale must be positive, got {self.z_scale}")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TerrainConfig":
        """Build from a settings dict, ignoring unknown keys."""
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known})

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


# ============================================================================
# RENDERING
# ============================================================================

@dataclass(frozen=True, eq=False)
class RenderState:
    """
    Immutable value passed through the render pipeline.

    elevation: 2D array, NaN where the source had no data
    rgb: HxWx3 float array in [0, 1], or None before a texture is applied
    history: names of the steps applied so far, in order
    """
    elevation: np.ndarray
    rgb: Optional[np.ndarray] = None
    z_scale: float = config.DEFAULT_Z_SCALE
    history: Tuple[str, ...] = field(default_factory=tuple)

    @property
    def shape(self) -> Tuple[int, int]:
        return self.elevation.shape


@dataclass
class PipelineResult:
    """Outputs of one pipeline run."""
    bbox: BoundingBox
    size: ImageSize
    elevation_path: Path
    overlay_path: Path
    render_2d_path: Optional[Path] = None
    render_3d_path: Optional[Path] = None
