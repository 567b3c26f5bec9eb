"""
Download orchestration for a terrain tile pair.

Coordinates the two independent fetches for one bounding box:
1. compute_image_size() - one pixel size shared by both files
2. fetch_elevation() and fetch_imagery() - run concurrently, joined before return
3. Each fetch reports a FetchOutcome instead of raising, so one failure
   does not hide the result of the other

Callers that want an exception use AcquisitionResult.raise_for_failure().
"""

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import requests

from src import config
from src.data_types import BoundingBox, ImageSize, TerrainConfig
from src.errors import TerrainError
from src.metadata import get_metadata_path, load_metadata, validate_source_file
from src.tile_geometry import compute_image_size, output_filenames
from src.downloaders.elevation import build_elevation_params, fetch_elevation
from src.downloaders.imagery import build_imagery_record, build_web_map, fetch_imagery


@dataclass
class FetchOutcome:
    """Result of one fetch: a path on success, the error on failure."""
    kind: str
    path: Optional[Path] = None
    error: Optional[TerrainError] = None
    reused: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None and self.path is not None


@dataclass
class AcquisitionResult:
    bbox: BoundingBox
    size: ImageSize
    elevation: FetchOutcome
    imagery: FetchOutcome

    @property
    def ok(self) -> bool:
        return self.elevation.ok and self.imagery.ok

    @property
    def errors(self) -> List[TerrainError]:
        return [o.error for o in (self.elevation, self.imagery) if o.error is not None]

    def raise_for_failure(self) -> None:
        """Re-raise the first fetch error, elevation before imagery."""
        if self.errors:
            raise self.errors[0]


def _is_reusable(dest_path: Path, request_params: Dict[str, Any]) -> bool:
    """
    True if dest_path already holds the result of this exact request.

    A file without a sidecar is trusted on its name alone. With a sidecar,
    the file must still match the recorded hash and the recorded request
    parameters must equal the ones about to be sent.
    """
    if not dest_path.exists():
        return False
    metadata_path = get_metadata_path(dest_path)
    if not metadata_path.exists():
        return True
    try:
        metadata = load_metadata(metadata_path)
        if not isinstance(metadata, dict):
            raise ValueError("metadata is not a JSON object")
    except ValueError:
        print(f"  WARNING: Unreadable metadata for {dest_path.name}, downloading again", flush=True)
        return False

    expected_hash = metadata.get('file_hash')
    if expected_hash and not validate_source_file(dest_path, expected_hash):
        print(f"  WARNING: {dest_path.name} does not match its metadata hash, downloading again", flush=True)
        return False

    recorded_params = metadata.get('request_params')
    if recorded_params is not None and recorded_params != request_params:
        print(f"  WARNING: {dest_path.name} was fetched for a different request, downloading again", flush=True)
        return False
    return True


def _run_fetch(kind: str, dest_path: Path, request_params: Dict[str, Any],
               fetch: Callable[[], Path], force: bool) -> FetchOutcome:
    if not force and _is_reusable(dest_path, request_params):
        print(f"  Already exists: {dest_path.name}", flush=True)
        return FetchOutcome(kind=kind, path=dest_path, reused=True)

    try:
        return FetchOutcome(kind=kind, path=fetch())
    except TerrainError as e:
        print(f"  ERROR: {kind} fetch failed: {e}", flush=True)
        return FetchOutcome(kind=kind, error=e)


def acquire_tiles(
    terrain_config: TerrainConfig,
    bbox: Optional[BoundingBox] = None,
    size: Optional[ImageSize] = None,
    parallel: bool = True,
    force: bool = False,
    endpoints: Optional[Dict[str, str]] = None,
    session: Optional[requests.Session] = None,
    timeout: float = config.REQUEST_TIMEOUT_SECONDS
) -> AcquisitionResult:
    """
    Fetch the elevation raster and overlay image for one bounding box.

    Args:
        terrain_config: Size, map type, SRIDs and output directory
        bbox: Area to fetch (defaults to the config bounds)
        size: Pixel size (defaults to compute_image_size with config.major_dimension)
        parallel: Run both fetches concurrently
        force: Download even if the destination files already exist
        endpoints: Optional overrides for 'elevation', 'web_map_export', 'basemap_template'
        session: Optional requests session shared by both fetches
        timeout: Seconds per export request

    Returns:
        AcquisitionResult with one FetchOutcome per file

    Raises:
        DegenerateBoundingBox: bbox has zero span (nothing is fetched)
    """
    endpoints = endpoints or {}
    bbox = bbox or terrain_config.bounding_box()
    size = size or compute_image_size(bbox, terrain_config.major_dimension)

    map_type = terrain_config.map_type
    source_srid = terrain_config.source_srid
    target_srid = terrain_config.target_srid
    basemap_template = endpoints.get('basemap_template', config.BASEMAP_URL_TEMPLATE)

    output_dir = Path(terrain_config.output_dir)
    dem_name, overlay_name = output_filenames(bbox, size, map_type, source_srid, target_srid)
    dem_path = output_dir / dem_name
    overlay_path = output_dir / overlay_name

    # Same values the fetchers record in their sidecars
    elevation_params = build_elevation_params(bbox, size.size_string, source_srid, target_srid)
    imagery_params = build_imagery_record(
        map_type, build_web_map(bbox, map_type, size.width, size.height, source_srid, basemap_template)
    )

    def elevation_task() -> FetchOutcome:
        return _run_fetch('elevation', dem_path, elevation_params, lambda: fetch_elevation(
            bbox,
            size.size_string,
            dest_path=dem_path,
            source_srid=source_srid,
            target_srid=target_srid,
            endpoint=endpoints.get('elevation', config.ELEVATION_EXPORT_URL),
            session=session,
            timeout=timeout,
        ), force)

    def imagery_task() -> FetchOutcome:
        return _run_fetch('imagery', overlay_path, imagery_params, lambda: fetch_imagery(
            bbox,
            map_type,
            size.width,
            size.height,
            source_srid=source_srid,
            dest_path=overlay_path,
            endpoint=endpoints.get('web_map_export', config.WEB_MAP_EXPORT_URL),
            basemap_template=basemap_template,
            session=session,
            timeout=timeout,
        ), force)

    mode = "parallel" if parallel else "sequential"
    print(f"  Fetching {size} tiles ({mode}) into {output_dir}", flush=True)

    if parallel:
        with ThreadPoolExecutor(max_workers=2) as executor:
            elevation_future = executor.submit(elevation_task)
            imagery_future = executor.submit(imagery_task)
            elevation = elevation_future.result()
            imagery = imagery_future.result()
    else:
        elevation = elevation_task()
        imagery = imagery_task()

    return AcquisitionResult(bbox=bbox, size=size, elevation=elevation, imagery=imagery)
