"""
End-to-end terrain pipeline.

One call runs the whole workflow for a bounding box:
1. Obtain the bounding box (config bounds or any BoundingBoxSource)
2. Compute the shared pixel size
3. Fetch elevation raster + overlay image (concurrently by default)
4. Shade, overlay and render 2D / 3D views

Steps are strictly ordered; rendering only starts after both downloads
have finished and succeeded.
"""
from pathlib import Path
from typing import Dict, Optional

import requests

from src import config
from src.bbox_sources import BoundingBoxSource, ConfigBoundingBoxSource
from src.data_types import TerrainConfig, PipelineResult
from src.errors import TerrainError
from src.tile_geometry import compute_image_size, aspect_ratio, tile_basename
from src.downloaders.orchestrator import acquire_tiles
from src import rendering


class PipelineError(Exception):
    """Raised when a pipeline step fails."""
    pass


def _banner(title: str) -> None:
    print("\n" + "=" * 70, flush=True)
    print(f"  {title}", flush=True)
    print("=" * 70, flush=True)


def run_pipeline(
    terrain_config: TerrainConfig,
    bbox_source: Optional[BoundingBoxSource] = None,
    render: bool = True,
    render_3d: bool = True,
    parallel: bool = True,
    force: bool = False,
    render_dir: str = config.DEFAULT_RENDER_DIR,
    endpoints: Optional[Dict[str, str]] = None,
    session: Optional[requests.Session] = None,
    timeout: float = config.REQUEST_TIMEOUT_SECONDS
) -> PipelineResult:
    """
    Fetch and render terrain for one bounding box.

    Args:
        terrain_config: Size, textures, SRIDs and output directory
        bbox_source: Where the bbox comes from (defaults to the config bounds)
        render: Produce rendered images after downloading
        render_3d: Also produce the 3D snapshot (only when render is True)
        parallel: Fetch elevation and imagery concurrently
        force: Re-download even if files exist
        render_dir: Directory for rendered PNGs
        endpoints: Optional endpoint URL overrides (see load_settings.get_endpoint_settings)
        session: Optional requests session
        timeout: Seconds per export request

    Returns:
        PipelineResult with the size and every produced path

    Raises:
        PipelineError: invalid configuration, failed download or failed render
    """
    try:
        terrain_config.validate()
    except ValueError as e:
        raise PipelineError(f"Invalid configuration: {e}") from e

    bbox_source = bbox_source or ConfigBoundingBoxSource(terrain_config)

    _banner("STEP 1: SIZE")
    try:
        bbox = bbox_source.obtain_bounding_box()
        size = compute_image_size(bbox, terrain_config.major_dimension)
    except (TerrainError, ValueError) as e:
        raise PipelineError(f"Could not size bounding box: {e}") from e

    xmin, ymin, xmax, ymax = bbox.extent()
    print(f"  Bounds: ({xmin:.5f}, {ymin:.5f}) to ({xmax:.5f}, {ymax:.5f})", flush=True)
    print(f"  Aspect ratio: {aspect_ratio(bbox):.3f} (width/height)", flush=True)
    print(f"  Image size: {size} px", flush=True)

    _banner("STEP 2: DOWNLOAD")
    acquisition = acquire_tiles(
        terrain_config,
        bbox=bbox,
        size=size,
        parallel=parallel,
        force=force,
        endpoints=endpoints,
        session=session,
        timeout=timeout,
    )
    if not acquisition.ok:
        failed = ', '.join(f"{o.kind}: {o.error}" for o in (acquisition.elevation, acquisition.imagery) if o.error)
        raise PipelineError(f"Download failed ({failed})") from acquisition.errors[0]

    result = PipelineResult(
        bbox=bbox,
        size=size,
        elevation_path=acquisition.elevation.path,
        overlay_path=acquisition.imagery.path,
    )

    if not render:
        print("\n  Skipping rendering", flush=True)
        return result

    _banner("STEP 3: RENDERING")
    try:
        elevation = rendering.load_elevation(result.elevation_path)
        overlay = rendering.load_overlay(result.overlay_path, shape=elevation.shape)
        state = rendering.initial_state(elevation, z_scale=terrain_config.z_scale)
        state = rendering.run_steps(state, rendering.build_steps(terrain_config, overlay))
        print(f"   - Applied steps: {' -> '.join(state.history)}", flush=True)

        base = Path(render_dir) / tile_basename(bbox, size)
        result.render_2d_path = rendering.render_2d(state, base.with_name(base.name + '_2d.png'))
        if render_3d:
            result.render_3d_path = rendering.render_3d(
                state,
                base.with_name(base.name + '_3d.png'),
                theta=terrain_config.camera_theta,
                phi=terrain_config.camera_phi,
            )
    except (OSError, ValueError) as e:
        raise PipelineError(f"Rendering failed: {e}") from e

    _banner("PIPELINE COMPLETE")
    print(f"  Elevation: {result.elevation_path}", flush=True)
    print(f"  Overlay:   {result.overlay_path}", flush=True)
    print(f"  2D render: {result.render_2d_path}", flush=True)
    if result.render_3d_path:
        print(f"  3D render: {result.render_3d_path}", flush=True)

    return result
