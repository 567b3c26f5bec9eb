"""
Renders a fetched elevation raster and overlay image.

Shading is delegated to matplotlib (LightSource hillshade, 3D surface plot).
This module only sequences it as a pipeline of pure steps over RenderState:

    load_elevation -> initial_state -> apply_texture -> add_shadow
        -> add_overlay -> render_2d / render_3d

Each step returns a new RenderState and never modifies its input arrays.
"""
import time
from dataclasses import replace
from functools import partial, reduce
from pathlib import Path
from typing import Callable, Iterable, List, Optional, Tuple, Union

import numpy as np
import matplotlib
import matplotlib.pyplot as plt
from matplotlib.colors import LightSource, LinearSegmentedColormap, Colormap
from PIL import Image
import rasterio

from src import config
from src.data_types import RenderState, TerrainConfig

Step = Callable[[RenderState], RenderState]

# Named colour ramps applied by elevation before shading
TEXTURE_PRESETS = {
    'desert': ['#3a2a1a', '#7a5c3a', '#b58b5a', '#d9b382', '#f2dcb3', '#fff5e1'],
    'imhof': ['#4a6b4a', '#7f9b6e', '#b5c28f', '#dcd3a0', '#f0e6c8', '#ffffff'],
    'bw': ['#000000', '#ffffff'],
    'unicorn': ['#ff4df2', '#9b5cff', '#4db8ff', '#6bffb8', '#fff36b'],
    'terrain': ['#1a4f63', '#2d8659', '#5ea849', '#a8b840', '#d4a747', '#b87333', '#8b7355', '#a8a8a8', '#d0d0d0', '#e8e8e8'],
    'earth': ['#2C1810', '#4A3728', '#6B5244', '#8B7355', '#A69270', '#C4B89C', '#8B9A6B', '#6B8E4A', '#4A7239', '#2A5228'],
}


def get_texture_cmap(texture: str) -> Colormap:
    """Preset ramp by name, else any matplotlib colormap name."""
    if texture in TEXTURE_PRESETS:
        return LinearSegmentedColormap.from_list(f'{texture}_texture', TEXTURE_PRESETS[texture], N=256)
    try:
        return matplotlib.colormaps[texture]
    except KeyError:
        raise ValueError(f"Unknown texture '{texture}'. Presets: {', '.join(sorted(TEXTURE_PRESETS))}")


# ============================================================================
# LOADING
# ============================================================================

def load_elevation(tif_path: Union[str, Path]) -> np.ndarray:
    """Read band 1 of a GeoTIFF as float64 with nodata cells set to NaN."""
    with rasterio.open(tif_path) as src:
        elevation = src.read(1).astype(np.float64)
        if src.nodata is not None:
            elevation[elevation == src.nodata] = np.nan
    return elevation


def load_overlay(png_path: Union[str, Path], shape: Optional[Tuple[int, int]] = None) -> np.ndarray:
    """
    Read an overlay image as an HxWx3 float array in [0, 1].

    If shape (rows, cols) is given and differs, the image is resized to it.
    """
    with Image.open(png_path) as img:
        img = img.convert('RGB')
        if shape is not None and img.size != (shape[1], shape[0]):
            print(f"   - Resizing overlay {img.size[0]}x{img.size[1]} -> {shape[1]}x{shape[0]}", flush=True)
            img = img.resize((shape[1], shape[0]), Image.Resampling.BILINEAR)
        return np.asarray(img, dtype=np.float64) / 255.0


# ============================================================================
# PIPELINE STEPS
# ============================================================================

def initial_state(elevation: np.ndarray, z_scale: float = config.DEFAULT_Z_SCALE) -> RenderState:
    if elevation.ndim != 2:
        raise ValueError(f"Elevation must be a 2D array, got shape {elevation.shape}")
    if not np.any(np.isfinite(elevation)):
        raise ValueError("Elevation grid contains no valid data")
    if z_scale <= 0:
        raise ValueError(f"z_scale must be positive, got {z_scale}")
    return RenderState(elevation=elevation.copy(), z_scale=z_scale, history=('load',))


def _filled(elevation: np.ndarray) -> np.ndarray:
    return np.where(np.isfinite(elevation), elevation, np.nanmin(elevation))


def _hillshade(state: RenderState, light_azimuth: float, light_altitude: float) -> np.ndarray:
    ls = LightSource(azdeg=light_azimuth, altdeg=light_altitude)
    return ls.hillshade(_filled(state.elevation), vert_exag=1.0 / state.z_scale, dx=1, dy=1)


def apply_texture(state: RenderState, texture: str = config.DEFAULT_TEXTURE,
                  light_azimuth: float = config.DEFAULT_LIGHT_AZIMUTH,
                  light_altitude: float = config.DEFAULT_LIGHT_ALTITUDE) -> RenderState:
    """Colour by elevation with a texture ramp and hillshade it."""
    cmap = get_texture_cmap(texture)
    ls = LightSource(azdeg=light_azimuth, altdeg=light_altitude)
    rgba = ls.shade(_filled(state.elevation), cmap=cmap, blend_mode='soft',
                    vert_exag=1.0 / state.z_scale, dx=1, dy=1, fraction=1.0)
    return replace(state, rgb=np.clip(rgba[..., :3], 0.0, 1.0),
                   history=state.history + (f'texture:{texture}',))


def add_shadow(state: RenderState, darken_factor: float = config.DEFAULT_SHADOW_DARKEN_FACTOR,
               light_azimuth: float = config.DEFAULT_LIGHT_AZIMUTH,
               light_altitude: float = config.DEFAULT_LIGHT_ALTITUDE) -> RenderState:
    """
    Darken slopes facing away from the light.

    darken_factor 0 leaves colours unchanged, 1 takes fully shadowed cells to black.
    """
    if state.rgb is None:
        raise ValueError("add_shadow needs a colour layer; apply a texture first")
    if not 0.0 <= darken_factor <= 1.0:
        raise ValueError(f"darken_factor must be in [0, 1], got {darken_factor}")
    intensity = _hillshade(state, light_azimuth, light_altitude)
    multiplier = 1.0 - darken_factor * (1.0 - intensity)
    return replace(state, rgb=np.clip(state.rgb * multiplier[..., np.newaxis], 0.0, 1.0),
                   history=state.history + ('shadow',))


def add_overlay(state: RenderState, overlay: np.ndarray,
                alpha: float = config.DEFAULT_OVERLAY_ALPHA) -> RenderState:
    """Blend an RGB overlay on top of the colour layer with the given opacity."""
    if state.rgb is None:
        raise ValueError("add_overlay needs a colour layer; apply a texture first")
    if not 0.0 <= alpha <= 1.0:
        raise ValueError(f"alpha must be in [0, 1], got {alpha}")
    if overlay.shape[:2] != state.shape:
        raise ValueError(f"Overlay shape {overlay.shape[:2]} does not match elevation shape {state.shape}")
    blended = (1.0 - alpha) * state.rgb + alpha * overlay[..., :3]
    return replace(state, rgb=np.clip(blended, 0.0, 1.0),
                   history=state.history + ('overlay',))


def run_steps(state: RenderState, steps: Iterable[Step]) -> RenderState:
    return reduce(lambda current, step: step(current), steps, state)


def build_steps(terrain_config: TerrainConfig, overlay: Optional[np.ndarray] = None) -> List[Step]:
    """Standard step sequence for a config; the overlay step is skipped without an overlay."""
    steps: List[Step] = [
        partial(apply_texture, texture=terrain_config.texture),
        partial(add_shadow, darken_factor=terrain_config.shadow_darken_factor),
    ]
    if overlay is not None:
        steps.append(partial(add_overlay, overlay=overlay, alpha=terrain_config.overlay_alpha))
    return steps


# ============================================================================
# OUTPUT
# ============================================================================

def _to_uint8(state: RenderState) -> np.ndarray:
    if state.rgb is None:
        raise ValueError("Nothing to render; apply a texture first")
    rgb = state.rgb.copy()
    rgb[~np.isfinite(state.elevation)] = 0.0
    return (np.clip(rgb, 0.0, 1.0) * 255).round().astype(np.uint8)


def render_2d(state: RenderState, output_path: Union[str, Path]) -> Path:
    """Save the colour layer as a PNG, one pixel per elevation cell."""
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    Image.fromarray(_to_uint8(state)).save(output_path)
    print(f"   - Saved 2D render: {output_path}", flush=True)
    return output_path


def render_3d(state: RenderState, output_path: Union[str, Path],
              theta: float = config.DEFAULT_CAMERA_THETA,
              phi: float = config.DEFAULT_CAMERA_PHI,
              max_grid_size: int = 400, dpi: int = 100,
              background_color: str = '#000000') -> Path:
    """
    Drape the colour layer over a 3D surface and save a snapshot.

    theta is the camera azimuth and phi its elevation above the horizon,
    both in degrees. Elevation is divided by z_scale before plotting.
    """
    step_start = time.time()
    if state.rgb is None:
        raise ValueError("Nothing to render; apply a texture first")

    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    rows, cols = state.shape
    step = max(1, int(np.ceil(max(rows, cols) / max_grid_size)))
    z = state.elevation[::step, ::step] / state.z_scale
    colors = state.rgb[::step, ::step]
    z_masked = np.ma.masked_invalid(z)
    y_size, x_size = z.shape
    if step > 1:
        print(f"   - Resampled {cols}x{rows} -> {x_size}x{y_size} for 3D view", flush=True)

    x_grid, y_grid = np.meshgrid(np.arange(x_size), np.arange(y_size))

    fig = plt.figure(figsize=(max(4.0, x_size / 50), max(3.0, y_size / 50)), facecolor=background_color)
    try:
        ax = fig.add_subplot(111, projection='3d', facecolor=background_color)
        # Row 0 is the north edge; flip y so north points away from the camera
        ax.plot_surface(x_grid, y_size - 1 - y_grid, z_masked, facecolors=colors,
                        linewidth=0, antialiased=False, shade=False,
                        rcount=y_size, ccount=x_size)
        z_range = float(np.nanmax(z) - np.nanmin(z)) or 1.0
        ax.set_box_aspect((x_size, y_size, min(z_range, max(x_size, y_size) * 0.5)))
        ax.view_init(elev=phi, azim=theta - 90)
        ax.set_axis_off()
        fig.savefig(output_path, dpi=dpi, facecolor=background_color, bbox_inches='tight')
    finally:
        plt.close(fig)

    print(f"   - Saved 3D render: {output_path} ({time.time() - step_start:.2f}s)", flush=True)
    return output_path
