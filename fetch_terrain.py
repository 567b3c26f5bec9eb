"""
One command to fetch and render terrain for a bounding box.

Downloads a USGS 3DEP elevation raster and a matching satellite image for
the same extent and pixel size, then renders a shaded 2D map and a 3D view.

Usage:
    python fetch_terrain.py  # bounds from settings.json
    python fetch_terrain.py --bounds -121.79031 45.30387 -121.58707 45.44375
    python fetch_terrain.py --geojson drawn_box.geojson --major-dim 1200
    python fetch_terrain.py --bounds -105.5 39.5 -104.5 40.0 --no-render
    python fetch_terrain.py --texture imhof --overlay-alpha 0.7 --z-scale 5
"""
import sys
import argparse
from pathlib import Path

from load_settings import get_terrain_config, get_endpoint_settings, get_download_settings
from src.bbox_sources import GeoJSONBoundingBoxSource
from src.errors import TerrainError
from src.pipeline import run_pipeline, PipelineError
from src.rendering import TEXTURE_PRESETS


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description='Fetch a DEM and satellite overlay for a bounding box and render them',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    python fetch_terrain.py --bounds -121.79031 45.30387 -121.58707 45.44375
    python fetch_terrain.py --geojson drawn_box.geojson
    python fetch_terrain.py --map-type World_Topo_Map --sequential

This script will:
    1. Compute an aspect-preserving image size from the bounding box
    2. Download the elevation GeoTIFF and overlay PNG (in parallel by default)
    3. Render a shaded 2D map and a 3D snapshot into the render directory
        """
    )
    parser.add_argument('--settings', default='settings.json',
                        help='Settings file (default: settings.json)')
    parser.add_argument('--bounds', nargs=4, type=float, metavar=('WEST', 'SOUTH', 'EAST', 'NORTH'),
                        help='Bounding box in degrees (overrides settings)')
    parser.add_argument('--geojson', type=Path,
                        help='GeoJSON file with a rectangle drawn on a web map')
    parser.add_argument('--major-dim', type=int, dest='major_dimension',
                        help='Pixels along the longer side of the output')
    parser.add_argument('--map-type', help='Base map service name (default: World_Imagery)')
    parser.add_argument('--output-dir', help='Directory for downloaded files')
    parser.add_argument('--render-dir', help='Directory for rendered images')
    parser.add_argument('--texture', help=f"Texture ramp ({', '.join(sorted(TEXTURE_PRESETS))} or any matplotlib colormap)")
    parser.add_argument('--shadow', type=float, dest='shadow_darken_factor',
                        help='Shadow darkening factor in [0, 1]')
    parser.add_argument('--overlay-alpha', type=float, help='Overlay opacity in [0, 1]')
    parser.add_argument('--z-scale', type=float, help='Divide elevation by this before shading/plotting')
    parser.add_argument('--sequential', action='store_true',
                        help='Fetch elevation and imagery one after the other')
    parser.add_argument('--force', action='store_true',
                        help='Download even if files already exist')
    parser.add_argument('--no-render', action='store_true', help='Only download, skip rendering')
    parser.add_argument('--no-3d', action='store_true', help='Skip the 3D snapshot')
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    overrides = {
        'major_dimension': args.major_dimension,
        'map_type': args.map_type,
        'output_dir': args.output_dir,
        'texture': args.texture,
        'shadow_darken_factor': args.shadow_darken_factor,
        'overlay_alpha': args.overlay_alpha,
        'z_scale': args.z_scale,
    }

    bbox_source = None
    try:
        if args.geojson:
            bbox_source = GeoJSONBoundingBoxSource(args.geojson)
            west, south, east, north = bbox_source.obtain_bounding_box().extent()
            overrides.update(min_lon=west, min_lat=south, max_lon=east, max_lat=north)
        elif args.bounds:
            west, south, east, north = args.bounds
            overrides.update(min_lon=west, min_lat=south, max_lon=east, max_lat=north)

        terrain_config = get_terrain_config(overrides, settings_file=args.settings)
    except (OSError, ValueError) as e:
        print(f"ERROR: {e}")
        return 1

    download_settings = get_download_settings(args.settings)

    try:
        run_pipeline(
            terrain_config,
            bbox_source=bbox_source,
            render=not args.no_render,
            render_3d=not args.no_3d,
            parallel=not args.sequential,
            force=args.force,
            render_dir=args.render_dir or download_settings['render_dir'],
            endpoints=get_endpoint_settings(args.settings),
            timeout=download_settings['timeout_seconds'],
        )
    except (PipelineError, TerrainError) as e:
        print(f"\nERROR: {e}")
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
