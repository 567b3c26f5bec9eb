import json
import sys
from pathlib import Path
from typing import Dict, Any, Optional

from src import config
from src.data_types import TerrainConfig

# NOTE: This is a library module - DO NOT wrap sys.stdout/stderr here


def load_settings(settings_file: str = "settings.json") -> Dict[str, Any]:
    """
    Read settings.json. A missing file means "use defaults"; a broken one exits.
    """
    settings_path = Path(settings_file)

    if not settings_path.exists():
        return {}

    try:
        with open(settings_path, 'r') as f:
            settings = json.load(f)
    except json.JSONDecodeError as e:
        print(f" Error: Invalid JSON in {settings_file}")
        print(f" {e}")
        print(f" Use settings.example.json as a template.")
        sys.exit(1)

    if not isinstance(settings, dict):
        print(f" Error: {settings_file} must contain a JSON object")
        sys.exit(1)

    return settings


def get_setting(key_path: str, default: Any = None, settings_file: str = "settings.json") -> Any:
    try:
        value = load_settings(settings_file)
        for key in key_path.split('.'):
            value = value[key]
        return value
    except (KeyError, TypeError):
        return default


def get_terrain_config(overrides: Optional[Dict[str, Any]] = None,
                       settings_file: str = "settings.json") -> TerrainConfig:
    """
    TerrainConfig from the 'terrain' section, with overrides applied on top.

    Overrides whose value is None are ignored so argparse defaults can be
    passed straight through.
    """
    values = dict(load_settings(settings_file).get('terrain', {}))
    if overrides:
        values.update({k: v for k, v in overrides.items() if v is not None})

    missing = [k for k in ('min_lon', 'min_lat', 'max_lon', 'max_lat') if k not in values]
    if missing:
        raise ValueError(f"Bounds not configured: missing {', '.join(missing)} "
                         f"(set them in {settings_file} or pass --bounds)")

    return TerrainConfig.from_dict(values)


def get_endpoint_settings(settings_file: str = "settings.json") -> Dict[str, str]:
    settings = load_settings(settings_file)
    endpoints = {
        'elevation': config.ELEVATION_EXPORT_URL,
        'web_map_export': config.WEB_MAP_EXPORT_URL,
        'basemap_template': config.BASEMAP_URL_TEMPLATE,
    }
    endpoints.update(settings.get('endpoints', {}))
    return endpoints


def get_download_settings(settings_file: str = "settings.json") -> Dict[str, Any]:
    settings = load_settings(settings_file)
    download = {
        'timeout_seconds': config.REQUEST_TIMEOUT_SECONDS,
        'render_dir': config.DEFAULT_RENDER_DIR,
    }
    download.update(settings.get('download', {}))
    return download


if __name__ == "__main__":
    print("Testing settings loader...")
    print("\n Current Settings:")
    print("="*60)
    print(json.dumps(load_settings(), indent=2))

    print("\n Endpoints:")
    for key, value in get_endpoint_settings().items():
        print(f" {key}: {value}")

    print("\n Download Settings:")
    for key, value in get_download_settings().items():
        print(f" {key}: {value}")
