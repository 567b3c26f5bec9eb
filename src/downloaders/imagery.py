"""
Satellite / aerial overlay downloader.

Uses the ArcGIS Online "Export Web Map Task": a small web map definition
(one base map layer, an output size, an extent) is sent as a JSON string,
the service renders it to PNG and answers with results[0].value.url.
"""

import json
from pathlib import Path
from typing import Dict, Any, Optional, Union

import requests

from src import config
from src.data_types import BoundingBox, ImageSize
from src.metadata import write_fetch_metadata
from src.downloaders.transfer import (
    request_json, require_field, download_to_file, temporary_destination
)


def basemap_url(map_type: str, template: str = config.BASEMAP_URL_TEMPLATE) -> str:
    return template.format(map_type=map_type)


def build_web_map(bbox: BoundingBox, map_type: str, width: int, height: int,
                  source_srid: int = config.DEFAULT_SRID,
                  basemap_template: str = config.BASEMAP_URL_TEMPLATE) -> Dict[str, Any]:
    """
    Web map definition for the export task.

    The extent is taken as min/max over both corners, so the result does not
    depend on which corner the box was drawn from.
    """
    xmin, ymin, xmax, ymax = bbox.extent()
    return {
        'baseMap': {
            'baseMapLayers': [
                {'url': basemap_url(map_type, basemap_template)}
            ]
        },
        'exportOptions': {
            'outputSize': [width, height]
        },
        'mapOptions': {
            'extent': {
                'spatialReference': {'wkid': source_srid},
                'xmax': xmax,
                'xmin': xmin,
                'ymax': ymax,
                'ymin': ymin,
            }
        }
    }


def build_imagery_params(web_map: Dict[str, Any]) -> Dict[str, str]:
    return {
        'f': 'json',
        'Format': 'PNG32',
        'Layout_Template': 'MAP_ONLY',
        'Web_Map_as_JSON': json.dumps(web_map),
    }


def build_imagery_record(map_type: str, web_map: Dict[str, Any]) -> Dict[str, Any]:
    """Request description stored in the sidecar and compared before reuse."""
    return {'map_type': map_type, 'web_map': web_map}


def fetch_imagery(
    bbox: BoundingBox,
    map_type: str,
    width: int,
    height: int,
    source_srid: int = config.DEFAULT_SRID,
    dest_path: Optional[Union[str, Path]] = None,
    endpoint: str = config.WEB_MAP_EXPORT_URL,
    basemap_template: str = config.BASEMAP_URL_TEMPLATE,
    session: Optional[requests.Session] = None,
    timeout: float = config.REQUEST_TIMEOUT_SECONDS,
    write_metadata: bool = True
) -> Path:
    """
    Download a PNG overlay covering bbox at width x height pixels.

    Args:
        bbox: Area to fetch (corner order does not matter)
        map_type: Base map service name, e.g. 'World_Imagery'
        width, height: Output size; use the same size as the elevation raster
        source_srid: Spatial reference of the bbox coordinates
        dest_path: Where to save the .png (a temp path is generated if omitted)
        endpoint: Export Web Map Task execute URL
        basemap_template: Base map URL with a {map_type} placeholder
        session: Optional requests session
        timeout: Seconds per request
        write_metadata: Write a JSON sidecar next to the image

    Returns:
        Path to the saved PNG

    Raises:
        DegenerateBoundingBox: bbox spans zero width or height
        RemoteRequestFailed: either request returned non-200 or an error body
        MalformedResponse: export response has no results[0].value.url
    """
    bbox.require_non_degenerate()
    dest_path = Path(dest_path) if dest_path else temporary_destination('.png', stem='overlay')
    web_map = build_web_map(bbox, map_type, width, height, source_srid, basemap_template)
    params = build_imagery_params(web_map)

    print(f"  Requesting {map_type} export ({width}x{height} px)...", flush=True)
    data = request_json(endpoint, params=params, session=session, timeout=timeout)
    image_url = require_field(data, 'results.0.value.url', url=endpoint)

    print(f"  Downloading overlay image...", flush=True)
    download_to_file(image_url, dest_path, session=session, timeout=config.DOWNLOAD_TIMEOUT_SECONDS)

    size_kb = dest_path.stat().st_size / 1024
    print(f"  Saved overlay image: {dest_path} ({size_kb:.1f} KB)", flush=True)

    if write_metadata:
        write_fetch_metadata(
            dest_path,
            kind='imagery',
            bbox=bbox,
            size=ImageSize(width=width, height=height),
            export_url=endpoint,
            download_url=image_url,
            request_params=build_imagery_record(map_type, web_map),
        )

    return dest_path
