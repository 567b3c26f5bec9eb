"""
USGS 3DEP elevation downloader.

Requests a single-band 64-bit float GeoTIFF for a bounding box from the 3DEP
ImageServer exportImage operation. With f=json the server renders the raster
and answers with an 'href' to it; the raster is then downloaded from there.
"""

from pathlib import Path
from typing import Dict, Optional, Union

import requests

from src import config
from src.data_types import BoundingBox, ImageSize
from src.metadata import write_fetch_metadata
from src.downloaders.transfer import (
    request_json, require_field, download_to_file, temporary_destination
)


def build_elevation_params(bbox: BoundingBox, size_string: str,
                           source_srid: int = config.DEFAULT_SRID,
                           target_srid: int = config.DEFAULT_SRID) -> Dict[str, str]:
    """
    Query parameters for an exportImage request.

    The bbox is normalized to xmin,ymin,xmax,ymax first, the same extent the
    imagery request uses, so both files cover identical ground.
    """
    return {
        'bbox': bbox.normalized().to_query_string(),
        'bboxSR': str(source_srid),
        'imageSR': str(target_srid),
        'size': size_string,
        'format': 'tiff',
        'pixelType': 'F64',
        'noDataInterpretation': 'esriNoDataMatchAny',
        'interpolation': '+RSP_BilinearInterpolation',
        'f': 'json',
    }


def fetch_elevation(
    bbox: BoundingBox,
    size_string: str,
    dest_path: Optional[Union[str, Path]] = None,
    source_srid: int = config.DEFAULT_SRID,
    target_srid: int = config.DEFAULT_SRID,
    endpoint: str = config.ELEVATION_EXPORT_URL,
    session: Optional[requests.Session] = None,
    timeout: float = config.REQUEST_TIMEOUT_SECONDS,
    write_metadata: bool = True
) -> Path:
    """
    Download an elevation GeoTIFF covering bbox.

    Args:
        bbox: Area to fetch
        size_string: Pixel size as "width,height" (see tile_geometry.compute_image_size)
        dest_path: Where to save the .tif (a temp path is generated if omitted)
        source_srid: Spatial reference of the bbox coordinates
        target_srid: Spatial reference of the returned raster
        endpoint: exportImage URL
        session: Optional requests session to reuse connections
        timeout: Seconds per request
        write_metadata: Write a JSON sidecar next to the raster

    Returns:
        Path to the saved GeoTIFF

    Raises:
        DegenerateBoundingBox: bbox spans zero width or height
        RemoteRequestFailed: either request returned non-200 or an error body
        MalformedResponse: export response has no 'href'
        ValueError: size_string is not 'width,height'
    """
    bbox.require_non_degenerate()
    size = ImageSize.from_size_string(size_string)
    dest_path = Path(dest_path) if dest_path else temporary_destination('.tif', stem='elevation')
    params = build_elevation_params(bbox, size_string, source_srid, target_srid)

    print(f"  Requesting elevation export ({size_string.replace(',', 'x')} px)...", flush=True)
    print(f"    bbox: {params['bbox']} (SR {source_srid} -> {target_srid})", flush=True)
    data = request_json(endpoint, params=params, session=session, timeout=timeout)
    href = require_field(data, 'href', url=endpoint)

    print(f"  Downloading elevation raster...", flush=True)
    download_to_file(href, dest_path, session=session, timeout=config.DOWNLOAD_TIMEOUT_SECONDS)

    size_kb = dest_path.stat().st_size / 1024
    print(f"  Saved elevation raster: {dest_path} ({size_kb:.1f} KB)", flush=True)

    if write_metadata:
        write_fetch_metadata(
            dest_path,
            kind='elevation',
            bbox=bbox,
            size=size,
            export_url=endpoint,
            download_url=href,
            request_params=params,
        )

    return dest_path
