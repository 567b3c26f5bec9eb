"""
Shared fixtures: fake HTTP responses and small on-disk rasters/images.

Nothing here touches the network.
"""
import json
from unittest.mock import Mock

import matplotlib
matplotlib.use("Agg")

import numpy as np
import pytest
import rasterio
from rasterio.transform import from_bounds
from PIL import Image


@pytest.fixture
def json_response():
    """Factory for a fake requests.Response carrying a JSON body."""
    def _make(payload, status_code=200):
        response = Mock()
        response.status_code = status_code
        response.json.return_value = payload
        response.text = json.dumps(payload)
        response.headers = {'content-type': 'application/json'}
        return response
    return _make


@pytest.fixture
def binary_response():
    """Factory for a fake streamed binary response."""
    def _make(data: bytes, status_code=200):
        response = Mock()
        response.status_code = status_code
        response.headers = {'content-length': str(len(data))}
        response.iter_content.return_value = [data]
        response.text = '' if status_code == 200 else 'Internal Server Error'
        return response
    return _make


@pytest.fixture
def sample_elevation():
    """20 x 30 tilted plane with a bump, in metres."""
    rows, cols = np.mgrid[0:20, 0:30]
    return 1000.0 + rows * 5.0 + cols * 3.0 + 50.0 * np.exp(-((rows - 10) ** 2 + (cols - 15) ** 2) / 20.0)


@pytest.fixture
def sample_tif(tmp_path, sample_elevation):
    """GeoTIFF of sample_elevation with one nodata cell."""
    data = sample_elevation.copy()
    data[0, 0] = -9999.0
    path = tmp_path / "sample_dem.tif"
    rows, cols = data.shape
    with rasterio.open(
        path, 'w', driver='GTiff', height=rows, width=cols, count=1,
        dtype='float64', crs='EPSG:4326', nodata=-9999.0,
        transform=from_bounds(-121.79031, 45.30387, -121.58707, 45.44375, cols, rows),
    ) as dst:
        dst.write(data, 1)
    return path


@pytest.fixture
def sample_png(tmp_path):
    """30 x 20 solid green PNG, same pixel size as sample_tif."""
    path = tmp_path / "sample_overlay.png"
    Image.new('RGB', (30, 20), (0, 200, 0)).save(path)
    return path
