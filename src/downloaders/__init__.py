"""
Data downloaders for elevation rasters and overlay imagery.

This package contains the HTTP request/response logic for the two ArcGIS
export services. fetch_terrain.py and src/pipeline.py call these functions.
"""

from .elevation import fetch_elevation
from .imagery import fetch_imagery
from .orchestrator import acquire_tiles, AcquisitionResult, FetchOutcome

__all__ = ['fetch_elevation', 'fetch_imagery', 'acquire_tiles', 'AcquisitionResult', 'FetchOutcome']
