"""
Exception classes for terrain tile acquisition.

Fetchers raise these instead of printing a warning and carrying on, so a
failed download never leaves the renderer holding a missing or empty file.
"""
from typing import Optional


class TerrainError(Exception):
    """Base exception for terrain acquisition errors."""
    pass


class DegenerateBoundingBox(TerrainError, ValueError):
    """Bounding box spans zero width or zero height, so it has no aspect ratio."""
    def __init__(self, message: str, lon_span: Optional[float] = None, lat_span: Optional[float] = None):
        super().__init__(message)
        self.lon_span = lon_span
        self.lat_span = lat_span


class RemoteRequestFailed(TerrainError):
    """A remote endpoint answered with a non-200 status or could not be reached."""
    def __init__(self, message: str, url: Optional[str] = None,
                 status_code: Optional[int] = None, body_preview: Optional[str] = None):
        super().__init__(message)
        self.url = url
        self.status_code = status_code
        self.body_preview = body_preview


class MalformedResponse(TerrainError):
    """A response parsed but lacked the field the next request depends on."""
    def __init__(self, message: str, url: Optional[str] = None,
                 missing_field: Optional[str] = None, payload_preview: Optional[str] = None):
        super().__init__(message)
        self.url = url
        self.missing_field = missing_field
        self.payload_preview = payload_preview


class FetchWriteError(TerrainError):
    """Downloaded bytes could not be written to the destination."""
    def __init__(self, message: str, dest_path=None):
        super().__init__(message)
        self.dest_path = dest_path
