"""
Central configuration for the terrain-tiles project.

This is the single source of truth for default values.
settings.json (see load_settings.py) may override any of these per user.
"""

# USGS 3DEP elevation ImageServer (exportImage returns JSON with an href to the raster)
ELEVATION_EXPORT_URL = "https://elevation.nationalmap.gov/arcgis/rest/services/3DEPElevation/ImageServer/exportImage"

# ArcGIS Online printing service - renders a web map definition to an image
WEB_MAP_EXPORT_URL = (
    "https://utility.arcgisonline.com/arcgis/rest/services/Utilities/PrintingTools/"
    "GPServer/Export%20Web%20Map%20Task/execute"
)

# Base map layer URL, formatted with the map type (e.g. 'World_Imagery', 'World_Topo_Map')
BASEMAP_URL_TEMPLATE = "https://services.arcgisonline.com/ArcGIS/rest/services/{map_type}/MapServer"

DEFAULT_MAP_TYPE = "World_Imagery"

# WGS84 lon/lat for both the request bbox and the returned image
DEFAULT_SRID = 4326

# Longest side of the output image in pixels; the other side follows the bbox aspect ratio
DEFAULT_MAJOR_DIMENSION = 800

# Seconds per HTTP request. Export jobs can be slow, payload downloads are small.
REQUEST_TIMEOUT_SECONDS = 60
DOWNLOAD_TIMEOUT_SECONDS = 300

DOWNLOAD_CHUNK_SIZE = 8192

DEFAULT_OUTPUT_DIR = "data/terrain"
DEFAULT_RENDER_DIR = "generated"

# Rendering defaults
DEFAULT_TEXTURE = "desert"
DEFAULT_SHADOW_DARKEN_FACTOR = 0.5
DEFAULT_OVERLAY_ALPHA = 0.5
DEFAULT_Z_SCALE = 10.0
DEFAULT_CAMERA_THETA = 0.0    # azimuth in degrees
DEFAULT_CAMERA_PHI = 30.0     # elevation above horizon in degrees
DEFAULT_LIGHT_AZIMUTH = 315
DEFAULT_LIGHT_ALTITUDE = 45
