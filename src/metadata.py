"""
Metadata generation for downloaded terrain tiles.

Each downloaded file gets an accompanying JSON sidecar that tracks:
- Source provenance (export endpoint and the derived payload URL)
- Request parameters and bounding box
- File hash and size for later validation
- Timestamp
"""
from typing import Dict, Optional, Any
from pathlib import Path
import json
import hashlib
from datetime import datetime

from src.data_types import BoundingBox, ImageSize

METADATA_VERSION = "1.0"


def compute_file_hash(filepath: Path, algorithm: str = 'md5') -> str:
    """
    Compute hash of a file for cache validation.

    Args:
        filepath: Path to file
        algorithm: Hash algorithm ('md5' or 'sha256')

    Returns:
        Hex digest of file hash
    """
    hash_func = hashlib.md5() if algorithm == 'md5' else hashlib.sha256()

    with open(filepath, 'rb') as f:
        for chunk in iter(lambda: f.read(8192), b''):
            hash_func.update(chunk)

    return hash_func.hexdigest()


def create_fetch_metadata(
    file_path: Path,
    kind: str,
    bbox: BoundingBox,
    size: Optional[ImageSize],
    export_url: str,
    download_url: str,
    request_params: Optional[Dict[str, Any]] = None
) -> Dict:
    """
    Create metadata for a downloaded elevation raster or overlay image.

    Args:
        file_path: Path to the downloaded file
        kind: 'elevation' or 'imagery'
        bbox: Bounding box the file covers
        size: Pixel size requested
        export_url: Endpoint the export request was sent to
        download_url: URL the payload was fetched from
        request_params: Query parameters of the export request

    Returns:
        Metadata dictionary
    """
    metadata = {
        "version": METADATA_VERSION,
        "kind": kind,
        "download_date": datetime.now().isoformat(),
        "file_path": str(file_path),
        "file_size_bytes": file_path.stat().st_size,
        "file_hash": compute_file_hash(file_path),
        "bbox": bbox.to_dict(),
        "extent": list(bbox.extent()),
        "export_url": export_url,
        "download_url": download_url,
    }
    if size is not None:
        metadata["size"] = {"width": size.width, "height": size.height}
    if request_params:
        metadata["request_params"] = request_params

    return metadata


def save_metadata(metadata: Dict, output_path: Path) -> None:
    """
    Save metadata to JSON file.

    Args:
        metadata: Metadata dictionary
        output_path: Path to save JSON file
    """
    output_path.parent.mkdir(parents=True, exist_ok=True)
    with open(output_path, 'w') as f:
        json.dump(metadata, f, indent=2)


def write_fetch_metadata(file_path: Path, **kwargs) -> Optional[Path]:
    """
    Create and save the sidecar for a finished download.

    The download itself is already complete at this point, so a failure to
    write the sidecar is reported as a warning and the data file is kept.

    Returns:
        Path of the sidecar, or None if it could not be written
    """
    metadata_path = get_metadata_path(file_path)
    try:
        metadata = create_fetch_metadata(file_path=file_path, **kwargs)
        save_metadata(metadata, metadata_path)
    except OSError as e:
        print(f"  WARNING: Could not write metadata {metadata_path}: {e}", flush=True)
        return None
    return metadata_path


def load_metadata(metadata_path: Path) -> Dict:
    """
    Load metadata from JSON file.

    Raises:
        FileNotFoundError: If metadata file doesn't exist
    """
    if not metadata_path.exists():
        raise FileNotFoundError(f"Metadata file not found: {metadata_path}")

    with open(metadata_path) as f:
        return json.load(f)


def validate_source_file(source_file: Path, expected_hash: str) -> bool:
    """True if the file exists and still matches the hash recorded at download time."""
    if not source_file.exists():
        return False

    return compute_file_hash(source_file) == expected_hash


def get_metadata_path(data_path: Path) -> Path:
    """Sidecar path for a data file: same name with a .json extension."""
    return data_path.with_suffix('.json')
