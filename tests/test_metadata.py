"""
Tests for download metadata sidecars.

Run with: pytest tests/test_metadata.py -v
"""

from src.data_types import BoundingBox, ImageSize
from src.metadata import (
    create_fetch_metadata, save_metadata, load_metadata, validate_source_file, get_metadata_path,
)

BBOX = BoundingBox(p1=(-121.58707, 45.44375), p2=(-121.79031, 45.30387))


def test_sidecar_roundtrip_and_validation(tmp_path):
    data_file = tmp_path / "tile_overlay.png"
    data_file.write_bytes(b'png bytes')

    metadata = create_fetch_metadata(
        data_file, 'imagery', BBOX, ImageSize(400, 275),
        export_url='http://print.test', download_url='http://x/map.png',
    )
    metadata_path = get_metadata_path(data_file)
    save_metadata(metadata, metadata_path)

    assert metadata_path.name == "tile_overlay.json"
    loaded = load_metadata(metadata_path)
    assert loaded['file_size_bytes'] == 9
    assert loaded['bbox'] == {'p1': [-121.58707, 45.44375], 'p2': [-121.79031, 45.30387]}
    assert loaded['extent'] == [-121.79031, 45.30387, -121.58707, 45.44375]
    assert 'request_params' not in loaded

    assert validate_source_file(data_file, loaded['file_hash'])
    data_file.write_bytes(b'changed')
    assert not validate_source_file(data_file, loaded['file_hash'])


def test_missing_file_not_valid(tmp_path):
    assert not validate_source_file(tmp_path / "gone.tif", "abc")
