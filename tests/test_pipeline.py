"""
Tests for the end-to-end pipeline.

acquire_tiles is mocked to hand back small real files, so rendering runs
for real while no network access happens.

Run with: pytest tests/test_pipeline.py -v
"""

from unittest.mock import patch

import pytest
from PIL import Image

from src.bbox_sources import StaticBoundingBoxSource
from src.data_types import TerrainConfig, ImageSize
from src.errors import RemoteRequestFailed
from src.downloaders.orchestrator import AcquisitionResult, FetchOutcome
from src.pipeline import run_pipeline, PipelineError

ACQUIRE = 'src.pipeline.acquire_tiles'


@pytest.fixture
def terrain_config(tmp_path):
    return TerrainConfig(
        min_lon=-121.79031, min_lat=45.30387, max_lon=-121.58707, max_lat=45.44375,
        major_dimension=400, output_dir=str(tmp_path / "terrain"),
    )


def _acquired(elevation_path=None, overlay_path=None, elevation_error=None, imagery_error=None):
    def fake(terrain_config, bbox=None, size=None, **kwargs):
        return AcquisitionResult(
            bbox=bbox,
            size=size,
            elevation=FetchOutcome('elevation', path=elevation_path, error=elevation_error),
            imagery=FetchOutcome('imagery', path=overlay_path, error=imagery_error),
        )
    return fake


class TestRunPipeline:
    """Test suite for run_pipeline."""

    def test_full_run_renders_2d(self, terrain_config, sample_tif, sample_png, tmp_path):
        render_dir = tmp_path / "generated"

        with patch(ACQUIRE, side_effect=_acquired(sample_tif, sample_png)) as mock_acquire:
            result = run_pipeline(terrain_config, render_3d=False, render_dir=str(render_dir))

        assert result.size == ImageSize(400, 275)
        assert result.elevation_path == sample_tif
        assert result.overlay_path == sample_png
        assert result.render_3d_path is None
        assert result.render_2d_path == render_dir / "N45.30387_W121.79031_N45.44375_W121.58707_400x275_2d.png"
        with Image.open(result.render_2d_path) as img:
            assert img.size == (30, 20)

        assert mock_acquire.call_args.kwargs['size'] == ImageSize(400, 275)

    def test_full_run_with_3d(self, terrain_config, sample_tif, sample_png, tmp_path):
        with patch(ACQUIRE, side_effect=_acquired(sample_tif, sample_png)):
            result = run_pipeline(terrain_config, render_dir=str(tmp_path / "generated"))

        assert result.render_3d_path.exists()
        assert result.render_3d_path.name.endswith('_3d.png')

    def test_download_only(self, terrain_config, sample_tif, sample_png, tmp_path):
        with patch(ACQUIRE, side_effect=_acquired(sample_tif, sample_png)):
            result = run_pipeline(terrain_config, render=False, render_dir=str(tmp_path / "generated"))

        assert result.render_2d_path is None
        assert not (tmp_path / "generated").exists()

    def test_bbox_source_overrides_config(self, terrain_config, sample_tif, sample_png, tmp_path):
        """A drawn box with north-east first corner is used instead of the config bounds."""
        source = StaticBoundingBoxSource((-105.0, 40.0), (-105.5, 39.5))

        with patch(ACQUIRE, side_effect=_acquired(sample_tif, sample_png)) as mock_acquire:
            result = run_pipeline(terrain_config, bbox_source=source, render=False)

        assert result.bbox.p1 == (-105.0, 40.0)
        assert result.size == ImageSize(400, 400)
        assert mock_acquire.call_args.kwargs['bbox'] == result.bbox

    def test_download_failure_raises(self, terrain_config, sample_png, tmp_path):
        """Rendering never starts when a fetch failed."""
        error = RemoteRequestFailed("HTTP 500", status_code=500)

        with patch(ACQUIRE, side_effect=_acquired(None, sample_png, elevation_error=error)), \
             patch('src.rendering.load_elevation') as mock_load:
            with pytest.raises(PipelineError, match='Download failed') as exc_info:
                run_pipeline(terrain_config, render_dir=str(tmp_path / "generated"))

        assert exc_info.value.__cause__ is error
        mock_load.assert_not_called()

    def test_invalid_config_raises(self, terrain_config):
        terrain_config.overlay_alpha = 2.0

        with patch(ACQUIRE) as mock_acquire:
            with pytest.raises(PipelineError, match='overlay_alpha'):
                run_pipeline(terrain_config)

        mock_acquire.assert_not_called()

    def test_degenerate_bbox_raises(self, tmp_path):
        terrain_config = TerrainConfig(min_lon=-121.0, min_lat=45.0, max_lon=-121.0, max_lat=46.0,
                                       output_dir=str(tmp_path))

        with patch(ACQUIRE) as mock_acquire:
            with pytest.raises(PipelineError, match='zero span'):
                run_pipeline(terrain_config)

        mock_acquire.assert_not_called()

    def test_unreadable_download_raises(self, terrain_config, tmp_path, sample_png):
        broken = tmp_path / "broken.tif"
        broken.write_bytes(b'not a tiff')

        with patch(ACQUIRE, side_effect=_acquired(broken, sample_png)):
            with pytest.raises(PipelineError, match='Rendering failed'):
                run_pipeline(terrain_config, render_dir=str(tmp_path / "generated"))
