"""
Tests for the shared HTTP helpers (export JSON request + payload download).

All network calls are mocked.

Run with: pytest tests/test_transfer.py -v
"""

from unittest.mock import Mock, patch

import pytest
import requests

from src.errors import RemoteRequestFailed, MalformedResponse
from src.downloaders.transfer import (
    request_json, require_field, download_to_file, temporary_destination
)

GET = 'src.downloaders.transfer.requests.get'


class TestRequestJson:
    """Test suite for request_json."""

    def test_returns_decoded_object(self, json_response):
        """HTTP 200 with a JSON object returns that object."""
        with patch(GET, return_value=json_response({'href': 'http://x/y.tif'})) as mock_get:
            data = request_json('http://service/export', params={'f': 'json'}, timeout=5)

        assert data == {'href': 'http://x/y.tif'}
        mock_get.assert_called_once_with('http://service/export', params={'f': 'json'}, timeout=5, stream=False)

    def test_non_200_raises(self, json_response):
        """A 500 becomes RemoteRequestFailed carrying the status code."""
        with patch(GET, return_value=json_response({'oops': True}, status_code=500)):
            with pytest.raises(RemoteRequestFailed) as exc_info:
                request_json('http://service/export')

        assert exc_info.value.status_code == 500
        assert exc_info.value.url == 'http://service/export'

    def test_service_error_body_raises(self, json_response):
        """ArcGIS error envelopes returned with HTTP 200 are failures too."""
        payload = {'error': {'code': 400, 'message': 'Invalid bbox', 'details': ['bad extent']}}
        with patch(GET, return_value=json_response(payload)):
            with pytest.raises(RemoteRequestFailed, match='Invalid bbox') as exc_info:
                request_json('http://service/export')

        assert exc_info.value.status_code == 400

    def test_non_json_body_raises(self):
        """Unparseable body is a MalformedResponse."""
        response = Mock(status_code=200, text='<html>maintenance</html>')
        response.json.side_effect = ValueError("Expecting value")

        with patch(GET, return_value=response):
            with pytest.raises(MalformedResponse) as exc_info:
                request_json('http://service/export')

        assert 'maintenance' in exc_info.value.payload_preview

    def test_non_object_json_raises(self, json_response):
        """A JSON list is not a usable export response."""
        with patch(GET, return_value=json_response([1, 2, 3])):
            with pytest.raises(MalformedResponse):
                request_json('http://service/export')

    def test_connection_error_raises(self):
        """Transport errors surface as RemoteRequestFailed."""
        with patch(GET, side_effect=requests.exceptions.ConnectionError("refused")):
            with pytest.raises(RemoteRequestFailed, match='refused'):
                request_json('http://service/export')

    def test_timeout_raises(self):
        with patch(GET, side_effect=requests.exceptions.Timeout()):
            with pytest.raises(RemoteRequestFailed, match='timed out'):
                request_json('http://service/export')

    def test_uses_session_when_given(self, json_response):
        """A supplied session is used instead of requests.get."""
        session = Mock()
        session.get.return_value = json_response({'ok': 1})

        with patch(GET) as mock_get:
            assert request_json('http://service/export', session=session) == {'ok': 1}

        session.get.assert_called_once()
        mock_get.assert_not_called()


class TestRequireField:
    """Test suite for dotted-path field extraction."""

    def test_nested_path_through_list(self):
        data = {'results': [{'value': {'url': 'http://x/map.png'}}]}
        assert require_field(data, 'results.0.value.url') == 'http://x/map.png'

    @pytest.mark.parametrize("data", [
        {},
        {'results': []},
        {'results': [{}]},
        {'results': [{'value': {'url': ''}}]},
        {'results': [{'value': None}]},
    ])
    def test_missing_or_empty_raises(self, data):
        """Any missing step names the full path."""
        with pytest.raises(MalformedResponse) as exc_info:
            require_field(data, 'results.0.value.url', url='http://service')

        assert exc_info.value.missing_field == 'results.0.value.url'


class TestDownloadToFile:
    """Test suite for download_to_file."""

    def test_writes_exact_bytes(self, tmp_path, binary_response):
        """Payload bytes are written verbatim and no .part file remains."""
        dest = tmp_path / "out" / "tile.tif"

        with patch(GET, return_value=binary_response(b'\x01\x02')):
            result = download_to_file('http://x/y.tif', dest)

        assert result == dest
        assert dest.read_bytes() == b'\x01\x02'
        assert not (dest.parent / "tile.tif.part").exists()

    def test_multiple_chunks(self, tmp_path, binary_response):
        response = binary_response(b'')
        response.iter_content.return_value = [b'ab', b'', b'cd']
        dest = tmp_path / "tile.png"

        with patch(GET, return_value=response):
            download_to_file('http://x/y.png', dest)

        assert dest.read_bytes() == b'abcd'

    def test_non_200_writes_nothing(self, tmp_path, binary_response):
        """Failed payload download leaves no file behind."""
        dest = tmp_path / "tile.tif"

        with patch(GET, return_value=binary_response(b'', status_code=404)):
            with pytest.raises(RemoteRequestFailed):
                download_to_file('http://x/y.tif', dest)

        assert list(tmp_path.iterdir()) == []

    def test_interrupted_stream_cleans_up(self, tmp_path, binary_response):
        """Connection dropping mid-stream removes the partial file."""
        def chunks():
            yield b'\x01'
            raise requests.exceptions.ChunkedEncodingError("connection reset")

        response = binary_response(b'')
        response.iter_content.return_value = chunks()
        dest = tmp_path / "tile.tif"

        with patch(GET, return_value=response):
            with pytest.raises(RemoteRequestFailed, match='interrupted'):
                download_to_file('http://x/y.tif', dest)

        assert not dest.exists()
        assert not (tmp_path / "tile.tif.part").exists()

    def test_existing_file_untouched_on_failure(self, tmp_path, binary_response):
        """A previous good file is not clobbered by a failed re-download."""
        dest = tmp_path / "tile.tif"
        dest.write_bytes(b'old')

        def chunks():
            yield b'new'
            raise requests.exceptions.ConnectionError("reset")

        response = binary_response(b'')
        response.iter_content.return_value = chunks()

        with patch(GET, return_value=response):
            with pytest.raises(RemoteRequestFailed):
                download_to_file('http://x/y.tif', dest)

        assert dest.read_bytes() == b'old'


def test_temporary_destination_not_created():
    """Temp paths carry the suffix and do not exist yet."""
    path = temporary_destination('.tif', stem='elevation')
    assert path.suffix == '.tif'
    assert path.name == 'elevation.tif'
    assert path.parent.exists()
    assert not path.exists()
