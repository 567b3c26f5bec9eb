"""
HTTP helpers shared by the elevation and imagery fetchers.

Both ArcGIS export endpoints work in two steps: the export request answers
with JSON that points at the real payload, then a second GET downloads it.
request_json() covers the first step, download_to_file() the second.

Downloads are written to '<dest>.part' and renamed into place only after the
last chunk lands, so a destination file exists if and only if the fetch
succeeded.
"""

import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Any, Optional, Union

import requests
from tqdm import tqdm

from src import config
from src.errors import RemoteRequestFailed, MalformedResponse, FetchWriteError


def _get(url: str, params: Optional[Dict[str, Any]] = None,
         session: Optional[requests.Session] = None,
         timeout: float = config.REQUEST_TIMEOUT_SECONDS,
         stream: bool = False) -> requests.Response:
    getter = session.get if session is not None else requests.get
    try:
        return getter(url, params=params, timeout=timeout, stream=stream)
    except requests.exceptions.Timeout as e:
        print(f"  ERROR: Request timed out after {timeout}s: {url}", flush=True)
        raise RemoteRequestFailed(f"Request timed out: {url}", url=url) from e
    except requests.exceptions.RequestException as e:
        print(f"  ERROR: Request failed: {e}", flush=True)
        raise RemoteRequestFailed(f"Request failed: {url}: {e}", url=url) from e


def _check_status(response: requests.Response, url: str) -> None:
    if response.status_code == 200:
        return
    preview = response.text[:500] if response.text else ''
    print(f"  ERROR: HTTP {response.status_code} from {url}", flush=True)
    if preview:
        print(f"  Response preview: {preview}", flush=True)
    raise RemoteRequestFailed(
        f"HTTP {response.status_code} from {url}",
        url=url,
        status_code=response.status_code,
        body_preview=preview,
    )


def request_json(url: str, params: Optional[Dict[str, Any]] = None,
                 session: Optional[requests.Session] = None,
                 timeout: float = config.REQUEST_TIMEOUT_SECONDS) -> Dict[str, Any]:
    """
    GET a URL and return the decoded JSON object.

    ArcGIS services report many failures as HTTP 200 with an
    {"error": {"code": ..., "message": ...}} body; those are raised as
    RemoteRequestFailed too.

    Raises:
        RemoteRequestFailed: non-200 status, transport error or ArcGIS error body
        MalformedResponse: body is not a JSON object
    """
    response = _get(url, params=params, session=session, timeout=timeout)
    _check_status(response, url)

    try:
        data = response.json()
    except ValueError as e:
        preview = response.text[:500] if response.text else ''
        raise MalformedResponse(
            f"Response from {url} is not valid JSON",
            url=url,
            payload_preview=preview,
        ) from e

    if not isinstance(data, dict):
        raise MalformedResponse(
            f"Expected a JSON object from {url}, got {type(data).__name__}",
            url=url,
            payload_preview=str(data)[:500],
        )

    if 'error' in data:
        error = data['error'] if isinstance(data['error'], dict) else {'message': str(data['error'])}
        message = error.get('message', '')
        code = error.get('code')
        details = error.get('details') or []
        print(f"  ERROR: Service error from {url}", flush=True)
        print(f"    Code: {code}", flush=True)
        print(f"    Message: {message}", flush=True)
        if details:
            print(f"    Details: {details}", flush=True)
        raise RemoteRequestFailed(
            f"Service error from {url}: {message} (Code: {code})",
            url=url,
            status_code=code if isinstance(code, int) else None,
            body_preview=str(data)[:500],
        )

    return data


def require_field(data: Dict[str, Any], path: str, url: Optional[str] = None) -> Any:
    """
    Walk a dotted path like 'results.0.value.url' through nested JSON.

    Raises:
        MalformedResponse: if any step of the path is absent
    """
    node: Any = data
    for part in path.split('.'):
        try:
            if isinstance(node, list):
                node = node[int(part)]
            else:
                node = node[part]
        except (KeyError, IndexError, ValueError, TypeError):
            raise MalformedResponse(
                f"Response from {url or 'service'} is missing '{path}'",
                url=url,
                missing_field=path,
                payload_preview=str(data)[:500],
            )
    if node is None or node == '':
        raise MalformedResponse(
            f"Response from {url or 'service'} has empty '{path}'",
            url=url,
            missing_field=path,
            payload_preview=str(data)[:500],
        )
    return node


@contextmanager
def _partial_file(dest_path: Path):
    """Yield a '.part' path; remove it on failure, rename it to dest on success."""
    part_path = dest_path.with_name(dest_path.name + '.part')
    try:
        yield part_path
        part_path.replace(dest_path)
    except BaseException:
        if part_path.exists():
            part_path.unlink()
        raise


def download_to_file(url: str, dest_path: Union[str, Path],
                     session: Optional[requests.Session] = None,
                     timeout: float = config.DOWNLOAD_TIMEOUT_SECONDS) -> Path:
    """
    Stream a URL to dest_path with a progress bar.

    Returns:
        Path to the written file

    Raises:
        RemoteRequestFailed: non-200 status or connection dropped mid-stream
        FetchWriteError: destination could not be written
    """
    dest_path = Path(dest_path)
    response = _get(url, session=session, timeout=timeout, stream=True)
    _check_status(response, url)

    total_size = int(response.headers.get('content-length', 0) or 0)

    try:
        dest_path.parent.mkdir(parents=True, exist_ok=True)
        with _partial_file(dest_path) as part_path:
            with open(part_path, 'wb') as f, tqdm(
                total=total_size, unit='B', unit_scale=True, unit_divisor=1024,
                desc=f"  {dest_path.name}"
            ) as pbar:
                for chunk in response.iter_content(chunk_size=config.DOWNLOAD_CHUNK_SIZE):
                    if chunk:
                        f.write(chunk)
                        pbar.update(len(chunk))
    except requests.exceptions.RequestException as e:
        print(f"  ERROR: Download interrupted: {e}", flush=True)
        raise RemoteRequestFailed(f"Download interrupted: {url}: {e}", url=url) from e
    except OSError as e:
        print(f"  ERROR: Could not write {dest_path}: {e}", flush=True)
        raise FetchWriteError(f"Could not write {dest_path}: {e}", dest_path=dest_path) from e
    finally:
        response.close()

    return dest_path


def temporary_destination(suffix: str, stem: str = "terrain") -> Path:
    """Fresh path in a new temp directory; the file itself is not created."""
    return Path(tempfile.mkdtemp(prefix="terrain_")) / f"{stem}{suffix}"
