import os
import tempfile
import time
from pathlib import Path
from urllib.parse import urlparse, unquote

import requests

from core.constants import REQUEST_TIMEOUT, CHUNK_SIZE


def retry_with_backoff(func, max_retries=3, delay=1, backoff=2,
                       exceptions=(requests.exceptions.RequestException,)):
    """Retry function with exponential backoff."""
    last_exception = None
    current_delay = delay

    for attempt in range(max_retries):
        try:
            return func()
        except exceptions as e:
            last_exception = e
            if attempt < max_retries - 1:
                time.sleep(current_delay)
                current_delay *= backoff

    raise last_exception


def filename_from_url(url: str) -> str:
    """Last path segment of a URL, percent-decoded.

    Raises ValueError when the URL has no scheme/host or no file name.
    """
    parsed = urlparse(url)
    if not parsed.scheme or not parsed.netloc:
        raise ValueError(f"Invalid URL: {url!r}")
    name = unquote(parsed.path.rsplit('/', 1)[-1])
    if not name or name in ('.', '..') or '/' in name or '\\' in name:
        raise ValueError(f"No file name in URL: {url!r}")
    return name


def download_to_file(url: str, destination, timeout=REQUEST_TIMEOUT, chunk_size=CHUNK_SIZE) -> Path:
    """Stream ``url`` into ``destination``.

    Bytes go to a temp file in the destination folder first and replace the
    target only once the body is complete, so a failed transfer never leaves
    a truncated file behind.
    """
    destination = Path(destination)
    destination.parent.mkdir(parents=True, exist_ok=True)

    with requests.get(url, stream=True, timeout=timeout) as response:
        response.raise_for_status()

        temp_fd, temp_path = tempfile.mkstemp(dir=destination.parent,
                                              prefix=f'.tmp_{destination.name}_', suffix='.part')
        try:
            with os.fdopen(temp_fd, 'wb') as f:
                for chunk in response.iter_content(chunk_size=chunk_size):
                    if chunk:
                        f.write(chunk)
            os.replace(temp_path, destination)
        except BaseException:
            if os.path.exists(temp_path):
                os.unlink(temp_path)
            raise

    return destination
