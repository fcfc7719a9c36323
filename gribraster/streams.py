# GRIB Raster - Stream Sources
# SPDX-License-Identifier: Apache-2.0

"""
Opens GRIB sources as seekable binary streams.

Supported sources:
1. Filesystem paths (str or Path)
2. http(s) URLs, read through byte-range requests
3. Seekable binary file objects (used as-is)
4. Raw bytes
"""

from pathlib import Path
from typing import BinaryIO, Optional, Union
import io
import logging
import os

import requests

logger = logging.getLogger(__name__)

Source = Union[str, os.PathLike, BinaryIO, bytes]

RANGE_BUFFER_SIZE = 256 * 1024


class HTTPRangeStream(io.RawIOBase):
    """
    Read-only, seekable view of a remote file using HTTP Range requests.

    Only the bytes actually read are transferred, so an inventory scan
    followed by single-band reads never downloads the whole file.
    """

    def __init__(
        self,
        url: str,
        session: Optional[requests.Session] = None,
        timeout: float = 30.0,
    ):
        super().__init__()
        self.url = url
        self.timeout = timeout
        self._owns_session = session is None
        self.session = session or requests.Session()
        self._position = 0
        self._size: Optional[int] = None

    @property
    def size(self) -> int:
        """Remote file size from Content-Length"""
        if self._size is None:
            resp = self.session.head(self.url, allow_redirects=True, timeout=self.timeout)
            resp.raise_for_status()
            length = resp.headers.get("Content-Length")
            if length is None:
                raise OSError(f"Server did not report a size for {self.url}")
            self._size = int(length)
        return self._size

    def readable(self) -> bool:
        return True

    def seekable(self) -> bool:
        return True

    def tell(self) -> int:
        return self._position

    def seek(self, offset: int, whence: int = io.SEEK_SET) -> int:
        if whence == io.SEEK_SET:
            position = offset
        elif whence == io.SEEK_CUR:
            position = self._position + offset
        elif whence == io.SEEK_END:
            position = self.size + offset
        else:
            raise ValueError(f"Invalid whence {whence}")
        if position < 0:
            raise ValueError(f"Negative seek position {position}")
        self._position = position
        return position

    def readinto(self, buffer) -> int:
        wanted = len(buffer)
        if wanted == 0 or self._position >= self.size:
            return 0

        end = min(self._position + wanted, self.size) - 1
        headers = {"Range": f"bytes={self._position}-{end}"}
        resp = self.session.get(self.url, headers=headers, timeout=self.timeout)
        if resp.status_code != 206:
            resp.raise_for_status()
            raise OSError(
                f"Range request not honoured by {self.url} (status {resp.status_code})"
            )

        data = resp.content
        buffer[:len(data)] = data
        self._position += len(data)
        return len(data)

    def close(self):
        if not self.closed and self._owns_session:
            self.session.close()
        super().close()


def is_url(source: object) -> bool:
    return isinstance(source, str) and source.startswith(("http://", "https://"))


def describe_source(source: Source) -> str:
    """Human-readable name for log and error messages"""
    if isinstance(source, (str, os.PathLike)):
        return str(source)
    if isinstance(source, bytes):
        return f"<{len(source)} bytes>"
    return getattr(source, "name", None) or repr(source)


def open_stream(source: Source, timeout: float = 30.0) -> BinaryIO:
    """
    Open a source for random-access binary reading.

    The caller owns the returned stream and must close it.
    """
    if isinstance(source, bytes):
        return io.BytesIO(source)
    if is_url(source):
        logger.debug(f"Opening {source} with HTTP range requests")
        raw = HTTPRangeStream(source, timeout=timeout)
        return io.BufferedReader(raw, buffer_size=RANGE_BUFFER_SIZE)
    if isinstance(source, (str, os.PathLike)):
        return open(Path(source), "rb")

    if not hasattr(source, "read"):
        raise TypeError(f"Cannot open {type(source).__name__} as a GRIB source")
    seekable = getattr(source, "seekable", None)
    if seekable is not None and not seekable():
        # Inventory and lazy reads need random access
        data = source.read()
        source.close()
        return io.BytesIO(data)
    return source
