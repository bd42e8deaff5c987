"""
Remote media fetcher.

Each fetch is described by its own immutable DownloadRequest; the fetcher
itself only holds transport settings, so one instance can serve unrelated
downloads without being reconfigured between them.
"""

import asyncio
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

import httpx

from .errors import ErrorCategory, TranscodeError
from .progress import ProgressReporter
from .transcoding.constants import DEFAULT_DOWNLOAD_TIMEOUT
from .utils import run_cancellable

logger = logging.getLogger(__name__)

PART_SUFFIX = ".part"


@dataclass(frozen=True)
class DownloadRequest:
    url: str
    destination: Path
    allow_overwrite: bool = False
    timeout: float = DEFAULT_DOWNLOAD_TIMEOUT


class RemoteFetcher:
    """
    Downloads a URL to a local file with httpx.

    Args:
        transport: Optional httpx transport (tests use httpx.MockTransport)
        chunk_size: Bytes read per iteration of the response body
        connect_timeout: Seconds allowed to establish the connection
        read_timeout: Seconds allowed between body chunks
    """

    def __init__(
        self,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        chunk_size: int = 64 * 1024,
        connect_timeout: float = 10.0,
        read_timeout: float = 60.0
    ):
        self.transport = transport
        self.chunk_size = chunk_size
        self.connect_timeout = connect_timeout
        self.read_timeout = read_timeout

    async def fetch(
        self,
        url: str,
        destination: Union[str, Path],
        allow_overwrite: bool = False,
        timeout: float = DEFAULT_DOWNLOAD_TIMEOUT,
        progress: Optional[ProgressReporter] = None,
        cancel_event: Optional[asyncio.Event] = None
    ) -> Path:
        """
        Download ``url`` to ``destination`` and return the destination path.

        An existing destination is kept as-is unless ``allow_overwrite`` is set.
        The body is streamed to a ``.part`` sibling that only replaces the
        destination once complete; cancellation or a passed deadline removes it.

        Raises:
            TranscodeError: download, system or cancellation category
        """
        request = DownloadRequest(
            url=url,
            destination=Path(destination),
            allow_overwrite=allow_overwrite,
            timeout=timeout,
        )
        return await self.execute(request, progress, cancel_event)

    async def execute(
        self,
        request: DownloadRequest,
        progress: Optional[ProgressReporter] = None,
        cancel_event: Optional[asyncio.Event] = None
    ) -> Path:
        destination = request.destination

        try:
            destination.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise TranscodeError.wrap(
                e, ErrorCategory.SYSTEM, "Failed to create destination directory", 1
            ) from e

        if destination.exists() and not request.allow_overwrite:
            logger.info(f"[Fetch] {destination} already exists, skipping download")
            return destination

        part_path = destination.with_name(destination.name + PART_SUFFIX)
        logger.info(f"[Fetch] Downloading {request.url} -> {destination}")

        try:
            await run_cancellable(
                self._download(request, part_path, progress),
                cancel_event=cancel_event,
                timeout=request.timeout,
                what="download",
            )
            os.replace(part_path, destination)
        except BaseException:
            self._discard(part_path)
            raise

        logger.info(f"[Fetch] Download complete: {destination}")
        return destination

    async def _download(
        self,
        request: DownloadRequest,
        part_path: Path,
        progress: Optional[ProgressReporter]
    ) -> None:
        timeout = httpx.Timeout(self.read_timeout, connect=self.connect_timeout)
        async with httpx.AsyncClient(
            transport=self.transport, timeout=timeout, follow_redirects=True
        ) as client:
            try:
                http_request = client.build_request("GET", request.url)
            except (httpx.InvalidURL, httpx.UnsupportedProtocol, ValueError) as e:
                raise TranscodeError.wrap(
                    e, ErrorCategory.DOWNLOAD, "Failed to build download request", 2
                ) from e

            try:
                response = await client.send(http_request, stream=True)
            except httpx.HTTPError as e:
                raise TranscodeError.wrap(
                    e, ErrorCategory.DOWNLOAD, "Download request failed", 3
                ) from e

            try:
                if not response.is_success:
                    raise TranscodeError(
                        ErrorCategory.DOWNLOAD,
                        "Download failed",
                        f"Status: {response.status_code} {response.reason_phrase}".strip(),
                        4,
                    )
                await self._write_body(response, part_path, progress)
            finally:
                await response.aclose()

    async def _write_body(
        self,
        response: httpx.Response,
        part_path: Path,
        progress: Optional[ProgressReporter]
    ) -> None:
        total = _content_length(response)
        if progress is not None and total > 0:
            progress.start(total)

        try:
            handle = open(part_path, "wb")
        except OSError as e:
            raise TranscodeError.wrap(
                e, ErrorCategory.SYSTEM, "Failed to create destination file", 5
            ) from e

        bytes_read = 0
        with handle:
            try:
                async for chunk in response.aiter_bytes(self.chunk_size):
                    try:
                        handle.write(chunk)
                    except OSError as e:
                        raise TranscodeError.wrap(
                            e, ErrorCategory.DOWNLOAD, "Failed to write downloaded data", 6
                        ) from e
                    bytes_read += len(chunk)
                    if progress is not None and total > 0:
                        progress.update(bytes_read, "downloading", "Downloading file")
            except httpx.HTTPError as e:
                raise TranscodeError.wrap(
                    e, ErrorCategory.DOWNLOAD, "Download interrupted", 3
                ) from e

        logger.debug(f"[Fetch] Received {bytes_read} bytes")

    @staticmethod
    def _discard(part_path: Path) -> None:
        try:
            part_path.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning(f"[Fetch] Could not remove partial file {part_path}: {e}")


def _content_length(response: httpx.Response) -> int:
    value = response.headers.get("content-length")
    if not value:
        return 0
    try:
        return max(0, int(value))
    except ValueError:
        return 0
