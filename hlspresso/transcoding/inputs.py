"""
Input resolution: local files, direct URL streaming, and download-then-process.
"""

import asyncio
import logging
import shutil
import socket
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional
from urllib.parse import unquote, urlsplit

import httpx

from ..config import TranscodeConfig
from ..downloader import RemoteFetcher
from ..errors import ErrorCategory, ErrorCode, TranscodeError
from ..progress import ProgressReporter
from ..utils import check_free_space, find_cause, is_no_space, run_cancellable
from .constants import SUPPORTED_EXTENSIONS
from .models import InputMode

logger = logging.getLogger(__name__)

# Resolver messages that indicate a DNS failure rather than a refused connection
DNS_FAILURE_PHRASES = (
    "name or service not known",
    "nodename nor servname",
    "getaddrinfo failed",
    "temporary failure in name resolution",
    "no address associated with hostname",
    "name resolution",
)

STREAMABLE_CONTENT_TYPES = ("video/", "application/octet-stream")


def is_remote_url(locator: str) -> bool:
    """True only for well-formed http(s) URLs with a host."""
    try:
        parts = urlsplit(locator)
    except ValueError:
        return False
    return parts.scheme in ("http", "https") and bool(parts.netloc)


def download_filename(url: str) -> str:
    """File name taken from the URL path, or a timestamped fallback."""
    name = Path(unquote(urlsplit(url).path)).name
    if not name or name in (".", ".."):
        name = f"download_{int(time.time())}.mp4"
    return name


def _is_dns_failure(error: BaseException) -> bool:
    if find_cause(error, socket.gaierror) is not None:
        return True
    text = str(error).lower()
    return any(phrase in text for phrase in DNS_FAILURE_PHRASES)


def network_error(error: BaseException) -> Optional[TranscodeError]:
    """Map an httpx failure onto a network error code, if it is one."""
    if isinstance(error, httpx.TimeoutException):
        return TranscodeError.from_code(ErrorCode.TIMEOUT, str(error))
    if isinstance(error, httpx.ConnectError):
        if _is_dns_failure(error):
            return TranscodeError.from_code(ErrorCode.DNS_RESOLUTION_FAILED, str(error))
        return TranscodeError.from_code(ErrorCode.CONNECTION_FAILED, str(error))
    if isinstance(error, httpx.TransportError):
        return TranscodeError.from_code(ErrorCode.CONNECTION_FAILED, str(error))
    return None


@dataclass(frozen=True)
class ResolvedInput:
    locator: str
    mode: InputMode


class InputResolver:
    """
    Turns the configured input into something ffmpeg can read.

    Args:
        config: Run configuration
        fetcher: Required for URL inputs that are not streamed directly
        transport: Optional httpx transport for the reachability probe
        disk_usage: ``shutil.disk_usage`` compatible callable
    """

    def __init__(
        self,
        config: TranscodeConfig,
        fetcher: Optional[RemoteFetcher] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        disk_usage: Callable = shutil.disk_usage
    ):
        self.config = config
        self.fetcher = fetcher
        self.transport = transport
        self.disk_usage = disk_usage

    async def resolve(
        self,
        progress: Optional[ProgressReporter] = None,
        cancel_event: Optional[asyncio.Event] = None
    ) -> ResolvedInput:
        locator = self.config.input
        if not is_remote_url(locator):
            path = self.validate_local(locator)
            return ResolvedInput(str(path), InputMode.LOCAL)

        if self.config.stream_from_url:
            await run_cancellable(
                self.check_stream_url(locator),
                cancel_event=cancel_event,
                what="reachability check",
            )
            logger.info(f"[Input] Streaming directly from {locator}")
            return ResolvedInput(locator, InputMode.STREAM)

        path = await self.download(locator, progress, cancel_event)
        return ResolvedInput(str(path), InputMode.DOWNLOAD)

    def validate_local(self, locator: str) -> Path:
        """
        Check a local input file.

        Raises:
            TranscodeError: not found (1200), not a regular file (1300),
                empty (1302), unsupported extension (1301), unreadable (1401)
        """
        path = Path(locator)
        if not path.exists():
            raise TranscodeError.from_code(ErrorCode.FILE_NOT_FOUND, f"Path: {path}")

        if path.is_dir():
            raise TranscodeError(
                ErrorCategory.INVALID_FORMAT,
                "Input path is a directory",
                f"Path: {path}",
                ErrorCode.INVALID_FILE_FORMAT,
            )
        if not path.is_file():
            raise TranscodeError(
                ErrorCategory.INVALID_FORMAT,
                "Input path is not a regular file",
                f"Path: {path}",
                ErrorCode.INVALID_FILE_FORMAT,
            )

        if path.stat().st_size == 0:
            raise TranscodeError.from_code(ErrorCode.CORRUPTED_FILE, f"Empty file: {path}")

        extension = path.suffix.lower()
        if extension not in SUPPORTED_EXTENSIONS:
            raise TranscodeError.from_code(
                ErrorCode.UNSUPPORTED_FILE_FORMAT, f"Extension: {extension or '(none)'}"
            )

        try:
            with open(path, "rb"):
                pass
        except PermissionError as e:
            raise TranscodeError.from_code(ErrorCode.READ_PERMISSION_DENIED, str(e)) from e
        except OSError as e:
            raise TranscodeError.wrap(e, ErrorCategory.SYSTEM, "Failed to open input file", 4) from e

        return path

    async def check_stream_url(self, url: str) -> None:
        """
        HEAD the URL before handing it to ffmpeg.

        Raises:
            TranscodeError: timeout (1001), DNS (1002), connection (1000),
                error status (1003), or a non-video content type (1300)
        """
        try:
            async with httpx.AsyncClient(
                transport=self.transport,
                timeout=self.config.probe_timeout,
                follow_redirects=True,
            ) as client:
                response = await client.head(url)
        except httpx.HTTPError as e:
            mapped = network_error(e) or TranscodeError.from_code(
                ErrorCode.CONNECTION_FAILED, str(e)
            )
            raise mapped from e

        if response.status_code >= 400:
            raise TranscodeError.from_code(
                ErrorCode.SERVER_UNAVAILABLE,
                f"Server returned status code {response.status_code}",
            )

        content_type = response.headers.get("content-type", "")
        if not content_type.lower().startswith(STREAMABLE_CONTENT_TYPES):
            raise TranscodeError.from_code(
                ErrorCode.INVALID_FILE_FORMAT,
                f"Content-Type: {content_type or '(none)'}",
            )

    async def download(
        self,
        url: str,
        progress: Optional[ProgressReporter] = None,
        cancel_event: Optional[asyncio.Event] = None
    ) -> Path:
        if self.fetcher is None:
            raise TranscodeError(
                ErrorCategory.VALIDATION, "Downloader is required for remote input", "", 3
            )

        download_dir = Path(self.config.download_dir)
        try:
            download_dir.mkdir(parents=True, exist_ok=True)
        except PermissionError as e:
            raise TranscodeError.from_code(ErrorCode.WRITE_PERMISSION_DENIED, str(e)) from e
        except OSError as e:
            raise TranscodeError.wrap(
                e, ErrorCategory.SYSTEM, "Failed to create download directory", 6
            ) from e

        check_free_space(download_dir, self.config.min_download_space, self.disk_usage)

        destination = download_dir / download_filename(url)
        try:
            return await self.fetcher.fetch(
                url,
                destination,
                allow_overwrite=self.config.allow_overwrite,
                timeout=self.config.download_timeout,
                progress=progress,
                cancel_event=cancel_event,
            )
        except TranscodeError as e:
            refined = self._refine_download_error(e)
            if refined is None:
                raise
            raise refined from e

    @staticmethod
    def _refine_download_error(error: TranscodeError) -> Optional[TranscodeError]:
        """Upgrade a generic fetch failure using the exception that caused it."""
        if error.category == ErrorCategory.CANCELLED:
            return None
        if find_cause(error, PermissionError) is not None:
            return TranscodeError.from_code(ErrorCode.WRITE_PERMISSION_DENIED, error.details)
        os_error = find_cause(error, OSError)
        if os_error is not None and is_no_space(os_error):
            return TranscodeError.from_code(ErrorCode.INSUFFICIENT_DISK_SPACE, error.details)
        http_error = find_cause(error, httpx.HTTPError)
        if http_error is not None:
            return network_error(http_error)
        return None
