"""
Structured error taxonomy shared by every hlspresso component.

Every public failure path raises :class:`TranscodeError`. Callers branch on
``err.category`` for coarse handling or on ``err.code`` for specific cases;
range codes (1000-1899) are partitioned by category so a caller can also do
``1100 <= err.code < 1200`` style matching without looking at text.
"""

import json
from datetime import datetime, timezone
from enum import Enum, IntEnum
from typing import Any, Dict, Optional


class ErrorCategory(str, Enum):
    """Error categories. Values are stable and appear in rendered output."""
    DOWNLOAD = "download_error"
    TRANSCODING = "transcoding_error"
    HLS = "hls_error"
    VALIDATION = "validation_error"
    SYSTEM = "system_error"
    NETWORK = "network_error"
    DISK_SPACE = "disk_space_error"
    FILE_NOT_FOUND = "file_not_found_error"
    INVALID_FORMAT = "invalid_file_format_error"
    PERMISSION = "permission_error"
    MEMORY = "memory_error"
    CODEC_NOT_FOUND = "codec_not_found_error"
    INVALID_OUTPUT_PATH = "invalid_output_path_error"
    UNSUPPORTED_RESOLUTION = "unsupported_resolution_error"
    CANCELLED = "cancelled_error"


class ErrorCode(IntEnum):
    """Range-partitioned error codes."""
    # Network (1000-1099)
    CONNECTION_FAILED = 1000
    TIMEOUT = 1001
    DNS_RESOLUTION_FAILED = 1002
    SERVER_UNAVAILABLE = 1003

    # Disk space (1100-1199)
    INSUFFICIENT_DISK_SPACE = 1100
    DISK_QUOTA_EXCEEDED = 1101
    DISK_WRITE_FAILED = 1102

    # File not found (1200-1299)
    FILE_NOT_FOUND = 1200
    FILE_NOT_ACCESSIBLE = 1201
    DIRECTORY_NOT_FOUND = 1202

    # Invalid format (1300-1399)
    INVALID_FILE_FORMAT = 1300
    UNSUPPORTED_FILE_FORMAT = 1301
    CORRUPTED_FILE = 1302

    # Permission (1400-1499)
    PERMISSION_DENIED = 1400
    READ_PERMISSION_DENIED = 1401
    WRITE_PERMISSION_DENIED = 1402

    # Memory (1500-1599)
    OUT_OF_MEMORY = 1500
    MEMORY_ALLOCATION_FAILED = 1501

    # Codec / dependency (1600-1699)
    CODEC_NOT_FOUND = 1600
    CODEC_NOT_SUPPORTED = 1601
    MISSING_DEPENDENCY = 1602

    # Output path (1700-1799)
    INVALID_OUTPUT_PATH = 1700
    OUTPUT_PATH_NOT_ACCESSIBLE = 1701
    DIRECTORY_CREATION_FAILED = 1702

    # Resolution (1800-1899)
    UNSUPPORTED_RESOLUTION = 1800
    INVALID_RESOLUTION = 1801
    RESOLUTION_TOO_HIGH = 1802
    RESOLUTION_TOO_LOW = 1803


# Local codes for the cancellation category
CANCELLED = 1
DEADLINE_EXCEEDED = 2


ERROR_MESSAGES: Dict[int, str] = {
    ErrorCode.CONNECTION_FAILED: "Failed to connect to the server",
    ErrorCode.TIMEOUT: "Connection timed out",
    ErrorCode.DNS_RESOLUTION_FAILED: "Could not resolve the server address",
    ErrorCode.SERVER_UNAVAILABLE: "Server unavailable",

    ErrorCode.INSUFFICIENT_DISK_SPACE: "Insufficient disk space",
    ErrorCode.DISK_QUOTA_EXCEEDED: "Disk quota exceeded",
    ErrorCode.DISK_WRITE_FAILED: "Failed to write to disk",

    ErrorCode.FILE_NOT_FOUND: "File not found",
    ErrorCode.FILE_NOT_ACCESSIBLE: "File not accessible",
    ErrorCode.DIRECTORY_NOT_FOUND: "Directory not found",

    ErrorCode.INVALID_FILE_FORMAT: "Invalid file format",
    ErrorCode.UNSUPPORTED_FILE_FORMAT: "Unsupported file format",
    ErrorCode.CORRUPTED_FILE: "File is corrupted or empty",

    ErrorCode.PERMISSION_DENIED: "Permission denied",
    ErrorCode.READ_PERMISSION_DENIED: "No permission to read the file",
    ErrorCode.WRITE_PERMISSION_DENIED: "No permission to write to the destination",

    ErrorCode.OUT_OF_MEMORY: "Out of memory",
    ErrorCode.MEMORY_ALLOCATION_FAILED: "Memory allocation failed",

    ErrorCode.CODEC_NOT_FOUND: "Codec not found",
    ErrorCode.CODEC_NOT_SUPPORTED: "Codec not supported",
    ErrorCode.MISSING_DEPENDENCY: "Missing dependency",

    ErrorCode.INVALID_OUTPUT_PATH: "Invalid output path",
    ErrorCode.OUTPUT_PATH_NOT_ACCESSIBLE: "Output path not accessible",
    ErrorCode.DIRECTORY_CREATION_FAILED: "Failed to create directory",

    ErrorCode.UNSUPPORTED_RESOLUTION: "Unsupported resolution",
    ErrorCode.INVALID_RESOLUTION: "Invalid resolution",
    ErrorCode.RESOLUTION_TOO_HIGH: "Resolution too high",
    ErrorCode.RESOLUTION_TOO_LOW: "Resolution too low",
}

_RANGE_CATEGORIES = {
    10: ErrorCategory.NETWORK,
    11: ErrorCategory.DISK_SPACE,
    12: ErrorCategory.FILE_NOT_FOUND,
    13: ErrorCategory.INVALID_FORMAT,
    14: ErrorCategory.PERMISSION,
    15: ErrorCategory.MEMORY,
    16: ErrorCategory.CODEC_NOT_FOUND,
    17: ErrorCategory.INVALID_OUTPUT_PATH,
    18: ErrorCategory.UNSUPPORTED_RESOLUTION,
}


def get_error_message(code: int) -> str:
    """Human-readable message for a range code."""
    return ERROR_MESSAGES.get(code, "Unknown error")


def category_for_code(code: int) -> Optional[ErrorCategory]:
    """Category owning a range code, or None for local codes."""
    return _RANGE_CATEGORIES.get(code // 100)


class TranscodeError(Exception):
    """
    Structured failure.

    Attributes:
        category: ErrorCategory of the failure
        message: Short human-readable summary
        details: Underlying diagnostic text (may be empty)
        code: Range code or category-local code
        timestamp: UTC time the error was constructed
    """

    def __init__(
        self,
        category: ErrorCategory,
        message: str,
        details: str = "",
        code: int = 0,
        timestamp: Optional[datetime] = None
    ):
        self.category = ErrorCategory(category)
        self.message = message
        self.details = details or ""
        self.code = int(code)
        self.timestamp = timestamp or datetime.now(timezone.utc)
        super().__init__(self.render_text())

    @classmethod
    def wrap(
        cls,
        error: Optional[BaseException],
        category: ErrorCategory,
        message: str,
        code: int = 0
    ) -> "TranscodeError":
        """Build an error whose details carry the text of ``error``."""
        details = str(error) if error is not None else ""
        return cls(category, message, details, code)

    @classmethod
    def from_code(cls, code: int, details: str = "") -> "TranscodeError":
        """Build an error from a range code, deriving category and message."""
        category = category_for_code(code)
        if category is None:
            raise ValueError(f"{code} is not a range error code")
        return cls(category, get_error_message(code), details, code)

    def render_text(self, verbose: bool = False) -> str:
        text = f"[{self.category.value}] {self.message}"
        if self.details:
            text += f": {self.details}"
        if verbose:
            text += f" (code={self.code}, at {self._format_timestamp()})"
        return text

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.category.value,
            "message": self.message,
            "details": self.details,
            "timestamp": self._format_timestamp(),
            "code": self.code,
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    def _format_timestamp(self) -> str:
        return self.timestamp.isoformat().replace("+00:00", "Z")

    def __str__(self) -> str:
        return self.render_text()

    def __repr__(self) -> str:
        return (
            f"TranscodeError(category={self.category.value!r}, code={self.code}, "
            f"message={self.message!r}, details={self.details!r})"
        )


def cancelled_error(details: str = "", deadline: bool = False) -> TranscodeError:
    """Error reported when a run is cancelled or its deadline passes."""
    if deadline:
        return TranscodeError(
            ErrorCategory.CANCELLED, "Operation deadline exceeded", details, DEADLINE_EXCEEDED
        )
    return TranscodeError(ErrorCategory.CANCELLED, "Operation cancelled", details, CANCELLED)
