"""
FFmpeg diagnostic classification.

Maps known substrings of ffmpeg's stderr onto specific error codes. The
matched phrases are what current ffmpeg releases print; they are not a
stable interface, so a miss always falls back to the caller's generic
category rather than producing an unclassified error.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional

from ..errors import ErrorCategory, ErrorCode, TranscodeError, get_error_message

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DiagnosticPattern:
    """A stderr phrase and the error it indicates."""
    pattern: str
    category: ErrorCategory
    code: int
    description: str


# Checked in order; first match wins
FFMPEG_ERROR_MAP: List[DiagnosticPattern] = [
    # Missing encoders
    DiagnosticPattern("unknown encoder", ErrorCategory.CODEC_NOT_FOUND,
                      ErrorCode.CODEC_NOT_FOUND, "Encoder not available"),
    DiagnosticPattern("encoder not found", ErrorCategory.CODEC_NOT_FOUND,
                      ErrorCode.CODEC_NOT_FOUND, "Encoder not available"),
    DiagnosticPattern("codec not found", ErrorCategory.CODEC_NOT_FOUND,
                      ErrorCode.CODEC_NOT_FOUND, "Codec not available"),

    # Memory
    DiagnosticPattern("cannot allocate memory", ErrorCategory.MEMORY,
                      ErrorCode.OUT_OF_MEMORY, "Memory allocation failed"),
    DiagnosticPattern("out of memory", ErrorCategory.MEMORY,
                      ErrorCode.OUT_OF_MEMORY, "Out of memory"),

    # Corrupt or unreadable input
    DiagnosticPattern("invalid data found", ErrorCategory.INVALID_FORMAT,
                      ErrorCode.CORRUPTED_FILE, "Invalid input data"),
    DiagnosticPattern("could not find codec parameters", ErrorCategory.INVALID_FORMAT,
                      ErrorCode.CORRUPTED_FILE, "Unreadable stream parameters"),
    DiagnosticPattern("moov atom not found", ErrorCategory.INVALID_FORMAT,
                      ErrorCode.CORRUPTED_FILE, "Truncated MP4 file"),

    # Output side
    DiagnosticPattern("permission denied", ErrorCategory.PERMISSION,
                      ErrorCode.WRITE_PERMISSION_DENIED, "Permission denied"),
    DiagnosticPattern("no space left", ErrorCategory.DISK_SPACE,
                      ErrorCode.INSUFFICIENT_DISK_SPACE, "No disk space"),
    DiagnosticPattern("disk quota", ErrorCategory.DISK_SPACE,
                      ErrorCode.DISK_QUOTA_EXCEEDED, "Disk quota exceeded"),
]


class ErrorClassifier:
    """Refines an encoder failure using its stderr text."""

    def __init__(self, error_map: Optional[List[DiagnosticPattern]] = None):
        self.error_map = error_map or FFMPEG_ERROR_MAP

    def classify(self, error_output: str) -> Optional[DiagnosticPattern]:
        """Return the first pattern found in ``error_output``, if any."""
        error_lower = error_output.lower()
        for entry in self.error_map:
            if entry.pattern in error_lower:
                return entry
        return None

    def to_error(
        self,
        error_output: str,
        fallback_category: ErrorCategory,
        fallback_message: str,
        fallback_code: int
    ) -> TranscodeError:
        """
        Build the error for a failed encoder run.

        Args:
            error_output: Tail of the encoder's stderr
            fallback_category: Category used when no pattern matches
            fallback_message: Message used when no pattern matches
            fallback_code: Code used when no pattern matches
        """
        details = error_output.strip()
        entry = self.classify(error_output)
        if entry is None:
            return TranscodeError(fallback_category, fallback_message, details, fallback_code)

        logger.debug(f"[Classifier] Matched '{entry.pattern}': {entry.description}")
        return TranscodeError(entry.category, get_error_message(entry.code), details, entry.code)
