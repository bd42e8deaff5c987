"""
Bitrate ladder generation from a source resolution.

The source resolution is always the first tier. Standard sizes below the
source follow, scaled with the source aspect ratio, so nothing is upscaled.
"""

import math
from typing import List, Sequence

from ..errors import ErrorCode, TranscodeError
from .constants import (
    BITRATE_PRESETS,
    LOWEST_PRESET,
    MIN_TIER_HEIGHT,
    MIN_TIER_WIDTH,
    RESOLUTION_THRESHOLDS,
    STANDARD_TIER_SIZES,
)
from .models import BitratePreset, QualityTier


def _round_half_up(value: float) -> int:
    # Python's round() is banker's rounding; ladder sizes use half-up
    return int(math.floor(value + 0.5))


def _to_even(value: int) -> int:
    return value - 1 if value % 2 else value


def classify_resolution(width: int, height: int) -> BitratePreset:
    """
    Pick the bitrate preset for a source.

    Classification is by the larger dimension against descending thresholds:
    the first threshold the source reaches wins. A 1920x1080 source therefore
    lands in the 1440p class because its width is at least 1440.
    """
    max_dim = max(width, height)
    for threshold, name in RESOLUTION_THRESHOLDS:
        if max_dim >= threshold:
            return BITRATE_PRESETS[name]
    return BITRATE_PRESETS[LOWEST_PRESET]


def aspect_ratio(width: int, height: int) -> float:
    """Short side over long side, rounded to two decimals."""
    if height > width:
        ratio = width / height
    else:
        ratio = height / width
    return math.floor(ratio * 100 + 0.5) / 100


def generate_ladder(width: int, height: int) -> List[QualityTier]:
    """
    Build a ladder for a ``width`` x ``height`` source.

    Raises:
        TranscodeError: when either dimension is not positive
    """
    if width <= 0 or height <= 0:
        raise TranscodeError.from_code(
            ErrorCode.INVALID_RESOLUTION, f"Source resolution: {width}x{height}"
        )

    vertical = height > width
    ratio = aspect_ratio(width, height)
    max_dim = max(width, height)

    tiers = [classify_resolution(width, height).tier(_to_even(width), _to_even(height))]

    for size in STANDARD_TIER_SIZES:
        if size >= max_dim:
            continue

        if vertical:
            tier_height = size
            tier_width = max(_round_half_up(tier_height * ratio), size // 3)
        else:
            tier_width = size
            tier_height = max(_round_half_up(tier_width * ratio), size // 3)

        tier_width = _to_even(tier_width)
        tier_height = _to_even(tier_height)

        if tier_width < MIN_TIER_WIDTH or tier_height < MIN_TIER_HEIGHT:
            continue

        preset = classify_resolution(tier_width, tier_height)
        tiers.append(preset.tier(tier_width, tier_height))

    return tiers


def format_ladder(tiers: Sequence[QualityTier]) -> str:
    """Render a ladder as ``1920x1080@5000k, 1280x720@2800k``."""
    return ", ".join(tier.label() for tier in tiers)


def preset_names() -> List[str]:
    """Named presets from highest to lowest."""
    return list(BITRATE_PRESETS.keys())
