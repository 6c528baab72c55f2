#!/usr/bin/env python3
"""
Background tone analysis for logos and icons.

Inspects an RGBA bitmap (usually a logo with transparency) and recommends
whether it should sit on a light or a dark background.
Three stages: Decode → Foreground Statistics → Tone Decision
"""

import io
import logging
import math
from dataclasses import dataclass, asdict
from pathlib import Path
from typing import Optional, Union

import numpy as np
from PIL import Image

logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

LIGHT = 'light'
DARK = 'dark'

# Mean foreground lightness outside this band decides the tone directly
LIGHT_FOREGROUND_THRESHOLD = 0.58
DARK_FOREGROUND_THRESHOLD = 0.42
CONFIDENCE_SCALE = 0.42  # Distance from either threshold to its extreme

# Fixed confidences for the ambiguous band
EDGE_TIEBREAK_CONFIDENCE = 0.3
EDGE_EMPTY_CONFIDENCE = 0.1

# Image size limits (security: prevent decompression bombs)
MAX_IMAGE_PIXELS = 50_000_000  # 50 megapixels
MAX_IMAGE_DIMENSION = 10_000  # 10k pixels per side

DEFAULT_LIGHT_COLOR = '#FFFFFF'
DEFAULT_DARK_COLOR = '#111111'


class InvalidBitmapError(ValueError):
    """Bitmap dimensions don't match its pixel buffer."""


class ImageDecodeError(ValueError):
    """Encoded image bytes could not be decoded into a bitmap."""


# =============================================================================
# Data Model
# =============================================================================

@dataclass(frozen=True)
class Bitmap:
    """Row-major RGBA pixels, 4 bytes per pixel."""
    width: int
    height: int
    data: object  # bytes, bytearray, list or uint8 ndarray


@dataclass(frozen=True)
class SuggestionOptions:
    alpha_threshold: int = 16  # Ignore antialiased fringes below this alpha
    ignore_pure_white: bool = True  # Exact (255, 255, 255) only
    ignore_pure_black: bool = False  # Exact (0, 0, 0) only
    edge_sample_ratio: float = 0.4  # Outer band used in the ambiguous tiebreak

    def __post_init__(self):
        if not 0 <= self.alpha_threshold <= 255:
            raise ValueError(
                f"alpha_threshold must be in [0, 255], got {self.alpha_threshold}"
            )
        if not 0 < self.edge_sample_ratio <= 1:
            raise ValueError(
                f"edge_sample_ratio must be in (0, 1], got {self.edge_sample_ratio}"
            )


@dataclass(frozen=True)
class BackgroundSuggestion:
    tone: str  # LIGHT or DARK background
    confidence: float  # 0-1
    foreground_lightness: float  # Mean perceived lightness of foreground, 0-1
    foreground_sampled: int
    total_sampled: int  # width * height, regardless of filtering

    def to_dict(self) -> dict:
        return asdict(self)


# =============================================================================
# Lightness
# =============================================================================

def perceived_lightness(r, g, b):
    """HSP perceived brightness scaled to 0-1. Works on scalars or arrays."""
    r = np.asarray(r, dtype=np.float64)
    g = np.asarray(g, dtype=np.float64)
    b = np.asarray(b, dtype=np.float64)
    return np.sqrt(0.299 * r * r + 0.587 * g * g + 0.114 * b * b) / 255


def relative_luminance(r, g, b):
    """WCAG relative luminance (0-1) of sRGB channels in 0-255."""
    srgb = np.stack([
        np.asarray(r, dtype=np.float64),
        np.asarray(g, dtype=np.float64),
        np.asarray(b, dtype=np.float64),
    ]) / 255.0
    linear = np.where(srgb <= 0.03928, srgb / 12.92, ((srgb + 0.055) / 1.055) ** 2.4)
    return 0.2126 * linear[0] + 0.7152 * linear[1] + 0.0722 * linear[2]


def hex_to_rgb(color: str) -> tuple:
    """Parse '#rgb' or '#rrggbb' into an (r, g, b) tuple."""
    h = color.strip().lstrip('#')
    if len(h) == 3:
        h = ''.join(c * 2 for c in h)
    if len(h) != 6:
        raise ValueError(f"Not a hex color: {color!r}")
    return tuple(int(h[i:i + 2], 16) for i in (0, 2, 4))


def text_color_for_background(color: str) -> str:
    """Return black or white text color based on background luminance."""
    return "#000" if float(relative_luminance(*hex_to_rgb(color))) > 0.179 else "#fff"


# =============================================================================
# Stage 1: Decode
# =============================================================================

def load_bitmap(source: Union[bytes, bytearray, str, Path]) -> Bitmap:
    """
    Decode encoded image bytes, or an image file, into an RGBA bitmap.

    Raises:
        FileNotFoundError: If a path is given and doesn't exist
        ImageDecodeError: If the data is not a valid image or exceeds size limits
    """
    try:
        if isinstance(source, (bytes, bytearray)):
            img = Image.open(io.BytesIO(source))
        else:
            img = Image.open(source)
    except FileNotFoundError:
        raise FileNotFoundError(f"Image not found: {source}")
    except (OSError, ValueError, Image.DecompressionBombError) as e:
        raise ImageDecodeError(f"Could not open image: {e}") from e

    width, height = img.size
    if width > MAX_IMAGE_DIMENSION or height > MAX_IMAGE_DIMENSION:
        raise ImageDecodeError(
            f"Image dimensions {width}x{height} exceed maximum "
            f"{MAX_IMAGE_DIMENSION}x{MAX_IMAGE_DIMENSION}"
        )
    if width * height > MAX_IMAGE_PIXELS:
        raise ImageDecodeError(
            f"Image has {width * height:,} pixels, exceeding maximum {MAX_IMAGE_PIXELS:,}"
        )

    try:
        pixels = np.asarray(img.convert('RGBA'))
    except (OSError, ValueError) as e:
        raise ImageDecodeError(f"Could not decode image: {e}") from e

    logger.debug("Decoded %dx%d image (mode %s)", width, height, img.mode)
    return Bitmap(width=width, height=height, data=pixels)


def _pixel_grid(bitmap: Bitmap) -> np.ndarray:
    """View the bitmap buffer as a (height, width, 4) array."""
    width, height = bitmap.width, bitmap.height
    if width < 0 or height < 0:
        raise InvalidBitmapError(f"Negative bitmap size {width}x{height}")

    data = bitmap.data
    if isinstance(data, (bytes, bytearray, memoryview)):
        flat = np.frombuffer(data, dtype=np.uint8)
    else:
        flat = np.asarray(data).reshape(-1)

    needed = width * height * 4
    if flat.size < needed:
        raise InvalidBitmapError(
            f"Buffer holds {flat.size} values, {width}x{height} RGBA needs {needed}"
        )
    return flat[:needed].reshape(height, width, 4)


# =============================================================================
# Stage 2: Foreground Statistics
# =============================================================================

def foreground_mask(pixels: np.ndarray, options: SuggestionOptions) -> np.ndarray:
    """Pixels opaque enough to count, minus exact pure white/black if ignored."""
    rgb = pixels[..., :3]
    mask = pixels[..., 3] >= options.alpha_threshold
    if options.ignore_pure_white:
        mask &= ~np.all(rgb == 255, axis=-1)
    if options.ignore_pure_black:
        mask &= ~np.all(rgb == 0, axis=-1)
    return mask


def edge_band_mask(width: int, height: int, ratio: float) -> np.ndarray:
    """Union of the outer row band (top, bottom) and column band (left, right)."""
    band_x = math.floor(width * ratio)
    band_y = math.floor(height * ratio)
    rows = np.arange(height)
    cols = np.arange(width)
    in_y = (rows < band_y) | (rows >= height - band_y)
    in_x = (cols < band_x) | (cols >= width - band_x)
    return in_y[:, None] | in_x[None, :]


# =============================================================================
# Stage 3: Tone Decision
# =============================================================================

def suggest_background(bitmap: Bitmap,
                       options: Optional[SuggestionOptions] = None) -> BackgroundSuggestion:
    """
    Suggest a light or dark background for an RGBA bitmap.

    1. Average the perceived lightness of foreground pixels.
    2. Light foreground -> dark background, dark foreground -> light background.
    3. Mid-tone foreground: compare against the opaque pixels of the outer
       edge band and break the tie with a fixed low confidence.

    Raises:
        InvalidBitmapError: If the buffer is shorter than width * height * 4
    """
    options = options or SuggestionOptions()
    pixels = _pixel_grid(bitmap)
    total = bitmap.width * bitmap.height

    lightness = perceived_lightness(pixels[..., 0], pixels[..., 1], pixels[..., 2])
    fg = foreground_mask(pixels, options)
    fg_count = int(np.count_nonzero(fg))

    # Nothing to go on: dark background shows transparency checker style
    if fg_count == 0:
        return BackgroundSuggestion(
            tone=DARK,
            confidence=0.0,
            foreground_lightness=0.0,
            foreground_sampled=0,
            total_sampled=total,
        )

    avg = float(lightness[fg].mean())

    if avg > LIGHT_FOREGROUND_THRESHOLD:
        tone = DARK
        confidence = (avg - LIGHT_FOREGROUND_THRESHOLD) / CONFIDENCE_SCALE
    elif avg < DARK_FOREGROUND_THRESHOLD:
        tone = LIGHT
        confidence = (DARK_FOREGROUND_THRESHOLD - avg) / CONFIDENCE_SCALE
    else:
        # Pure white/black exclusions don't apply to the edge sample
        edge = edge_band_mask(bitmap.width, bitmap.height, options.edge_sample_ratio)
        edge &= pixels[..., 3] >= options.alpha_threshold
        if edge.any():
            edge_avg = float(lightness[edge].mean())
            # Lighter edges suggest a darker motif inside a light fringe
            tone = LIGHT if edge_avg > avg else DARK
            confidence = EDGE_TIEBREAK_CONFIDENCE
            logger.debug("Mid-tone foreground %.3f, edge %.3f -> %s", avg, edge_avg, tone)
        else:
            tone = DARK
            confidence = EDGE_EMPTY_CONFIDENCE
            logger.debug("Mid-tone foreground %.3f with transparent edges", avg)

    return BackgroundSuggestion(
        tone=tone,
        confidence=min(1.0, max(0.0, confidence)),
        foreground_lightness=avg,
        foreground_sampled=fg_count,
        total_sampled=total,
    )


def suggest_background_from_image(source: Union[bytes, bytearray, str, Path],
                                  options: Optional[SuggestionOptions] = None) -> BackgroundSuggestion:
    """Decode an encoded image (bytes or path) and suggest a background."""
    return suggest_background(load_bitmap(source), options)


# =============================================================================
# Color Mapping
# =============================================================================

def choose_background_color(suggestion: BackgroundSuggestion,
                            light_color: str = DEFAULT_LIGHT_COLOR,
                            dark_color: str = DEFAULT_DARK_COLOR,
                            min_confidence: float = 0.0,
                            fallback_color: Optional[str] = None) -> str:
    """Map a suggestion to a concrete color, falling back below min_confidence."""
    if suggestion.confidence >= min_confidence:
        return dark_color if suggestion.tone == DARK else light_color
    return fallback_color if fallback_color is not None else light_color


def options_from_args(args) -> SuggestionOptions:
    """Build SuggestionOptions from the shared CLI flags."""
    return SuggestionOptions(
        alpha_threshold=args.alpha_threshold,
        ignore_pure_white=not args.keep_white,
        ignore_pure_black=args.ignore_black,
        edge_sample_ratio=args.edge_ratio,
    )


def add_option_arguments(parser) -> None:
    """Register the SuggestionOptions flags on an argparse parser."""
    defaults = SuggestionOptions()
    parser.add_argument(
        '--alpha-threshold',
        type=int,
        default=defaults.alpha_threshold,
        help=f'Minimum alpha for a foreground pixel (default {defaults.alpha_threshold})'
    )
    parser.add_argument(
        '--keep-white',
        action='store_true',
        help='Count pure white pixels as foreground'
    )
    parser.add_argument(
        '--ignore-black',
        action='store_true',
        help='Exclude pure black pixels from the foreground'
    )
    parser.add_argument(
        '--edge-ratio',
        type=float,
        default=defaults.edge_sample_ratio,
        help=f'Edge band fraction for mid-tone tiebreaks (default {defaults.edge_sample_ratio})'
    )
    parser.add_argument(
        '--verbose', '-v',
        action='store_true',
        help='Log debug details to stderr'
    )


def format_suggestion(suggestion: BackgroundSuggestion, color: str) -> str:
    return (
        f"{suggestion.tone} background ({color}), "
        f"confidence {suggestion.confidence:.2f}, "
        f"foreground lightness {suggestion.foreground_lightness:.3f}, "
        f"{suggestion.foreground_sampled:,}/{suggestion.total_sampled:,} pixels sampled"
    )


# =============================================================================
# CLI
# =============================================================================

def main(argv=None):
    import argparse
    import json
    import sys

    parser = argparse.ArgumentParser(
        description='Suggest a light or dark background for a logo image.'
    )
    parser.add_argument(
        '--input', '-i',
        required=True,
        help='Path to the image file'
    )
    parser.add_argument(
        '--min-confidence',
        type=float,
        default=0.0,
        help='Below this confidence the fallback (light) color is used'
    )
    parser.add_argument(
        '--json',
        action='store_true',
        help='Print the suggestion as JSON'
    )
    add_option_arguments(parser)

    args = parser.parse_args(argv)
    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format='%(levelname)s %(name)s: %(message)s')

    try:
        options = options_from_args(args)
    except ValueError as e:
        parser.error(str(e))

    try:
        suggestion = suggest_background_from_image(Path(args.input), options)
    except FileNotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    except ImageDecodeError as e:
        print(f"Error analyzing image: {e}", file=sys.stderr)
        sys.exit(1)

    color = choose_background_color(suggestion, min_confidence=args.min_confidence)
    if args.json:
        print(json.dumps({'color': color, **suggestion.to_dict()}, indent=2))
    else:
        print(format_suggestion(suggestion, color))


if __name__ == '__main__':
    main()
