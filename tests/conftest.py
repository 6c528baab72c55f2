"""Shared test fixtures and factories."""

import io

import pytest
from PIL import Image

from analyze import Bitmap


def _flatten(pixels):
    return bytes(channel for pixel in pixels for channel in pixel)


@pytest.fixture
def make_bitmap():
    """Build a Bitmap from a row-major list of (r, g, b, a) tuples."""

    def factory(pixels, width, height):
        return Bitmap(width=width, height=height, data=_flatten(pixels))

    return factory


@pytest.fixture
def uniform_bitmap():
    """Build a width x height Bitmap where every pixel is the same RGBA value."""

    def factory(rgba, width=2, height=2):
        return Bitmap(width=width, height=height, data=_flatten([rgba] * (width * height)))

    return factory


@pytest.fixture
def ring_bitmap():
    """4x4 Bitmap with a one-pixel outer ring around a 2x2 center."""

    def factory(edge_rgba, center_rgba):
        pixels = []
        for y in range(4):
            for x in range(4):
                inner = 0 < x < 3 and 0 < y < 3
                pixels.append(center_rgba if inner else edge_rgba)
        return Bitmap(width=4, height=4, data=_flatten(pixels))

    return factory


@pytest.fixture
def png_bytes():
    """Encode a uniform RGBA image as PNG bytes."""

    def factory(rgba, size=(4, 4)):
        buf = io.BytesIO()
        Image.new('RGBA', size, rgba).save(buf, format='PNG')
        return buf.getvalue()

    return factory
