"""
Tests for format conversion and dithering.
"""

import io

import numpy as np
import pytest
from PIL import Image

from inkshot.errors import UnsupportedFormat
from inkshot.image_processor import ImageProcessor, extension_for, media_type_for

from conftest import make_png


def gradient_png(width=256, height=64) -> bytes:
    """Horizontal greyscale ramp from black on the left to white on the right"""
    row = np.linspace(0, 255, width).astype(np.uint8)
    pixels = np.tile(row, (height, 1))
    output = io.BytesIO()
    Image.fromarray(pixels).save(output, format='PNG')
    return output.getvalue()


def flat_png(level: int, width=128, height=128) -> bytes:
    output = io.BytesIO()
    Image.new('L', (width, height), level).save(output, format='PNG')
    return output.getvalue()


def test_png_is_passed_through():
    raw = make_png(120, 100)
    assert ImageProcessor.convert(raw, 'png') is raw


def test_jpeg_reencode():
    data = ImageProcessor.convert(make_png(200, 120), 'jpeg', quality=80)

    assert data[:2] == b'\xff\xd8'
    img = Image.open(io.BytesIO(data))
    assert img.format == 'JPEG'
    assert img.size == (200, 120)


@pytest.mark.parametrize("fmt", ['bmp3', 'bmp'])
def test_bmp_is_one_bit_by_default(fmt):
    data = ImageProcessor.convert(make_png(160, 100), fmt)

    assert data[:2] == b'BM'
    img = Image.open(io.BytesIO(data))
    assert img.format == 'BMP'
    assert img.mode == '1'
    assert img.size == (160, 100)


def test_two_bit_uses_four_grey_levels():
    data = ImageProcessor.convert(gradient_png(), 'bmp3', bit_depth=2)

    img = Image.open(io.BytesIO(data))
    assert img.mode == 'L'
    levels = set(np.array(img).flatten().tolist())
    assert levels <= {0, 85, 170, 255}
    assert len(levels) == 4


def test_unknown_format_rejected():
    with pytest.raises(UnsupportedFormat):
        ImageProcessor.convert(make_png(100, 100), 'gif')


def test_unknown_bit_depth_rejected():
    with pytest.raises(UnsupportedFormat):
        ImageProcessor.convert(make_png(100, 100), 'bmp3', bit_depth=3)


def test_one_bit_gradient_density_tracks_grey_level():
    """Over each block the share of white pixels approximates the source brightness."""
    raw = gradient_png()
    source = np.array(Image.open(io.BytesIO(raw)), dtype=float) / 255
    dithered = np.array(ImageProcessor.dither_image(Image.open(io.BytesIO(raw)), 1), dtype=float)

    block = 32
    for start in range(0, source.shape[1], block):
        expected = source[:, start:start + block].mean()
        actual = dithered[:, start:start + block].mean()
        assert abs(actual - expected) < 0.08, f"block at x={start}: {actual:.3f} vs {expected:.3f}"


def test_one_bit_flat_grey_is_dithered_not_thresholded():
    """A plain midpoint threshold would turn grey 100 solid black."""
    img = Image.open(io.BytesIO(flat_png(100)))
    dithered = np.array(ImageProcessor.dither_image(img, 1), dtype=float)

    assert 0 < dithered.mean() < 1
    assert abs(dithered.mean() - 100 / 255) < 0.03


def test_one_bit_extremes_stay_solid():
    black = np.array(ImageProcessor.dither_image(Image.open(io.BytesIO(flat_png(0))), 1))
    white = np.array(ImageProcessor.dither_image(Image.open(io.BytesIO(flat_png(255))), 1))

    assert not black.any()
    assert white.all()


def test_two_bit_flat_grey_keeps_brightness():
    img = Image.open(io.BytesIO(flat_png(128)))
    dithered = np.array(ImageProcessor.dither_image(img, 2), dtype=float)

    assert abs(dithered.mean() - 128) < 8


def test_extension_and_media_type():
    assert extension_for('bmp3') == 'bmp'
    assert extension_for('jpeg') == 'jpeg'
    assert extension_for('png') == 'png'
    assert media_type_for('screenshot-x.bmp') == 'image/bmp'
    assert media_type_for('screenshot-x.jpeg') == 'image/jpeg'
    assert media_type_for('screenshot-x.png') == 'image/png'
    assert media_type_for('screenshot-x.bin') == 'application/octet-stream'
