"""Image conversion and dithering for e-ink output."""
import io
import logging
from pathlib import PurePath

import numpy as np
from PIL import Image

from .errors import UnsupportedFormat

logger = logging.getLogger(__name__)

DEFAULT_JPEG_QUALITY = 90
DEFAULT_BIT_DEPTH = 1

MEDIA_TYPES = {
    '.png': 'image/png',
    '.jpeg': 'image/jpeg',
    '.jpg': 'image/jpeg',
    '.bmp': 'image/bmp',
}


def extension_for(output_format: str) -> str:
    """File extension (without the dot) used when storing ``output_format``"""
    if output_format == 'bmp3':
        return 'bmp'
    return output_format


def media_type_for(filename: str) -> str:
    return MEDIA_TYPES.get(PurePath(filename).suffix.lower(), 'application/octet-stream')


class ImageProcessor:
    """Handles format conversion and dithering for different output formats"""

    # 4-level grey palette, padded to 256 entries as PIL requires
    GREY4_PALETTE = [0, 0, 0, 85, 85, 85, 170, 170, 170, 255, 255, 255] + [0, 0, 0] * 252

    @staticmethod
    def convert(raw: bytes, output_format: str, bit_depth: int = DEFAULT_BIT_DEPTH,
                quality: int = DEFAULT_JPEG_QUALITY) -> bytes:
        """Convert a raw PNG snapshot to ``output_format`` and return the encoded bytes"""
        if output_format == 'png':
            return raw

        if output_format not in ('jpeg', 'bmp3', 'bmp'):
            raise UnsupportedFormat(f"Unsupported output format: {output_format}")

        img = Image.open(io.BytesIO(raw))
        logger.debug(f"Converting {img.width}x{img.height} snapshot to {output_format}")
        output = io.BytesIO()

        if output_format == 'jpeg':
            img.convert('RGB').save(output, format='JPEG', quality=quality)
        else:
            img = ImageProcessor.dither_image(img, bit_depth)
            img.save(output, format='BMP')

        return output.getvalue()

    @staticmethod
    def dither_image(img: Image.Image, bits: int) -> Image.Image:
        """Reduce an image to a 1-bit or 2-bit greyscale bitmap.

        Both depths use Floyd-Steinberg error diffusion: each pixel's
        quantization error is pushed onto its right and lower neighbours in
        raster order, so flat grey areas come out as a pixel-density pattern
        of roughly the same brightness.

        Args:
            img: Source image in any mode
            bits: 1 for black and white, 2 for four grey levels

        Returns:
            A mode '1' image for 1 bit, a mode 'L' image holding only the
            levels 0, 85, 170 and 255 for 2 bits
        """
        img = img.convert('L')

        if bits == 1:
            # Diffuses error and thresholds each pixel at the midpoint (128)
            return img.convert('1', dither=Image.Dither.FLOYDSTEINBERG)

        if bits == 2:
            palette_img = Image.new('P', (1, 1))
            palette_img.putpalette(ImageProcessor.GREY4_PALETTE)
            # Palette quantization from 'L' copies grey values as indices, so go through RGB
            quantized = img.convert('RGB').quantize(palette=palette_img, dither=Image.Dither.FLOYDSTEINBERG)
            # Map palette indices back to grey: 0->0, 1->85, 2->170, 3->255 (padding entries are black)
            levels = np.zeros(256, dtype=np.uint8)
            levels[:4] = [0, 85, 170, 255]
            return Image.fromarray(levels[np.array(quantized)])

        raise UnsupportedFormat(f"Unsupported bit depth {bits} for BMP output")
