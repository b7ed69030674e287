"""
Image utility functions
"""

import io
from typing import Optional

from PIL import Image

from core.perceptual_hash import IMAGE_DECODE_ERRORS


def get_image_info(data: bytes) -> Optional[dict]:
    """Get image metadata from raw bytes"""
    try:
        with Image.open(io.BytesIO(data)) as img:
            return {
                'width': img.width,
                'height': img.height,
                'format': img.format,
                'mode': img.mode,
                'size': len(data)
            }
    except IMAGE_DECODE_ERRORS:
        return None


def to_rgb(img: Image.Image) -> Image.Image:
    """Flatten alpha onto white and return an RGB image"""
    if img.mode in ('RGBA', 'LA') or (img.mode == 'P' and 'transparency' in img.info):
        rgba = img.convert('RGBA')
        background = Image.new('RGB', rgba.size, (255, 255, 255))
        background.paste(rgba, mask=rgba.split()[-1])
        return background
    if img.mode != 'RGB':
        return img.convert('RGB')
    return img
