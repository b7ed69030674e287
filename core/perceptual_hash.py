# core/perceptual_hash.py

import hashlib
import io
import logging
import struct

import imagehash
import numpy as np
from PIL import Image, UnidentifiedImageError

from core.errors import DecodeError, HashingError
from core.models import ImageHashRecord

logger = logging.getLogger(__name__)

# What Pillow raises for unreadable or malformed image streams
IMAGE_DECODE_ERRORS = (
    UnidentifiedImageError, OSError, ValueError, SyntaxError, EOFError,
    IndexError, struct.error, Image.DecompressionBombError
)


class PerceptualHasher:
    """
    Content and perceptual hashing of raw image bytes

    The perceptual hash is a difference hash over the flattened N x N
    grayscale grid: bit i is set when pixel i is brighter than pixel i-1.
    Bit 0 has no predecessor and is always 0.
    """

    def __init__(self, hash_size: int = 8, max_image_pixels: int = 50_000_000):
        if hash_size < 2:
            raise ValueError("hash_size must be at least 2")
        self.hash_size = hash_size

        # Set PIL limits to prevent memory issues
        Image.MAX_IMAGE_PIXELS = max_image_pixels

    @property
    def bit_length(self) -> int:
        return self.hash_size * self.hash_size

    @staticmethod
    def sha256(data: bytes) -> str:
        """Hex SHA-256 of the raw bytes"""
        if not isinstance(data, (bytes, bytearray, memoryview)):
            raise HashingError(
                f"Expected a byte buffer, got {type(data).__name__}"
            )
        try:
            return hashlib.sha256(data).hexdigest()
        except (TypeError, ValueError) as e:
            raise HashingError(f"SHA-256 computation failed: {e}") from e

    def dhash(self, data: bytes) -> str:
        """Difference hash of the image as a zero-padded hex string"""
        try:
            with Image.open(io.BytesIO(data)) as img:
                grid = img.convert('L').resize(
                    (self.hash_size, self.hash_size),
                    Image.Resampling.LANCZOS
                )
        except IMAGE_DECODE_ERRORS as e:
            raise DecodeError(f"Could not decode image: {e}") from e

        pixels = np.asarray(grid, dtype=np.int16).flatten()
        bits = np.zeros(pixels.size, dtype=bool)
        bits[1:] = pixels[1:] > pixels[:-1]

        return str(imagehash.ImageHash(bits.reshape(self.hash_size, self.hash_size)))

    def hash(self, data: bytes) -> ImageHashRecord:
        """
        Compute both hashes

        Raises HashingError if the input is not bytes and DecodeError if
        the bytes are not a decodable image.
        """
        digest = self.sha256(data)
        return ImageHashRecord(sha256=digest, perceptual_hash=self.dhash(data))

    def hash_record(self, data: bytes) -> ImageHashRecord:
        """Like hash(), but degrades to a SHA-256-only record on decode failure"""
        digest = self.sha256(data)
        try:
            perceptual = self.dhash(data)
        except DecodeError as e:
            logger.warning("Perceptual hash unavailable, storing SHA-256 only: %s", e)
            perceptual = None
        return ImageHashRecord(sha256=digest, perceptual_hash=perceptual)
