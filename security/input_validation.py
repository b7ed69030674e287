# security/input_validation.py

from pathlib import Path
import logging
import re
import os

import magic

from core.errors import ValidationError

logger = logging.getLogger(__name__)


class SecurityValidator:
    """
    Validate uploads before they reach the hashing pipeline
    """

    ALLOWED_EXTENSIONS = {'.jpg', '.jpeg', '.png', '.bmp', '.gif', '.tiff', '.webp'}
    MAX_FILE_SIZE = 5 * 1024 * 1024  # 5 MB

    @staticmethod
    def validate_image_bytes(data: bytes, max_size: int = None) -> str:
        """
        Check size and sniffed type of uploaded bytes

        Returns the detected MIME type; raises ValidationError otherwise.
        """
        max_size = max_size or SecurityValidator.MAX_FILE_SIZE

        if not data:
            raise ValidationError("Empty upload")
        if len(data) > max_size:
            raise ValidationError(
                f"Upload is {len(data)} bytes, limit is {max_size}"
            )

        # Verify actual content type, not the client's claim
        mime = magic.from_buffer(data, mime=True)
        if not mime.startswith('image/'):
            raise ValidationError(f"Only image files are allowed, got {mime}")

        return mime

    @staticmethod
    def validate_image_path(path: str, max_size: int = None) -> bool:
        """
        Validate an image file on disk
        """
        max_size = max_size or SecurityValidator.MAX_FILE_SIZE
        try:
            path_obj = Path(path).resolve()

            # Ensure file exists and is a file (not directory)
            if not path_obj.is_file():
                return False

            if path_obj.suffix.lower() not in SecurityValidator.ALLOWED_EXTENSIONS:
                return False

            if path_obj.stat().st_size > max_size:
                return False

            mime = magic.from_file(str(path_obj), mime=True)
            return mime.startswith('image/')

        except OSError as e:
            logger.warning("Validation error for %s: %s", path, e)
            return False

    @staticmethod
    def sanitize_filename(filename: str) -> str:
        """
        Sanitize filename to prevent injection attacks
        """
        # Remove path separators
        filename = filename.replace('/', '_').replace('\\', '_')

        # Remove special characters
        filename = re.sub(r'[^\w\s.-]', '', filename).strip()

        # Limit length
        if len(filename) > 255:
            name, ext = os.path.splitext(filename)
            filename = name[:250] + ext

        return filename or 'upload'
