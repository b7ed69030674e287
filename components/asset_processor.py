# components/asset_processor.py

import io
import logging
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional

import qrcode
from PIL import Image, ImageDraw, ImageFont, ImageOps
from qrcode.image.pil import PilImage

from config import ProcessingConfig
from core.errors import DecodeError
from core.perceptual_hash import IMAGE_DECODE_ERRORS
from utils.image_utils import get_image_info, to_rgb

logger = logging.getLogger(__name__)


@dataclass
class StoredFile:
    filename: str
    path: str
    size: int
    mimetype: str
    payment_url: Optional[str] = None

    def to_dict(self) -> Dict:
        data = {
            'filename': self.filename,
            'path': self.path,
            'size': self.size,
            'mimetype': self.mimetype
        }
        if self.payment_url:
            data['payment_url'] = self.payment_url
        return data


class AssetProcessor:
    """
    Produce the public derivatives of an upload

    The original is kept untouched for buyers; the marketplace only
    shows the watermarked copy, the thumbnail and a payment QR code.
    """

    SUBDIRS = ('originals', 'watermarked', 'thumbnails', 'qrcodes')

    def __init__(self,
                 upload_dir: str = "uploads",
                 watermark_text: str = "SAMPLE",
                 thumbnail_size: int = 300,
                 thumbnail_quality: int = 80,
                 qr_size: int = 200):
        self.upload_dir = Path(upload_dir)
        self.watermark_text = watermark_text
        self.thumbnail_size = thumbnail_size
        self.thumbnail_quality = thumbnail_quality
        self.qr_size = qr_size

    @classmethod
    def from_config(cls, config: ProcessingConfig) -> 'AssetProcessor':
        return cls(upload_dir=config.upload_dir,
                   watermark_text=config.watermark_text,
                   thumbnail_size=config.thumbnail_size,
                   thumbnail_quality=config.thumbnail_quality,
                   qr_size=config.qr_size)

    def ensure_directories(self):
        for sub in self.SUBDIRS:
            (self.upload_dir / sub).mkdir(parents=True, exist_ok=True)

    def apply_watermark(self, data: bytes, text: str = None) -> bytes:
        """Diagonal translucent text across the image centre, as PNG"""
        text = text or self.watermark_text
        base = self._open(data).convert('RGBA')

        layer = Image.new('RGBA', base.size, (255, 255, 255, 0))
        draw = ImageDraw.Draw(layer)
        font = self._font(48)
        left, top, right, bottom = draw.textbbox((0, 0), text, font=font)
        x = (base.width - (right - left)) / 2 - left
        y = (base.height - (bottom - top)) / 2 - top
        draw.text((x, y), text, font=font, fill=(255, 255, 255, 77))

        layer = layer.rotate(45, resample=Image.Resampling.BICUBIC,
                             center=(base.width / 2, base.height / 2))
        watermarked = Image.alpha_composite(base, layer)

        buffer = io.BytesIO()
        watermarked.save(buffer, format='PNG')
        return buffer.getvalue()

    def create_thumbnail(self, data: bytes, width: int = None, height: int = None) -> bytes:
        """Centre-cropped cover thumbnail, as JPEG"""
        width = width or self.thumbnail_size
        height = height or self.thumbnail_size
        img = to_rgb(self._open(data))
        thumb = ImageOps.fit(img, (width, height), method=Image.Resampling.LANCZOS,
                             centering=(0.5, 0.5))

        buffer = io.BytesIO()
        thumb.save(buffer, format='JPEG', quality=self.thumbnail_quality)
        return buffer.getvalue()

    def generate_qr_code(self, payment_url: str, size: int = None) -> bytes:
        """Square PNG QR code for the payment link"""
        size = size or self.qr_size
        if not payment_url:
            raise ValueError("payment_url is required")

        qr = qrcode.QRCode(error_correction=qrcode.ERROR_CORRECT_H,
                           box_size=10, border=2)
        qr.add_data(payment_url)
        qr.make(fit=True)
        rendered = qr.make_image(image_factory=PilImage,
                                 fill_color="black", back_color="white")

        raw = io.BytesIO()
        rendered.save(raw)
        raw.seek(0)
        # Nearest keeps the modules sharp
        img = Image.open(raw).convert('RGB').resize((size, size), Image.Resampling.NEAREST)

        buffer = io.BytesIO()
        img.save(buffer, format='PNG')
        return buffer.getvalue()

    def process_image(self, data: bytes,
                      payment_url: Optional[str] = None) -> Dict[str, StoredFile]:
        """
        Write original, watermarked and thumbnail files under a fresh uuid

        With a payment_url the payment QR code is written alongside.
        """
        info = get_image_info(data)
        if info is None:
            raise DecodeError("Upload is not a decodable image")

        # Nothing is written for an undecodable upload
        watermarked = self.apply_watermark(data)
        thumbnail = self.create_thumbnail(data)

        self.ensure_directories()
        stem = uuid.uuid4().hex
        extension = (info['format'] or 'png').lower()
        mimetype = Image.MIME.get(info['format'], 'application/octet-stream')

        files = {
            'original': self._write('originals', f"{stem}_original.{extension}",
                                    data, mimetype),
            'watermarked': self._write('watermarked', f"{stem}_watermarked.png",
                                       watermarked, 'image/png'),
            'thumbnail': self._write('thumbnails', f"{stem}_thumb.jpg",
                                     thumbnail, 'image/jpeg')
        }
        if payment_url:
            qr_file = self._write('qrcodes', f"{stem}_qr.png",
                                  self.generate_qr_code(payment_url), 'image/png')
            qr_file.payment_url = payment_url
            files['qr_code'] = qr_file
        logger.info("Processed upload %s (%dx%d %s)", stem,
                    info['width'], info['height'], info['format'])
        return files

    def _write(self, subdir: str, filename: str, data: bytes, mimetype: str) -> StoredFile:
        path = self.upload_dir / subdir / filename
        path.write_bytes(data)
        return StoredFile(filename=filename, path=str(path), size=len(data), mimetype=mimetype)

    @staticmethod
    def _open(data: bytes) -> Image.Image:
        try:
            img = Image.open(io.BytesIO(data))
            img.load()
            return img
        except IMAGE_DECODE_ERRORS as e:
            raise DecodeError(f"Could not decode image: {e}") from e

    @staticmethod
    def _font(size: int):
        try:
            return ImageFont.truetype("DejaVuSans-Bold.ttf", size)
        except OSError:
            return ImageFont.load_default()
