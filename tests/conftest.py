# tests/conftest.py

import json
import logging
import struct
import zlib

import cv2
import httpx
import numpy as np
import pytest

from core.models import CandidateAsset, ImageHashRecord
from core.perceptual_hash import PerceptualHasher


def make_gradient(mirrored: bool = False, size: int = 256, offset: int = 0) -> np.ndarray:
    """Grayscale ramp along x with a gentle ramp along y"""
    x = np.arange(size, dtype=np.float32)
    if mirrored:
        x = x[::-1]
    y = np.arange(size, dtype=np.float32)[:, None]
    img = 20 + x[None, :] * 0.6 + y * 0.2 + offset
    return np.clip(img, 0, 255).astype(np.uint8)


def encode(img: np.ndarray, ext: str = '.png', quality: int = 95) -> bytes:
    params = [cv2.IMWRITE_JPEG_QUALITY, quality] if ext == '.jpg' else []
    ok, buf = cv2.imencode(ext, img, params)
    assert ok
    return buf.tobytes()


class FakeJudge:
    """Stands in for AISimilarityJudge, counting calls"""

    def __init__(self, verdict=None):
        self.verdict = verdict
        self.calls = 0

    def judge(self, image_a, image_b):
        self.calls += 1
        return self.verdict


@pytest.fixture
def gradient_png():
    return encode(make_gradient())


@pytest.fixture
def gradient_jpeg():
    """Same picture as gradient_png, re-encoded lossy"""
    return encode(make_gradient(), '.jpg', quality=70)


@pytest.fixture
def mirrored_png():
    """Unrelated picture: the ramp runs the other way"""
    return encode(make_gradient(mirrored=True))


@pytest.fixture
def hasher():
    return PerceptualHasher()


@pytest.fixture
def make_candidate(hasher):
    def _make(asset_id, image_bytes, creator_id="other-creator", with_image=True):
        return CandidateAsset(
            asset_id=asset_id,
            creator_id=creator_id,
            stored_hash=hasher.hash_record(image_bytes),
            image=image_bytes if with_image else None
        )
    return _make


@pytest.fixture
def chat_response():
    """Build an OpenAI-style chat completion body"""
    def _build(content):
        if not isinstance(content, str):
            content = json.dumps(content)
        return {"choices": [{"message": {"role": "assistant", "content": content}}]}
    return _build


@pytest.fixture
def mock_client():
    """httpx.Client whose requests go to a handler instead of the network"""
    def _build(handler, base_url="https://llm.test/v1"):
        return httpx.Client(base_url=base_url, transport=httpx.MockTransport(handler))
    return _build


def hash_only_candidate(asset_id, perceptual_hash, sha256="0" * 64, creator_id="c"):
    return CandidateAsset(
        asset_id=asset_id,
        creator_id=creator_id,
        stored_hash=ImageHashRecord(sha256=sha256, perceptual_hash=perceptual_hash)
    )


def broken_png(size: int = 64) -> bytes:
    """
    PNG whose second chunk of pixel data carries an invalid chunk type

    The header is intact, so the bytes sniff as image/png and open fine;
    decoding fails only once Pillow reads past the first IDAT chunk.
    """
    rng = np.random.default_rng(7)
    rows = rng.integers(0, 255, (size, size), dtype=np.uint8)
    raw = b''.join(b'\x00' + row.tobytes() for row in rows)
    compressed = zlib.compress(raw)
    half = len(compressed) // 2

    def chunk(cid, data):
        crc = zlib.crc32(cid + data) & 0xffffffff
        return struct.pack('>I', len(data)) + cid + data + struct.pack('>I', crc)

    return (b'\x89PNG\r\n\x1a\n'
            + chunk(b'IHDR', struct.pack('>IIBBBBB', size, size, 8, 0, 0, 0, 0))
            + chunk(b'IDAT', compressed[:half])
            + chunk(b'\xadE\x00\x00', compressed[half:])
            + chunk(b'IEND', b''))


@pytest.fixture(autouse=True)
def reset_logging_handlers():
    """Drop handlers installed by setup_logging (the CLI calls it)"""
    root = logging.getLogger()
    level = root.level
    yield
    for handler in [h for h in root.handlers if getattr(h, '_asset_dedup', False)]:
        root.removeHandler(handler)
        handler.close()
    root.setLevel(level)
