"""
File operation utilities
"""

import json
from pathlib import Path
from typing import List

from core.models import CandidateAsset, ImageHashRecord

IMAGE_EXTENSIONS = {'.jpg', '.jpeg', '.png', '.bmp', '.gif', '.tiff', '.webp'}


def get_image_files(directory: str, recursive: bool = True) -> List[str]:
    """Get all image files in directory, sorted"""
    path = Path(directory)
    pattern = '**/*' if recursive else '*'

    return sorted(
        str(f) for f in path.glob(pattern)
        if f.is_file() and f.suffix.lower() in IMAGE_EXTENSIONS
    )


def format_file_size(size_bytes: int) -> str:
    """Format file size in human readable format"""
    for unit in ['B', 'KB', 'MB', 'GB', 'TB']:
        if size_bytes < 1024.0:
            return f"{size_bytes:.2f} {unit}"
        size_bytes /= 1024.0
    return f"{size_bytes:.2f} PB"


def save_pool_manifest(assets: List[CandidateAsset], output_path: str):
    """
    Write a candidate pool as JSON

    Image bytes are not serialized; only path references survive.
    """
    entries = []
    for asset in assets:
        entries.append({
            'asset_id': asset.asset_id,
            'creator_id': asset.creator_id,
            'title': asset.title,
            'hashes': asset.stored_hash.to_dict() if asset.stored_hash else None,
            'image_path': str(asset.image) if isinstance(asset.image, (str, Path)) else None
        })

    with open(output_path, 'w') as f:
        json.dump({'assets': entries}, f, indent=2)


def load_pool_manifest(manifest_path: str) -> List[CandidateAsset]:
    """Read a candidate pool written by save_pool_manifest"""
    with open(manifest_path, 'r') as f:
        data = json.load(f)

    assets = []
    for entry in data.get('assets', []):
        hashes = entry.get('hashes')
        assets.append(CandidateAsset(
            asset_id=str(entry['asset_id']),
            creator_id=entry.get('creator_id'),
            stored_hash=ImageHashRecord.from_dict(hashes) if hashes else None,
            image=entry.get('image_path'),
            title=entry.get('title')
        ))
    return assets
