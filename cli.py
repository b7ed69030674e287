# cli.py

import argparse
import json
import logging
import sys
from pathlib import Path

from tqdm import tqdm

from components.content_analyzer import ContentAnalyzer
from components.upload_guard import UploadDuplicateGuard
from config import SystemConfig
from core.batch_processor import BatchComparer
from core.content_store import ContentStoreChain
from core.duplicate_detection import DuplicateDecisionEngine
from core.errors import DuplicateCheckError
from core.models import CandidateAsset
from core.perceptual_hash import PerceptualHasher
from core.vision_client import VisionChatClient
from security.input_validation import SecurityValidator
from utils.file_utils import get_image_files, load_pool_manifest, save_pool_manifest
from utils.logging_config import setup_logging
from utils.report_generator import DuplicateReportGenerator

logger = logging.getLogger(__name__)


def _build_engine(config: SystemConfig, args) -> DuplicateDecisionEngine:
    if getattr(args, 'no_ai', False):
        config.ai_judge.enabled = False
    return DuplicateDecisionEngine.from_config(config)


def _hasher(config: SystemConfig) -> PerceptualHasher:
    return PerceptualHasher(hash_size=config.hashing.hash_size,
                            max_image_pixels=config.hashing.max_image_pixels)


def _emit(data: dict, output: str = None):
    text = json.dumps(data, indent=2, default=str)
    if output:
        Path(output).write_text(text)
        print(f"Results saved to: {output}")
    else:
        print(text)


def hash_command(args, config: SystemConfig):
    """Print the hash record of an image"""
    record = _hasher(config).hash_record(Path(args.image).read_bytes())
    _emit(record.to_dict())


def compare_command(args, config: SystemConfig):
    """Compare two images"""
    engine = _build_engine(config, args)
    result = engine.compare_pair(Path(args.image1).read_bytes(),
                                 Path(args.image2).read_bytes())
    _emit(result.to_dict(), args.output)


def index_command(args, config: SystemConfig):
    """Hash a directory of existing assets into a pool manifest"""
    hasher = _hasher(config)
    root = Path(args.directory)
    image_paths = get_image_files(args.directory)
    print(f"Found {len(image_paths)} images")

    assets = []
    for path in tqdm(image_paths, desc="Computing hashes"):
        if not SecurityValidator.validate_image_path(path, config.processing.max_upload_bytes):
            logger.warning("Skipping invalid image: %s", path)
            continue
        rel = Path(path).relative_to(root)
        assets.append(CandidateAsset(
            asset_id=str(rel),
            # First directory level is treated as the creator
            creator_id=rel.parts[0] if len(rel.parts) > 1 else None,
            stored_hash=hasher.hash_record(Path(path).read_bytes()),
            image=str(Path(path).resolve()),
            title=rel.stem
        ))

    save_pool_manifest(assets, args.output)
    print(f"Indexed {len(assets)} assets into {args.output}")


def check_command(args, config: SystemConfig):
    """Check an upload against a pool manifest"""
    engine = _build_engine(config, args)
    guard = UploadDuplicateGuard.from_config(config, engine=engine)
    if args.cap is not None:
        guard.candidate_cap = args.cap

    pool = load_pool_manifest(args.manifest)
    result = guard.check(Path(args.image).read_bytes(), args.uploader, pool)

    if args.report:
        DuplicateReportGenerator().generate_decision_report(
            result.decision, Path(args.image).name, args.report
        )

    output = {
        'rejected': result.rejected,
        'hashes': result.hashes.to_dict(),
        'decision': result.decision.to_dict()
    }
    if result.rejected:
        output['rejection'] = result.rejection_payload()
    _emit(output, args.output)
    return 1 if result.rejected else 0


def batch_command(args, config: SystemConfig):
    """Compare every pair of a set of images"""
    engine = _build_engine(config, args)
    comparer = BatchComparer.from_config(engine, config.batch, show_progress=True)

    images = [(Path(p).name, Path(p).read_bytes()) for p in args.images]
    result = comparer.compare_all(images, use_ai=not args.no_ai)

    print(f"\nCompared {len(result.comparisons)} pairs: "
          f"{result.duplicates} duplicate, {result.unique} unique")

    if args.report:
        DuplicateReportGenerator().generate_batch_report(result, args.report)
    _emit(result.to_dict(), args.output)


def analyze_command(args, config: SystemConfig):
    """Tag and moderate an image with the vision model"""
    data = Path(args.image).read_bytes()
    with VisionChatClient.from_config(config.ai_judge) as client:
        analyzer = ContentAnalyzer(client)
        analysis = analyzer.analyze(data)
        validation = analyzer.validate(data)

    _emit({'analysis': analysis.to_dict(), 'validation': validation.to_dict()})


def pin_command(args, config: SystemConfig):
    """Pin a file to IPFS through the configured backends"""
    with ContentStoreChain.from_config(config.storage) as chain:
        stored = chain.upload(Path(args.file).read_bytes(), Path(args.file).name)
    if stored is None:
        print("No IPFS backends configured")
        return 1
    _emit(stored.to_dict())


def main_cli(argv=None):
    """Main CLI entry point"""
    parser = argparse.ArgumentParser(
        description="Asset duplicate detection - Command Line Interface"
    )
    parser.add_argument('-c', '--config', default='config.yaml',
                        help='YAML configuration file')
    parser.add_argument('--log-level', help='Override the configured log level')
    subparsers = parser.add_subparsers(dest='command', help='Commands')

    hash_parser = subparsers.add_parser('hash', help='Print SHA-256 and perceptual hash')
    hash_parser.add_argument('image', help='Path to image')
    hash_parser.set_defaults(func=hash_command)

    compare_parser = subparsers.add_parser('compare', help='Compare two images')
    compare_parser.add_argument('image1')
    compare_parser.add_argument('image2')
    compare_parser.add_argument('--no-ai', action='store_true', help='Local hashing only')
    compare_parser.add_argument('-o', '--output', help='Output JSON file for results')
    compare_parser.set_defaults(func=compare_command)

    index_parser = subparsers.add_parser('index', help='Build a pool manifest from a directory')
    index_parser.add_argument('directory', help='Directory of existing assets')
    index_parser.add_argument('-o', '--output', default='pool.json', help='Manifest path')
    index_parser.set_defaults(func=index_command)

    check_parser = subparsers.add_parser('check', help='Check an upload for duplicates')
    check_parser.add_argument('image', help='Uploaded image')
    check_parser.add_argument('manifest', help='Pool manifest from the index command')
    check_parser.add_argument('-u', '--uploader', help='Uploader id (own assets are skipped)')
    check_parser.add_argument('--cap', type=int, help='Candidate cap')
    check_parser.add_argument('--no-ai', action='store_true', help='Local hashing only')
    check_parser.add_argument('-r', '--report', help='Output HTML report path')
    check_parser.add_argument('-o', '--output', help='Output JSON file for results')
    check_parser.set_defaults(func=check_command)

    batch_parser = subparsers.add_parser('batch', help='Compare all pairs of images')
    batch_parser.add_argument('images', nargs='+', help='Images to compare')
    batch_parser.add_argument('--no-ai', action='store_true', help='Local hashing only')
    batch_parser.add_argument('-r', '--report', help='Output HTML report path')
    batch_parser.add_argument('-o', '--output', help='Output JSON file for results')
    batch_parser.set_defaults(func=batch_command)

    analyze_parser = subparsers.add_parser('analyze', help='Suggest tags and moderate an image')
    analyze_parser.add_argument('image')
    analyze_parser.set_defaults(func=analyze_command)

    pin_parser = subparsers.add_parser('pin', help='Pin a file to IPFS')
    pin_parser.add_argument('file')
    pin_parser.set_defaults(func=pin_command)

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    try:
        config = SystemConfig.load(args.config)
        setup_logging(args.log_level or config.log_level, config.log_dir)
        return args.func(args, config) or 0
    except (DuplicateCheckError, OSError, ValueError) as e:
        logger.error("%s failed: %s", args.command, e)
        print(f"Error: {e}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(main_cli())
