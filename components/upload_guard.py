# components/upload_guard.py

import logging
import threading
from dataclasses import dataclass
from typing import Dict, Iterable, Optional

from config import SystemConfig
from core.duplicate_detection import DuplicateDecisionEngine
from core.models import CandidateAsset, DuplicateDecision, ImageHashRecord
from security.input_validation import SecurityValidator

logger = logging.getLogger(__name__)


@dataclass
class UploadCheck:
    """What the upload handler needs to respond and to persist"""
    hashes: ImageHashRecord
    decision: DuplicateDecision
    rejected: bool

    def audit_record(self) -> Dict:
        """The asset's ``duplicate_check`` field"""
        return self.decision.to_audit_record()

    def rejection_payload(self) -> Dict:
        return {
            'error': 'Duplicate content detected',
            'details': {
                'message': 'This image appears to be similar to existing content on the platform',
                'confidence': round(self.decision.confidence, 4),
                'duplicates': [m.to_dict() for m in self.decision.matches]
            }
        }


class UploadDuplicateGuard:
    """
    Duplicate gate for the upload path

    Validates the bytes, computes the hashes to store on the new asset,
    runs the decision engine with the upload candidate cap and applies
    the rejection threshold.
    """

    def __init__(self, engine: DuplicateDecisionEngine,
                 block_threshold: float = 0.85,
                 candidate_cap: int = 50,
                 max_upload_bytes: int = SecurityValidator.MAX_FILE_SIZE):
        self.engine = engine
        self.block_threshold = block_threshold
        self.candidate_cap = candidate_cap
        self.max_upload_bytes = max_upload_bytes

    @classmethod
    def from_config(cls, config: SystemConfig,
                    engine: Optional[DuplicateDecisionEngine] = None) -> 'UploadDuplicateGuard':
        return cls(engine or DuplicateDecisionEngine.from_config(config),
                   block_threshold=config.decision.block_threshold,
                   candidate_cap=config.candidates.upload_cap,
                   max_upload_bytes=config.processing.max_upload_bytes)

    def check(self, image_bytes: bytes,
              uploader_id: str,
              candidate_pool: Iterable[CandidateAsset],
              cancel_event: Optional[threading.Event] = None) -> UploadCheck:
        """Raises ValidationError for bad uploads and HashingError for non-bytes"""
        SecurityValidator.validate_image_bytes(image_bytes, self.max_upload_bytes)

        hashes = self.engine.hasher.hash_record(image_bytes)
        decision = self.engine.decide(
            image_bytes, candidate_pool,
            uploader_id=uploader_id,
            cap=self.candidate_cap,
            cancel_event=cancel_event
        )

        rejected = decision.is_duplicate and decision.confidence >= self.block_threshold
        if rejected:
            logger.info(
                "Rejecting upload by %s: %s",
                uploader_id,
                ", ".join(f"{m.asset_id} ({'/'.join(sorted(x.value for x in m.methods))})"
                          for m in decision.matches)
            )

        return UploadCheck(hashes=hashes, decision=decision, rejected=rejected)
