# core/models.py

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Dict, FrozenSet, List, Optional, Union


class MatchMethod(str, Enum):
    """How a duplicate match was established"""
    EXACT = "exact"
    PERCEPTUAL = "perceptual"
    AI = "ai"


# Strongest first; used to pick the headline method of a merged match
METHOD_PRECEDENCE = (MatchMethod.EXACT, MatchMethod.AI, MatchMethod.PERCEPTUAL)


@dataclass(frozen=True)
class ImageHashRecord:
    """Hashes stored on an asset at upload time"""
    sha256: str
    perceptual_hash: Optional[str] = None

    def to_dict(self) -> Dict[str, Optional[str]]:
        return {'sha256': self.sha256, 'perceptual_hash': self.perceptual_hash}

    @classmethod
    def from_dict(cls, data: Dict) -> 'ImageHashRecord':
        return cls(
            sha256=data['sha256'],
            perceptual_hash=data.get('perceptual_hash') or None
        )


@dataclass(frozen=True)
class ComparisonResult:
    """Hamming comparison of two perceptual hashes"""
    distance: int
    similarity: float
    is_similar: bool
    degraded: bool = False

    def to_dict(self) -> Dict:
        return {
            'distance': self.distance,
            'similarity': self.similarity,
            'is_similar': self.is_similar,
            'degraded': self.degraded
        }


@dataclass
class CandidateAsset:
    """
    An existing asset the caller fetched from its persistence layer.

    ``image`` is either the raw bytes or a path to the stored original;
    it is only read when the AI judge needs it.
    """
    asset_id: str
    creator_id: Optional[str]
    stored_hash: Optional[ImageHashRecord]
    image: Union[bytes, str, Path, None] = None
    title: Optional[str] = None

    def load_image(self) -> Optional[bytes]:
        """Return the image bytes, reading from disk if needed"""
        if self.image is None:
            return None
        if isinstance(self.image, (bytes, bytearray)):
            return bytes(self.image)
        return Path(self.image).read_bytes()


@dataclass
class DuplicateMatch:
    """One matching asset; methods merge instead of producing a second record"""
    asset_id: str
    method: MatchMethod
    confidence: float
    reason: str
    methods: FrozenSet[MatchMethod] = frozenset()

    def __post_init__(self):
        self.methods = frozenset(self.methods) | {self.method}

    def upgrade(self, method: MatchMethod, confidence_floor: float, reason: str):
        """Add a corroborating method, raising confidence to at least the floor"""
        self.methods = self.methods | {method}
        self.method = next(m for m in METHOD_PRECEDENCE if m in self.methods)
        self.confidence = max(self.confidence, confidence_floor)
        self.reason = f"{self.reason}; {reason}"

    def to_dict(self) -> Dict:
        return {
            'asset_id': self.asset_id,
            'method': self.method.value,
            'methods': sorted(m.value for m in self.methods),
            'confidence': round(self.confidence, 4),
            'reason': self.reason
        }


@dataclass
class DuplicateDecision:
    """Outcome of one duplicate check"""
    is_duplicate: bool
    confidence: float
    matches: List[DuplicateMatch] = field(default_factory=list)
    methods_used: FrozenSet[MatchMethod] = frozenset()
    candidates_checked: int = 0
    checked_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def from_matches(cls, matches: List[DuplicateMatch],
                     candidates_checked: int) -> 'DuplicateDecision':
        methods = frozenset()
        for match in matches:
            methods = methods | match.methods
        return cls(
            is_duplicate=len(matches) > 0,
            confidence=max((m.confidence for m in matches), default=0.0),
            matches=sorted(matches, key=lambda m: m.confidence, reverse=True),
            methods_used=methods,
            candidates_checked=candidates_checked
        )

    def to_audit_record(self) -> Dict:
        """Shape stored on the asset as its ``duplicate_check`` field"""
        return {
            'is_duplicate': self.is_duplicate,
            'confidence': round(self.confidence, 4),
            'methods_used': sorted(m.value for m in self.methods_used),
            'similar_assets': [
                {
                    'asset_id': m.asset_id,
                    'similarity': round(m.confidence, 4),
                    'methods': sorted(x.value for x in m.methods)
                }
                for m in self.matches
            ],
            'candidates_checked': self.candidates_checked,
            'checked_at': self.checked_at.isoformat()
        }

    def to_dict(self) -> Dict:
        data = self.to_audit_record()
        data['matches'] = [m.to_dict() for m in self.matches]
        return data


@dataclass(frozen=True)
class JudgeVerdict:
    """Structured answer from the vision model"""
    same: bool
    message: str


@dataclass
class PairComparison:
    """Combined local and AI comparison of two images"""
    exact: bool
    local: Optional[ComparisonResult]
    verdict: Optional[JudgeVerdict]
    is_duplicate: bool
    confidence: float

    @property
    def ai_message(self) -> str:
        if self.verdict is None:
            return 'AI service unavailable, using local comparison'
        return self.verdict.message

    def to_dict(self) -> Dict:
        return {
            'exact': self.exact,
            'is_duplicate': self.is_duplicate,
            'confidence': round(self.confidence, 4),
            'similarity': self.local.similarity if self.local else None,
            'local_comparison': self.local.to_dict() if self.local else None,
            'ai_result': (
                {'result': self.verdict.same, 'message': self.verdict.message}
                if self.verdict else None
            ),
            'ai_message': self.ai_message
        }
