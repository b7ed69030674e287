# components/content_analyzer.py

import logging
from dataclasses import dataclass, field
from typing import Dict, List

from core.errors import JudgeUnavailable
from core.prompts import (CONTENT_ANALYSIS_SYSTEM_PROMPT, CONTENT_ANALYSIS_USER_PROMPT,
                          CONTENT_MODERATION_SYSTEM_PROMPT, CONTENT_MODERATION_USER_PROMPT)
from core.vision_client import VisionChatClient

logger = logging.getLogger(__name__)


@dataclass
class ContentAnalysis:
    """Listing suggestions for an uploaded image"""
    tags: List[str] = field(default_factory=lambda: ['digital-art', 'creative'])
    category: str = 'digital-art'
    description: str = 'Digital artwork'
    suggested_price: str = '10-50'
    from_model: bool = False

    def to_dict(self) -> Dict:
        return {
            'tags': self.tags,
            'category': self.category,
            'description': self.description,
            'suggested_price': self.suggested_price,
            'from_model': self.from_model
        }


@dataclass
class ModerationResult:
    """Appropriateness check; defaults are what is returned when the model is down"""
    is_appropriate: bool = True
    confidence: float = 0.5
    flags: List[str] = field(default_factory=list)
    reason: str = 'Validation service unavailable'
    from_model: bool = False

    @property
    def recommendation(self) -> str:
        if self.is_appropriate:
            return 'Content is appropriate for the platform'
        return 'Content may not be appropriate for the platform'

    def to_dict(self) -> Dict:
        return {
            'is_appropriate': self.is_appropriate,
            'confidence': self.confidence,
            'flags': self.flags,
            'reason': self.reason,
            'recommendation': self.recommendation,
            'from_model': self.from_model
        }


class ContentAnalyzer:
    """
    Tagging and moderation of uploads through the vision model

    Both calls fail soft to fixed defaults, so an outage never blocks an
    upload.
    """

    def __init__(self, client: VisionChatClient):
        self.client = client

    def analyze(self, image: bytes) -> ContentAnalysis:
        try:
            response = self.client.complete_json(
                CONTENT_ANALYSIS_SYSTEM_PROMPT,
                CONTENT_ANALYSIS_USER_PROMPT,
                [image],
                temperature=0.7,
                max_completion_tokens=512
            )
        except JudgeUnavailable as e:
            logger.warning("Image analysis failed, using defaults: %s", e)
            return ContentAnalysis()

        defaults = ContentAnalysis()
        tags = response.get('tags')
        if not isinstance(tags, list):
            tags = defaults.tags

        return ContentAnalysis(
            tags=[str(t) for t in tags],
            category=str(response.get('category') or defaults.category),
            description=str(response.get('description') or defaults.description),
            suggested_price=str(response.get('suggestedPrice') or defaults.suggested_price),
            from_model=True
        )

    def validate(self, image: bytes) -> ModerationResult:
        try:
            response = self.client.complete_json(
                CONTENT_MODERATION_SYSTEM_PROMPT,
                CONTENT_MODERATION_USER_PROMPT,
                [image],
                temperature=0.3,
                max_completion_tokens=256
            )
        except JudgeUnavailable as e:
            logger.warning("Content validation failed, using safe default: %s", e)
            return ModerationResult()

        is_appropriate = response.get('isAppropriate')
        if not isinstance(is_appropriate, bool):
            logger.warning("Moderation response missing isAppropriate: %r", response)
            return ModerationResult()

        try:
            confidence = min(max(float(response.get('confidence', 0.5)), 0.0), 1.0)
        except (TypeError, ValueError):
            confidence = 0.5

        flags = response.get('flags')
        return ModerationResult(
            is_appropriate=is_appropriate,
            confidence=confidence,
            flags=[str(f) for f in flags] if isinstance(flags, list) else [],
            reason=str(response.get('reason') or ''),
            from_model=True
        )
