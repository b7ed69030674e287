# core/ai_judge.py

import logging
from typing import Optional

from config import AIJudgeConfig
from core.errors import JudgeUnavailable
from core.models import JudgeVerdict
from core.prompts import IMAGE_COMPARISON_SYSTEM_PROMPT, IMAGE_COMPARISON_USER_PROMPT
from core.vision_client import VisionChatClient

logger = logging.getLogger(__name__)


class AISimilarityJudge:
    """
    Asks a vision model whether two images show the same content.

    The verdict is advisory: judge() returns None whenever the model is
    unreachable or answers outside the {result, message} contract.
    """

    def __init__(self, client: VisionChatClient,
                 temperature: float = 1.0,
                 max_completion_tokens: int = 1024):
        self.client = client
        self.temperature = temperature
        self.max_completion_tokens = max_completion_tokens
        self.calls_made = 0

    @classmethod
    def from_config(cls, config: AIJudgeConfig, http_client=None) -> 'AISimilarityJudge':
        return cls(
            VisionChatClient.from_config(config, client=http_client),
            temperature=config.temperature,
            max_completion_tokens=config.max_completion_tokens
        )

    def request_verdict(self, image_a: bytes, image_b: bytes) -> JudgeVerdict:
        """Like judge() but raises JudgeUnavailable instead of returning None"""
        self.calls_made += 1
        response = self.client.complete_json(
            IMAGE_COMPARISON_SYSTEM_PROMPT,
            IMAGE_COMPARISON_USER_PROMPT,
            [image_a, image_b],
            temperature=self.temperature,
            max_completion_tokens=self.max_completion_tokens
        )
        return self._parse_verdict(response)

    def judge(self, image_a: bytes, image_b: bytes) -> Optional[JudgeVerdict]:
        try:
            return self.request_verdict(image_a, image_b)
        except JudgeUnavailable as e:
            logger.warning("AI similarity judge unavailable: %s", e)
            return None

    @staticmethod
    def _parse_verdict(response: dict) -> JudgeVerdict:
        result = response.get('result')
        message = response.get('message')
        # bool only: "true" strings or 1/0 break the contract
        if not isinstance(result, bool) or not isinstance(message, str):
            raise JudgeUnavailable(f"Response violates verdict contract: {response!r}")
        return JudgeVerdict(same=result, message=message)
