# core/vision_client.py

"""
Client for an OpenAI-compatible multimodal chat completion endpoint.

Every failure mode (transport, timeout, HTTP status, malformed body) is
reported as JudgeUnavailable so callers have a single thing to absorb.
"""

import base64
import json
import logging
from typing import Dict, List, Optional

import httpx
import magic

from config import AIJudgeConfig
from core.errors import JudgeUnavailable

logger = logging.getLogger(__name__)


def image_data_url(data: bytes) -> str:
    """Encode image bytes as a base64 data URL"""
    mime = magic.from_buffer(data, mime=True)
    if not mime.startswith('image/'):
        mime = 'image/png'
    return f"data:{mime};base64,{base64.b64encode(data).decode()}"


class VisionChatClient:
    """Thin JSON-mode wrapper around /chat/completions"""

    def __init__(self,
                 api_key: str,
                 api_base: str = "https://api.groq.com/openai/v1",
                 model: str = "meta-llama/llama-4-scout-17b-16e-instruct",
                 timeout: float = 20.0,
                 client: Optional[httpx.Client] = None):
        if not api_key:
            raise ValueError("api_key is required")
        self.model = model
        self._owns_client = client is None
        self.client = client or httpx.Client(
            base_url=api_base,
            timeout=httpx.Timeout(timeout)
        )
        self.client.headers['Authorization'] = f"Bearer {api_key}"

    @classmethod
    def from_config(cls, config: AIJudgeConfig,
                    client: Optional[httpx.Client] = None) -> 'VisionChatClient':
        return cls(
            api_key=config.resolve_api_key(),
            api_base=config.api_base,
            model=config.model,
            timeout=config.timeout_seconds,
            client=client
        )

    def complete_json(self,
                      system_prompt: str,
                      user_text: str,
                      images: List[bytes],
                      temperature: float = 1.0,
                      max_completion_tokens: int = 1024) -> Dict:
        """Send the prompt plus images and return the parsed JSON object"""
        content = [{"type": "text", "text": user_text}]
        for image in images:
            content.append({
                "type": "image_url",
                "image_url": {"url": image_data_url(image)}
            })

        payload = {
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": content}
            ],
            "model": self.model,
            "temperature": temperature,
            "max_completion_tokens": max_completion_tokens,
            "top_p": 1,
            "stream": False,
            "response_format": {"type": "json_object"}
        }

        try:
            response = self.client.post("/chat/completions", json=payload)
            response.raise_for_status()
            raw = response.json()["choices"][0]["message"]["content"]
            parsed = json.loads(raw)
        except httpx.TimeoutException as e:
            raise JudgeUnavailable(f"Vision model timed out: {e}") from e
        except httpx.HTTPError as e:
            raise JudgeUnavailable(f"Vision model request failed: {e}") from e
        except (KeyError, IndexError, TypeError, ValueError) as e:
            raise JudgeUnavailable(f"Malformed vision model response: {e}") from e

        if not isinstance(parsed, dict):
            raise JudgeUnavailable(
                f"Expected a JSON object, got {type(parsed).__name__}"
            )
        return parsed

    def close(self):
        if self._owns_client:
            self.client.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()
