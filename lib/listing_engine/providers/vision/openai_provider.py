"""
OpenAI Vision Backend
=====================
GPT-4o chat completions with an image part, asked for a strict JSON
description of a real-estate photo.
"""

import json
import logging
import re
from typing import Any, Dict, Optional

import requests

from .base import BaseVisionBackend
from ..enhancement.base import http_json
from ...config.constants import (
    API_REQUEST_TIMEOUT,
    DEFAULT_VISION_MODEL,
    OPENAI_CHAT_ENDPOINT,
    VISION_BACKEND_OPENAI,
)
from ...errors import InvalidInput, ProviderUnavailable
from ...utils.file_utils import get_content_type_for_file, to_data_url

logger = logging.getLogger(__name__)


ANALYSIS_PROMPT = """You are a professional real estate photo analyst. Analyze this property photo.

Classify it and score it:
1. photoType: exterior, interior, drone or detail
2. subType: front, back, side, aerial, kitchen, living, dining, bedroom, bathroom,
   office, garage, laundry, storage, basement, attic, pool, patio, balcony, garden or other
3. scores (0-100): composition, lighting (100 = perfectly exposed), sharpness
4. deficiencies: for each visible problem give severity 0-100 and, for sky and
   lawn, the percentage of the frame it covers:
   sky (dull, blown out, overcast), lawn (patchy, brown), lighting (dark, uneven),
   clutter, perspective (tilted verticals), color (cast, dull), pool (murky water)
5. heroScore (0-100): how good this photo is as the listing cover, with a short heroReason
6. flags: hasSky, hasLawn, hasPool, hasFireplace, hasWindows, isEmpty (unfurnished room)
7. confidence (0-1): how sure you are of this analysis

Return ONLY a valid JSON object with this exact structure (no markdown, no explanation):
{
  "photoType": "exterior",
  "subType": "front",
  "scores": {"composition": 82, "lighting": 70, "sharpness": 88},
  "deficiencies": {"sky": {"severity": 75, "coverage": 35}, "lawn": {"severity": 40, "coverage": 20}},
  "heroScore": 85,
  "heroReason": "Strong front exterior with good composition, needs sky fix",
  "hasSky": true,
  "hasLawn": true,
  "hasPool": false,
  "hasFireplace": false,
  "hasWindows": true,
  "isEmpty": false,
  "confidence": 0.9
}"""

INSPECTION_PROMPT = """You are a quality control expert for real estate photo enhancements. Analyze this enhanced photo for any issues.

Look for:
1. ARTIFACTS - Unnatural elements, AI glitches, weird patterns, distorted objects
2. DISTORTION - Warped lines, stretched objects, perspective issues
3. COLOR ISSUES - Unnatural colors, color banding, inconsistent lighting
4. BLUR - Loss of sharpness, soft areas that should be sharp
5. INCONSISTENCIES - Elements that don't match (sky meeting roof, grass edges)

Return ONLY valid JSON:
{
  "overallQuality": 85,
  "issues": [
    {"type": "artifact", "severity": "low", "description": "Minor AI artifact visible in sky area"}
  ],
  "recommendation": "approve"
}

Where type is artifact | distortion | color_shift | blur | inconsistency | other,
severity is low | medium | high and recommendation is approve | review | reject."""

_CODE_FENCE = re.compile(r"```(?:json)?\s*")


class OpenAIVisionBackend(BaseVisionBackend):
    """
    OpenAI chat-completions vision backend.

    Refs the storage provider cannot expose as a URL are inlined as data
    URLs.
    """

    def __init__(
        self,
        api_key: str,
        model: str = DEFAULT_VISION_MODEL,
        storage=None,
        max_tokens: int = 1000,
        temperature: float = 0.1,
    ):
        if not api_key:
            raise ValueError("API key required for OpenAI vision backend")

        self.model = model
        self.storage = storage
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.session = requests.Session()
        self.session.headers.update({
            'Authorization': f'Bearer {api_key.strip()}',
            'Content-Type': 'application/json',
        })

    def get_provider_type(self) -> str:
        return VISION_BACKEND_OPENAI

    def get_provider_name(self) -> str:
        return f"OpenAI ({self.model})"

    def describe(self, image_ref: str) -> Dict[str, Any]:
        return self._ask(ANALYSIS_PROMPT, image_ref)

    def inspect(self, image_ref: str) -> Dict[str, Any]:
        return self._ask(INSPECTION_PROMPT, image_ref)

    def _ask(self, prompt: str, image_ref: str) -> Dict[str, Any]:
        payload = {
            'model': self.model,
            'messages': [{
                'role': 'user',
                'content': [
                    {'type': 'text', 'text': prompt},
                    {'type': 'image_url', 'image_url': {'url': self._image_url(image_ref), 'detail': 'high'}},
                ],
            }],
            'max_tokens': self.max_tokens,
            'temperature': self.temperature,
        }

        body = http_json(
            self.session, 'POST', OPENAI_CHAT_ENDPOINT, self.get_provider_type(),
            json=payload,
            timeout=API_REQUEST_TIMEOUT * 2,
        )

        content = self._message_content(body)
        if not content:
            raise ProviderUnavailable("Empty reply from vision model", self.get_provider_type())
        return parse_json_reply(content)

    def _image_url(self, image_ref: str) -> str:
        if self.storage is None:
            return image_ref
        url = self.storage.get_public_url(image_ref)
        if url:
            return url
        try:
            data = self.storage.read(image_ref)
        except FileNotFoundError as e:
            raise InvalidInput(str(e), self.get_provider_type()) from e
        except IOError as e:
            raise ProviderUnavailable(str(e), self.get_provider_type()) from e
        return to_data_url(data, get_content_type_for_file(image_ref))

    @staticmethod
    def _message_content(body: Dict[str, Any]) -> Optional[str]:
        choices = body.get('choices') or []
        if not choices:
            return None
        return (choices[0].get('message') or {}).get('content')


def parse_json_reply(content: str) -> Dict[str, Any]:
    """
    Parse a model reply that should be a JSON object.

    Markdown code fences around the object are tolerated.

    Raises:
        ValueError: If the reply is not a JSON object
    """
    cleaned = _CODE_FENCE.sub("", content).strip()
    try:
        parsed = json.loads(cleaned)
    except json.JSONDecodeError as e:
        raise ValueError(f"Vision reply is not valid JSON: {e}") from e
    if not isinstance(parsed, dict):
        raise ValueError("Vision reply is not a JSON object")
    return parsed
