"""
AutoEnhance Enhancement Provider
================================
AutoEnhance.ai API v3 for the technical fixes: exposure merge (HDR),
vertical correction, flash cleanup and base color correction.

Workflow per call:
1. Register an image with the tool's options (returns an S3 upload URL)
2. PUT the input bytes to the presigned URL
3. Poll the image until it is enhanced or reports an error
4. Download the enhanced image and store it through the storage provider
"""

import logging
import time
import uuid
from typing import Any, Callable, Dict

import requests

from .base import BaseEnhancementProvider, http_json, http_request
from ...config.constants import (
    API_REQUEST_TIMEOUT,
    AUTOENHANCE_IMAGES_ENDPOINT,
    ENHANCEMENT_BACKEND_AUTOENHANCE,
    IMAGE_TRANSFER_TIMEOUT,
    POLL_INTERVAL_SECONDS,
    TOOL_TIMEOUT_SECONDS,
)
from ...errors import InvalidInput, ProviderTimeout, ProviderUnavailable
from ...models.enums import ProviderId, ToolId
from ...utils.file_utils import get_content_type_for_file, get_file_extension

logger = logging.getLogger(__name__)


# Per-tool processing options sent when registering an image
TOOL_OPTIONS: Dict[ToolId, Dict[str, Any]] = {
    ToolId.HDR: {'enhance': True, 'enhance_type': 'property', 'vertical_correction': False},
    ToolId.AUTO_ENHANCE: {'enhance': True, 'enhance_type': 'authentic', 'vertical_correction': False},
    ToolId.PERSPECTIVE_CORRECTION: {'enhance': False, 'vertical_correction': True, 'lens_correction': True},
    ToolId.FLASH_FIX: {'enhance': True, 'enhance_type': 'neutral', 'privacy': False},
}

# HDR strength preset to AutoEnhance brightness boost
HDR_BRIGHTNESS = {
    'light': 'low',
    'balanced': 'medium',
    'dramatic': 'high',
}


class AutoEnhanceProvider(BaseEnhancementProvider):
    """
    AutoEnhance.ai provider.

    Reads the input image and writes the result through a storage
    provider, so it works with any ref type.
    """

    provider_id = ProviderId.AUTOENHANCE

    def __init__(
        self,
        api_key: str,
        storage,
        poll_interval: float = POLL_INTERVAL_SECONDS,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        if not api_key:
            raise ValueError("API key required for AutoEnhance provider")
        if storage is None:
            raise ValueError("AutoEnhance provider requires a storage provider")

        self.storage = storage
        self.poll_interval = poll_interval
        self._sleep = sleep
        self._clock = clock
        self.session = requests.Session()
        self.session.headers.update({
            'x-api-key': api_key.strip(),
            'Accept': 'application/json',
        })

    def get_provider_type(self) -> str:
        return ENHANCEMENT_BACKEND_AUTOENHANCE

    def get_provider_name(self) -> str:
        return "AutoEnhance"

    def supports(self, tool: ToolId) -> bool:
        return tool in TOOL_OPTIONS

    def invoke(self, tool: ToolId, image_ref: str, params: Dict[str, Any]) -> str:
        if not self.supports(tool):
            raise InvalidInput(f"AutoEnhance does not support {tool.value}", self.get_provider_type())

        deadline = self._clock() + float(params.get('timeout', TOOL_TIMEOUT_SECONDS))
        data = self._read_input(image_ref)

        image_id, upload_url = self._register(tool, image_ref, params)
        self._upload(upload_url, data, get_content_type_for_file(image_ref))
        self._wait_until_enhanced(image_id, deadline)
        enhanced = self._download(image_id)

        key = params.get('output_key') or f"enhanced/{image_id}{get_file_extension(image_ref) or '.jpg'}"
        return self.storage.write(enhanced, key=key, content_type='image/jpeg')

    def _read_input(self, image_ref: str) -> bytes:
        try:
            return self.storage.read(image_ref)
        except FileNotFoundError as e:
            raise InvalidInput(str(e), self.get_provider_type()) from e
        except IOError as e:
            raise ProviderUnavailable(str(e), self.get_provider_type()) from e

    def _register(self, tool: ToolId, image_ref: str, params: Dict[str, Any]):
        payload = dict(TOOL_OPTIONS[tool])
        payload['image_name'] = f"{uuid.uuid4().hex}{get_file_extension(image_ref) or '.jpg'}"
        payload['content_type'] = get_content_type_for_file(image_ref)

        preset = params.get('preset')
        if tool == ToolId.HDR and preset in HDR_BRIGHTNESS:
            payload['brightness_boost'] = HDR_BRIGHTNESS[preset]

        body = http_json(
            self.session, 'POST', AUTOENHANCE_IMAGES_ENDPOINT, self.get_provider_type(),
            json=payload,
            timeout=API_REQUEST_TIMEOUT,
        )

        image_id = body.get('image_id')
        upload_url = body.get('s3PutObjectUrl')
        if not image_id or not upload_url:
            raise ProviderUnavailable("AutoEnhance returned no upload target", self.get_provider_type())
        logger.info("AutoEnhance image registered: %s (%s)", image_id, tool.value)
        return image_id, upload_url

    def _upload(self, upload_url: str, data: bytes, content_type: str) -> None:
        # Presigned S3 URL: no API key header
        try:
            response = requests.put(
                upload_url,
                data=data,
                headers={'Content-Type': content_type},
                timeout=IMAGE_TRANSFER_TIMEOUT,
            )
        except requests.exceptions.Timeout as e:
            raise ProviderTimeout(f"AutoEnhance upload timed out: {e}", self.get_provider_type()) from e
        except requests.exceptions.RequestException as e:
            raise ProviderUnavailable(f"AutoEnhance upload failed: {e}", self.get_provider_type()) from e

        if response.status_code >= 400:
            raise ProviderUnavailable(
                f"AutoEnhance upload failed: HTTP {response.status_code}",
                self.get_provider_type(),
            )

    def _wait_until_enhanced(self, image_id: str, deadline: float) -> None:
        url = f"{AUTOENHANCE_IMAGES_ENDPOINT}{image_id}"
        while True:
            body = http_json(
                self.session, 'GET', url, self.get_provider_type(), timeout=API_REQUEST_TIMEOUT,
            )

            if body.get('error'):
                raise InvalidInput(
                    f"AutoEnhance could not process {image_id}: {body.get('status', 'error')}",
                    self.get_provider_type(),
                )
            if body.get('enhanced'):
                return
            if self._clock() >= deadline:
                raise ProviderTimeout(f"AutoEnhance image {image_id} not ready in time", self.get_provider_type())
            self._sleep(self.poll_interval)

    def _download(self, image_id: str) -> bytes:
        response = http_request(
            self.session, 'GET', f"{AUTOENHANCE_IMAGES_ENDPOINT}{image_id}/enhanced",
            self.get_provider_type(),
            timeout=IMAGE_TRANSFER_TIMEOUT,
        )
        return response.content
