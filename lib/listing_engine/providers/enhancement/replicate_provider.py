"""
Replicate Enhancement Provider
==============================
FLUX Kontext image editing on Replicate's prediction API.

One class serves three routed providers:
- flux-kontext: single instruction edit
- flux-multipass: same model, called once per twilight pipeline step
- sam-flux: SAM-2 window segmentation, then a FLUX edit of the windows

Workflow per call:
1. POST a prediction (Prefer: wait lets short jobs finish inline)
2. Poll the prediction until it succeeds, fails or the deadline passes
3. Return the output image URL
"""

import logging
import time
from typing import Any, Callable, Dict, Optional, Tuple

import requests

from .base import BaseEnhancementProvider, EnhancementStatus, http_json
from ...config.constants import (
    API_REQUEST_TIMEOUT,
    DEFAULT_FLUX_GUIDANCE,
    DEFAULT_FLUX_STEPS,
    ENHANCEMENT_BACKEND_REPLICATE,
    MIN_FLUX_STEPS,
    POLL_INTERVAL_SECONDS,
    REPLICATE_BASE_URL,
    REPLICATE_MODELS,
    REPLICATE_PREDICTIONS_ENDPOINT,
    REPLICATE_SEGMENTATION_VERSION,
    TOOL_TIMEOUT_SECONDS,
)
from ...engine.prompts import get_locked_prompt
from ...errors import InvalidInput, ProviderTimeout, ProviderUnavailable
from ...models.enums import ProviderId, ToolId
from ...utils.enum_utils import require_exhaustive
from ...utils.file_utils import get_content_type_for_file, to_data_url

logger = logging.getLogger(__name__)


# Guidance scale and inference steps of a full-strength pass per tool.
# Lower guidance keeps subtle edits close to the input.
TOOL_GUIDANCE: Dict[ToolId, Tuple[float, int]] = require_exhaustive({
    ToolId.SKY_REPLACEMENT: (2.5, 25),
    ToolId.VIRTUAL_TWILIGHT: (3.5, 28),
    ToolId.LAWN_REPAIR: (2.5, 25),
    ToolId.POOL_ENHANCE: (2.5, 25),
    ToolId.DECLUTTER: (DEFAULT_FLUX_GUIDANCE, DEFAULT_FLUX_STEPS),
    ToolId.VIRTUAL_STAGING: (3.5, DEFAULT_FLUX_STEPS),
    ToolId.FIRE_FIREPLACE: (2.5, 25),
    ToolId.TV_SCREEN: (2.5, 25),
    ToolId.LIGHTS_ON: (2.5, 25),
    ToolId.HDR: (2.0, 25),
    ToolId.AUTO_ENHANCE: (2.0, 25),
    ToolId.PERSPECTIVE_CORRECTION: (DEFAULT_FLUX_GUIDANCE, DEFAULT_FLUX_STEPS),
    ToolId.WINDOW_MASKING: (2.5, 25),
    ToolId.FLASH_FIX: (2.0, 25),
}, ToolId, "TOOL_GUIDANCE")

_REPLICATE_PROVIDERS = (ProviderId.FLUX_KONTEXT, ProviderId.FLUX_MULTIPASS, ProviderId.SAM_FLUX)


class ReplicateProvider(BaseEnhancementProvider):
    """
    Replicate FLUX provider.

    Usage:
        provider = ReplicateProvider(api_token, provider_id=ProviderId.FLUX_KONTEXT)
        url = provider.invoke(ToolId.SKY_REPLACEMENT, image_url, {'preset': 'soft-blue'})
    """

    def __init__(
        self,
        api_token: str,
        provider_id: ProviderId = ProviderId.FLUX_KONTEXT,
        storage=None,
        model: Optional[str] = None,
        poll_interval: float = POLL_INTERVAL_SECONDS,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize Replicate provider.

        Args:
            api_token: Replicate API token
            provider_id: Routed provider this instance serves
            storage: Storage provider used to resolve non-URL refs
            model: Override the model for this provider
            poll_interval: Seconds between status polls
        """
        if provider_id not in _REPLICATE_PROVIDERS:
            raise ValueError(f"Replicate cannot serve provider {provider_id.value}")
        if not api_token:
            raise ValueError("API token required for Replicate provider")

        self.provider_id = provider_id
        self.model = model or REPLICATE_MODELS[provider_id.value]
        self.storage = storage
        self.poll_interval = poll_interval
        self._sleep = sleep
        self._clock = clock
        self.session = requests.Session()
        self.session.headers.update({
            'Authorization': f'Bearer {api_token.strip()}',
            'Content-Type': 'application/json',
        })

    def get_provider_type(self) -> str:
        return ENHANCEMENT_BACKEND_REPLICATE

    def get_provider_name(self) -> str:
        return f"Replicate ({self.provider_id.value})"

    def invoke(self, tool: ToolId, image_ref: str, params: Dict[str, Any]) -> str:
        timeout = float(params.get('timeout', TOOL_TIMEOUT_SECONDS))
        deadline = self._clock() + timeout
        image = self._resolve_image(image_ref)

        if self.provider_id == ProviderId.SAM_FLUX:
            self._require_windows(image, deadline)

        prompt = params.get('prompt') or get_locked_prompt(
            tool,
            preset=params.get('preset'),
            step=params.get('pass'),
            glow=params.get('glow', 'medium'),
        )
        guidance, steps = self.guidance_for(tool, float(params.get('strength', 1.0)))

        logger.info(
            "%s: %s pass=%s guidance=%.2f steps=%d",
            self.get_provider_name(), tool.value, params.get('pass', 'main'), guidance, steps,
        )

        prediction = self._run(
            f"{REPLICATE_BASE_URL}/models/{self.model}/predictions",
            {
                'input': {
                    'prompt': prompt,
                    'input_image': image,
                    'guidance': guidance,
                    'num_inference_steps': steps,
                    'aspect_ratio': 'match_input_image',
                    'output_format': 'jpg',
                    'output_quality': 95,
                },
            },
            deadline,
        )
        return self._extract_url(prediction)

    @staticmethod
    def guidance_for(tool: ToolId, strength: float) -> Tuple[float, int]:
        """
        Guidance and steps scaled by the step strength.

        A refinement pass at strength 0.57 on twilight gives guidance 2.0.
        Steps never drop below MIN_FLUX_STEPS.
        """
        base_guidance, base_steps = TOOL_GUIDANCE[tool]
        strength = max(0.0, min(1.0, strength))
        guidance = round(base_guidance * strength, 1)
        steps = max(MIN_FLUX_STEPS, int(round(base_steps * strength)))
        return guidance, min(steps, base_steps)

    def _resolve_image(self, image_ref: str) -> str:
        """A URL Replicate can fetch, or the image inlined as a data URL."""
        if self.storage is not None:
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
        return image_ref

    def _require_windows(self, image: str, deadline: float) -> None:
        prediction = self._run(
            REPLICATE_PREDICTIONS_ENDPOINT,
            {
                'version': REPLICATE_SEGMENTATION_VERSION,
                'input': {'image': image, 'point_prompt': [], 'box_prompt': []},
            },
            deadline,
        )
        output = prediction.get('output') or {}
        masks = output.get('individual_masks') if isinstance(output, dict) else output
        if not masks:
            raise InvalidInput("No windows detected for masking", self.get_provider_type())

    def _run(self, url: str, payload: Dict[str, Any], deadline: float) -> Dict[str, Any]:
        """Create a prediction and poll it to a final state."""
        remaining = max(1.0, deadline - self._clock())
        prediction = http_json(
            self.session, 'POST', url, self.get_provider_type(),
            json=payload,
            headers={'Prefer': f'wait={int(min(60, remaining))}'},
            timeout=min(remaining + API_REQUEST_TIMEOUT, TOOL_TIMEOUT_SECONDS + API_REQUEST_TIMEOUT),
        )

        while True:
            status = self.normalize_status(prediction.get('status', ''))
            if status == EnhancementStatus.COMPLETED:
                return prediction
            if status == EnhancementStatus.FAILED:
                error = prediction.get('error') or prediction.get('status')
                raise ProviderUnavailable(
                    f"Prediction {prediction.get('id')} failed: {error}",
                    self.get_provider_type(),
                )
            if self._clock() >= deadline:
                self._cancel(prediction)
                raise ProviderTimeout(
                    f"Prediction {prediction.get('id')} did not finish in time",
                    self.get_provider_type(),
                )

            self._sleep(self.poll_interval)
            poll_url = (prediction.get('urls') or {}).get('get') or \
                f"{REPLICATE_PREDICTIONS_ENDPOINT}/{prediction.get('id')}"
            prediction = http_json(
                self.session, 'GET', poll_url, self.get_provider_type(),
                timeout=API_REQUEST_TIMEOUT,
            )

    def _cancel(self, prediction: Dict[str, Any]) -> None:
        cancel_url = (prediction.get('urls') or {}).get('cancel')
        if not cancel_url:
            return
        try:
            self.session.post(cancel_url, timeout=API_REQUEST_TIMEOUT)
        except requests.exceptions.RequestException as e:
            logger.warning("Could not cancel prediction %s: %s", prediction.get('id'), e)

    def _extract_url(self, prediction: Dict[str, Any]) -> str:
        output = prediction.get('output')
        if isinstance(output, list):
            output = output[0] if output else None
        if not output or not isinstance(output, str):
            raise ProviderUnavailable(
                f"Prediction {prediction.get('id')} returned no image",
                self.get_provider_type(),
            )
        return output
