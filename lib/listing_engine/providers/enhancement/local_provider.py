"""
Local Enhancement Provider
==========================
Pillow-based tonal corrections that need no remote backend: exposure
balance (hdr), base color correction (auto-enhance) and flash cleanup.

Used when AutoEnhance is not configured. Not rate limited and free.
"""

import io
import logging
from typing import Any, Dict, Optional

from PIL import Image, ImageEnhance, ImageFilter, UnidentifiedImageError
from pydantic import BaseModel, ConfigDict

from .base import BaseEnhancementProvider
from ...config.constants import ENHANCEMENT_BACKEND_LOCAL
from ...errors import InvalidInput, ProviderUnavailable
from ...models.enums import ColorTemperature, HdrStrength, ProviderId, ToolId
from ...utils.enum_utils import require_exhaustive

logger = logging.getLogger(__name__)


class LocalPreset(BaseModel):
    """Multiplicative factors (1.0 = unchanged); warmth shifts red/blue."""
    model_config = ConfigDict(frozen=True)

    brightness: float = 1.0
    contrast: float = 1.0
    saturation: float = 1.0
    sharpness: float = 1.0
    warmth: float = 0.0


HDR_PRESETS: Dict[HdrStrength, LocalPreset] = require_exhaustive({
    HdrStrength.LIGHT: LocalPreset(brightness=1.04, contrast=1.05, saturation=1.05, sharpness=1.1),
    HdrStrength.BALANCED: LocalPreset(brightness=1.08, contrast=1.10, saturation=1.10, sharpness=1.2),
    HdrStrength.DRAMATIC: LocalPreset(brightness=1.14, contrast=1.18, saturation=1.12, sharpness=1.3),
}, HdrStrength, "HDR_PRESETS")

COLOR_PRESETS: Dict[ColorTemperature, LocalPreset] = require_exhaustive({
    ColorTemperature.WARM: LocalPreset(brightness=1.05, contrast=1.05, saturation=1.15, sharpness=1.2, warmth=0.15),
    ColorTemperature.NEUTRAL: LocalPreset(brightness=1.05, contrast=1.10, saturation=1.10, sharpness=1.2),
    ColorTemperature.COOL: LocalPreset(brightness=1.05, contrast=1.08, saturation=1.05, sharpness=1.2, warmth=-0.1),
}, ColorTemperature, "COLOR_PRESETS")

# Flash: pull down hotspots and soften harsh edges
FLASH_FIX_PRESET = LocalPreset(brightness=0.96, contrast=0.92, saturation=1.05, sharpness=0.9, warmth=0.05)

LOCAL_TOOLS = (ToolId.HDR, ToolId.AUTO_ENHANCE, ToolId.FLASH_FIX)

# Maximum per-channel shift for warmth = 1.0
_WARMTH_SCALE = 40


class LocalProvider(BaseEnhancementProvider):
    """
    In-process Pillow provider.

    Usage:
        provider = LocalProvider(storage)
        ref = provider.invoke(ToolId.HDR, ref, {'preset': 'balanced'})
    """

    provider_id = ProviderId.LOCAL
    is_remote = False

    def __init__(self, storage, jpeg_quality: int = 92):
        if storage is None:
            raise ValueError("Local provider requires a storage provider")
        self.storage = storage
        self.jpeg_quality = jpeg_quality

    def get_provider_type(self) -> str:
        return ENHANCEMENT_BACKEND_LOCAL

    def get_provider_name(self) -> str:
        return "Local (Pillow)"

    def supports(self, tool: ToolId) -> bool:
        return tool in LOCAL_TOOLS

    def invoke(self, tool: ToolId, image_ref: str, params: Dict[str, Any]) -> str:
        preset = self.preset_for(tool, params.get('preset'))

        try:
            data = self.storage.read(image_ref)
        except FileNotFoundError as e:
            raise InvalidInput(str(e), self.get_provider_type()) from e
        except IOError as e:
            raise ProviderUnavailable(str(e), self.get_provider_type()) from e

        output = self.apply(data, preset, quality=self.jpeg_quality)
        return self.storage.write(output, key=params.get('output_key'), content_type='image/jpeg')

    def preset_for(self, tool: ToolId, preset: Optional[str]) -> LocalPreset:
        if tool == ToolId.HDR:
            return HDR_PRESETS[HdrStrength(preset or HdrStrength.BALANCED.value)]
        if tool == ToolId.AUTO_ENHANCE:
            return COLOR_PRESETS[ColorTemperature(preset or ColorTemperature.NEUTRAL.value)]
        if tool == ToolId.FLASH_FIX:
            return FLASH_FIX_PRESET
        raise InvalidInput(f"Local provider does not support {tool.value}", self.get_provider_type())

    @staticmethod
    def apply(data: bytes, preset: LocalPreset, quality: int = 92) -> bytes:
        """
        Apply a preset to encoded image bytes.

        Returns:
            JPEG bytes with the same dimensions as the input

        Raises:
            InvalidInput: If the bytes are not a decodable image
        """
        try:
            with Image.open(io.BytesIO(data)) as img:
                img = img.convert('RGB')
        except (UnidentifiedImageError, OSError) as e:
            raise InvalidInput(f"Cannot decode image: {e}", ENHANCEMENT_BACKEND_LOCAL) from e

        img = ImageEnhance.Brightness(img).enhance(preset.brightness)
        img = ImageEnhance.Contrast(img).enhance(preset.contrast)
        img = ImageEnhance.Color(img).enhance(preset.saturation)
        if preset.sharpness > 1.0:
            img = ImageEnhance.Sharpness(img).enhance(preset.sharpness)
        elif preset.sharpness < 1.0:
            img = img.filter(ImageFilter.SMOOTH)
        if preset.warmth:
            img = _shift_warmth(img, preset.warmth)

        output = io.BytesIO()
        img.save(output, format='JPEG', quality=quality, optimize=True)
        return output.getvalue()


def _shift_warmth(img: Image.Image, warmth: float) -> Image.Image:
    shift = int(round(warmth * _WARMTH_SCALE))
    red, green, blue = img.split()
    red = red.point(lambda v: max(0, min(255, v + shift)))
    blue = blue.point(lambda v: max(0, min(255, v - shift)))
    return Image.merge('RGB', (red, green, blue))
