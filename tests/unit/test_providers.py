"""
Unit Tests: Providers
=====================
Tests for storage and enhancement factories, the local Pillow provider,
in-memory storage, HTTP error mapping and the remote adapters with mocked
HTTP.
"""

from unittest.mock import patch

import pytest
import requests

FLUX_URL = "https://api.replicate.com/v1/models/black-forest-labs/flux-kontext-dev/predictions"
PREDICTIONS_URL = "https://api.replicate.com/v1/predictions"
AUTOENHANCE_URL = "https://api.autoenhance.ai/v3/images/"
OPENAI_URL = "https://api.openai.com/v1/chat/completions"
IMAGE_URL = "https://cdn.example.com/listing/front.jpg"


def _sent(session, call=0):
    """(method, url, kwargs) of a request sent through a scripted session."""
    sent = session.request.call_args_list[call]
    return sent.args[0], sent.args[1], sent.kwargs


class TestHttpErrorMapping:
    """Tests for http_request error translation."""

    @pytest.mark.unit
    @pytest.mark.parametrize("status,error", [
        (400, "InvalidInput"),
        (422, "InvalidInput"),
        (401, "ProviderUnavailable"),
        (503, "ProviderUnavailable"),
    ])
    def test_status_codes(self, status, error, make_response, make_session):
        """HTTP errors map onto the engine's provider errors."""
        from listing_engine import errors
        from listing_engine.providers.enhancement.base import http_request

        session = make_session(make_response(status, json_body={"detail": "nope"}))

        with pytest.raises(getattr(errors, error), match="nope"):
            http_request(session, "GET", IMAGE_URL, "test", timeout=5)

    @pytest.mark.unit
    def test_success_passes_through(self, make_response, make_session):
        """A successful response is returned with the request forwarded intact."""
        from listing_engine.providers.enhancement.base import http_request

        session = make_session(make_response(200, json_body={"ok": True}))

        response = http_request(session, "POST", IMAGE_URL, "test", json={"a": 1}, timeout=5)

        assert response.json() == {"ok": True}
        assert _sent(session) == ("POST", IMAGE_URL, {"json": {"a": 1}, "timeout": 5})

    @pytest.mark.unit
    def test_rate_limited_with_retry_after(self, make_response, make_session):
        """429 carries the Retry-After hint."""
        from listing_engine.errors import RateLimited
        from listing_engine.providers.enhancement.base import http_request

        session = make_session(make_response(429, headers={"Retry-After": "7"}))

        with pytest.raises(RateLimited) as exc_info:
            http_request(session, "GET", IMAGE_URL, "test", timeout=5)

        assert exc_info.value.retry_after == 7.0
        assert exc_info.value.provider == "test"

    @pytest.mark.unit
    def test_timeout_and_connection_errors(self, make_session):
        """Transport failures become timeout or unavailable."""
        from listing_engine.errors import ProviderTimeout, ProviderUnavailable
        from listing_engine.providers.enhancement.base import http_request

        session = make_session(
            requests.exceptions.ReadTimeout("slow"),
            requests.exceptions.ConnectionError("refused"),
        )

        with pytest.raises(ProviderTimeout):
            http_request(session, "GET", IMAGE_URL, "test", timeout=5)
        with pytest.raises(ProviderUnavailable):
            http_request(session, "POST", IMAGE_URL, "test", timeout=5)

    @pytest.mark.unit
    def test_json_body_must_be_an_object(self, make_response, make_session):
        """Undecodable or non-object bodies on a 200 are unavailable."""
        from listing_engine.errors import ProviderUnavailable
        from listing_engine.providers.enhancement.base import http_json

        session = make_session(
            make_response(200, content=b"<html>gateway</html>"),
            make_response(200, json_body=[{"id": "p"}]),
            make_response(200, json_body={"id": "p"}),
        )

        with pytest.raises(ProviderUnavailable, match="non-JSON body"):
            http_json(session, "GET", IMAGE_URL, "test", timeout=5)
        with pytest.raises(ProviderUnavailable, match="JSON list"):
            http_json(session, "GET", IMAGE_URL, "test", timeout=5)
        assert http_json(session, "GET", IMAGE_URL, "test", timeout=5) == {"id": "p"}


class TestMemoryStorage:
    """Tests for MemoryStorageProvider class."""

    @pytest.mark.unit
    def test_write_and_read(self, memory_storage):
        """Refs returned by write() read back the same bytes."""
        ref = memory_storage.write(b"abc", key="/listings/L1/p1.jpg")

        assert ref == "memory://listings/L1/p1.jpg"
        assert memory_storage.read(ref) == b"abc"
        assert memory_storage.read("listings/L1/p1.jpg") == b"abc"
        assert memory_storage.exists(ref)

    @pytest.mark.unit
    def test_generated_keys(self, memory_storage):
        """Without a key a unique one is generated."""
        first = memory_storage.write(b"1")
        second = memory_storage.write(b"2")

        assert first != second
        assert len(memory_storage.keys()) == 2

    @pytest.mark.unit
    def test_missing_ref(self, memory_storage):
        """Reading an unknown ref raises FileNotFoundError."""
        with pytest.raises(FileNotFoundError):
            memory_storage.read("memory://nothing.jpg")
        assert not memory_storage.exists("memory://nothing.jpg")

    @pytest.mark.unit
    def test_rejects_non_bytes(self, memory_storage):
        """Only bytes can be stored."""
        with pytest.raises(IOError):
            memory_storage.write("text")

    @pytest.mark.unit
    def test_url_refs_are_downloaded(self, memory_storage, make_response):
        """http(s) refs are fetched directly."""
        with patch("requests.get", return_value=make_response(content=b"jpeg-bytes")) as get:
            assert memory_storage.read(IMAGE_URL) == b"jpeg-bytes"
        assert get.call_args.args[0] == IMAGE_URL

        with patch("requests.get", return_value=make_response(404)):
            with pytest.raises(FileNotFoundError):
                memory_storage.read(IMAGE_URL)

        assert memory_storage.get_public_url(IMAGE_URL) == IMAGE_URL
        assert memory_storage.get_public_url("memory://a.jpg") is None


class TestStorageFactory:
    """Tests for StorageFactory class."""

    @pytest.mark.unit
    def test_memory_without_credentials(self):
        """No storage credentials gives in-memory storage."""
        from listing_engine.providers.storage import MemoryStorageProvider, StorageFactory

        storage = StorageFactory.create_from_credentials({"client_id": "ACME"})

        assert isinstance(storage, MemoryStorageProvider)

    @pytest.mark.unit
    def test_dropbox_detected_without_connecting(self):
        """Dropbox credentials select Dropbox."""
        from listing_engine.providers.storage import DropboxProvider, StorageFactory

        storage = StorageFactory.create_from_credentials(
            {"dropbox_refresh_token": "rt", "dropbox_app_key": "k", "dropbox_app_secret": "s"},
            auto_connect=False,
        )

        assert isinstance(storage, DropboxProvider)
        assert not storage.is_connected()

    @pytest.mark.unit
    def test_unknown_provider(self):
        """Unknown types list the supported ones."""
        from listing_engine.providers.storage import StorageFactory

        with pytest.raises(ValueError, match="Supported: dropbox, memory"):
            StorageFactory.create("ftp", {})
        with pytest.raises(ValueError, match="Unknown storage provider: 'ftp'"):
            StorageFactory.create_from_credentials({"storage_provider": "FTP"})
        assert StorageFactory.get_supported_providers() == ["dropbox", "memory"]

    @pytest.mark.unit
    def test_flat_dropbox_fields_are_mapped(self):
        """Flat dropbox_* fields reach connect() under the provider's own keys."""
        from unittest.mock import patch
        from listing_engine.providers.storage import DropboxProvider, StorageFactory

        with patch.object(DropboxProvider, "connect", autospec=True, return_value=True) as connect:
            StorageFactory.create_from_credentials({
                "openai_api_key": "sk-test",
                "dropbox_refresh_token": "rt",
                "dropbox_app_key": "k",
                "dropbox_app_secret": "s",
            })

        connect.assert_called_once()
        assert connect.call_args.args[1] == {"refresh_token": "rt", "app_key": "k", "app_secret": "s"}

    @pytest.mark.unit
    def test_nested_credentials_are_passed_through(self):
        """The nested storage_credentials section is handed over unchanged."""
        from unittest.mock import patch
        from listing_engine.providers.storage import DropboxProvider, StorageFactory

        section = {"refresh_token": "rt", "app_key": "k", "app_secret": "s", "member_id": "dbmid:1"}

        with patch.object(DropboxProvider, "connect", autospec=True, return_value=True) as connect:
            StorageFactory.create_from_credentials({
                "storage_provider": "dropbox",
                "storage_credentials": section,
            })

        assert connect.call_args.args[1] == section


class TestEnhancementFactory:
    """Tests for EnhancementFactory class."""

    @pytest.mark.unit
    def test_local_needs_no_key(self, memory_storage):
        """The local provider is built from storage alone."""
        from listing_engine.providers.enhancement import EnhancementFactory, LocalProvider

        provider = EnhancementFactory.create("local", storage=memory_storage)

        assert isinstance(provider, LocalProvider)
        assert not provider.is_remote

    @pytest.mark.unit
    def test_remote_requires_key(self, memory_storage):
        """Remote backends refuse to build without a key."""
        from listing_engine.providers.enhancement import EnhancementFactory

        with pytest.raises(ValueError, match="API key required"):
            EnhancementFactory.create("replicate", storage=memory_storage)
        with pytest.raises(ValueError, match="Unknown enhancement provider"):
            EnhancementFactory.create("photoshop")

    @pytest.mark.unit
    def test_registry_from_flat_credentials(self, memory_storage):
        """A Replicate token adds the three FLUX routes."""
        from listing_engine.models import ProviderId
        from listing_engine.providers.enhancement import EnhancementFactory

        registry = EnhancementFactory.build_registry({"replicate_api_token": "r8_x"}, memory_storage)

        assert set(registry) == {
            ProviderId.LOCAL, ProviderId.FLUX_KONTEXT, ProviderId.FLUX_MULTIPASS, ProviderId.SAM_FLUX,
        }
        assert registry[ProviderId.SAM_FLUX].provider_id == ProviderId.SAM_FLUX

    @pytest.mark.unit
    def test_registry_from_nested_credentials(self, memory_storage):
        """Nested enhancement_credentials are read first."""
        from listing_engine.models import ProviderId
        from listing_engine.providers.enhancement import AutoEnhanceProvider, EnhancementFactory

        registry = EnhancementFactory.build_registry(
            {"enhancement_credentials": {"autoenhance_api_key": "ae_x"}},
            memory_storage,
        )

        assert set(registry) == {ProviderId.LOCAL, ProviderId.AUTOENHANCE}
        assert isinstance(registry[ProviderId.AUTOENHANCE], AutoEnhanceProvider)

    @pytest.mark.unit
    def test_create_from_credentials_detects_backend(self, memory_storage):
        """Backend type is detected from the configured keys."""
        from listing_engine.providers.enhancement import EnhancementFactory, ReplicateProvider

        provider = EnhancementFactory.create_from_credentials(
            {"replicate_api_token": "r8_x"}, storage=memory_storage,
        )

        assert isinstance(provider, ReplicateProvider)

    @pytest.mark.unit
    def test_register_provider(self, monkeypatch):
        """Third-party backends can be registered; non-providers cannot."""
        from listing_engine.providers.enhancement import BaseEnhancementProvider, EnhancementFactory

        class StubBackend(BaseEnhancementProvider):
            def __init__(self, api_key):
                self.api_key = api_key

            def invoke(self, tool, image_ref, params):
                return image_ref

            def get_provider_type(self):
                return "stub"

            def get_provider_name(self):
                return "Stub"

        monkeypatch.setattr(EnhancementFactory, "_providers", dict(EnhancementFactory._providers))
        EnhancementFactory.register_provider("Stub", StubBackend)

        assert EnhancementFactory.is_provider_supported(" stub ")
        assert "stub" in EnhancementFactory.get_supported_providers()
        assert EnhancementFactory.create("stub", "key-1").api_key == "key-1"
        with pytest.raises(TypeError):
            EnhancementFactory.register_provider("bogus", dict)


class TestLocalProvider:
    """Tests for LocalProvider class."""

    @pytest.mark.unit
    @pytest.mark.parametrize("tool,preset", [
        ("hdr", "dramatic"),
        ("auto-enhance", "warm"),
        ("flash-fix", None),
    ])
    def test_output_keeps_dimensions(self, make_jpeg, tool, preset):
        """Every local tool writes a JPEG of the input size."""
        import io
        from PIL import Image
        from listing_engine.models import ToolId
        from listing_engine.providers.enhancement import LocalProvider
        from listing_engine.providers.storage import MemoryStorageProvider

        storage = MemoryStorageProvider({"raw/p1.jpg": make_jpeg(80, 60)})
        provider = LocalProvider(storage)

        ref = provider.invoke(ToolId(tool), "memory://raw/p1.jpg", {"preset": preset, "output_key": "out/p1.jpg"})

        assert ref == "memory://out/p1.jpg"
        with Image.open(io.BytesIO(storage.read(ref))) as img:
            assert img.size == (80, 60)
            assert img.format == "JPEG"

    @pytest.mark.unit
    def test_warm_preset_shifts_color(self, make_jpeg):
        """Warmth raises red relative to blue."""
        import io
        from PIL import Image
        from listing_engine.models import ColorTemperature
        from listing_engine.providers.enhancement.local_provider import COLOR_PRESETS, LocalProvider

        output = LocalProvider.apply(make_jpeg(color=(128, 128, 128)), COLOR_PRESETS[ColorTemperature.WARM])

        with Image.open(io.BytesIO(output)) as img:
            red, _, blue = img.convert("RGB").getpixel((10, 10))
        assert red > blue

    @pytest.mark.unit
    def test_unsupported_tool_and_bad_input(self, memory_storage):
        """Unsupported tools, missing refs and garbage bytes are InvalidInput."""
        from listing_engine.errors import InvalidInput
        from listing_engine.models import ToolId
        from listing_engine.providers.enhancement import LocalProvider

        provider = LocalProvider(memory_storage)
        garbage = memory_storage.write(b"not an image", key="raw/bad.jpg")

        assert not provider.supports(ToolId.VIRTUAL_STAGING)
        with pytest.raises(InvalidInput):
            provider.invoke(ToolId.VIRTUAL_STAGING, garbage, {})
        with pytest.raises(InvalidInput):
            provider.invoke(ToolId.HDR, "memory://raw/missing.jpg", {})
        with pytest.raises(InvalidInput, match="Cannot decode"):
            provider.invoke(ToolId.HDR, garbage, {})


class TestReplicateProvider:
    """Tests for ReplicateProvider class."""

    @pytest.mark.unit
    def test_requires_token_and_replicate_route(self):
        """Only the FLUX routes can be served."""
        from listing_engine.models import ProviderId
        from listing_engine.providers.enhancement import ReplicateProvider

        with pytest.raises(ValueError):
            ReplicateProvider("")
        with pytest.raises(ValueError):
            ReplicateProvider("r8_x", provider_id=ProviderId.AUTOENHANCE)

    @pytest.mark.unit
    def test_guidance_scales_with_strength(self):
        """Refinement passes use lower guidance and a step floor."""
        from listing_engine.models import ToolId
        from listing_engine.providers.enhancement import ReplicateProvider

        assert ReplicateProvider.guidance_for(ToolId.HDR, 1.0) == (2.0, 25)
        assert ReplicateProvider.guidance_for(ToolId.VIRTUAL_TWILIGHT, 0.57) == (2.0, 20)

    @pytest.mark.unit
    def test_inline_completion(self, make_response, make_session):
        """A prediction finished inline returns its output URL."""
        from listing_engine.models import ToolId
        from listing_engine.providers.enhancement import ReplicateProvider

        provider = ReplicateProvider("r8_x")
        assert provider.session.headers["Authorization"] == "Bearer r8_x"
        provider.session = make_session(make_response(json_body={
            "id": "pred1", "status": "succeeded", "output": "https://replicate.delivery/out.jpg",
        }))

        ref = provider.invoke(ToolId.SKY_REPLACEMENT, IMAGE_URL, {"preset": "soft-blue", "strength": 1.0})

        assert ref == "https://replicate.delivery/out.jpg"
        method, url, kwargs = _sent(provider.session)
        assert (method, url) == ("POST", FLUX_URL)
        assert kwargs["json"]["input"]["input_image"] == IMAGE_URL
        assert kwargs["json"]["input"]["guidance"] == 2.5
        assert kwargs["json"]["input"]["prompt"]

    @pytest.mark.unit
    def test_polls_until_done(self, make_response, make_session):
        """A queued prediction is polled through its get URL."""
        from listing_engine.models import ToolId
        from listing_engine.providers.enhancement import ReplicateProvider

        poll_url = f"{PREDICTIONS_URL}/pred2"
        sleeps = []
        provider = ReplicateProvider("r8_x", sleep=sleeps.append, poll_interval=1.5)
        provider.session = make_session(
            make_response(json_body={"id": "pred2", "status": "starting", "urls": {"get": poll_url}}),
            make_response(json_body={"id": "pred2", "status": "processing", "urls": {"get": poll_url}}),
            make_response(json_body={"id": "pred2", "status": "succeeded", "output": ["https://r.d/o.jpg"]}),
        )

        ref = provider.invoke(ToolId.DECLUTTER, IMAGE_URL, {})

        assert ref == "https://r.d/o.jpg"
        assert sleeps == [1.5, 1.5]
        assert _sent(provider.session, 1)[:2] == ("GET", poll_url)
        assert _sent(provider.session, 2)[:2] == ("GET", poll_url)

    @pytest.mark.unit
    def test_failed_prediction(self, make_response, make_session):
        """A failed prediction is ProviderUnavailable."""
        from listing_engine.errors import ProviderUnavailable
        from listing_engine.models import ToolId
        from listing_engine.providers.enhancement import ReplicateProvider

        provider = ReplicateProvider("r8_x")
        provider.session = make_session(make_response(json_body={"id": "p", "status": "failed", "error": "NSFW"}))

        with pytest.raises(ProviderUnavailable, match="NSFW"):
            provider.invoke(ToolId.DECLUTTER, IMAGE_URL, {})

    @pytest.mark.unit
    def test_deadline_cancels_prediction(self, make_response, make_session):
        """Past the deadline the prediction is cancelled and the call times out."""
        from listing_engine.errors import ProviderTimeout
        from listing_engine.models import ToolId
        from listing_engine.providers.enhancement import ReplicateProvider

        cancel_url = f"{PREDICTIONS_URL}/slow/cancel"
        ticks = iter([0.0, 0.0, 100.0])
        provider = ReplicateProvider("r8_x", clock=lambda: next(ticks), sleep=lambda s: None)
        provider.session = make_session(make_response(json_body={
            "id": "slow", "status": "processing", "urls": {"cancel": cancel_url},
        }))

        with pytest.raises(ProviderTimeout):
            provider.invoke(ToolId.DECLUTTER, IMAGE_URL, {"timeout": 10})
        assert provider.session.post.call_args.args[0] == cancel_url

    @pytest.mark.unit
    def test_memory_refs_are_inlined(self, make_jpeg, make_response, make_session):
        """Refs without a public URL are sent as data URLs."""
        from listing_engine.models import ToolId
        from listing_engine.providers.enhancement import ReplicateProvider
        from listing_engine.providers.storage import MemoryStorageProvider

        storage = MemoryStorageProvider({"raw/p1.jpg": make_jpeg()})
        provider = ReplicateProvider("r8_x", storage=storage)
        provider.session = make_session(
            make_response(json_body={"id": "p", "status": "succeeded", "output": "https://r.d/o.jpg"})
        )

        provider.invoke(ToolId.LAWN_REPAIR, "memory://raw/p1.jpg", {})

        payload = _sent(provider.session)[2]["json"]
        assert payload["input"]["input_image"].startswith("data:image/jpeg;base64,")

    @pytest.mark.unit
    def test_window_masking_needs_windows(self, make_response, make_session):
        """SAM-2 finding no windows rejects the input."""
        from listing_engine.errors import InvalidInput
        from listing_engine.models import ProviderId, ToolId
        from listing_engine.providers.enhancement import ReplicateProvider

        provider = ReplicateProvider("r8_x", provider_id=ProviderId.SAM_FLUX)
        provider.session = make_session(make_response(json_body={
            "id": "seg", "status": "succeeded", "output": {"individual_masks": []},
        }))

        with pytest.raises(InvalidInput, match="No windows"):
            provider.invoke(ToolId.WINDOW_MASKING, IMAGE_URL, {})
        assert provider.session.request.call_count == 1
        assert _sent(provider.session)[:2] == ("POST", PREDICTIONS_URL)

    @pytest.mark.unit
    def test_rate_limit_propagates(self, make_response, make_session):
        """429 surfaces as RateLimited for the executor to retry."""
        from listing_engine.errors import RateLimited
        from listing_engine.models import ToolId
        from listing_engine.providers.enhancement import ReplicateProvider

        provider = ReplicateProvider("r8_x")
        provider.session = make_session(
            make_response(429, json_body={"detail": "throttled"}, headers={"Retry-After": "3"})
        )

        with pytest.raises(RateLimited) as exc_info:
            provider.invoke(ToolId.SKY_REPLACEMENT, IMAGE_URL, {})
        assert exc_info.value.retry_after == 3.0

    @pytest.mark.unit
    def test_html_reply_is_unavailable(self, make_response, make_session):
        """A 200 that is not JSON is reported as unavailable, not a crash."""
        from listing_engine.errors import ProviderUnavailable
        from listing_engine.models import ToolId
        from listing_engine.providers.enhancement import ReplicateProvider

        provider = ReplicateProvider("r8_x")
        provider.session = make_session(make_response(200, content=b"<html>maintenance</html>"))

        with pytest.raises(ProviderUnavailable, match="non-JSON body"):
            provider.invoke(ToolId.DECLUTTER, IMAGE_URL, {})


class TestAutoEnhanceProvider:
    """Tests for AutoEnhanceProvider class."""

    @pytest.mark.unit
    def test_register_upload_poll_download(self, make_jpeg, make_response, make_session):
        """The full AutoEnhance flow stores the enhanced image."""
        from listing_engine.models import ToolId
        from listing_engine.providers.enhancement import AutoEnhanceProvider
        from listing_engine.providers.storage import MemoryStorageProvider

        storage = MemoryStorageProvider({"raw/p1.jpg": make_jpeg()})
        upload_url = "https://s3.example.com/upload/img1"
        sleeps = []
        provider = AutoEnhanceProvider("ae_x", storage, sleep=sleeps.append, poll_interval=2)
        assert provider.session.headers["x-api-key"] == "ae_x"
        provider.session = make_session(
            make_response(json_body={"image_id": "img1", "s3PutObjectUrl": upload_url}),
            make_response(json_body={"enhanced": False}),
            make_response(json_body={"enhanced": True}),
            make_response(content=b"enhanced-bytes"),
        )

        with patch("requests.put", return_value=make_response()) as put:
            ref = provider.invoke(
                ToolId.HDR, "memory://raw/p1.jpg", {"preset": "dramatic", "output_key": "out/p1.jpg"},
            )

        assert ref == "memory://out/p1.jpg"
        assert storage.read(ref) == b"enhanced-bytes"
        assert sleeps == [2]
        assert _sent(provider.session)[:2] == ("POST", AUTOENHANCE_URL)
        assert _sent(provider.session)[2]["json"]["brightness_boost"] == "high"
        assert _sent(provider.session, 3)[:2] == ("GET", f"{AUTOENHANCE_URL}img1/enhanced")
        assert put.call_args.args[0] == upload_url
        assert put.call_args.kwargs["headers"] == {"Content-Type": "image/jpeg"}

    @pytest.mark.unit
    def test_processing_error_is_invalid_input(self, make_jpeg, make_response, make_session):
        """An error reported while processing rejects the image."""
        from listing_engine.errors import InvalidInput
        from listing_engine.models import ToolId
        from listing_engine.providers.enhancement import AutoEnhanceProvider
        from listing_engine.providers.storage import MemoryStorageProvider

        storage = MemoryStorageProvider({"raw/p1.jpg": make_jpeg()})
        provider = AutoEnhanceProvider("ae_x", storage)
        provider.session = make_session(
            make_response(json_body={"image_id": "img2", "s3PutObjectUrl": "https://s3.example.com/upload/img2"}),
            make_response(json_body={"error": True, "status": "corrupt"}),
        )

        with patch("requests.put", return_value=make_response()):
            with pytest.raises(InvalidInput, match="corrupt"):
                provider.invoke(ToolId.PERSPECTIVE_CORRECTION, "memory://raw/p1.jpg", {})

    @pytest.mark.unit
    def test_failed_upload_is_unavailable(self, make_jpeg, make_response, make_session):
        """A rejected S3 upload is ProviderUnavailable."""
        from listing_engine.errors import ProviderUnavailable
        from listing_engine.models import ToolId
        from listing_engine.providers.enhancement import AutoEnhanceProvider
        from listing_engine.providers.storage import MemoryStorageProvider

        storage = MemoryStorageProvider({"raw/p1.jpg": make_jpeg()})
        provider = AutoEnhanceProvider("ae_x", storage)
        provider.session = make_session(
            make_response(json_body={"image_id": "img3", "s3PutObjectUrl": "https://s3.example.com/upload/img3"}),
        )

        with patch("requests.put", return_value=make_response(403)):
            with pytest.raises(ProviderUnavailable, match="HTTP 403"):
                provider.invoke(ToolId.AUTO_ENHANCE, "memory://raw/p1.jpg", {})

    @pytest.mark.unit
    def test_unsupported_tool(self, memory_storage):
        """Generative tools are not AutoEnhance's."""
        from listing_engine.errors import InvalidInput
        from listing_engine.models import ToolId
        from listing_engine.providers.enhancement import AutoEnhanceProvider

        provider = AutoEnhanceProvider("ae_x", memory_storage)

        assert provider.supports(ToolId.FLASH_FIX)
        with pytest.raises(InvalidInput):
            provider.invoke(ToolId.SKY_REPLACEMENT, "memory://raw/p1.jpg", {})


class TestOpenAIVisionBackend:
    """Tests for OpenAIVisionBackend class."""

    @staticmethod
    def _reply(content):
        return {"choices": [{"message": {"role": "assistant", "content": content}}]}

    @pytest.mark.unit
    def test_describe_parses_fenced_json(self, make_response, make_session):
        """Code fences around the JSON object are tolerated."""
        from listing_engine.providers.vision import OpenAIVisionBackend

        backend = OpenAIVisionBackend("sk-test")
        assert backend.session.headers["Authorization"] == "Bearer sk-test"
        backend.session = make_session(make_response(json_body=self._reply(
            '```json\n{"photoType": "exterior", "heroScore": 88}\n```'
        )))

        reply = backend.describe(IMAGE_URL)

        assert reply == {"photoType": "exterior", "heroScore": 88}
        method, url, kwargs = _sent(backend.session)
        assert (method, url) == ("POST", OPENAI_URL)
        assert kwargs["json"]["model"] == "gpt-4o"
        assert kwargs["json"]["messages"][0]["content"][1]["image_url"]["url"] == IMAGE_URL

    @pytest.mark.unit
    def test_inspect_uses_qc_prompt(self, make_response, make_session):
        """inspect() sends the quality-control prompt."""
        from listing_engine.providers.vision import OpenAIVisionBackend

        backend = OpenAIVisionBackend("sk-test")
        backend.session = make_session(
            make_response(json_body=self._reply('{"issues": [], "recommendation": "approve"}'))
        )

        reply = backend.inspect(IMAGE_URL)

        assert reply["recommendation"] == "approve"
        prompt = _sent(backend.session)[2]["json"]["messages"][0]["content"][0]["text"]
        assert "quality control" in prompt

    @pytest.mark.unit
    def test_bad_replies(self, make_response, make_session):
        """Empty replies are unavailable; prose is a ValueError."""
        from listing_engine.errors import ProviderUnavailable
        from listing_engine.providers.vision import OpenAIVisionBackend

        backend = OpenAIVisionBackend("sk-test")
        backend.session = make_session(
            make_response(json_body={"choices": []}),
            make_response(json_body=self._reply("Sorry, I can't help with that.")),
        )

        with pytest.raises(ProviderUnavailable):
            backend.describe(IMAGE_URL)
        with pytest.raises(ValueError, match="not valid JSON"):
            backend.describe(IMAGE_URL)

    @pytest.mark.unit
    def test_parse_json_reply_requires_object(self):
        """A JSON array is not an analysis."""
        from listing_engine.providers.vision import parse_json_reply

        with pytest.raises(ValueError, match="not a JSON object"):
            parse_json_reply("[1, 2]")
