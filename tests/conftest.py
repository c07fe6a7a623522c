"""
Pytest Configuration and Fixtures
==================================
Loads test credentials from environment and provides reusable fixtures:
analysis factory, in-memory storage, scripted fake backends and a
zero-interval rate limiter.
"""

import io
import os
import sys
import threading
import pytest
from pathlib import Path
from dotenv import load_dotenv

# Add lib/ to path for imports
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root / "lib"))

# Load test environment variables
env_file = project_root / ".env.test"
if env_file.exists():
    load_dotenv(env_file)
else:
    # Try loading from CI environment
    load_dotenv()


# =============================================================================
# CREDENTIAL FIXTURES
# =============================================================================

@pytest.fixture(scope="session")
def dropbox_credentials():
    """Dropbox API credentials from environment."""
    creds = {
        "app_key": os.getenv("TEST_DROPBOX_APP_KEY"),
        "app_secret": os.getenv("TEST_DROPBOX_APP_SECRET"),
        "refresh_token": os.getenv("TEST_DROPBOX_REFRESH_TOKEN"),
    }

    if not all(creds.values()):
        pytest.skip("Dropbox credentials not configured")

    return creds


@pytest.fixture(scope="session")
def dropbox_test_folder():
    """Dropbox test folder path."""
    return os.getenv("TEST_DROPBOX_TEST_FOLDER", "/SnapR-Tests")


@pytest.fixture(scope="session")
def replicate_credentials():
    """Replicate API token from environment."""
    token = os.getenv("TEST_REPLICATE_API_TOKEN")

    if not token:
        pytest.skip("Replicate credentials not configured")

    return {"api_token": token}


@pytest.fixture(scope="session")
def openai_credentials():
    """OpenAI API key from environment."""
    api_key = os.getenv("TEST_OPENAI_API_KEY")

    if not api_key:
        pytest.skip("OpenAI credentials not configured")

    return {"api_key": api_key}


@pytest.fixture(scope="session")
def test_image_url():
    """Public URL of a listing photo the remote backends can fetch."""
    url = os.getenv("TEST_IMAGE_URL")
    if not url:
        pytest.skip("TEST_IMAGE_URL not configured")
    return url


@pytest.fixture(scope="session")
def encryption_key():
    """Fernet encryption key for testing."""
    key = os.getenv("TEST_ENCRYPTION_KEY")

    if not key:
        # Generate a temporary key for unit tests
        from cryptography.fernet import Fernet
        key = Fernet.generate_key().decode()

    return key


@pytest.fixture(scope="session")
def test_client_id():
    """Test client ID."""
    return os.getenv("TEST_CLIENT_ID", "TEST")


# =============================================================================
# PROVIDER FIXTURES
# =============================================================================

@pytest.fixture(scope="session")
def dropbox_provider(dropbox_credentials, dropbox_test_folder):
    """Connected Dropbox provider writing under the test folder."""
    from listing_engine.providers.storage import DropboxProvider

    provider = DropboxProvider(output_root=dropbox_test_folder)
    provider.connect(dropbox_credentials)
    return provider


@pytest.fixture(scope="session")
def replicate_provider(replicate_credentials):
    """Replicate FLUX Kontext provider."""
    from listing_engine.providers.enhancement import ReplicateProvider

    return ReplicateProvider(replicate_credentials["api_token"])


@pytest.fixture(scope="session")
def openai_vision(openai_credentials):
    """OpenAI vision backend."""
    from listing_engine.providers.vision import OpenAIVisionBackend

    return OpenAIVisionBackend(openai_credentials["api_key"])


@pytest.fixture(scope="session")
def sample_image_bytes():
    """Small real JPEG for upload tests."""
    from PIL import Image

    buffer = io.BytesIO()
    Image.new("RGB", (320, 240), (90, 130, 180)).save(buffer, format="JPEG")
    return buffer.getvalue()


# =============================================================================
# FAKE BACKENDS
# =============================================================================

class FakeProvider:
    """
    Scripted enhancement backend.

    Outputs are '<input>|<tool>:<pass>' so a test can read the whole chain
    from the final ref. script maps a tool (or a (tool, pass) pair) to a
    list of outcomes consumed one per call: an exception instance is
    raised, anything else falls through to the normal output.
    """

    def __init__(self, provider_id, script=None, tools=None, is_remote=True, delay=0.0):
        self.provider_id = provider_id
        self.script = {key: list(value) for key, value in (script or {}).items()}
        self.tools = set(tools) if tools is not None else None
        self.is_remote = is_remote
        self.delay = delay
        self.calls = []
        self._lock = threading.Lock()

    def invoke(self, tool, image_ref, params):
        step = params.get('pass', 'main')
        with self._lock:
            self.calls.append((tool, image_ref, dict(params)))
            outcomes = self.script.get((tool, step)) or self.script.get(tool)
            outcome = outcomes.pop(0) if outcomes else None

        if self.delay:
            threading.Event().wait(self.delay)
        if isinstance(outcome, Exception):
            raise outcome
        return f"{image_ref}|{tool.value}:{step}"

    def supports(self, tool):
        return self.tools is None or tool in self.tools

    def get_provider_type(self):
        return f"fake-{self.provider_id.value}"

    def get_provider_name(self):
        return f"Fake ({self.provider_id.value})"


class FakeVisionBackend:
    """Vision backend answering from a dict of ref -> raw reply (or exception)."""

    def __init__(self, replies, inspections=None):
        self.replies = dict(replies)
        self.inspections = dict(inspections or {})
        self.described = []

    def describe(self, image_ref):
        self.described.append(image_ref)
        reply = self.replies[image_ref]
        if isinstance(reply, Exception):
            raise reply
        return reply

    def inspect(self, image_ref):
        reply = self.inspections.get(image_ref, {'issues': [], 'recommendation': 'approve'})
        if isinstance(reply, Exception):
            raise reply
        return reply

    def get_provider_type(self):
        return "fake-vision"

    def get_provider_name(self):
        return "Fake Vision"


@pytest.fixture
def make_provider():
    """Factory for scripted fake enhancement providers."""
    return FakeProvider


@pytest.fixture
def make_vision():
    """Factory for fake vision backends."""
    return FakeVisionBackend


@pytest.fixture
def fake_registry():
    """One fake provider per routed provider id."""
    from listing_engine.models import ProviderId

    return {provider_id: FakeProvider(provider_id) for provider_id in ProviderId}


# =============================================================================
# ENGINE FIXTURES
# =============================================================================

@pytest.fixture
def make_analysis():
    """
    Factory for PhotoAnalysis objects.

    deficiencies maps a kind name to a severity or a (severity, coverage)
    pair.
    """
    from listing_engine.models import Deficiency, DeficiencyKind, PhotoAnalysis, PhotoScores

    def _make(photo_id, photo_type="interior", sub_type="other", hero_score=50,
              deficiencies=None, confidence=0.9, composition=70, lighting=70,
              sharpness=80, **flags):
        parsed = {}
        for kind, value in (deficiencies or {}).items():
            severity, coverage = value if isinstance(value, tuple) else (value, None)
            parsed[DeficiencyKind(kind)] = Deficiency(severity=severity, coverage=coverage)

        return PhotoAnalysis(
            photo_id=photo_id,
            photo_ref=flags.pop("photo_ref", f"memory://raw/{photo_id}.jpg"),
            photo_type=photo_type,
            sub_type=sub_type,
            scores=PhotoScores(composition=composition, lighting=lighting, sharpness=sharpness),
            deficiencies=parsed,
            hero_score=hero_score,
            analysis_confidence=confidence,
            **flags,
        )

    return _make


@pytest.fixture
def memory_storage():
    """Empty in-memory storage provider."""
    from listing_engine.providers.storage import MemoryStorageProvider

    return MemoryStorageProvider()


@pytest.fixture
def rate_limiter():
    """Rate limiter that never waits."""
    from listing_engine.engine import RateLimiter

    return RateLimiter(0)


@pytest.fixture
def fast_settings():
    """Execution settings with no retry delay."""
    from listing_engine.config import ExecutionSettings

    return ExecutionSettings(retry_delay_seconds=0, tool_timeout_seconds=5)


@pytest.fixture
def make_jpeg():
    """Factory for real JPEG bytes generated with Pillow."""
    from PIL import Image

    def _make(width=64, height=48, color=(120, 140, 160)):
        buffer = io.BytesIO()
        Image.new("RGB", (width, height), color).save(buffer, format="JPEG")
        return buffer.getvalue()

    return _make


# =============================================================================
# HTTP FAKES
# =============================================================================

def fake_response(status=200, json_body=None, content=b"", headers=None):
    """Real requests.Response carrying a canned status and body."""
    import json
    import requests

    response = requests.Response()
    response.status_code = status
    if json_body is not None:
        content = json.dumps(json_body).encode("utf-8")
        response.headers["Content-Type"] = "application/json"
    response._content = content
    response.headers.update(headers or {})
    return response


def scripted_session(*replies):
    """
    requests.Session stand-in whose request() answers from replies in order.

    An exception instance in replies is raised instead of returned.
    """
    from unittest.mock import Mock

    session = Mock()
    session.headers = {}
    session.request.side_effect = list(replies)
    return session


@pytest.fixture
def make_response():
    """Factory for canned requests.Response objects."""
    return fake_response


@pytest.fixture
def make_session():
    """Factory for scripted session stand-ins."""
    return scripted_session


# =============================================================================
# UTILITY FIXTURES
# =============================================================================

@pytest.fixture
def mock_env(monkeypatch):
    """Helper to mock environment variables."""
    def _mock_env(env_dict):
        for key, value in env_dict.items():
            monkeypatch.setenv(key, value)
    return _mock_env


# =============================================================================
# TEST MARKERS COLLECTION
# =============================================================================

def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "unit: Fast tests with no external dependencies")
    config.addinivalue_line("markers", "integration: Tests that call external APIs")
    config.addinivalue_line("markers", "e2e: End-to-end pipeline tests")
    config.addinivalue_line("markers", "replicate: Tests requiring Replicate credentials")
    config.addinivalue_line("markers", "dropbox: Tests requiring Dropbox credentials")
    config.addinivalue_line("markers", "openai: Tests requiring OpenAI credentials")
    config.addinivalue_line("markers", "slow: Tests that take more than 30 seconds")
