"""
Unit Tests: Prepare Function
============================
Tests for the snapr/prepare entry point: request validation, credential
handling and a full run over mocked OpenAI with the local provider.
"""

import importlib.util
import json
from pathlib import Path
from unittest.mock import patch

import pytest
import requests

PREPARE_MAIN = Path(__file__).parent.parent.parent / "packages" / "snapr" / "prepare" / "__main__.py"
OPENAI_URL = "https://api.openai.com/v1/chat/completions"
PHOTO_URL = "https://cdn.example.com/L-1/kitchen.jpg"
WEBHOOK = "https://hooks.example.com/snapr"

KITCHEN_REPLY = {
    "photoType": "interior",
    "subType": "kitchen",
    "scores": {"composition": 70, "lighting": 70, "sharpness": 80},
    "deficiencies": {"lighting": 65},
    "heroScore": 75,
    "confidence": 0.9,
}


@pytest.fixture(scope="module")
def prepare():
    """The prepare function module loaded from its package path."""
    spec = importlib.util.spec_from_file_location("snapr_prepare_main", PREPARE_MAIN)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


@pytest.fixture
def backends(make_jpeg, make_response):
    """
    Patch HTTP for a run: photo downloads return a JPEG, OpenAI answers
    with the kitchen analysis and the webhook accepts everything.

    Yields the list of (method, url, kwargs) sent through sessions.
    """
    sent = []
    openai_reply = {
        "choices": [{"message": {"role": "assistant", "content": json.dumps(KITCHEN_REPLY)}}],
    }

    def route(session, method, url, **kwargs):
        sent.append((method, url, dict(kwargs, headers=dict(session.headers))))
        if url == OPENAI_URL:
            return make_response(json_body=openai_reply)
        if url == WEBHOOK:
            return make_response()
        return make_response(404)

    with patch("requests.get", return_value=make_response(content=make_jpeg(64, 48))), \
            patch.object(requests.Session, "request", autospec=True, side_effect=route):
        yield sent


def _call(prepare, event):
    response = prepare.main(event, None)
    return response["statusCode"], json.loads(response["body"])


class TestRequestValidation:
    """Tests for rejected requests."""

    @pytest.mark.unit
    @pytest.mark.parametrize("event,error", [
        ({"body": "{not json"}, "Invalid JSON body"),
        ({}, "No valid data found in event"),
        ({"photos": [{"id": "p1", "ref": PHOTO_URL}]}, "Missing required fields: listing_id"),
        ({"listing_id": "L-1"}, "No photos found in payload"),
        ({"listing_id": "L-1", "photos": [{"id": "p1"}]}, "photos[0] needs an id and a ref"),
        ({"listing_id": "L-1", "photos": [{"id": "p1", "ref": PHOTO_URL}]}, "Missing openai_api_key"),
    ])
    def test_bad_requests(self, prepare, event, error):
        """Each malformed request is a 400 naming the problem."""
        status_code, body = _call(prepare, event)

        assert status_code == 400
        assert body["status"] == "job_failed"
        assert error in body["error"]
        assert body["correlation_id"]

    @pytest.mark.unit
    def test_unknown_client_key(self, prepare, monkeypatch):
        """A client without an encryption key is a 400."""
        monkeypatch.delenv("CLIENT_NOBODY_ENCRYPTION_KEY", raising=False)

        status_code, body = _call(prepare, {
            "listing_id": "L-1",
            "client_id": "nobody",
            "photos": [{"id": "p1", "ref": PHOTO_URL}],
        })

        assert status_code == 400
        assert "No encryption key found for client 'nobody'" in body["error"]

    @pytest.mark.unit
    def test_invalid_safety_override(self, prepare):
        """Unknown tools in the safety overrides are rejected."""
        status_code, body = _call(prepare, {
            "listing_id": "L-1",
            "openai_api_key": "sk-test",
            "photos": [{"id": "p1", "ref": PHOTO_URL}],
            "safety": {"disabled_tools": ["teleport"]},
        })

        assert status_code == 400


class TestPrepareRun:
    """Tests for a complete prepare run."""

    @pytest.mark.unit
    def test_run_with_local_provider(self, prepare, backends):
        """A kitchen needing HDR is enhanced locally and saved."""
        status_code, body = _call(prepare, {
            "body": json.dumps({
                "listing_id": "L-1",
                "openai_api_key": "sk-test",
                "photos": [{"id": "kitchen", "ref": PHOTO_URL}],
            }),
        })

        assert status_code == 200
        assert body["status"] in ("prepared", "needs_review")
        assert body["hero_photo_id"] == "kitchen"
        assert body["outputs"] == {"kitchen": "memory://listings/L-1/kitchen/final.jpg"}
        assert body["result_ref"] == "memory://listings/L-1/listing_result.json"
        assert body["errors"] == []
        assert body["version"].startswith("1.0.0-prepare-snapr-")

    @pytest.mark.unit
    def test_encrypted_key_and_disabled_tool(self, prepare, backends, encryption_key, monkeypatch):
        """Encrypted keys are decrypted; a disabled tool leaves the photo untouched."""
        from cryptography.fernet import Fernet

        monkeypatch.setenv("CLIENT_ACME_ENCRYPTION_KEY", encryption_key)
        token = Fernet(encryption_key.encode()).encrypt(b"sk-test").decode()

        status_code, body = _call(prepare, {
            "listing_id": "L-2",
            "client_id": "ACME",
            "openai_api_key_encrypted": token,
            "photos": [{"id": "kitchen", "ref": PHOTO_URL}],
            "safety": {"disabled_tools": ["hdr"]},
        })

        assert status_code == 200
        assert body["outputs"] == {}
        openai_call = next(kwargs for method, url, kwargs in backends if url == OPENAI_URL)
        assert openai_call["headers"]["Authorization"] == "Bearer sk-test"

    @pytest.mark.unit
    def test_webhook_receives_result(self, prepare, backends):
        """The callback webhook gets the listing result notification."""
        status_code, _ = _call(prepare, {
            "listing_id": "L-3",
            "job_id": "job-3",
            "openai_api_key": "sk-test",
            "callback_webhook": WEBHOOK,
            "photos": [{"id": "kitchen", "ref": PHOTO_URL}],
        })

        posted = [kwargs["json"] for method, url, kwargs in backends if url == WEBHOOK]
        assert status_code == 200
        assert posted[0]["debug_status"] == "listing_started"
        assert posted[-1]["status"] in ("prepared", "needs_review")
        assert posted[-1]["job_id"] == "job-3"
