"""
Integration Tests: Replicate Enhancement Provider
=================================================
Tests real Replicate FLUX Kontext predictions.
Requires TEST_REPLICATE_API_TOKEN and TEST_IMAGE_URL environment variables.

WARNING: These tests consume API credits!

Run with: pytest tests/integration/test_replicate.py -v
"""

import pytest


@pytest.mark.integration
@pytest.mark.replicate
class TestReplicateConnection:
    """Test Replicate authentication."""

    def test_gets_provider_info(self, replicate_provider):
        """Should return correct provider info."""
        assert replicate_provider.get_provider_type() == "replicate"
        assert replicate_provider.get_provider_name() == "Replicate (flux-kontext)"

    def test_rejects_bad_token(self, test_image_url):
        """A bad token is reported as unavailable, not retried."""
        from listing_engine.errors import ProviderUnavailable
        from listing_engine.models import ToolId
        from listing_engine.providers.enhancement import ReplicateProvider

        provider = ReplicateProvider("r8_invalid_token")

        with pytest.raises(ProviderUnavailable):
            provider.invoke(ToolId.HDR, test_image_url, {"timeout": 30})


@pytest.mark.integration
@pytest.mark.replicate
@pytest.mark.slow
class TestReplicateEnhancement:
    """Test a real enhancement call."""

    def test_sky_replacement(self, replicate_provider, test_image_url):
        """Should return an output image URL for a sky replacement."""
        from listing_engine.models import ToolId

        output = replicate_provider.invoke(
            ToolId.SKY_REPLACEMENT,
            test_image_url,
            {"preset": "soft-blue", "pass": "main", "strength": 1.0, "timeout": 180},
        )

        assert output.startswith("https://")
        print(f"Enhanced image: {output}")
