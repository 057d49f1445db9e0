"""Unit tests for log processors."""

import pytest

from bunnyvault.core.logging import REDACTED, add_service_info, redact_secrets


@pytest.mark.unit
class TestRedactSecrets:
    """Tests for credential masking in log context."""

    def test_masks_credentials(self) -> None:
        event = {"event": "provider_request_failed", "AccessKey": "k-123", "admin_key": "s3cret"}

        result = redact_secrets(None, "info", event)

        assert result["AccessKey"] == REDACTED
        assert result["admin_key"] == REDACTED
        assert result["event"] == "provider_request_failed"

    def test_leaves_other_fields_and_empty_values(self) -> None:
        event = {"event": "shard_selected", "shard_id": "lib-1", "api_key": ""}

        result = redact_secrets(None, "info", event)

        assert result == {"event": "shard_selected", "shard_id": "lib-1", "api_key": ""}


@pytest.mark.unit
def test_service_info_does_not_override_bound_values() -> None:
    event = add_service_info(None, "info", {"event": "x", "environment": "staging"})

    assert event["environment"] == "staging"
    assert "service" in event
    assert "version" in event
