"""Unit tests for logging service."""

import structlog

from vidtube.services.logging_service import configure_logging, get_logger, redact_sensitive


class TestRedactSensitive:
    """Tests for redact_sensitive processor."""

    def test_redacts_password(self):
        event_dict = {"password": "secret1", "event": "test"}
        result = redact_sensitive(None, None, event_dict)
        assert result["password"] == "REDACTED"

    def test_redacts_tokens(self):
        """Access and refresh tokens must never be logged."""
        event_dict = {
            "access_token": "eyJ.access",
            "refresh_token": "eyJ.refresh",
            "event": "tokens_issued",
        }
        result = redact_sensitive(None, None, event_dict)
        assert result["access_token"] == "REDACTED"
        assert result["refresh_token"] == "REDACTED"

    def test_redacts_authorization_and_cookie(self):
        event_dict = {"authorization": "Bearer abc", "cookie": "accessToken=abc"}
        result = redact_sensitive(None, None, event_dict)
        assert result["authorization"] == "REDACTED"
        assert result["cookie"] == "REDACTED"

    def test_redacts_media_host_credentials(self):
        event_dict = {"cloudinary_api_secret": "shh", "api_key": "123"}
        result = redact_sensitive(None, None, event_dict)
        assert result["cloudinary_api_secret"] == "REDACTED"
        assert result["api_key"] == "REDACTED"

    def test_event_name_is_kept(self):
        """Event names such as refresh_token_cleared stay readable."""
        event_dict = {"event": "refresh_token_cleared", "user_id": "u1"}
        result = redact_sensitive(None, None, event_dict)
        assert result["event"] == "refresh_token_cleared"
        assert result["user_id"] == "u1"

    def test_case_insensitive_redaction(self):
        event_dict = {"Password": "a", "REFRESH_TOKEN": "b"}
        result = redact_sensitive(None, None, event_dict)
        assert result["Password"] == "REDACTED"
        assert result["REFRESH_TOKEN"] == "REDACTED"


class TestConfigureLogging:
    """Tests for configure_logging and get_logger."""

    def test_get_logger_returns_bound_logger(self):
        configure_logging("INFO")
        logger = get_logger("test_module")
        assert logger is not None
        logger.info("test_event", data="value")

    def test_unknown_level_falls_back_to_info(self):
        configure_logging("not-a-level")
        assert get_logger() is not None


class TestCorrelationIdBinding:
    """Tests for correlation ID context binding."""

    def test_correlation_id_binds_to_context(self):
        configure_logging("INFO")
        structlog.contextvars.clear_contextvars()

        structlog.contextvars.bind_contextvars(correlation_id="corr-123")

        assert structlog.contextvars.get_contextvars().get("correlation_id") == "corr-123"
        structlog.contextvars.clear_contextvars()

    def test_middleware_echoes_correlation_id(self, client):
        response = client.get(
            "/api/v1/users/current-user",
            headers={"X-Correlation-Id": "corr-456"},
        )

        assert response.headers["X-Correlation-Id"] == "corr-456"
