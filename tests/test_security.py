import pytest

from spec_bridge.errors import SpecValidationError
from spec_bridge.security import (
    is_valid_url,
    redact_secrets,
    sanitize_connection_name,
    sanitize_header_name,
    sanitize_header_value,
)


class TestRedactSecrets:
    def test_masks_credentials(self):
        message = "login failed: password=hunter2 token: abc123 api_key=xyz"
        assert redact_secrets(message) == "login failed: password=*** token=*** api_key=***"

    def test_masks_auth_headers(self):
        assert redact_secrets("Authorization: Bearer eyJ.abc") == "Authorization: Bearer ***"
        assert redact_secrets("sent Basic dXNlcjpwYXNz") == "sent Basic ***"

    def test_accepts_exceptions(self):
        assert redact_secrets(ValueError("secret=shh")) == "secret=***"

    def test_empty(self):
        assert redact_secrets(None) == "An unknown error occurred"
        assert redact_secrets("") == "An unknown error occurred"

    def test_truncates(self):
        redacted = redact_secrets("x" * 600)
        assert len(redacted) == 503
        assert redacted.endswith("...")


class TestIsValidUrl:
    @pytest.mark.parametrize("url", ["https://api.example.com", "http://localhost:8080/v1"])
    def test_valid(self, url):
        assert is_valid_url(url)

    @pytest.mark.parametrize("url", ["ftp://files.example.com", "not a url", "http://", ""])
    def test_invalid(self, url):
        assert not is_valid_url(url)


class TestSanitizers:
    def test_connection_name(self):
        assert sanitize_connection_name("  My API <v2>! ") == "My API v2"
        assert len(sanitize_connection_name("a" * 150)) == 100

    def test_connection_name_rejected(self):
        with pytest.raises(SpecValidationError, match="Connection name is required"):
            sanitize_connection_name("")
        with pytest.raises(SpecValidationError, match="Invalid connection name"):
            sanitize_connection_name("!!!")

    def test_header_name(self):
        assert sanitize_header_name(" X-Api-Key ") == "X-Api-Key"
        with pytest.raises(SpecValidationError):
            sanitize_header_name("Bad Header")

    def test_header_value(self):
        assert sanitize_header_value("a\r\nb") == "ab"
        assert sanitize_header_value(42) == "42"
