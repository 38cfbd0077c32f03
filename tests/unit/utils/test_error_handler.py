import logging

import pytest

from nozbe_client.utils.error_handler import (
    ErrorType, NozbeClientError, TransportError, ProtocolError, AuthenticationError,
    ConfigurationError, ErrorHandler, ErrorContext, handle_error,
    get_error_suggestions
)


pytestmark = pytest.mark.unit


class TestErrorTypes:
    """Exception hierarchy and carried context."""

    def test_transport_error_carries_url(self):
        cause = OSError("reset")
        error = TransportError("Failed to http request", url="http://x/api/projects/", status_code=502,
                               original_error=cause)

        assert isinstance(error, NozbeClientError)
        assert error.error_type is ErrorType.TRANSPORT_ERROR
        assert error.url == "http://x/api/projects/"
        assert error.details == {"url": "http://x/api/projects/", "status_code": 502}
        assert error.original_error is cause

    def test_transport_error_details_hide_credentials(self):
        url = "http://x/api/login/email-a/password-S3CRETPW/"
        error = TransportError("Failed to http request", url=url)

        assert error.url == url
        assert error.details["url"] == "http://x/api/login/email-a/password-****/"

    def test_protocol_error_carries_body(self):
        error = ProtocolError("Invalid json data: <html>", body="<html>")

        assert error.error_type is ErrorType.PROTOCOL_ERROR
        assert error.body == "<html>"
        assert error.details["body"] == "<html>"

    def test_configuration_error_key(self):
        error = ConfigurationError("bad", config_key="nozbe.base_url")
        assert error.details == {"config_key": "nozbe.base_url"}


class TestErrorHandler:
    """User-facing messages and logging."""

    def test_transport_message_includes_status(self):
        handler = ErrorHandler()
        message = handler.handle_error(TransportError("boom", url="u", status_code=503))
        assert "503" in message

    def test_authentication_message(self):
        message = handle_error(AuthenticationError("no key"), "login")
        assert "認証に失敗しました" in message
        assert "no key" in message

    def test_configuration_message_names_key(self):
        message = handle_error(ConfigurationError("bad", config_key="nozbe.http_timeout"))
        assert "nozbe.http_timeout" in message

    def test_unknown_error(self):
        message = handle_error(RuntimeError("kaboom"))
        assert "kaboom" in message

    def test_errors_are_logged(self, caplog):
        with caplog.at_level(logging.ERROR, logger="nozbe_client.error_handler"):
            handle_error(ProtocolError("bad json", body="x"), "projects")
        assert "protocol_error" in caplog.text
        assert "projects" in caplog.text

    def test_logged_and_returned_messages_hide_credentials(self, caplog):
        cause = OSError("Max retries exceeded with url: /api/projects/key-SECRETKEY/")
        error = TransportError("Failed to http request", url="http://x/api/projects/key-SECRETKEY/",
                               original_error=cause)

        with caplog.at_level(logging.ERROR, logger="nozbe_client.error_handler"):
            try:
                raise error from cause
            except TransportError as raised:
                message = handle_error(raised, "projects")

        assert "SECRETKEY" not in message
        assert "SECRETKEY" not in caplog.text
        assert "key-****/" in caplog.text

    def test_suggestions(self):
        assert get_error_suggestions(TransportError("x", url="u"))
        assert get_error_suggestions(ValueError("x")) == []


class TestErrorContext:
    """ErrorContext."""

    def test_error_context_reraises_and_records(self):
        with pytest.raises(ProtocolError):
            with ErrorContext("parsing") as ctx:
                raise ProtocolError("bad", body="x")
        assert isinstance(ctx.error, ProtocolError)

    def test_error_context_suppresses_and_calls_back(self):
        seen = []
        with ErrorContext("parsing", reraise=False, on_error=seen.append):
            raise ValueError("ignored")
        assert len(seen) == 1
