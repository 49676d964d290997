"""Tests for auth conventions, the shared transport and error translation."""

import pytest
import requests

from conftest import AUDIO_BYTES, make_response
from podcast_upstreams import (
    ELEVENLABS,
    NEWSAPI,
    OPENAI,
    ApiClient,
    AuthCarrier,
    UpstreamError,
    handle_api_error,
)


class TestAuthCarriers:
    def test_newsapi_uses_query_parameter(self):
        assert NEWSAPI.carrier is AuthCarrier.QUERY_PARAM
        assert NEWSAPI.authenticate("k") == ({"apiKey": "k"}, {})

    def test_openai_uses_bearer_header(self):
        assert OPENAI.authenticate("k") == ({}, {"Authorization": "Bearer k"})

    def test_elevenlabs_uses_custom_header(self):
        assert ELEVENLABS.authenticate("k") == ({}, {"xi-api-key": "k"})

    def test_endpoint_fills_voice(self):
        assert ELEVENLABS.endpoint(voice_id="abc") == "https://api.elevenlabs.io/v1/text-to-speech/abc"


class TestApiClient:
    def test_get_json_sends_credential_as_query_param(self, client, session):
        session.request.return_value = make_response(json_body={"status": "ok", "articles": []})
        data = client.get_json(NEWSAPI, "news-key", params={"country": "us"})

        assert data == {"status": "ok", "articles": []}
        args, kwargs = session.request.call_args
        assert args == ("GET", "https://newsapi.org/v2/top-headlines")
        assert kwargs["params"] == {"country": "us", "apiKey": "news-key"}
        assert kwargs["headers"] is None
        assert kwargs["timeout"] == 5

    def test_post_json_sends_bearer_header(self, client, session):
        session.request.return_value = make_response(json_body={"choices": []})
        client.post_json(OPENAI, "openai-key", {"model": "m"})

        args, kwargs = session.request.call_args
        assert args[0] == "POST"
        assert kwargs["headers"] == {"Authorization": "Bearer openai-key"}
        assert kwargs["params"] is None
        assert kwargs["json"] == {"model": "m"}

    def test_post_binary_returns_raw_bytes(self, client, session):
        session.request.return_value = make_response(content=AUDIO_BYTES)
        audio = client.post_binary(ELEVENLABS, "eleven-key", {"text": "hi"}, voice_id="v1")

        assert isinstance(audio, bytes)
        assert audio == AUDIO_BYTES
        args, kwargs = session.request.call_args
        assert args[1] == "https://api.elevenlabs.io/v1/text-to-speech/v1"
        assert kwargs["headers"] == {"Accept": "audio/mpeg", "xi-api-key": "eleven-key"}

    def test_malformed_json_is_upstream_error(self, client, session):
        session.request.return_value = make_response(content=b"<html>oops</html>")
        with pytest.raises(UpstreamError, match="Malformed JSON"):
            client.get_json(NEWSAPI, "news-key")

    def test_empty_body_is_upstream_error(self, client, session):
        session.request.return_value = make_response(content=b"")
        with pytest.raises(UpstreamError):
            client.post_binary(ELEVENLABS, "eleven-key", {"text": "hi"}, voice_id="v1")

    def test_rate_limit_carries_status_and_hint(self, client, session):
        session.request.return_value = make_response(
            429, json_body={"status": "error", "code": "rateLimited", "message": "Too many requests today"},
        )
        with pytest.raises(UpstreamError) as exc_info:
            client.get_json(NEWSAPI, "news-key")

        error = exc_info.value
        assert error.status_code == 429
        assert error.upstream == "NewsAPI"
        assert error.message == "Too many requests today"
        assert "rate limit" in error.hint

    def test_retries_when_configured(self, session):
        session.request.side_effect = [
            make_response(500, json_body={"error": {"message": "server"}}),
            make_response(json_body={"ok": True}),
        ]
        client = ApiClient(session=session, max_attempts=2, backoff_seconds=0)
        assert client.get_json(NEWSAPI, "news-key") == {"ok": True}
        assert session.request.call_count == 2

    def test_no_retry_by_default(self, client, session):
        session.request.return_value = make_response(500, json_body={"error": {"message": "server"}})
        with pytest.raises(UpstreamError):
            client.get_json(NEWSAPI, "news-key")
        assert session.request.call_count == 1


class TestHandleApiError:
    def _http_error(self, status, body):
        response = make_response(status, json_body=body)
        return requests.HTTPError(f"{status} error", response=response)

    def test_unauthorized_hint_names_provider(self):
        error = handle_api_error(self._http_error(401, {"error": {"message": "Incorrect API key"}}), OPENAI)
        assert error.status_code == 401
        assert error.message == "Incorrect API key"
        assert error.hint == "Check that your OpenAI API key is correct"

    def test_forbidden_hint(self):
        error = handle_api_error(self._http_error(403, {"detail": {"status": "x", "message": "No access"}}), ELEVENLABS)
        assert error.message == "No access"
        assert "permissions" in error.hint

    def test_falls_back_to_reason(self):
        response = make_response(500, content=b"")
        error = handle_api_error(requests.HTTPError(response=response), OPENAI)
        assert error.message == "Internal Server Error"
        assert error.hint is None

    def test_connection_error(self):
        error = handle_api_error(requests.ConnectionError("dns failure"), NEWSAPI)
        assert error.status_code is None
        assert error.message == "No response received from server"
        assert "internet connection" in error.hint
