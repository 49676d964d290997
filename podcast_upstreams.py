"""
Upstream HTTP services - auth conventions, shared requests transport, and error translation
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Tuple

import requests

from podcast_helpers import is_valid_api_response, retry_with_backoff

logger = logging.getLogger("podcast_upstreams")


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------

class PodcastError(Exception):
    """Base class for every failure that aborts a pipeline run."""


class ConfigurationError(PodcastError):
    def __init__(self, missing):
        self.missing = tuple(missing)
        super().__init__("Missing required configuration: " + ", ".join(self.missing))


class UpstreamError(PodcastError):
    def __init__(self, upstream: str, message: str, status_code: Optional[int] = None, hint: Optional[str] = None):
        self.upstream = upstream
        self.message = message
        self.status_code = status_code
        self.hint = hint
        status = f" (status {status_code})" if status_code is not None else ""
        super().__init__(f"{upstream} API error{status}: {message}")


class EmptyResultError(PodcastError):
    def __init__(self, stage: str, message: str):
        self.stage = stage
        super().__init__(message)


class StageFailure(PodcastError):
    def __init__(self, stage: str, cause: PodcastError):
        self.stage = stage
        self.cause = cause
        super().__init__(f"Stage '{stage}' failed: {cause}")


STATUS_HINTS = {
    401: "Check that your {name} API key is correct",
    403: "Access forbidden. Check your API permissions.",
    429: "You've hit the rate limit. Wait a bit and try again.",
}


# ---------------------------------------------------------------------------
# Auth conventions
# ---------------------------------------------------------------------------

class AuthCarrier(Enum):
    QUERY_PARAM = "query_param"
    BEARER_HEADER = "bearer_header"
    CUSTOM_HEADER = "custom_header"


@dataclass(frozen=True)
class Upstream:
    """One remote service: its endpoint and how it expects the credential."""
    name: str
    url: str
    carrier: AuthCarrier
    field: str

    def endpoint(self, **url_fields: str) -> str:
        return self.url.format(**url_fields) if url_fields else self.url

    def authenticate(self, credential: str) -> Tuple[Dict[str, str], Dict[str, str]]:
        """Return ``(query_params, headers)`` carrying the credential."""
        if self.carrier is AuthCarrier.QUERY_PARAM:
            return {self.field: credential}, {}
        if self.carrier is AuthCarrier.BEARER_HEADER:
            return {}, {self.field: f"Bearer {credential}"}
        if self.carrier is AuthCarrier.CUSTOM_HEADER:
            return {}, {self.field: credential}
        raise ValueError(f"Unsupported auth carrier: {self.carrier}")


NEWSAPI = Upstream(
    name="NewsAPI",
    url="https://newsapi.org/v2/top-headlines",
    carrier=AuthCarrier.QUERY_PARAM,
    field="apiKey",
)
OPENAI = Upstream(
    name="OpenAI",
    url="https://api.openai.com/v1/chat/completions",
    carrier=AuthCarrier.BEARER_HEADER,
    field="Authorization",
)
ELEVENLABS = Upstream(
    name="ElevenLabs",
    url="https://api.elevenlabs.io/v1/text-to-speech/{voice_id}",
    carrier=AuthCarrier.CUSTOM_HEADER,
    field="xi-api-key",
)


# ---------------------------------------------------------------------------
# Error translation
# ---------------------------------------------------------------------------

def _error_message(response: requests.Response) -> str:
    """Pull the provider's own error text out of a failed response, if it sent one."""
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        if body.get("message"):
            return str(body["message"])
        detail = body.get("detail")
        if isinstance(detail, dict) and detail.get("message"):
            return str(detail["message"])
        if isinstance(detail, str) and detail:
            return detail
    return response.reason or f"HTTP {response.status_code}"


def handle_api_error(error: Exception, upstream: Upstream) -> UpstreamError:
    """Translate a requests failure into an UpstreamError with a helpful hint."""
    response = getattr(error, "response", None)
    if response is not None:
        status = response.status_code
        hint = STATUS_HINTS.get(status)
        return UpstreamError(
            upstream.name,
            _error_message(response),
            status_code=status,
            hint=hint.format(name=upstream.name) if hint else None,
        )
    if isinstance(error, (requests.ConnectionError, requests.Timeout)):
        return UpstreamError(
            upstream.name,
            "No response received from server",
            hint="Check your internet connection",
        )
    return UpstreamError(upstream.name, str(error) or error.__class__.__name__)


# ---------------------------------------------------------------------------
# Transport
# ---------------------------------------------------------------------------

class ApiClient:
    """Thin requests wrapper shared by the three pipeline stages."""

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        timeout: Optional[float] = 30.0,
        max_attempts: int = 1,
        backoff_seconds: float = 1.0,
    ):
        self.session = session or requests.Session()
        self.timeout = timeout
        self.max_attempts = max_attempts
        self.backoff_seconds = backoff_seconds

    def get_json(self, upstream: Upstream, credential: str, params: Optional[Dict[str, Any]] = None, **url_fields: str) -> Dict:
        response = self._request("GET", upstream, credential, params=params, url_fields=url_fields)
        return self._decode_json(response, upstream)

    def post_json(self, upstream: Upstream, credential: str, payload: Dict[str, Any], **url_fields: str) -> Dict:
        response = self._request("POST", upstream, credential, json=payload, url_fields=url_fields)
        return self._decode_json(response, upstream)

    def post_binary(
        self,
        upstream: Upstream,
        credential: str,
        payload: Dict[str, Any],
        accept: str = "audio/mpeg",
        **url_fields: str,
    ) -> bytes:
        """POST JSON and return the raw response body, never decoded as text."""
        response = self._request(
            "POST", upstream, credential, json=payload, headers={"Accept": accept}, url_fields=url_fields,
        )
        return bytes(response.content)

    def _request(
        self,
        method: str,
        upstream: Upstream,
        credential: str,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
        url_fields: Optional[Dict[str, str]] = None,
    ) -> requests.Response:
        auth_params, auth_headers = upstream.authenticate(credential)
        merged_params = {**(params or {}), **auth_params}
        merged_headers = {**(headers or {}), **auth_headers}
        url = upstream.endpoint(**(url_fields or {}))

        def send() -> requests.Response:
            logger.debug("%s %s | upstream=%s", method, url, upstream.name)
            try:
                response = self.session.request(
                    method,
                    url,
                    params=merged_params or None,
                    json=json,
                    headers=merged_headers or None,
                    timeout=self.timeout,
                )
                response.raise_for_status()
            except requests.RequestException as e:
                raise handle_api_error(e, upstream) from e
            if not is_valid_api_response(response, expected_status=200):
                raise UpstreamError(
                    upstream.name,
                    "Unexpected status or empty response body",
                    status_code=response.status_code,
                )
            logger.debug("%s responded | status=%d | bytes=%d", upstream.name, response.status_code, len(response.content))
            return response

        return retry_with_backoff(
            send,
            max_retries=self.max_attempts,
            delay=self.backoff_seconds,
            retry_on=(UpstreamError,),
        )

    @staticmethod
    def _decode_json(response: requests.Response, upstream: Upstream) -> Dict:
        try:
            data = response.json()
        except ValueError as e:
            raise UpstreamError(upstream.name, f"Malformed JSON body: {e}", status_code=response.status_code) from e
        if not isinstance(data, dict):
            raise UpstreamError(upstream.name, "Unexpected response shape", status_code=response.status_code)
        return data
