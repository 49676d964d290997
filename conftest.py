import json
from unittest.mock import MagicMock

import pytest
import requests

from podcast_config import PodcastConfig
from podcast_upstreams import ApiClient


REASONS = {200: "OK", 401: "Unauthorized", 403: "Forbidden", 429: "Too Many Requests", 500: "Internal Server Error"}


def make_response(status=200, json_body=None, content=None, reason=None):
    """Build a real requests.Response so raise_for_status() and json() behave as in production."""
    response = requests.Response()
    response.status_code = status
    response.reason = reason or REASONS.get(status, "")
    if json_body is not None:
        response._content = json.dumps(json_body).encode("utf-8")
        response.headers["Content-Type"] = "application/json"
    else:
        response._content = content if content is not None else b""
    response.encoding = "utf-8"
    response.url = "https://api.example.test/"
    return response


def newsapi_body(count=5):
    return {
        "status": "ok",
        "totalResults": count,
        "articles": [
            {
                "source": {"id": None, "name": f"Source {i}"},
                "title": f"Headline {i}",
                "description": f"Description {i}" if i % 2 else None,
                "url": f"https://news.example.test/{i}",
                "publishedAt": "2025-01-31T08:00:00Z",
            }
            for i in range(1, count + 1)
        ],
    }


def completion_body(text="Welcome to today's tech news podcast!"):
    return {
        "id": "chatcmpl-1",
        "choices": [{"index": 0, "message": {"role": "assistant", "content": text}, "finish_reason": "stop"}],
        "usage": {"prompt_tokens": 120, "completion_tokens": 80, "total_tokens": 200},
    }


# Not decodable as UTF-8, so any text round trip would corrupt it
AUDIO_BYTES = b"ID3\x04\x00\x00\x00\x00\x00\x00\xff\xfb\x90\x64\x00\r\n\x00\x80\xfe\xff"


@pytest.fixture
def config(tmp_path):
    return PodcastConfig(
        newsapi_key="news-key",
        openai_api_key="openai-key",
        elevenlabs_api_key="eleven-key",
        output_directory=str(tmp_path / "output"),
    )


@pytest.fixture
def session():
    return MagicMock(spec=requests.Session)


@pytest.fixture
def client(session):
    return ApiClient(session=session, timeout=5)
