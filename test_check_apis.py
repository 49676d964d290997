"""Tests for the per-upstream diagnostic command."""

from unittest.mock import MagicMock, patch

import pytest
from click.testing import CliRunner

import check_apis
from conftest import AUDIO_BYTES, completion_body, make_response, newsapi_body


@pytest.fixture
def env(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr(check_apis, "setup_logging", lambda level: None)
    for name, value in {
        "NEWSAPI_KEY": "news-key",
        "OPENAI_API_KEY": "openai-key",
        "ELEVENLABS_API_KEY": "eleven-key",
    }.items():
        monkeypatch.setenv(name, value)
    return tmp_path


@pytest.fixture
def fake_checks(monkeypatch):
    checks = {name: MagicMock(return_value=True) for name in check_apis.CHECKS}
    for name, fake in checks.items():
        monkeypatch.setitem(check_apis.CHECKS, name, fake)
    return checks


class TestSelectors:
    def test_unknown_selector_prints_usage_and_calls_nothing(self, env, fake_checks):
        with patch("check_apis.ApiClient") as MockClient:
            result = CliRunner().invoke(check_apis.main, ["weather"])

        assert result.exit_code == 0
        assert "Usage: news-podcast-check" in result.output
        MockClient.assert_not_called()
        for fake in fake_checks.values():
            fake.assert_not_called()

    @pytest.mark.parametrize("selector, expected", [
        ("news", "newsapi"),
        ("NewsAPI", "newsapi"),
        ("ai", "openai"),
        ("openai", "openai"),
        ("audio", "elevenlabs"),
        ("tts", "elevenlabs"),
        ("elevenlabs", "elevenlabs"),
    ])
    def test_selector_runs_one_check(self, env, fake_checks, selector, expected):
        result = CliRunner().invoke(check_apis.main, [selector])

        assert result.exit_code == 0, result.output
        for name, fake in fake_checks.items():
            assert fake.call_count == (1 if name == expected else 0)

    def test_failed_check_exits_one(self, env, fake_checks):
        fake_checks["openai"].return_value = False
        result = CliRunner().invoke(check_apis.main, ["openai"])
        assert result.exit_code == 1

    def test_single_check_only_needs_its_own_key(self, env, fake_checks, monkeypatch):
        monkeypatch.setenv("OPENAI_API_KEY", "your_openai_api_key_here")
        result = CliRunner().invoke(check_apis.main, ["news"])
        assert result.exit_code == 0
        fake_checks["newsapi"].assert_called_once()

    def test_missing_key_exits_before_any_call(self, env, fake_checks, monkeypatch):
        monkeypatch.setenv("ELEVENLABS_API_KEY", "your_elevenlabs_api_key_here")
        result = CliRunner().invoke(check_apis.main, [])

        assert result.exit_code == 1
        assert "ELEVENLABS_API_KEY" in result.output
        for fake in fake_checks.values():
            fake.assert_not_called()

    def test_invalid_config_file_exits_one(self, env, fake_checks):
        (env / "config.json").write_text("{not json")
        result = CliRunner().invoke(check_apis.main, [])

        assert result.exit_code == 1
        assert isinstance(result.exception, SystemExit)
        assert "Error:" in result.output
        for fake in fake_checks.values():
            fake.assert_not_called()


class TestRunAllChecks:
    def test_runs_in_order_with_pauses(self, config, fake_checks):
        order = []
        for name, fake in fake_checks.items():
            fake.side_effect = lambda cfg, client, name=name: order.append(name) or True
        pauses = []

        results = check_apis.run_all_checks(config, MagicMock(), pause=1.0, sleep=pauses.append)

        assert order == ["newsapi", "openai", "elevenlabs"]
        assert pauses == [1.0, 1.0]
        assert results == {"newsapi": True, "openai": True, "elevenlabs": True}

    def test_failure_does_not_stop_later_checks(self, config, fake_checks):
        fake_checks["newsapi"].return_value = False
        results = check_apis.run_all_checks(config, MagicMock(), sleep=lambda s: None)
        assert results == {"newsapi": False, "openai": True, "elevenlabs": True}


class TestChecksAgainstFakeTransport:
    def test_newsapi_check(self, config, client, session):
        session.request.return_value = make_response(json_body=newsapi_body(2))
        assert check_apis.check_newsapi(config, client) is True

    def test_openai_check_uses_sample_articles(self, config, client, session):
        session.request.return_value = make_response(json_body=completion_body())
        assert check_apis.check_openai(config, client) is True
        content = session.request.call_args.kwargs["json"]["messages"][0]["content"]
        assert "New AI Model Released" in content
        assert "Source: Science Daily" in content

    def test_elevenlabs_check_saves_audio(self, config, client, session):
        session.request.return_value = make_response(content=AUDIO_BYTES)
        assert check_apis.check_elevenlabs(config, client) is True

    def test_check_reports_upstream_failure(self, config, client, session):
        session.request.return_value = make_response(401, json_body={"error": {"message": "Incorrect API key"}})
        assert check_apis.check_openai(config, client) is False
