#!/usr/bin/env python3
"""
News Podcast - Fetch top headlines, write a podcast script with OpenAI, and voice it with ElevenLabs
"""

import logging
import os
import sys
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from logging.handlers import RotatingFileHandler
from typing import Callable, Dict, List, Optional

import click
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn

from podcast_config import PodcastConfig
from podcast_helpers import (
    create_podcast_prompt,
    format_articles_for_summary,
    generate_timestamped_filename,
    log_step,
    log_success,
    save_audio_file,
    save_text_file,
)
from podcast_upstreams import (
    ELEVENLABS,
    NEWSAPI,
    OPENAI,
    ApiClient,
    ConfigurationError,
    EmptyResultError,
    PodcastError,
    StageFailure,
    UpstreamError,
)

console = Console()
logger = logging.getLogger("podcast_pipeline")

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"


def setup_logging(level_str: str = "INFO") -> None:
    """Configure console logging with the given level.

    A file handler is attached separately once the output directory is known.
    """
    level = getattr(logging, level_str.upper(), logging.INFO)
    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    # Avoid duplicate handlers on reconfiguration
    if not any(type(h) is logging.StreamHandler for h in root_logger.handlers):
        console_handler = logging.StreamHandler()
        console_handler.setLevel(level)
        console_handler.setFormatter(logging.Formatter(fmt=LOG_FORMAT, datefmt=LOG_DATEFMT))
        root_logger.addHandler(console_handler)


def add_file_logging(log_file_path: str) -> None:
    """Attach a rotating file handler to the root logger."""
    root_logger = logging.getLogger()
    abs_path = os.path.abspath(log_file_path)
    os.makedirs(os.path.dirname(abs_path), exist_ok=True)
    # Don't add duplicate file handlers for the same path
    for h in root_logger.handlers:
        if isinstance(h, RotatingFileHandler) and getattr(h, "baseFilename", None) == abs_path:
            return
    file_handler = RotatingFileHandler(abs_path, maxBytes=1_000_000, backupCount=3, encoding="utf-8")
    file_handler.setLevel(root_logger.level)
    file_handler.setFormatter(logging.Formatter(fmt=LOG_FORMAT, datefmt=LOG_DATEFMT))
    root_logger.addHandler(file_handler)


# ---------------------------------------------------------------------------
# Data model
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Article:
    title: str
    source_name: str = "Unknown"
    description: Optional[str] = None
    published_at: Optional[str] = None
    url: Optional[str] = None

    @classmethod
    def from_api(cls, record: Dict) -> "Article":
        """Build from a NewsAPI article record.

        Raises TypeError when a field that must be text is not.
        """
        source = record.get("source")
        if not isinstance(source, dict):
            source = {}
        title = record.get("title")
        if title is not None and not isinstance(title, str):
            raise TypeError(f"article title must be a string, got {type(title).__name__}")
        return cls(
            title=(title or "").strip() or "Untitled",
            source_name=str(source.get("name") or "Unknown"),
            description=record.get("description") or None,
            published_at=record.get("publishedAt") or None,
            url=record.get("url") or None,
        )


@dataclass(frozen=True)
class AudioArtifact:
    payload: bytes
    filename: str
    path: str


@dataclass(frozen=True)
class PipelineResult:
    success: bool
    article_count: int
    script: str
    script_length: int
    audio_path: str
    script_path: Optional[str] = None


class PipelineState(Enum):
    INIT = "init"
    VALIDATING_CONFIG = "validating_config"
    FETCHING = "fetching"
    SCRIPTING = "scripting"
    SYNTHESIZING = "synthesizing"
    DONE = "done"
    ABORTED = "aborted"


# ---------------------------------------------------------------------------
# Stages
# ---------------------------------------------------------------------------

class NewsFetcher:
    def __init__(self, config: PodcastConfig, client: ApiClient):
        self.config = config
        self.client = client

    def fetch_news(self) -> List[Article]:
        """Fetch one page of top headlines."""
        params = {
            "country": self.config.country,
            "category": self.config.category,
            "pageSize": self.config.page_size,
        }
        logger.info("Fetching headlines | country=%s | category=%s | page_size=%d",
                    self.config.country, self.config.category, self.config.page_size)
        data = self.client.get_json(NEWSAPI, self.config.newsapi_key, params=params)

        # NewsAPI can answer 200 with an error envelope
        if data.get("status") == "error":
            raise UpstreamError(NEWSAPI.name, data.get("message") or data.get("code") or "Unknown error")
        records = data.get("articles")
        if not isinstance(records, list):
            raise UpstreamError(NEWSAPI.name, "Response has no 'articles' list")

        try:
            articles = [Article.from_api(r) for r in records[: self.config.page_size] if isinstance(r, dict)]
        except TypeError as e:
            raise UpstreamError(NEWSAPI.name, f"Unexpected response shape: {e}") from e
        console.print(f"[green]Fetched {len(articles)} articles[/green]")
        for i, article in enumerate(articles, 1):
            console.print(f"  {i}. {escape(article.title)}")
        logger.info("Fetched articles | total_results=%s | returned=%d", data.get("totalResults"), len(articles))
        return articles


class ScriptGenerator:
    def __init__(self, config: PodcastConfig, client: ApiClient):
        self.config = config
        self.client = client
        self.last_script_path: Optional[str] = None

    def generate_script(self, articles: List[Article]) -> str:
        """Write a podcast script from the articles and persist it for inspection."""
        if not articles:
            raise EmptyResultError("generate", "No articles to write a script from")

        prompt = create_podcast_prompt(format_articles_for_summary(articles))
        payload = {
            "model": self.config.openai_model,
            "messages": [{"role": "user", "content": prompt}],
            "temperature": self.config.temperature,
            "max_tokens": self.config.max_tokens,
        }
        logger.info("Requesting script | model=%s | articles=%d | prompt_chars=%d",
                    self.config.openai_model, len(articles), len(prompt))
        data = self.client.post_json(OPENAI, self.config.openai_api_key, payload)

        choices = data.get("choices")
        if choices is not None and not isinstance(choices, list):
            raise UpstreamError(OPENAI.name, "Unexpected response shape: 'choices' is not a list")
        if not choices:
            raise EmptyResultError("generate", "Completion response contained no choices")
        choice = choices[0]
        if not isinstance(choice, dict) or not isinstance(choice.get("message"), dict):
            raise UpstreamError(OPENAI.name, "Unexpected response shape: choice has no message object")
        content = choice["message"].get("content")
        if content is not None and not isinstance(content, str):
            raise UpstreamError(OPENAI.name, "Unexpected response shape: message content is not text")
        script = (content or "").strip()
        if not script:
            raise EmptyResultError("generate", "Completion text was empty")

        usage = data.get("usage") or {}
        if usage:
            logger.info("Token usage | prompt=%s completion=%s total=%s",
                        usage.get("prompt_tokens"), usage.get("completion_tokens"), usage.get("total_tokens"))

        self.last_script_path = save_text_file(script, self.config.script_filename, self.config.output_directory)
        console.print(f"[green]Generated script: {len(script.split())} words[/green]")
        return script


class AudioSynthesizer:
    def __init__(self, config: PodcastConfig, client: ApiClient, clock: Callable[[], Optional[datetime]] = lambda: None):
        self.config = config
        self.client = client
        self.clock = clock
        self.last_artifact: Optional[AudioArtifact] = None

    def generate_audio(self, text: str) -> str:
        """Synthesize speech for ``text`` and return the saved MP3 path."""
        if not text or not text.strip():
            raise EmptyResultError("synthesize", "No text to synthesize")

        payload = {
            "text": text,
            "model_id": self.config.tts_model_id,
            "voice_settings": {
                "stability": self.config.stability,
                "similarity_boost": self.config.similarity_boost,
            },
        }
        console.print("[yellow]Generating audio using ElevenLabs TTS...[/yellow]")
        logger.info("Starting TTS generation | voice=%s | model=%s | length_chars=%d",
                    self.config.voice_id, self.config.tts_model_id, len(text))
        audio = self.client.post_binary(
            ELEVENLABS, self.config.elevenlabs_api_key, payload, voice_id=self.config.voice_id,
        )
        if not audio:
            raise EmptyResultError("synthesize", "Synthesis returned no audio")

        filename = generate_timestamped_filename(self.config.audio_prefix, self.config.audio_extension, self.clock())
        path = save_audio_file(audio, filename, self.config.output_directory)
        self.last_artifact = AudioArtifact(payload=audio, filename=filename, path=path)
        return path


# ---------------------------------------------------------------------------
# Orchestrator
# ---------------------------------------------------------------------------

class PodcastPipeline:
    """Validate configuration, then fetch → script → synthesize, aborting on the first failure."""

    def __init__(
        self,
        config: PodcastConfig,
        client: Optional[ApiClient] = None,
        fetcher: Optional[NewsFetcher] = None,
        generator: Optional[ScriptGenerator] = None,
        synthesizer: Optional[AudioSynthesizer] = None,
    ):
        self.config = config
        self._client = client
        self._fetcher = fetcher
        self._generator = generator
        self._synthesizer = synthesizer
        self.state = PipelineState.INIT
        self.history: List[PipelineState] = [PipelineState.INIT]

    @property
    def client(self) -> ApiClient:
        if self._client is None:
            self._client = ApiClient(
                timeout=self.config.request_timeout,
                max_attempts=self.config.max_attempts,
                backoff_seconds=self.config.backoff_seconds,
            )
        return self._client

    @property
    def fetcher(self) -> NewsFetcher:
        if self._fetcher is None:
            self._fetcher = NewsFetcher(self.config, self.client)
        return self._fetcher

    @property
    def generator(self) -> ScriptGenerator:
        if self._generator is None:
            self._generator = ScriptGenerator(self.config, self.client)
        return self._generator

    @property
    def synthesizer(self) -> AudioSynthesizer:
        if self._synthesizer is None:
            self._synthesizer = AudioSynthesizer(self.config, self.client)
        return self._synthesizer

    def _enter(self, state: PipelineState) -> None:
        logger.debug("Pipeline state %s -> %s", self.state.value, state.value)
        self.state = state
        self.history.append(state)

    def _abort(self, error: PodcastError) -> PodcastError:
        logger.error("Pipeline aborted in state %s: %s", self.state.value, error)
        self._enter(PipelineState.ABORTED)
        return error

    def _run_stage(self, stage: str, fn: Callable):
        try:
            return fn()
        except (UpstreamError, EmptyResultError) as e:
            raise self._abort(StageFailure(stage, e)) from e
        except OSError as e:
            cause = PodcastError(f"Could not write output: {e}")
            raise self._abort(StageFailure(stage, cause)) from e

    def run(self) -> PipelineResult:
        self._enter(PipelineState.VALIDATING_CONFIG)
        validation = self.config.validate()
        if not validation.valid:
            raise self._abort(ConfigurationError(validation.missing))
        log_success("All required API keys are configured")

        self._enter(PipelineState.FETCHING)
        log_step(1, "Fetching latest news")
        articles = self._run_stage("fetch", self.fetcher.fetch_news)
        if not articles:
            raise self._abort(StageFailure("fetch", EmptyResultError("fetch", "No news articles retrieved")))

        self._enter(PipelineState.SCRIPTING)
        log_step(2, "Generating podcast script")
        script = self._run_stage("generate", lambda: self.generator.generate_script(articles))
        if not script:
            raise self._abort(StageFailure("generate", EmptyResultError("generate", "Generated script is empty")))

        self._enter(PipelineState.SYNTHESIZING)
        log_step(3, "Converting script to audio")
        audio_path = self._run_stage("synthesize", lambda: self.synthesizer.generate_audio(script))
        if not audio_path:
            raise self._abort(StageFailure("synthesize", EmptyResultError("synthesize", "No audio file path returned")))

        self._enter(PipelineState.DONE)
        result = PipelineResult(
            success=True,
            article_count=len(articles),
            script=script,
            script_length=len(script),
            audio_path=audio_path,
            script_path=self.generator.last_script_path,
        )
        logger.info("Pipeline complete | articles=%d | script_chars=%d | audio=%s",
                    result.article_count, result.script_length, result.audio_path)
        return result


def print_failure(error: PodcastError) -> None:
    """Print one delimited diagnostic block for an aborted run."""
    lines: List[str] = []
    if isinstance(error, ConfigurationError):
        lines.append("[bold]Stage:[/bold] configuration")
        lines.append("[bold]Missing or placeholder values:[/bold]")
        lines.extend(f"  - {name}" for name in error.missing)
        lines.append("Tip: Copy .env.example to .env and add your API keys")
    elif isinstance(error, StageFailure):
        cause = error.cause
        lines.append(f"[bold]Stage:[/bold] {error.stage}")
        lines.append(f"[bold]Cause:[/bold] {escape(str(cause))}")
        if isinstance(cause, UpstreamError):
            if cause.status_code is not None:
                lines.append(f"[bold]Status:[/bold] {cause.status_code}")
            if cause.hint:
                lines.append(f"Tip: {escape(cause.hint)}")
    else:
        lines.append(escape(str(error)))
    console.print(Panel("\n".join(lines), title="❌ Podcast generation failed", style="red"))


@click.command()
@click.option('--config', 'config_path', default='config.json', help='Path to configuration file')
@click.option('--log-level', default='INFO', type=click.Choice(['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'], case_sensitive=False), help='Logging level (default: INFO)')
@click.option('--log-file', default=None, help='Optional log file path (defaults to <output>/logs/news_podcast.log)')
def main(config_path, log_level, log_file):
    """CLI: fetch news, write a podcast script, synthesize it to MP3."""
    setup_logging(log_level)
    logger.info("News Podcast starting...")
    try:
        config = PodcastConfig.load(config_path)
        add_file_logging(log_file or os.path.join(config.output_directory, "logs", "news_podcast.log"))
        console.print(Panel.fit("🎙️ News Podcast Generator Starting...", style="blue"))

        pipeline = PodcastPipeline(config)
        with Progress(SpinnerColumn(), TextColumn("[progress.description]{task.description}"), console=console) as progress:
            task = progress.add_task("Generating podcast...", total=None)
            result = pipeline.run()
            progress.update(task, completed=True)
    except PodcastError as e:
        print_failure(e)
        sys.exit(1)
    except ValueError as e:
        console.print(f"\n[bold red]Error: {e}[/bold red]")
        logger.exception("Fatal error loading configuration")
        sys.exit(1)

    console.print(Panel.fit(
        f"✅ Podcast Complete!\n"
        f"Articles: {result.article_count}\n"
        f"Script: {result.script_length} characters ({result.script_path})\n"
        f"Audio: {result.audio_path}",
        style="green",
    ))
    logger.info("News Podcast completed successfully")


if __name__ == "__main__":
    main()
