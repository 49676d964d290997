"""
Podcast helpers - file persistence, prompt formatting, validation, retry, and console narration
"""

import logging
import os
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Iterable, List, Mapping, Optional, Tuple, TypeVar, Union

from rich.console import Console

console = Console()
logger = logging.getLogger("podcast_helpers")

T = TypeVar("T")

PLACEHOLDER_MARKER = "your_"
DEFAULT_OUTPUT_DIR = "output"


@dataclass(frozen=True)
class ValidationResult:
    valid: bool
    missing: Tuple[str, ...] = ()


# ---------------------------------------------------------------------------
# File system
# ---------------------------------------------------------------------------

def _ensure_output_dir(output_dir: Union[str, Path]) -> Path:
    path = Path(output_dir)
    path.mkdir(parents=True, exist_ok=True)
    return path


def save_audio_file(audio_data: bytes, filename: str, output_dir: Union[str, Path] = DEFAULT_OUTPUT_DIR) -> str:
    """Write audio bytes verbatim under the output directory and return the full path.

    Text is rejected: synthesized audio decoded as a string can no longer be
    written back byte-for-byte.
    """
    if not isinstance(audio_data, (bytes, bytearray)):
        raise TypeError(f"audio data must be bytes, got {type(audio_data).__name__}")
    file_path = _ensure_output_dir(output_dir) / filename
    with open(file_path, "wb") as f:
        f.write(audio_data)
    console.print(f"[green]Audio saved to: {file_path}[/green]")
    logger.info("Audio saved | path=%s | bytes=%d", str(file_path), len(audio_data))
    return str(file_path)


def save_text_file(text: str, filename: str, output_dir: Union[str, Path] = DEFAULT_OUTPUT_DIR) -> str:
    """Write UTF-8 text under the output directory and return the full path."""
    file_path = _ensure_output_dir(output_dir) / filename
    with open(file_path, "w", encoding="utf-8") as f:
        f.write(text)
    console.print(f"[green]Text saved to: {file_path}[/green]")
    logger.info("Text saved | path=%s | chars=%d", str(file_path), len(text))
    return str(file_path)


def read_file_as_bytes(file_path: Union[str, Path]) -> bytes:
    with open(file_path, "rb") as f:
        return f.read()


# ---------------------------------------------------------------------------
# Text processing
# ---------------------------------------------------------------------------

def format_articles_for_summary(articles: Iterable) -> str:
    """Render articles as a numbered list: title, optional description, source."""
    articles = list(articles or [])
    if not articles:
        return "No articles available."

    lines: List[str] = ["Today's Top News Articles:", ""]
    for i, article in enumerate(articles, 1):
        lines.append(f"{i}. {article.title}")
        if article.description:
            lines.append(f"   {article.description}")
        lines.append(f"   Source: {article.source_name or 'Unknown'}")
        lines.append("")
    return "\n".join(lines) + "\n"


def create_podcast_prompt(news_content: str) -> str:
    """Embed the formatted news block in the podcast host instructions."""
    return f"""You are a professional podcast host creating a daily tech news podcast.

Your task is to take the following news articles and create an engaging, conversational podcast script (2-3 minutes when spoken).

Requirements:
- Start with an energetic greeting
- Summarize the top 3-4 most interesting stories
- Use a conversational, friendly tone
- Keep it concise (300-400 words)
- Make it sound natural when spoken aloud
- End with a friendly sign-off

News Articles:
{news_content}

Create the podcast script now:"""


def generate_timestamped_filename(prefix: str, extension: str, now: Optional[datetime] = None) -> str:
    """Build ``<prefix>_<UTC timestamp>.<extension>`` with filesystem-safe separators.

    Second precision: ``podcast_2025-01-31T08-15-02.mp3``.
    """
    moment = now or datetime.now(timezone.utc)
    if moment.tzinfo is not None:
        moment = moment.astimezone(timezone.utc)
    timestamp = moment.replace(microsecond=0).isoformat()
    # Drop any UTC offset, then normalize separators
    timestamp = timestamp[:19].replace(":", "-").replace(".", "-")
    return f"{prefix}_{timestamp}.{extension.lstrip('.')}"


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------

def is_placeholder(value: Optional[str]) -> bool:
    return not value or PLACEHOLDER_MARKER in value


def validate_environment_variables(required_vars: Iterable[str], environ: Optional[Mapping[str, str]] = None) -> ValidationResult:
    """Check every required name; absent and placeholder values are both reported as missing."""
    env = os.environ if environ is None else environ
    missing = [name for name in required_vars if is_placeholder(env.get(name))]
    return ValidationResult(valid=not missing, missing=tuple(missing))


def is_valid_api_response(response, expected_status: int = 200) -> bool:
    """True when the response exists, carries the expected status and a non-empty body."""
    return bool(response is not None and response.status_code == expected_status and response.content)


# ---------------------------------------------------------------------------
# Retry
# ---------------------------------------------------------------------------

def retry_with_backoff(
    fn: Callable[[], T],
    max_retries: int = 3,
    delay: float = 1.0,
    retry_on: Tuple[type, ...] = (Exception,),
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Call ``fn`` up to ``max_retries`` times, doubling the delay after each failure."""
    attempts = max(1, int(max_retries))
    attempt = 1
    while True:
        try:
            return fn()
        except retry_on as e:
            if attempt >= attempts:
                raise
            log_warning(f"Attempt {attempt} failed. Retrying in {delay:g}s...")
            logger.debug("Retry after failure: %s", e)
            sleep(delay)
            delay *= 2
            attempt += 1


# ---------------------------------------------------------------------------
# Console narration
# ---------------------------------------------------------------------------

def log_step(step_number: int, description: str) -> None:
    console.print("\n" + "=" * 60)
    console.print(f"[bold blue]STEP {step_number}: {description}[/bold blue]")
    console.print("=" * 60)
    logger.info("Step %d: %s", step_number, description)


def log_success(message: str) -> None:
    console.print(f"[green]✅ {message}[/green]")
    logger.info(message)


def log_info(message: str) -> None:
    console.print(f"[cyan]ℹ️  {message}[/cyan]")
    logger.info(message)


def log_warning(message: str) -> None:
    console.print(f"[yellow]⚠️  {message}[/yellow]")
    logger.warning(message)
