#!/usr/bin/env python3
"""
API check - exercise each upstream on its own before running the full podcast pipeline.

    news-podcast-check              # check all three
    news-podcast-check news         # NewsAPI only
    news-podcast-check openai       # OpenAI only
    news-podcast-check elevenlabs   # ElevenLabs only
"""

import logging
import sys
import time
from typing import Callable, Dict, List, Optional

import click
from rich.console import Console
from rich.table import Table

from podcast_config import PodcastConfig
from podcast_pipeline import (
    Article,
    AudioSynthesizer,
    NewsFetcher,
    ScriptGenerator,
    setup_logging,
)
from podcast_upstreams import ApiClient, PodcastError, UpstreamError

console = Console()
logger = logging.getLogger("check_apis")

USAGE = "Usage: news-podcast-check [news|openai|elevenlabs]\nOr run without arguments to test all APIs"

SAMPLE_ARTICLES = [
    Article(
        title="New AI Model Released",
        description="A major tech company released a groundbreaking AI model.",
        source_name="Tech News",
    ),
    Article(
        title="Climate Change Report",
        description="Scientists release new findings on climate change.",
        source_name="Science Daily",
    ),
]

SAMPLE_TEXT = (
    "Hello! This is a test of the ElevenLabs text to speech API. "
    "If you can hear this, the integration is working correctly."
)

SELECTORS = {
    "news": "newsapi",
    "newsapi": "newsapi",
    "openai": "openai",
    "ai": "openai",
    "elevenlabs": "elevenlabs",
    "audio": "elevenlabs",
    "tts": "elevenlabs",
}

REQUIRED_BY_CHECK = {
    "newsapi": ("NEWSAPI_KEY",),
    "openai": ("OPENAI_API_KEY",),
    "elevenlabs": ("ELEVENLABS_API_KEY",),
}


def _report_failure(name: str, error: PodcastError) -> None:
    console.print(f"[red]❌ {name} Test Failed[/red]")
    console.print(f"   Error: {error}")
    if isinstance(error, UpstreamError) and error.hint:
        console.print(f"   💡 Tip: {error.hint}")
    logger.error("%s check failed: %s", name, error)


def check_newsapi(config: PodcastConfig, client: ApiClient) -> bool:
    console.print("\n🧪 Testing NewsAPI...\n")
    try:
        articles = NewsFetcher(config, client).fetch_news()
    except PodcastError as e:
        _report_failure("NewsAPI", e)
        return False
    console.print("[green]✅ NewsAPI Test Passed![/green]")
    console.print(f"   Fetched {len(articles)} articles")
    if articles:
        console.print("\n   Sample article:")
        console.print(f"   Title: {articles[0].title}")
        console.print(f"   Source: {articles[0].source_name}")
    return True


def check_openai(config: PodcastConfig, client: ApiClient) -> bool:
    console.print("\n🧪 Testing OpenAI API...\n")
    try:
        script = ScriptGenerator(config, client).generate_script(SAMPLE_ARTICLES)
    except PodcastError as e:
        _report_failure("OpenAI", e)
        return False
    console.print("[green]✅ OpenAI Test Passed![/green]")
    console.print(f"   Generated script length: {len(script)} characters")
    console.print("\n   Script preview:")
    console.print(f"   {script[:150]}...")
    return True


def check_elevenlabs(config: PodcastConfig, client: ApiClient) -> bool:
    console.print("\n🧪 Testing ElevenLabs API...\n")
    try:
        audio_path = AudioSynthesizer(config, client).generate_audio(SAMPLE_TEXT)
    except PodcastError as e:
        _report_failure("ElevenLabs", e)
        return False
    console.print("[green]✅ ElevenLabs Test Passed![/green]")
    console.print(f"   Audio file saved: {audio_path}")
    console.print("   🎧 Play the audio file to verify it works!")
    return True


CHECKS: Dict[str, Callable[[PodcastConfig, ApiClient], bool]] = {
    "newsapi": check_newsapi,
    "openai": check_openai,
    "elevenlabs": check_elevenlabs,
}
LABELS = {"newsapi": "NewsAPI", "openai": "OpenAI", "elevenlabs": "ElevenLabs"}


def _missing_for(config: PodcastConfig, names) -> List[str]:
    return list(config.validate(names).missing)


def run_all_checks(config: PodcastConfig, client: ApiClient, pause: float = 1.0, sleep=time.sleep) -> Dict[str, bool]:
    """Run every check in pipeline order with a short pause between calls."""
    results: Dict[str, bool] = {}
    for i, name in enumerate(CHECKS):
        if i:
            sleep(pause)
        results[name] = CHECKS[name](config, client)

    table = Table(title="📊 TEST RESULTS SUMMARY")
    table.add_column("API")
    table.add_column("Result")
    for name, passed in results.items():
        table.add_row(LABELS[name], "[green]✅ PASS[/green]" if passed else "[red]❌ FAIL[/red]")
    console.print(table)

    if all(results.values()):
        console.print("🎉 All APIs are working! You're ready to generate podcasts.\n")
    else:
        console.print("[yellow]⚠️  Some APIs are not working. Fix the errors above before proceeding.[/yellow]\n")
    return results


@click.command()
@click.argument('target', required=False)
@click.option('--config', 'config_path', default='config.json', help='Path to configuration file')
@click.option('--log-level', default='WARNING', type=click.Choice(['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'], case_sensitive=False), help='Logging level (default: WARNING)')
def main(target: Optional[str], config_path: str, log_level: str):
    """Check one upstream API (news, openai, elevenlabs), or all of them."""
    setup_logging(log_level)

    selected = None
    if target is not None:
        selected = SELECTORS.get(target.lower())
        if selected is None:
            console.print(USAGE)
            return

    try:
        config = PodcastConfig.load(config_path)
    except ValueError as e:
        console.print(f"\n[bold red]Error: {e}[/bold red]")
        logger.exception("Fatal error loading configuration")
        sys.exit(1)
    required = REQUIRED_BY_CHECK[selected] if selected else tuple(config.credentials())
    missing = _missing_for(config, required)
    if missing:
        console.print("\n[red]❌ Missing required environment variables:[/red]")
        for name in missing:
            console.print(f"   - {name}")
        console.print("\n💡 Copy .env.example to .env and add your API keys\n")
        sys.exit(1)

    client = ApiClient(
        timeout=config.request_timeout,
        max_attempts=config.max_attempts,
        backoff_seconds=config.backoff_seconds,
    )
    if selected:
        passed = CHECKS[selected](config, client)
    else:
        console.print("\n" + "=" * 60)
        console.print("🧪 API TESTING SUITE")
        console.print("=" * 60)
        passed = all(run_all_checks(config, client).values())
    if not passed:
        sys.exit(1)


if __name__ == "__main__":
    main()
