#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Subtitle Translation CLI - Translate an SRT file with an LLM or Google Translate

Usage:
    python translate_subtitles.py movie.srt --target French
    python translate_subtitles.py movie.srt --target de --provider google
    python translate_subtitles.py movie.srt --target Spanish --concurrency 3 --stream

Examples:
    # Basic usage (writes movie.French.srt next to the input)
    python translate_subtitles.py movie.srt --target French

    # Claude with OpenAI as fallback, tagged segments, 2 lines of context
    python translate_subtitles.py movie.srt --target Japanese --provider claude \\
        --fallback-provider openai --mode tagged --context 2

Configuration (API keys, key pools, defaults) is read from .env; see
config/settings.py.
"""

import argparse
import asyncio
import sys
from pathlib import Path

from dotenv import load_dotenv
from pydantic import ValidationError
from tqdm import tqdm

# Load environment variables before settings are built
load_dotenv()

from config.logging_config import configure_logging, get_logger
from config.settings import Settings
from core.cache import EntryCache
from core.errors import BatchTranslationError
from core.models import FormatMode, TranslationJob
from core.subtitle import SubtitleFormatError
from core.translator import EngineConfig, TranslationEngine
from providers.manager import create_backends_from_settings

logger = get_logger(__name__)


def get_default_output(input_path: str, target_language: str) -> Path:
    """Generate default output filename."""
    input_file = Path(input_path)
    suffix = "".join(ch for ch in target_language if ch.isalnum() or ch in "-_") or "translated"
    return input_file.with_name(f"{input_file.stem}.{suffix}.srt")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Translate SRT subtitles in batches with LLM or native backends",
        epilog="""
Examples:
  %(prog)s movie.srt --target French
  %(prog)s movie.srt --target de --provider google
  %(prog)s movie.srt --target Spanish --concurrency 3 --stream
        """,
        formatter_class=argparse.RawDescriptionHelpFormatter
    )

    parser.add_argument('input', help='Input SRT file')
    parser.add_argument('-t', '--target', help='Target language (name or code)')
    parser.add_argument('-o', '--output', help='Output SRT file (default: <input>.<target>.srt)')
    parser.add_argument('--provider', help='Backend: openai | claude | deepseek | google')
    parser.add_argument('--model', help='Model name (provider default if omitted)')
    parser.add_argument('--fallback-provider', help='Secondary backend tried once when the primary fails')
    parser.add_argument('--fallback-model', help='Model for the fallback backend')
    parser.add_argument(
        '--mode',
        choices=[mode.value for mode in FormatMode],
        help='Request format (default: plain)'
    )
    parser.add_argument('--concurrency', type=int, help='Batches in flight (1-5)')
    parser.add_argument('--batch-size', type=int, help='Entries per batch')
    parser.add_argument('--stream', action='store_true', help='Stream partial results of the first batch')
    parser.add_argument('--context', type=int, help='Preceding entries sent as context')
    parser.add_argument('--mismatch-retries', type=int, help='Full re-requests on heavy mismatch (0-3)')
    parser.add_argument('--instructions', help='Custom prompt ({target_language} is substituted)')
    parser.add_argument('--cache', action='store_true', help='Enable the entry cache for this run')
    parser.add_argument('-v', '--verbose', action='store_true', help='Show debug logging on the console')

    return parser


def build_settings(args) -> Settings:
    """Settings from .env, overridden by command-line flags"""
    overrides = {
        "provider": args.provider,
        "model": args.model,
        "fallback_provider": args.fallback_provider,
        "fallback_model": args.fallback_model,
        "format_mode": args.mode,
        "concurrency": args.concurrency,
        "batch_size": args.batch_size,
        "context_size": args.context,
        "mismatch_retries": args.mismatch_retries,
        "target_lang": args.target,
        "streaming_enabled": True if args.stream else None,
        "cache_enabled": True if args.cache else None,
    }
    return Settings(**{k: v for k, v in overrides.items() if v is not None})


async def run_translation(args, settings: Settings) -> int:
    input_path = Path(args.input)
    if not input_path.exists():
        raise FileNotFoundError(f"Input file not found: {input_path}")

    raw = input_path.read_text(encoding="utf-8-sig")
    output_path = Path(args.output) if args.output else get_default_output(args.input, settings.target_lang)

    job = TranslationJob(
        target_language=settings.target_lang,
        source_language=settings.source_lang,
        instructions=args.instructions,
        format_mode=FormatMode(settings.format_mode),
        concurrency_limit=settings.concurrency,
        streaming_enabled=settings.streaming_enabled,
        context_size=settings.context_size,
        mismatch_retries=settings.mismatch_retries,
    )

    backend, fallback, credentials = create_backends_from_settings(settings)
    cache = EntryCache(settings.cache_max_size) if settings.cache_enabled else None
    engine = TranslationEngine(
        backend,
        fallback_backend=fallback,
        cache=cache,
        credentials=credentials,
        config=EngineConfig.from_settings(settings),
    )

    progress_bar = tqdm(
        total=0,
        desc="Translating",
        unit="entry",
        bar_format="{l_bar}{bar}| {n_fmt}/{total_fmt} [{elapsed}<{remaining}]"
    )

    def on_progress(snapshot):
        progress_bar.total = snapshot.total_count
        progress_bar.n = snapshot.completed_count
        progress_bar.set_postfix({
            'batch': f"{snapshot.current_batch}/{snapshot.total_batches}",
            'live': 'yes' if snapshot.streaming else 'no',
        })
        progress_bar.refresh()

    try:
        outcome = await engine.translate_subtitle(raw, job, on_progress=on_progress)
    finally:
        progress_bar.close()
        await engine.aclose()
        await backend.aclose()
        if fallback is not None:
            await fallback.aclose()

    output_path.write_text(outcome.srt, encoding="utf-8")
    print(f"\n✅ Translated {len(outcome.entries)} entries -> {output_path}")
    if outcome.degraded_count:
        print(f"⚠️  {outcome.degraded_count} entries could not be translated and are marked")
    return 0


def main():
    parser = build_parser()
    args = parser.parse_args()

    try:
        settings = build_settings(args)
        configure_logging("DEBUG" if args.verbose else settings.log_level, settings.log_file or None)
        return asyncio.run(run_translation(args, settings))

    except (FileNotFoundError, SubtitleFormatError) as e:
        print(f"\n❌ Error: {e}", file=sys.stderr)
        return 1
    except (ValueError, ValidationError) as e:
        print(f"\n❌ Invalid configuration: {e}", file=sys.stderr)
        return 2
    except BatchTranslationError as e:
        logger.error(f"Translation aborted: {e}")
        print(f"\n❌ Translation failed: {e}", file=sys.stderr)
        return 1


if __name__ == '__main__':
    sys.exit(main())
