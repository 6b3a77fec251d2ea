# src/main.py - v2
"""CLI entry point: explain, cache, ask commands.

Usage:
    codexplain explain <file> [options]
    codexplain cache list | clear | invalidate <fingerprint>
    codexplain ask <file> <question> [options]
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from codexplain.version import __version__

logger = logging.getLogger(__name__)

_LANGUAGE_BY_SUFFIX = {
    ".py": "python",
    ".js": "javascript",
    ".jsx": "javascript",
    ".ts": "typescript",
    ".tsx": "typescript",
    ".java": "java",
    ".c": "c",
    ".h": "c",
    ".cpp": "cpp",
    ".cc": "cpp",
    ".hpp": "cpp",
    ".cs": "csharp",
    ".go": "go",
    ".rs": "rust",
    ".kt": "kotlin",
    ".swift": "swift",
    ".php": "php",
    ".rb": "ruby",
    ".scala": "scala",
    ".dart": "dart",
}


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if not hasattr(args, "func"):
        parser.print_help()
        return 1

    from codexplain.config.settings import ConfigurationError, load_settings

    try:
        settings = load_settings()
    except ConfigurationError as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        return 2
    _setup_logging(settings, args.verbose)

    try:
        return asyncio.run(args.func(args, settings))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130
    except Exception as exc:
        logger.error("Fatal error: %s", exc, exc_info=args.verbose)
        return 1


def _build_parser() -> argparse.ArgumentParser:
    """Build CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="codexplain",
        description=f"codexplain v{__version__} - multimedia code explanations",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command")

    # --- explain ---
    p_explain = subparsers.add_parser("explain", help="Explain a source file")
    _add_request_arguments(p_explain)
    p_explain.set_defaults(func=_cmd_explain)

    # --- cache ---
    p_cache = subparsers.add_parser("cache", help="Inspect or clear the content cache")
    cache_sub = p_cache.add_subparsers(dest="cache_command")
    p_list = cache_sub.add_parser("list", help="List cached explanations")
    p_list.set_defaults(func=_cmd_cache_list)
    p_clear = cache_sub.add_parser("clear", help="Remove every cached explanation")
    p_clear.set_defaults(func=_cmd_cache_clear)
    p_inv = cache_sub.add_parser("invalidate", help="Remove one cached explanation")
    p_inv.add_argument("fingerprint", help="Fingerprint (hex digest) to remove")
    p_inv.set_defaults(func=_cmd_cache_invalidate)

    # --- ask ---
    p_ask = subparsers.add_parser(
        "ask", help="Ask a question about the explanation of a file",
    )
    _add_request_arguments(p_ask)
    p_ask.add_argument("question", help="Question about the code")
    p_ask.set_defaults(func=_cmd_ask)

    return parser


def _add_request_arguments(p: argparse.ArgumentParser) -> None:
    p.add_argument("file", type=Path, help="Path to source file")
    p.add_argument(
        "--lines", default=None,
        help="Line range START-END to explain (default: whole file)",
    )
    p.add_argument(
        "--source-language", default=None,
        help="Programming language (detected from the extension if omitted)",
    )
    p.add_argument(
        "--target-language", default="en",
        help="Narration language (default: en)",
    )
    p.add_argument(
        "--content-type", choices=["video", "audio"], default="video",
        help="Media to produce (default: video)",
    )
    p.add_argument(
        "--no-flowchart", action="store_true", help="Skip the flowchart section",
    )
    p.add_argument(
        "--examples", action="store_true",
        help="Include equivalent code in other languages",
    )


def _build_request(args: argparse.Namespace):
    """Read the selection and build a PipelineRequest, or None on bad input."""
    from codexplain.core.models import ContentType, PipelineRequest

    file_path: Path = args.file
    if not file_path.is_file():
        logger.error("File not found: %s", file_path)
        return None

    language = args.source_language or _LANGUAGE_BY_SUFFIX.get(file_path.suffix.lower())
    if language is None:
        logger.error(
            "Cannot detect language of %s, pass --source-language", file_path.name
        )
        return None

    code = file_path.read_text(encoding="utf-8")
    selection = None
    if args.lines:
        try:
            start, end = (int(x) for x in args.lines.split("-", 1))
        except ValueError:
            logger.error("Invalid --lines %r, expected START-END", args.lines)
            return None
        lines = code.splitlines(keepends=True)
        if not 1 <= start <= end <= len(lines):
            logger.error(
                "Invalid --lines %r, expected 1 <= START <= END <= %d",
                args.lines, len(lines),
            )
            return None
        code = "".join(lines[start - 1:end])
        selection = (start, end)

    return PipelineRequest(
        code=code,
        source_language=language,
        target_language=args.target_language,
        content_type=ContentType(args.content_type),
        include_flowchart=not args.no_flowchart,
        include_examples=args.examples,
        file_path=str(file_path.resolve()),
        selection=selection,
    )


async def _cmd_explain(args: argparse.Namespace, settings) -> int:
    """Explain one file (or a line range of it)."""
    from codexplain.api.facade import build_orchestrator, explain

    request = _build_request(args)
    if request is None:
        return 1

    result = await explain(request, orchestrator=build_orchestrator(settings))
    if not result.ok:
        _print_error(result.error)
        return 1

    content = result.content
    print("\nExplanation ready:")
    print(f"  Fingerprint:  {result.fingerprint}")
    print(f"  Content:      {content.content_url}")
    print(f"  Type:         {content.content_type.value}")
    print(f"  Duration:     {content.duration_seconds // 60}m{content.duration_seconds % 60:02d}s")
    if content.partial:
        print(f"  Partial:      missing {', '.join(content.omitted_sections)}")
    return 0


async def _cmd_cache_list(args: argparse.Namespace, settings) -> int:
    from codexplain.cache.cache_factory import create_content_cache

    cache = create_content_cache(settings)
    entries = await cache.list()
    if not entries:
        print("Cache is empty")
        return 0
    for meta in entries:
        print(
            f"{meta.fingerprint[:16]}  {meta.last_accessed_at:%Y-%m-%d %H:%M}  "
            f"hits={meta.access_count:<4d} {meta.size_bytes:>8d}B  {meta.snippet_preview}"
        )
    print(f"\n{len(entries)} entries, {cache.total_bytes} / {cache.max_bytes} bytes")
    return 0


async def _cmd_cache_clear(args: argparse.Namespace, settings) -> int:
    from codexplain.cache.cache_factory import create_content_cache

    await create_content_cache(settings).clear()
    print("Cache cleared")
    return 0


async def _cmd_cache_invalidate(args: argparse.Namespace, settings) -> int:
    from codexplain.cache.cache_factory import create_content_cache

    cache = create_content_cache(settings)
    matches = [m.fingerprint for m in await cache.list() if m.fingerprint.startswith(args.fingerprint)]
    if len(matches) != 1:
        logger.error(
            "%s matches %d cache entries", args.fingerprint, len(matches)
        )
        return 1
    await cache.invalidate(matches[0])
    print(f"Invalidated {matches[0]}")
    return 0


async def _cmd_ask(args: argparse.Namespace, settings) -> int:
    """Explain a file (served from cache when unchanged) and ask about it."""
    from codexplain.api.facade import ask, build_orchestrator, build_qa_store, explain

    request = _build_request(args)
    if request is None:
        return 1

    orchestrator = build_orchestrator(settings)
    result = await explain(request, orchestrator=orchestrator)
    if not result.ok:
        _print_error(result.error)
        return 1

    store = build_qa_store(orchestrator, settings)
    session = store.create_session(
        result.content, request.code, source_language=request.source_language
    )
    answer = await ask(store, session.id, args.question)
    if not answer.ok:
        _print_error(answer.error)
        return 1
    print(answer.exchange.answer)
    return 0


def _print_error(error) -> None:
    print(f"\nError [{error.code}]: {error.message}", file=sys.stderr)
    for suggestion in error.suggestions:
        print(f"  - {suggestion}", file=sys.stderr)
    if error.retryable:
        print("  (retrying may help)", file=sys.stderr)


def _setup_logging(settings, verbose: bool) -> None:
    """Text on stderr; the log file, when configured, in LOG_FORMAT."""
    from codexplain.logging.logger import setup_logging

    setup_logging(
        level="DEBUG" if verbose else settings.log_level,
        console_format="text",
        log_file=settings.log_file,
        file_format=settings.log_format,
        max_bytes=int(settings.log_rotation),
        backup_count=settings.log_retention,
    )
    # Quiet noisy libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


if __name__ == "__main__":
    sys.exit(main())
