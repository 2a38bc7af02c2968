"""
Command-line interface for the exam digitizer.

Usage:
    python -m app repair RESPONSE_FILE [--lookahead N]
    python -m app extract EXAM_FILE [--model MODEL]
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Optional, Sequence

import magic

from app.config import get_settings
from app.middleware.logging import configure_logging
from app.models.exam import ExamRecord
from app.services.exam_extractor import extract_exam
from app.services.exam_pipeline import parse_exam_response
from app.services.exam_validator import count_empty_questions
from app.services.file_validator import ALLOWED_MIME_TYPES
from app.services.gemini_client import get_gemini_client
from app.services.response_repair import DEFAULT_LOOKAHEAD_WINDOW
from app.services.tolerant_parser import ResponseParseError


def create_parser() -> argparse.ArgumentParser:
    """Create CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="exam-digitizer",
        description="Exam Digitizer CLI - extract exams and repair model output"
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable debug logging"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    repair_parser = subparsers.add_parser(
        "repair",
        help="Repair and parse a saved model response into an exam record"
    )
    repair_parser.add_argument(
        "path",
        type=str,
        help="File with raw model output ('-' for stdin)"
    )
    repair_parser.add_argument(
        "--lookahead",
        "-l",
        type=int,
        default=DEFAULT_LOOKAHEAD_WINDOW,
        help=f"Quote boundary lookahead window (default: {DEFAULT_LOOKAHEAD_WINDOW})"
    )

    extract_parser = subparsers.add_parser(
        "extract",
        help="Extract an exam from a PDF or image with Gemini"
    )
    extract_parser.add_argument(
        "path",
        type=str,
        help="Exam PDF or image"
    )
    extract_parser.add_argument(
        "--model",
        "-m",
        type=str,
        default=None,
        help="Gemini model (default: from env MODEL_NAME)"
    )

    return parser


def _print_record(record: ExamRecord) -> None:
    print(json.dumps(record.to_wire(), indent=2, ensure_ascii=False))


def _report_parse_error(e: ResponseParseError) -> None:
    print(f"Error: {e.message}", file=sys.stderr)
    if e.line is not None:
        print(f"  at line {e.line}, column {e.column}", file=sys.stderr)
    if e.snippet:
        print(f"  near: {e.snippet!r}", file=sys.stderr)


def repair_command(args: argparse.Namespace) -> int:
    """
    Run the repair pipeline on a saved model response.

    Returns:
        int: Exit code (0 for success, 1 for error)
    """
    if args.lookahead < 1:
        print("Error: --lookahead must be at least 1", file=sys.stderr)
        return 1

    if args.path == "-":
        raw = sys.stdin.read()
    else:
        path = Path(args.path)
        if not path.is_file():
            print(f"Error: File not found: {path}", file=sys.stderr)
            return 1
        raw = path.read_text(encoding="utf-8")

    try:
        record = parse_exam_response(raw, args.lookahead)
    except ResponseParseError as e:
        _report_parse_error(e)
        return 1

    _print_record(record)
    return 0


async def extract_command(args: argparse.Namespace) -> int:
    """
    Extract an exam from a document with Gemini.

    Returns:
        int: Exit code (0 for success, 1 for error)
    """
    try:
        settings = get_settings()
    except ValueError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        print("\nMake sure you have a .env file with:", file=sys.stderr)
        print("  GEMINI_API_KEY=your_api_key", file=sys.stderr)
        print("  SUPABASE_URL=https://your-project.supabase.co", file=sys.stderr)
        print("  SUPABASE_KEY=your_anon_key", file=sys.stderr)
        return 1

    path = Path(args.path)
    if not path.is_file():
        print(f"Error: File not found: {path}", file=sys.stderr)
        return 1

    content = path.read_bytes()
    mime_type = magic.from_buffer(content, mime=True)
    if mime_type not in ALLOWED_MIME_TYPES:
        print(f"Error: Unsupported file type {mime_type}", file=sys.stderr)
        return 1

    try:
        record = await extract_exam(
            get_gemini_client(),
            content,
            mime_type=mime_type,
            model=args.model or settings.model_name,
            lookahead_window=settings.repair_lookahead_window,
            max_retries=settings.gemini_max_retries,
        )
    except ResponseParseError as e:
        _report_parse_error(e)
        return 1
    except Exception as e:
        print(f"Error: extraction failed: {e}", file=sys.stderr)
        return 1

    empty = count_empty_questions(record)
    if empty:
        print(f"Warning: {empty}/{len(record.questions)} questions have no text", file=sys.stderr)

    _print_record(record)
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Main CLI entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)

    configure_logging("DEBUG" if args.verbose else "WARNING")

    if not args.command:
        parser.print_help()
        return 1

    if args.command == "repair":
        return repair_command(args)
    if args.command == "extract":
        return asyncio.run(extract_command(args))

    print(f"Unknown command: {args.command}", file=sys.stderr)
    return 1


if __name__ == "__main__":
    sys.exit(main())
