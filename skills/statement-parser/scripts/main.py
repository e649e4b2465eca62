"""CLI entrypoint for statement-parser."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
import sys
from dataclasses import asdict
from datetime import UTC, datetime
from pathlib import Path

from dotenv import load_dotenv

if __package__ in {None, ""}:
    _script_dir = Path(__file__).resolve().parent
    for _path in (_script_dir, _script_dir.parents[2]):
        if str(_path) not in sys.path:
            sys.path.insert(0, str(_path))

from src.schemas import ParserOptions, ParserResult

from detector import EXTENSION_FORMATS
from errors import StatementParserError
from orchestrator import parse_statements
from reporting import export_to_json, get_statistics, summarize_batch

load_dotenv()


def _repo_root() -> Path:
    return Path(__file__).resolve().parents[3]


def _data_root() -> Path:
    configured = os.environ.get("DATA_PATH")
    if not configured:
        return _repo_root() / "data"
    path = Path(configured).expanduser()
    if path.is_absolute():
        return path
    return (_repo_root() / path).resolve()


def _configure_logging(debug: bool) -> None:
    level = "DEBUG" if debug else os.environ.get("LOG_LEVEL", "WARNING").upper()
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def expand_inputs(inputs: list[str]) -> list[Path]:
    """Expand directories to their supported files, sorted by name."""
    paths: list[Path] = []
    for raw in inputs:
        path = Path(raw)
        if path.is_dir():
            paths.extend(
                sorted(
                    child for child in path.iterdir()
                    if child.is_file() and child.suffix.lower() in EXTENSION_FORMATS
                )
            )
        else:
            paths.append(path)
    return paths


def build_options(args: argparse.Namespace) -> ParserOptions:
    values: dict[str, object] = {
        "strict": args.strict,
        "streaming": args.streaming,
        "skip_rows": args.skip_rows,
        "debug": args.debug,
    }
    if args.encoding:
        values["encoding"] = args.encoding
    if args.delimiter:
        values["delimiter"] = "\t" if args.delimiter == "\\t" else args.delimiter
    if args.chunk_size:
        values["chunk_size"] = args.chunk_size
    return ParserOptions(**values)


def write_outputs(
    paths: list[Path],
    results: list[ParserResult],
    output_dir: Path,
) -> Path:
    """Write ``<stem>.json`` per parsed file and the ``results.json`` summary."""
    output_dir.mkdir(parents=True, exist_ok=True)

    entries = []
    for path, result in zip(paths, results):
        entry: dict[str, object] = {
            "file": str(path),
            "success": result.success,
            "error": result.error,
            "warnings": result.warnings or [],
            "duration": result.duration,
            "statistics": asdict(get_statistics(result)),
        }
        if result.success:
            entry["output"] = str(export_to_json(result, output_dir / f"{path.stem}.json"))
        entries.append(entry)

    summary_path = output_dir / "results.json"
    summary = {
        "generated_at": datetime.now(UTC).isoformat(),
        "summary": summarize_batch(results),
        "results": entries,
    }
    with summary_path.open("w", encoding="utf-8") as file:
        json.dump(summary, file, ensure_ascii=False, indent=2)
    return summary_path


def main(argv: list[str] | None = None) -> int:
    """Run parser CLI."""
    parser = argparse.ArgumentParser(
        description="Parse Japanese financial statements (PDF, Excel, CSV) into normalized BS/PL/CF JSON."
    )
    parser.add_argument(
        "--input",
        type=str,
        nargs="+",
        required=True,
        help="Input files or directories.",
    )
    parser.add_argument(
        "--output-dir",
        type=str,
        default=None,
        help="Output directory for parsed JSON files (default: $DATA_PATH/parsed).",
    )
    parser.add_argument(
        "--strict",
        action="store_true",
        default=False,
        help="Fail a file when any statement section is missing.",
    )
    parser.add_argument("--encoding", type=str, default=None, help="CSV encoding (default: auto).")
    parser.add_argument("--delimiter", type=str, default=None, help="CSV delimiter (use \\t for tab).")
    parser.add_argument("--skip-rows", type=int, default=0, help="Leading rows to skip.")
    parser.add_argument(
        "--streaming",
        action="store_true",
        default=False,
        help="Force streaming mode.",
    )
    parser.add_argument("--chunk-size", type=int, default=None, help="Chunk size in bytes when streaming.")
    parser.add_argument("--debug", action="store_true", default=False, help="Enable debug logging.")
    args = parser.parse_args(argv)

    _configure_logging(args.debug)

    try:
        options = build_options(args)
        paths = expand_inputs(args.input)
        if not paths:
            raise StatementParserError("No input files found.")
        output_dir = Path(args.output_dir) if args.output_dir else _data_root() / "parsed"

        results = asyncio.run(parse_statements(paths, options))
        summary_path = write_outputs(paths, results, output_dir)
    except StatementParserError as exc:
        print(f"Parser error: {exc}", file=sys.stderr)
        return 1
    except ValueError as exc:
        print(f"Invalid option: {exc}", file=sys.stderr)
        return 1
    except OSError as exc:
        print(f"I/O error: {exc}", file=sys.stderr)
        return 1

    summary = summarize_batch(results)
    print(f"Parsed {summary['succeeded']}/{summary['total']} file(s).")
    for path, result in zip(paths, results):
        if not result.success:
            print(f"  FAILED {path.name}: {result.error}", file=sys.stderr)
    print(f"Results: {summary_path}")
    return 0 if summary["failed"] == 0 else 1


if __name__ == "__main__":
    sys.exit(main())
