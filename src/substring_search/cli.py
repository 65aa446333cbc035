"""CLI for building a persisted substring index and querying it."""

from __future__ import annotations

import argparse
from collections.abc import Iterator, Sequence
import logging
from pathlib import Path
import sys

import orjson
from pydantic import ValidationError

from substring_search.config import Settings
from substring_search.domain.model import Document
from substring_search.observability.logging import configure_logging
from substring_search.search.engine import SubstringSearchEngine
from substring_search.search.exceptions import RebuildError, StorageError, SubstringSearchError


logger = logging.getLogger(__name__)


class RecordFormatError(ValueError):
    """Raised when an input line cannot be turned into a document."""


def build_argument_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="substring-search",
        description="Build a case-insensitive substring index from JSONL records and query it",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    index_parser = subparsers.add_parser("index", help="Rebuild the index from a JSONL file and persist it")
    index_parser.add_argument(
        "--input",
        type=Path,
        required=True,
        help="JSON Lines file with one record object per line",
    )
    index_parser.add_argument(
        "--fields",
        type=_parse_fields,
        help="Comma-separated fields to index (defaults to SUBSTRING_SEARCH_INDEXED_FIELDS)",
    )
    index_parser.add_argument(
        "--id-field",
        default="id",
        help="Record key holding the document identifier (default: id)",
    )
    _add_index_dir_argument(index_parser)

    search_parser = subparsers.add_parser("search", help="Print ids of documents containing KEYWORD")
    search_parser.add_argument("keyword", metavar="KEYWORD", help="Substring to look for (case-insensitive)")
    search_parser.add_argument(
        "--fields",
        type=_parse_fields,
        help="Comma-separated fields to search (defaults to SUBSTRING_SEARCH_INDEXED_FIELDS)",
    )
    _add_index_dir_argument(search_parser)
    return parser


def _add_index_dir_argument(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--index-dir",
        type=Path,
        help="Snapshot directory (defaults to SUBSTRING_SEARCH_INDEX_DIR)",
    )


def _parse_fields(value: str) -> list[str]:
    names = [part.strip() for part in value.split(",") if part.strip()]
    if not names:
        raise argparse.ArgumentTypeError("expected at least one field name")
    return names


def _configure_logging(settings: Settings) -> None:
    if logging.getLogger().handlers:
        return
    configure_logging(settings.log_level, settings.log_json)


def iter_records(path: Path, *, id_field: str = "id") -> Iterator[Document]:
    """Yield documents from a JSON Lines file, skipping blank lines."""
    with path.open("rb") as handle:
        for line_number, line in enumerate(handle, start=1):
            if not line.strip():
                continue
            try:
                record = orjson.loads(line)
            except orjson.JSONDecodeError as exc:
                raise RecordFormatError(f"{path}:{line_number}: invalid JSON ({exc})") from exc
            if not isinstance(record, dict):
                raise RecordFormatError(f"{path}:{line_number}: expected a JSON object")
            try:
                yield Document.from_record(record, id_field=id_field)
            except (ValueError, ValidationError) as exc:
                raise RecordFormatError(f"{path}:{line_number}: {exc}") from exc


def _run_index(args: argparse.Namespace, settings: Settings) -> int:
    if not args.input.is_file():
        logger.error("Input file not found: %s", args.input)
        return 1

    try:
        documents = list(iter_records(args.input, id_field=args.id_field))
    except RecordFormatError as exc:
        logger.error("%s", exc)
        return 1

    with SubstringSearchEngine.from_settings(settings) as engine:
        try:
            result = engine.rebuild_index(documents, args.fields)
        except RebuildError as exc:
            logger.error("Rebuild failed: %s", exc)
            return 1

    for error in result.errors:
        logger.warning("%s", error)
    payload = {
        "index_id": result.index_id,
        "documents_indexed": result.documents_indexed,
        "fields": list(result.index.fields),
        "fields_skipped": result.fields_skipped,
        "errors": len(result.errors),
        "terms": result.index.term_count,
        "duration_s": round(result.duration_s, 4),
    }
    sys.stdout.write(orjson.dumps(payload, option=orjson.OPT_SORT_KEYS).decode("utf-8") + "\n")
    return 0


def _run_search(args: argparse.Namespace, settings: Settings) -> int:
    with SubstringSearchEngine.from_settings(settings) as engine:
        try:
            restored = engine.restore()
        except StorageError as exc:
            logger.error("Cannot load index from %s: %s", settings.index_dir, exc)
            return 1
        if not restored:
            logger.error("No usable index in %s; run 'substring-search index' first", settings.index_dir)
            return 1

        fields = args.fields if args.fields is not None else settings.get_indexed_fields()
        for doc_id in engine.search(args.keyword, fields):
            sys.stdout.write(f"{doc_id}\n")
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_argument_parser()
    args = parser.parse_args(argv)

    try:
        settings = Settings()
        if args.index_dir is not None:
            settings = settings.model_copy(update={"index_dir": args.index_dir.expanduser().resolve()})
    except (ValidationError, SubstringSearchError) as exc:
        sys.stderr.write(f"Invalid configuration: {exc}\n")
        return 1
    _configure_logging(settings)

    if settings.index_dir is None:
        logger.error("No index directory; pass --index-dir or set SUBSTRING_SEARCH_INDEX_DIR")
        return 1

    if args.command == "index":
        return _run_index(args, settings)
    return _run_search(args, settings)


if __name__ == "__main__":
    sys.exit(main())
