from __future__ import annotations

import argparse
import json
import logging
import sys
from signal import SIGINT, signal
from typing import TYPE_CHECKING

from dotenv import load_dotenv

from catalogist.app import build_services, ingest_document, list_families
from catalogist.config import ConfigurationError, configure_logging
from catalogist.domain.errors import RunFailedError
from catalogist.domain.ingest_pipeline import ThreadedScheduler
from catalogist.domain.model import IngestHints

if TYPE_CHECKING:
    from collections.abc import Sequence
    from types import FrameType

log = logging.getLogger(__name__)


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Ingest technical documents into the catalog")
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Log debug output",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    ingest = subparsers.add_parser("ingest", help="Ingest one document")
    ingest.add_argument("ref", help="Path, file:// or http(s):// reference to the document")
    ingest.add_argument("--family", type=str, help="Family hint, e.g. 'proximity_sensor'")
    ingest.add_argument("--brand", type=str, help="Brand hint")
    ingest.add_argument("--code", type=str, help="Known item identifier; trusted as-is")
    ingest.add_argument("--series", type=str, help="Series hint")
    ingest.add_argument("--display-name", type=str, help="Display name hint")
    ingest.add_argument(
        "--run-id",
        type=str,
        help="Idempotency key; re-running with the same id is safe (defaults to a new id)",
    )
    ingest.add_argument(
        "--json",
        action="store_true",
        help="Print the structured result as JSON",
    )

    subparsers.add_parser("families", help="List registered families")

    return parser.parse_args(list(argv))


def _hints(args: argparse.Namespace) -> IngestHints:
    return IngestHints(
        family=args.family,
        brand=args.brand,
        code=args.code,
        series=args.series,
        display_name=args.display_name,
    )


def _run_ingest(args: argparse.Namespace) -> int:
    scheduler = ThreadedScheduler()
    services = build_services(scheduler=scheduler)
    try:
        result = ingest_document(
            args.ref,
            hints=_hints(args),
            run_id=args.run_id,
            services=services,
        )
    finally:
        scheduler.shutdown(wait=True)

    if args.json:
        print(json.dumps(result.to_dict(), indent=2))  # noqa: T201
    else:
        log.info(
            "Ingested %s into %s: status=%s written=%d skipped=%d",
            args.ref,
            result.table,
            result.status,
            result.written,
            len(result.skipped),
        )
        for skipped in result.skipped:
            log.info("  skipped %s: %s", skipped.identifier or "<none>", skipped.reason)
    return 0


def _run_families() -> int:
    for family in list_families():
        log.info(
            "%s -> %s (%d attributes, variant keys: %s)",
            family.slug,
            family.table_name,
            len(family.vocabulary()),
            ", ".join(family.variant_keys) or "-",
        )
    return 0


def main(argv: Sequence[str] | None = None) -> None:
    """Main application entry point."""
    args_list = list(argv) if argv is not None else list(sys.argv[1:])
    parsed_args = _parse_args(args_list)
    configure_logging(level=logging.DEBUG if parsed_args.verbose else logging.INFO)

    try:
        if parsed_args.command == "ingest":
            exit_code = _run_ingest(parsed_args)
        elif parsed_args.command == "families":
            exit_code = _run_families()
        else:
            raise ValueError(f"Unsupported command: {parsed_args.command}")  # noqa: TRY301
    except ConfigurationError:
        log.exception("Configuration error")
        sys.exit(2)
    except RunFailedError as exc:
        log.error("Run failed (retryable=%s): %s", exc.retryable, exc)  # noqa: TRY400
        sys.exit(1)
    except Exception:
        log.exception("Fatal error during ingestion")
        sys.exit(1)
    sys.exit(exit_code)


def sigint_handler(_signal_received: int, _frame: FrameType | None) -> None:
    """Handle SIGINT (Ctrl+C) gracefully."""
    log.info("Closed by user (Ctrl+C)")
    sys.exit(0)


def run() -> None:
    """Console script entry point: load .env, install the SIGINT handler, run."""
    load_dotenv()
    signal(SIGINT, sigint_handler)
    main()


if __name__ == "__main__":
    run()
