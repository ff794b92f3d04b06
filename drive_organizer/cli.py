import argparse
import logging
import sys
from logging.handlers import RotatingFileHandler
from typing import List, Optional

from .config import DEFAULT_DELAY_SECONDS, build_settings
from .drive import DriveStore
from .errors import ConfigError
from .gemini import GeminiClient
from .organizer import MoveLedger, Organizer

log = logging.getLogger("drive_organizer")


def setup_logging(log_file: Optional[str] = None, verbose: bool = False) -> None:
    formatter = logging.Formatter("%(asctime)s %(levelname)s: %(message)s")
    handlers: List[logging.Handler] = [logging.StreamHandler()]
    if log_file:
        handlers.append(RotatingFileHandler(log_file, maxBytes=1024 * 1024, backupCount=3, encoding="utf-8"))
    for handler in handlers:
        handler.setFormatter(formatter)
    logging.basicConfig(level=logging.DEBUG if verbose else logging.INFO, handlers=handlers, force=True)
    # googleapiclient logs every discovery fetch at INFO
    logging.getLogger("googleapiclient").setLevel(logging.WARNING)


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        description="Rename and file Google Drive documents into AI-chosen category folders (Gemini)."
    )
    ap.add_argument("source", nargs="?", default=None, help="Drive folder ID to organize (default: $DRIVE_SOURCE_FOLDER_ID)")
    ap.add_argument("--dest", default=None, help="Folder ID under which category folders live (default: source)")
    ap.add_argument("--credentials", default=None, help="Service account JSON (default: $GOOGLE_APPLICATION_CREDENTIALS)")
    ap.add_argument("--model", default=None, help="Use this Gemini model instead of discovering one")
    ap.add_argument("--prompt-file", default=None, help="Replace the built-in instruction prompt")
    ap.add_argument("--delay", type=float, default=DEFAULT_DELAY_SECONDS, help="Seconds to pause between files")
    ap.add_argument("--limit", type=int, default=0, help="Max files to process (0 = all)")
    ap.add_argument("--time-budget", type=float, default=0, help="Stop starting new files after N seconds (0 = no limit)")
    ap.add_argument("--dry-run", action="store_true", help="Analyze only; do not rename or move anything")
    ap.add_argument("--ledger", default=None, help="CSV ledger of decisions (default: _logs/moves.csv)")
    ap.add_argument("--no-ledger", action="store_true", help="Do not write the CSV ledger")
    ap.add_argument("--log-file", default=None, help="Also append log lines to this file")
    ap.add_argument("-v", "--verbose", action="store_true")
    return ap


def main(argv: Optional[List[str]] = None) -> None:
    args = build_parser().parse_args(argv)
    setup_logging(args.log_file, args.verbose)

    try:
        settings = build_settings(
            source=args.source,
            dest=args.dest,
            credentials=args.credentials,
            model=args.model,
            prompt_file=args.prompt_file,
            delay=args.delay,
            limit=args.limit,
            time_budget=args.time_budget,
            dry_run=args.dry_run,
            ledger=args.ledger,
            no_ledger=args.no_ledger,
        )
    except ConfigError as e:
        sys.exit(f"Error: {e}")

    log.info("Connecting to Google Drive...")
    try:
        store = DriveStore.from_service_account(settings.credentials_file)
    except (OSError, ValueError) as e:
        sys.exit(f"Error: cannot load service account {settings.credentials_file}: {e}")
    client = GeminiClient(settings.api_key, settings.prompt)
    ledger = MoveLedger(settings.ledger_path) if settings.ledger_path else None

    try:
        Organizer(store, client, settings, ledger=ledger).run()
    except KeyboardInterrupt:
        log.info("Interrupted.")
    except Exception as e:
        log.exception(f"FATAL ERROR: {e}")


if __name__ == "__main__":
    main()
