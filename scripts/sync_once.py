import argparse
import json
import logging
import sys

from insurance_inbox.app.sync import build_ingestor
from insurance_inbox.config.logging import configure_logging
from insurance_inbox.config.settings import load_settings
from insurance_inbox.errors import IngestionError

logger = logging.getLogger(__name__)


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Sync the last days of Gmail for one user and store insurance mail.")
    parser.add_argument("--user-id", required=True, help="User whose stored Gmail credentials should be used.")
    parser.add_argument("--verbose", action="store_true", help="Log at DEBUG level.")
    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)
    settings = load_settings()
    configure_logging("DEBUG" if args.verbose else settings.log_level, settings.logs_dir)

    ingestor = build_ingestor(settings)
    try:
        summary = ingestor.sync(args.user_id)
    except IngestionError as exc:
        print(f"[error] {type(exc).__name__}: {exc}", file=sys.stderr)
        return 2
    except Exception as exc:
        logger.exception("[sync] Unexpected failure for %s", args.user_id)
        print(f"[error] {type(exc).__name__}: {exc}", file=sys.stderr)
        return 2

    print(json.dumps(summary, indent=2, ensure_ascii=False))
    return 1 if summary.get("aborted") else 0


if __name__ == "__main__":
    sys.exit(main())
