"""
Invoicify command-line entry point for the sync core.

Launch via:
  python -m invoicify status
  python -m invoicify pull
  python -m invoicify backup
  python -m invoicify script
"""

import argparse
import logging
import sys
from logging.handlers import RotatingFileHandler

from . import config
from .api import APIClient
from .database import Database
from .service import DataService
from .sheets import backend_script


def setup_logging():
    """Configure application logging with rotating file handler."""
    config.DATA_DIR.mkdir(parents=True, exist_ok=True)

    fmt = logging.Formatter(
        "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    # Rotating file handler: 5 MB x 3 backups
    file_handler = RotatingFileHandler(
        str(config.LOG_PATH),
        maxBytes=config.LOG_MAX_BYTES,
        backupCount=config.LOG_BACKUP_COUNT,
        encoding="utf-8",
    )
    file_handler.setFormatter(fmt)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(fmt)

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(file_handler)
    root.addHandler(console_handler)
    root.setLevel(logging.INFO)

    logging.getLogger("urllib3").setLevel(logging.WARNING)


def open_service() -> DataService:
    db = Database(config.DB_PATH)
    db.connect()
    db.initialize()
    return DataService(db, APIClient())


def cmd_status(service: DataService) -> int:
    url = service.get_settings().get("googleSheetUrl") or ""
    print(f"Data directory: {config.DATA_DIR}")
    print(f"Sheet sync:     {'configured' if url else 'off (local only)'}")
    if url:
        online = service.api.is_online(url)
        print(f"Network:        {'online' if online else 'offline'}")
    print(f"Last sync:      {service.db.get_last_sync() or 'never'}")
    return 0


def cmd_pull(service: DataService) -> int:
    if not service.get_settings().get("googleSheetUrl"):
        print("No Google Sheet URL configured — showing local data.")
    for sheet, count in service.refresh_all().items():
        print(f"{sheet:<10} {count}")
    return 0


def cmd_backup(service: DataService) -> int:
    path = service.db.backup()
    print(f"Backup created: {path}" if path else "Today's backup already exists.")
    return 0


COMMANDS = {
    "status": cmd_status,
    "pull": cmd_pull,
    "backup": cmd_backup,
}


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(prog="invoicify", description="Invoicify sync core")
    parser.add_argument(
        "command",
        choices=sorted([*COMMANDS, "script"]),
        help="status | pull | backup | script (print the Apps Script endpoint)",
    )
    args = parser.parse_args(argv)

    if args.command == "script":
        print(backend_script())
        return 0

    setup_logging()
    logger = logging.getLogger("invoicify")
    logger.info(f"{config.APP_NAME} v{config.APP_VERSION} — {args.command}")

    service = open_service()
    try:
        return COMMANDS[args.command](service)
    finally:
        service.db.close()


if __name__ == "__main__":
    sys.exit(main())
