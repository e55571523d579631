"""
Configuration loader for Invoicify.
Reads .env file and exposes settings as module-level constants.
"""

import os
from pathlib import Path

from dotenv import load_dotenv

# ---------------------------------------------------------------------------
# Resolve paths
# ---------------------------------------------------------------------------
PACKAGE_DIR = Path(__file__).resolve().parent
RESOURCES_DIR = PACKAGE_DIR / "resources"

# ---------------------------------------------------------------------------
# Load .env: check working directory first, then the default data dir
# ---------------------------------------------------------------------------
_DEFAULT_DATA_DIR = Path.home() / ".invoicify"

for _env_path in (Path.cwd() / ".env", _DEFAULT_DATA_DIR / ".env"):
    if _env_path.exists():
        load_dotenv(_env_path)
        break

DATA_DIR = Path(os.getenv("INVOICIFY_DATA_DIR", str(_DEFAULT_DATA_DIR))).expanduser()
BACKUP_DIR = DATA_DIR / "backups"
DB_PATH = DATA_DIR / "invoicify.db"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------
LOG_PATH = DATA_DIR / "invoicify.log"
LOG_MAX_BYTES = 5 * 1024 * 1024
LOG_BACKUP_COUNT = 3

# ---------------------------------------------------------------------------
# Google Apps Script Webhook
# ---------------------------------------------------------------------------
# Only a seed for the settings defaults; the googleSheetUrl stored in the
# settings blob is what switches sync on and off.
SHEETS_WEBHOOK = os.getenv("INVOICIFY_SHEET_URL", "")

# ---------------------------------------------------------------------------
# Sync Settings
# ---------------------------------------------------------------------------
SYNC_TIMEOUT_SECONDS = int(os.getenv("INVOICIFY_SYNC_TIMEOUT", "30"))

# ---------------------------------------------------------------------------
# App Metadata
# ---------------------------------------------------------------------------
APP_NAME = "Invoicify"
APP_VERSION = "1.2.0"

# ---------------------------------------------------------------------------
# Local storage keys
# ---------------------------------------------------------------------------
SETTINGS_KEY = "invoicify_settings"

# ---------------------------------------------------------------------------
# Default application settings (merged under every stored settings blob)
# ---------------------------------------------------------------------------
DEFAULT_SETTINGS = {
    "googleSheetUrl": SHEETS_WEBHOOK,
    "companyName": "My Company Inc.",
    "companyEmail": "billing@mycompany.com",
    "companyAddress": "123 Business Rd, Tech City",
    "currencySymbol": "$",
    "darkMode": False,
    "logoUrl": "",
    "logoUrlDark": "",
    "logoWidth": 150,
    "taxEnabled": True,
    "taxLabel": "Tax",
    "expenseCategories": [
        "Office Supplies",
        "Travel",
        "Software",
        "Marketing",
        "Utilities",
        "Rent",
        "Other",
    ],
    "followUpOptions": [
        {"label": "3 Days", "days": 3},
        {"label": "1 Week", "days": 7},
        {"label": "2 Weeks", "days": 14},
        {"label": "1 Month", "days": 30},
    ],
    "serviceCatalog": [],
}

# Settings fields that fall back to the default when stored empty
SETTINGS_FALLBACK_FIELDS = (
    "expenseCategories",
    "logoWidth",
    "followUpOptions",
    "serviceCatalog",
)
