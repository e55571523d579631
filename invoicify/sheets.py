"""
Google Sheet layout for each synced collection.

The Apps Script endpoint stores one row per record in a fixed column order.
Invoices, Staff and Payroll keep the full record as JSON in a `json_data`
column next to a few index columns; the other sheets are flat.

SheetBackend applies the same rules in memory so the sync layer can run
against a stand-in endpoint (tests, offline development).
"""

import json
import logging
import threading
from copy import deepcopy

from . import config
from .models import SHEET_NAMES

log = logging.getLogger("invoicify.sheets")

BLOB_COLUMN = "json_data"

SHEET_COLUMNS = {
    "Invoices": ["id", "type", "number", "date", "clientName", "total", "status", BLOB_COLUMN, "updatedAt"],
    "Expenses": ["id", "date", "category", "description", "amount", "isRecurring", "frequency", "createdAt"],
    "Clients": ["id", "name", "companyName", "email", "phone", "address", "taxId", "notes", "createdAt"],
    "Projects": ["id", "name", "clientName", "status", "deadline", "budget", "description", "createdAt"],
    "Reminders": ["id", "title", "date", "type", "relatedId", "status", "createdAt"],
    "Staff": ["id", "name", "role", "email", "phone", "type", "salary", "hourlyRate",
              "department", "status", BLOB_COLUMN, "createdAt"],
    "WorkLogs": ["id", "staffId", "date", "hours", "description", "createdAt"],
    "Payroll": ["id", "month", "staffId", "total", "status", "paidDate", BLOB_COLUMN, "createdAt"],
}

# A blank cell reads back as an empty string, like Sheets does
EMPTY_CELL = ""


def is_blob_sheet(sheet: str) -> bool:
    return BLOB_COLUMN in SHEET_COLUMNS[sheet]


def record_to_row(sheet: str, record: dict) -> list:
    row = []
    for column in SHEET_COLUMNS[sheet]:
        if column == BLOB_COLUMN:
            row.append(json.dumps(record))
        else:
            value = record.get(column)
            row.append(EMPTY_CELL if value is None else value)
    return row


def row_to_record(sheet: str, row: list):
    """Map a sheet row back to a record. None when a JSON blob is unreadable."""
    columns = SHEET_COLUMNS[sheet]
    if is_blob_sheet(sheet):
        raw = row[columns.index(BLOB_COLUMN)] if len(row) > columns.index(BLOB_COLUMN) else ""
        if not raw:
            return None
        try:
            return json.loads(raw)
        except (json.JSONDecodeError, TypeError):
            log.warning(f"Dropping unreadable {sheet} row {row[:1]}")
            return None
    return {
        column: (row[i] if i < len(row) else EMPTY_CELL)
        for i, column in enumerate(columns)
    }


def backend_script() -> str:
    """Apps Script source to paste into the Google Sheet (Extensions > Apps Script)."""
    return (config.RESOURCES_DIR / "Code.gs").read_text(encoding="utf-8")


class SheetBackend:
    """In-memory stand-in for the Apps Script endpoint.

    handle() takes the decoded request body and returns the response
    envelope the real endpoint would send.
    """

    def __init__(self):
        self.rows: dict[str, list[list]] = {}
        self.requests: list[dict] = []
        self._lock = threading.Lock()

    def seed(self, sheet: str, records: list[dict]):
        self.rows[sheet] = [record_to_row(sheet, r) for r in records]

    def records(self, sheet: str) -> list[dict]:
        decoded = (row_to_record(sheet, row) for row in self.rows.get(sheet, []))
        return [r for r in decoded if r is not None]

    def handle(self, body: dict) -> dict:
        with self._lock:
            self.requests.append(deepcopy(body))
            action = body.get("action", "GET")
            sheet = body.get("sheet") or "Invoices"

            if sheet not in SHEET_NAMES:
                return {"status": "error", "message": f"Unknown sheet: {sheet}"}

            if action == "GET":
                return {"status": "success", "data": self.records(sheet)}

            if action == "SYNC":
                payload = body.get("payload")
                if not isinstance(payload, list):
                    return {"status": "error", "message": "SYNC requires a payload list"}
                self.rows[sheet] = [record_to_row(sheet, r) for r in payload]
                return {"status": "success", "data": payload}

            return {"status": "error", "message": f"Unsupported action: {action}"}
