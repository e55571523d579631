"""
Collection identifiers for Invoicify.

Records travel as plain dicts using the camelCase field names the Google
Sheet backend stores, so one object is written locally, pushed remotely and
read back without any mapping step.
"""

from enum import Enum


class Collection(Enum):
    """Every synced collection, with its local storage key and sheet name."""

    INVOICES = ("invoicify_data", "Invoices")
    EXPENSES = ("invoicify_expenses", "Expenses")
    CLIENTS = ("invoicify_clients", "Clients")
    PROJECTS = ("invoicify_projects", "Projects")
    REMINDERS = ("invoicify_reminders", "Reminders")
    STAFF = ("invoicify_staff", "Staff")
    WORKLOGS = ("invoicify_worklogs", "WorkLogs")
    PAYROLL = ("invoicify_payroll", "Payroll")

    def __init__(self, storage_key: str, sheet: str):
        self.storage_key = storage_key
        self.sheet = sheet


SHEET_NAMES = [c.sheet for c in Collection]
