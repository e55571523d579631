"""
Data service for Invoicify, the one object the UI talks to.

Per-entity get/save/delete, settings, and sync listener registration.
Every get/save/delete returns the refreshed full collection.
"""

import logging
from datetime import date
from typing import Callable, Optional

from .api import APIClient
from .database import Database
from .models import Collection
from .reminders import ReminderRules, build_renewal_invoice
from .sync import CollectionRepository, SyncSignal, utc_now_iso

log = logging.getLogger("invoicify.service")


class DataService:
    """Typed repositories for every collection over one store and one client."""

    def __init__(self, db: Database, api: APIClient, signal: SyncSignal = None,
                 clock: Optional[Callable[[], str]] = None,
                 today: Optional[Callable[[], date]] = None):
        self.db = db
        self.api = api
        self.signal = signal or SyncSignal()
        self.clock = clock or utc_now_iso
        self.today = today or date.today

        self.repos = {
            collection: CollectionRepository(
                collection, db, api, self.signal,
                settings_provider=self.get_settings,
                clock=self.clock,
            )
            for collection in Collection
        }
        self.rules = ReminderRules(
            self.repos[Collection.REMINDERS], self.signal, self.get_settings,
        )

    def repo(self, collection: Collection) -> CollectionRepository:
        return self.repos[collection]

    # ------------------------------------------------------------------
    # Settings
    # ------------------------------------------------------------------
    def get_settings(self) -> dict:
        return self.db.get_settings()

    def save_settings(self, settings: dict):
        self.db.save_settings(settings)

    # ------------------------------------------------------------------
    # Sync signal
    # ------------------------------------------------------------------
    def add_sync_listener(self, callback: Callable[[bool], None]):
        self.signal.add_listener(callback)

    def remove_sync_listener(self, callback: Callable[[bool], None]):
        self.signal.remove_listener(callback)

    def set_sync_listener(self, callback: Callable[[bool], None]):
        self.signal.set_listener(callback)

    def add_warning_listener(self, callback: Callable[[str], None]):
        self.signal.add_warning_listener(callback)

    # ------------------------------------------------------------------
    # Invoices / estimates
    # ------------------------------------------------------------------
    def get_invoices(self) -> list[dict]:
        return self.repos[Collection.INVOICES].get()

    def save_invoice(self, invoice: dict) -> list[dict]:
        result = self.repos[Collection.INVOICES].save(invoice)
        saved = result[-1] if not invoice.get("id") else invoice
        self.rules.apply_invoice_rules(saved)
        return result

    def delete_invoice(self, invoice_id: str) -> list[dict]:
        return self.repos[Collection.INVOICES].delete(invoice_id)

    def generate_renewal_invoice(self, original_id: str) -> Optional[dict]:
        """Clone an invoice into next year's draft. None if it doesn't exist."""
        original = next((i for i in self.get_invoices() if i.get("id") == original_id), None)
        if original is None:
            log.warning(f"Renewal requested for unknown invoice {original_id}")
            return None

        renewal = build_renewal_invoice(original, self.today(), self.clock())
        self.save_invoice(renewal)
        log.info(f"Renewal invoice {renewal['number']} created from {original.get('number')}")
        return renewal

    # ------------------------------------------------------------------
    # Expenses
    # ------------------------------------------------------------------
    def get_expenses(self) -> list[dict]:
        return self.repos[Collection.EXPENSES].get()

    def save_expense(self, expense: dict) -> list[dict]:
        result = self.repos[Collection.EXPENSES].save(expense)
        saved = result[-1] if not expense.get("id") else expense
        self.rules.apply_expense_rules(saved)
        return result

    def delete_expense(self, expense_id: str) -> list[dict]:
        return self.repos[Collection.EXPENSES].delete(expense_id)

    # ------------------------------------------------------------------
    # Clients
    # ------------------------------------------------------------------
    def get_clients(self) -> list[dict]:
        return self.repos[Collection.CLIENTS].get()

    def save_client(self, client: dict) -> list[dict]:
        return self.repos[Collection.CLIENTS].save(client)

    def delete_client(self, client_id: str) -> list[dict]:
        return self.repos[Collection.CLIENTS].delete(client_id)

    # ------------------------------------------------------------------
    # Projects
    # ------------------------------------------------------------------
    def get_projects(self) -> list[dict]:
        return self.repos[Collection.PROJECTS].get()

    def save_project(self, project: dict) -> list[dict]:
        return self.repos[Collection.PROJECTS].save(project)

    def delete_project(self, project_id: str) -> list[dict]:
        return self.repos[Collection.PROJECTS].delete(project_id)

    # ------------------------------------------------------------------
    # Reminders
    # ------------------------------------------------------------------
    def get_reminders(self) -> list[dict]:
        return self.repos[Collection.REMINDERS].get()

    def save_reminder(self, reminder: dict) -> list[dict]:
        return self.repos[Collection.REMINDERS].save(reminder)

    def delete_reminder(self, reminder_id: str) -> list[dict]:
        return self.repos[Collection.REMINDERS].delete(reminder_id)

    # ------------------------------------------------------------------
    # Staff
    # ------------------------------------------------------------------
    def get_staff(self) -> list[dict]:
        return self.repos[Collection.STAFF].get()

    def save_staff(self, staff: dict) -> list[dict]:
        return self.repos[Collection.STAFF].save(staff)

    def delete_staff(self, staff_id: str) -> list[dict]:
        return self.repos[Collection.STAFF].delete(staff_id)

    # ------------------------------------------------------------------
    # Work logs
    # ------------------------------------------------------------------
    def get_work_logs(self) -> list[dict]:
        return self.repos[Collection.WORKLOGS].get()

    def save_work_log(self, work_log: dict) -> list[dict]:
        return self.repos[Collection.WORKLOGS].save(work_log)

    def delete_work_log(self, work_log_id: str) -> list[dict]:
        return self.repos[Collection.WORKLOGS].delete(work_log_id)

    # ------------------------------------------------------------------
    # Payroll
    # ------------------------------------------------------------------
    def get_payroll_runs(self) -> list[dict]:
        return self.repos[Collection.PAYROLL].get()

    def save_payroll_run(self, run: dict) -> list[dict]:
        return self.repos[Collection.PAYROLL].save(run)

    def delete_payroll_run(self, run_id: str) -> list[dict]:
        return self.repos[Collection.PAYROLL].delete(run_id)

    # ------------------------------------------------------------------
    # Bulk refresh
    # ------------------------------------------------------------------
    def refresh_all(self) -> dict[str, int]:
        """Remote-first read of every collection. Returns {sheet: count}."""
        counts = {}
        for collection, repo in self.repos.items():
            counts[collection.sheet] = len(repo.get())
        return counts
