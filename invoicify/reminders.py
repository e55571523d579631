"""
Reminder rules: reminders created as a side effect of saving invoices and
expenses, plus the renewal-invoice clone used when a renewal is approved.
"""

import logging
import uuid
from datetime import date, timedelta
from typing import Optional

from dateutil.relativedelta import relativedelta

from .sync import CollectionRepository, SyncSignal

log = logging.getLogger("invoicify.reminders")

FREQUENCY_STEPS = {
    "daily": relativedelta(days=1),
    "weekly": relativedelta(weeks=1),
    "monthly": relativedelta(months=1),
    "yearly": relativedelta(years=1),
}

# Follow-up code stored by estimates created before the options list existed
LEGACY_FOLLOW_UP_DAYS = {"3_days": 3}


def parse_date(value) -> Optional[date]:
    """Parse YYYY-MM-DD (or a full ISO timestamp) into a date."""
    if not value:
        return None
    try:
        return date.fromisoformat(str(value).strip()[:10])
    except ValueError:
        return None


def next_occurrence(start: str, frequency: str) -> Optional[str]:
    """The date one period after start, or None for 'none' / bad input.

    Month and year steps clamp to the end of the month (Jan 31 -> Feb 29).
    """
    step = FREQUENCY_STEPS.get(frequency)
    base = parse_date(start)
    if step is None or base is None:
        return None
    return (base + step).isoformat()


def follow_up_date(invoice: dict, settings: dict) -> Optional[str]:
    """Resolve an estimate's follow-up date from its duration label."""
    label = invoice.get("followUpDuration")
    issued = parse_date(invoice.get("date"))

    days = None
    for option in settings.get("followUpOptions") or []:
        if option.get("label") == label:
            days = option.get("days")
            break
    if days is None:
        days = LEGACY_FOLLOW_UP_DAYS.get(label)

    if days is not None and issued is not None:
        return (issued + timedelta(days=int(days))).isoformat()
    return invoice.get("followUpDate") or None


def build_renewal_invoice(original: dict, today: date, now_iso: str) -> dict:
    """Clone an invoice for the next renewal period as a fresh draft."""
    renewal = dict(original)
    renewal.update({
        "id": str(uuid.uuid4()),
        "number": f"{original.get('number', '')}-REN",
        "date": today.isoformat(),
        "dueDate": (today + timedelta(weeks=2)).isoformat(),
        "renewalDate": (today + relativedelta(years=1)).isoformat(),
        "status": "draft",
        "createdAt": now_iso,
        "updatedAt": now_iso,
        "items": [dict(item, id=str(uuid.uuid4())) for item in original.get("items") or []],
    })
    return renewal


class ReminderRules:
    """Creates or refreshes derived reminders after a primary save.

    Lookups use the local reminders snapshot so a save never costs an
    extra fetch. Failures are reported through the signal's warning
    channel and never propagate to the caller.
    """

    def __init__(self, reminders: CollectionRepository, signal: SyncSignal, settings_provider):
        self.reminders = reminders
        self.signal = signal
        self.settings_provider = settings_provider

    # ------------------------------------------------------------------
    # Invoices / estimates
    # ------------------------------------------------------------------
    def apply_invoice_rules(self, invoice: dict) -> list[dict]:
        """Returns the reminders that were saved."""
        saved = []
        number = invoice.get("number", "")
        client = invoice.get("clientName", "")

        if invoice.get("enableRenewal") and invoice.get("renewalDate"):
            reminder = self._upsert_by_related(
                invoice["id"], "renewal",
                title=f"Renew Invoice #{number} for {client}",
                when=invoice["renewalDate"],
            )
            if reminder:
                saved.append(reminder)

        if invoice.get("type") == "estimate" and invoice.get("enableFollowUp"):
            when = follow_up_date(invoice, self.settings_provider())
            if when:
                reminder = self._upsert_by_related(
                    invoice["id"], "followup",
                    title=f"Follow up on Estimate #{number} for {client}",
                    when=when,
                )
                if reminder:
                    saved.append(reminder)
            else:
                log.info(f"No follow-up date for estimate {invoice['id']}, skipped")

        return saved

    # ------------------------------------------------------------------
    # Expenses
    # ------------------------------------------------------------------
    def apply_expense_rules(self, expense: dict) -> Optional[dict]:
        frequency = expense.get("frequency") or "none"
        if not expense.get("isRecurring") or frequency == "none":
            return None

        when = next_occurrence(expense.get("date"), frequency)
        if not when:
            log.warning(f"Expense {expense.get('id')} has no usable date, reminder skipped")
            return None

        # Only a pending reminder is reused; a completed one leaves room for a new one
        existing = self.reminders.find_local(
            lambda r: r.get("relatedId") == expense["id"]
            and r.get("type") == "expense"
            and r.get("status") == "pending"
        )
        reminder = {
            "id": existing["id"] if existing else str(uuid.uuid4()),
            "title": f"Recurring Expense: {expense.get('description', '')} ({frequency})",
            "date": when,
            "type": "expense",
            "relatedId": expense["id"],
            "status": "pending",
        }
        return self._save(reminder)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    def _upsert_by_related(self, related_id: str, rtype: str, title: str, when: str) -> Optional[dict]:
        existing = self.reminders.find_local(
            lambda r: r.get("relatedId") == related_id and r.get("type") == rtype
        )
        reminder = {
            "id": existing["id"] if existing else str(uuid.uuid4()),
            "title": title,
            "date": when,
            "type": rtype,
            "relatedId": related_id,
            "status": (existing or {}).get("status") or "pending",
        }
        return self._save(reminder)

    def _save(self, reminder: dict) -> Optional[dict]:
        try:
            collection = self.reminders.save(reminder)
        except Exception:
            log.exception(f"Reminder save failed for {reminder['type']} {reminder['relatedId']}")
            self.signal.warn(f"Could not save the {reminder['type']} reminder.")
            return None
        log.info(f"{reminder['type'].capitalize()} reminder set for {reminder['date']}")
        return next((r for r in collection if r.get("id") == reminder["id"]), reminder)
