from __future__ import annotations

from datetime import date

import pytest
import requests

from invoicify.models import Collection
from invoicify.reminders import build_renewal_invoice, follow_up_date, next_occurrence


def _reminders(service, rtype, related_id):
    return [
        r for r in service.get_reminders()
        if r["type"] == rtype and r["relatedId"] == related_id
    ]


def _invoice(**overrides) -> dict:
    invoice = {
        "id": "inv-1",
        "type": "invoice",
        "number": "INV-001",
        "date": "2024-03-01",
        "dueDate": "2024-03-15",
        "clientName": "Acme",
        "clientEmail": "ap@acme.test",
        "items": [{"id": "li-1", "description": "Hosting", "quantity": 1, "rate": 100, "amount": 100}],
        "subtotal": 100,
        "total": 100,
        "status": "pending",
    }
    invoice.update(overrides)
    return invoice


# ----------------------------------------------------------------------
# Date arithmetic
# ----------------------------------------------------------------------
@pytest.mark.parametrize(
    "start, frequency, expected",
    [
        ("2024-01-15", "daily", "2024-01-16"),
        ("2024-01-15", "weekly", "2024-01-22"),
        ("2024-01-15", "monthly", "2024-02-15"),
        ("2024-01-15", "yearly", "2025-01-15"),
        ("2024-01-31", "monthly", "2024-02-29"),
        ("2024-01-15", "none", None),
        ("", "monthly", None),
    ],
)
def test_next_occurrence(start, frequency, expected) -> None:
    assert next_occurrence(start, frequency) == expected


def test_follow_up_date_uses_configured_option() -> None:
    settings = {"followUpOptions": [{"label": "1 Week", "days": 7}]}
    estimate = {"date": "2024-03-01", "followUpDuration": "1 Week"}
    assert follow_up_date(estimate, settings) == "2024-03-08"


def test_follow_up_date_legacy_code() -> None:
    estimate = {"date": "2024-03-01", "followUpDuration": "3_days"}
    assert follow_up_date(estimate, {"followUpOptions": []}) == "2024-03-04"


def test_follow_up_date_falls_back_to_stored_date() -> None:
    estimate = {"date": "2024-03-01", "followUpDuration": "Someday", "followUpDate": "2024-04-01"}
    assert follow_up_date(estimate, {"followUpOptions": []}) == "2024-04-01"
    assert follow_up_date({"followUpDuration": "Someday"}, {}) is None


# ----------------------------------------------------------------------
# Invoice rules
# ----------------------------------------------------------------------
def test_renewal_reminder_is_created_once(service) -> None:
    invoice = _invoice(enableRenewal=True, renewalDate="2025-03-01")

    service.save_invoice(invoice)
    service.save_invoice(invoice)

    reminders = _reminders(service, "renewal", "inv-1")
    assert len(reminders) == 1
    assert reminders[0]["date"] == "2025-03-01"
    assert reminders[0]["title"] == "Renew Invoice #INV-001 for Acme"
    assert reminders[0]["status"] == "pending"


def test_renewal_reminder_follows_date_change_and_keeps_status(service) -> None:
    service.save_invoice(_invoice(enableRenewal=True, renewalDate="2025-03-01"))
    reminder = _reminders(service, "renewal", "inv-1")[0]
    service.save_reminder(dict(reminder, status="completed"))

    service.save_invoice(_invoice(enableRenewal=True, renewalDate="2025-06-01"))

    reminders = _reminders(service, "renewal", "inv-1")
    assert len(reminders) == 1
    assert reminders[0]["id"] == reminder["id"]
    assert reminders[0]["date"] == "2025-06-01"
    assert reminders[0]["status"] == "completed"
    assert reminders[0]["createdAt"] == reminder["createdAt"]


def test_no_renewal_reminder_without_date(service) -> None:
    service.save_invoice(_invoice(enableRenewal=True))
    assert service.get_reminders() == []


def test_estimate_follow_up_reminder(service) -> None:
    estimate = _invoice(
        id="est-1", type="estimate", number="EST-9",
        enableFollowUp=True, followUpDuration="2 Weeks",
    )

    service.save_invoice(estimate)
    service.save_invoice(estimate)

    reminders = _reminders(service, "followup", "est-1")
    assert len(reminders) == 1
    assert reminders[0]["date"] == "2024-03-15"
    assert reminders[0]["title"] == "Follow up on Estimate #EST-9 for Acme"


def test_follow_up_ignored_for_plain_invoices(service) -> None:
    service.save_invoice(_invoice(enableFollowUp=True, followUpDuration="1 Week"))
    assert service.get_reminders() == []


def test_deleting_invoice_keeps_its_reminder(service) -> None:
    service.save_invoice(_invoice(enableRenewal=True, renewalDate="2025-03-01"))
    service.delete_invoice("inv-1")

    assert service.get_invoices() == []
    assert len(_reminders(service, "renewal", "inv-1")) == 1


# ----------------------------------------------------------------------
# Expense rules
# ----------------------------------------------------------------------
def _expense(**overrides) -> dict:
    expense = {
        "id": "exp-1",
        "date": "2024-01-15",
        "category": "Software",
        "description": "Design tool",
        "amount": 30,
        "isRecurring": True,
        "frequency": "monthly",
    }
    expense.update(overrides)
    return expense


def test_monthly_expense_reminder(service) -> None:
    service.save_expense(_expense())

    reminders = _reminders(service, "expense", "exp-1")
    assert len(reminders) == 1
    assert reminders[0]["date"] == "2024-02-15"
    assert reminders[0]["title"] == "Recurring Expense: Design tool (monthly)"


def test_yearly_expense_reminder(service) -> None:
    service.save_expense(_expense(frequency="yearly"))
    assert _reminders(service, "expense", "exp-1")[0]["date"] == "2025-01-15"


def test_pending_expense_reminder_is_reused(service) -> None:
    service.save_expense(_expense())
    service.save_expense(_expense(date="2024-02-15"))

    reminders = _reminders(service, "expense", "exp-1")
    assert len(reminders) == 1
    assert reminders[0]["date"] == "2024-03-15"


def test_completed_expense_reminder_gets_a_new_one(service) -> None:
    service.save_expense(_expense())
    first = _reminders(service, "expense", "exp-1")[0]
    service.save_reminder(dict(first, status="completed"))

    service.save_expense(_expense())

    reminders = _reminders(service, "expense", "exp-1")
    assert len(reminders) == 2
    assert sorted(r["status"] for r in reminders) == ["completed", "pending"]


@pytest.mark.parametrize("overrides", [{"isRecurring": False}, {"frequency": "none"}])
def test_non_recurring_expense_has_no_reminder(service, overrides) -> None:
    service.save_expense(_expense(**overrides))
    assert service.get_reminders() == []


def test_expense_without_id_still_gets_reminder(service) -> None:
    result = service.save_expense(_expense(id=None))
    new_id = result[-1]["id"]
    assert len(_reminders(service, "expense", new_id)) == 1


# ----------------------------------------------------------------------
# Failure isolation
# ----------------------------------------------------------------------
def test_reminder_failure_does_not_undo_invoice(service, monkeypatch, warnings) -> None:
    def broken_save(_reminder):
        raise RuntimeError("disk full")

    monkeypatch.setattr(service.repo(Collection.REMINDERS), "save", broken_save)

    result = service.save_invoice(_invoice(enableRenewal=True, renewalDate="2025-03-01"))

    assert [i["id"] for i in result] == ["inv-1"]
    assert warnings == ["Could not save the renewal reminder."]


def test_reminder_push_failure_only_warns(online, session, warnings) -> None:
    online.save_invoice(_invoice())
    session.fail_with = requests.exceptions.ConnectionError("offline")

    online.save_invoice(_invoice(enableRenewal=True, renewalDate="2025-03-01"))

    assert len(warnings) == 2
    assert "Invoices" in warnings[0]
    assert "Reminders" in warnings[1]
    assert len(online.repo(Collection.REMINDERS).local()) == 1


def test_side_effects_bracket_their_own_sync(online, events) -> None:
    online.save_expense(_expense())
    assert events == [True, False, True, False]


# ----------------------------------------------------------------------
# Renewal approval
# ----------------------------------------------------------------------
def test_build_renewal_invoice() -> None:
    original = _invoice(enableRenewal=True, renewalDate="2024-03-01", status="paid")

    renewal = build_renewal_invoice(original, date(2024, 3, 1), "2024-03-01T10:00:00.000Z")

    assert renewal["id"] != original["id"]
    assert renewal["number"] == "INV-001-REN"
    assert renewal["date"] == "2024-03-01"
    assert renewal["dueDate"] == "2024-03-15"
    assert renewal["renewalDate"] == "2025-03-01"
    assert renewal["status"] == "draft"
    assert renewal["items"][0]["id"] != original["items"][0]["id"]
    assert renewal["items"][0]["description"] == "Hosting"
    assert original["items"][0]["id"] == "li-1"


def test_generate_renewal_invoice_persists_clone(service) -> None:
    service.save_invoice(_invoice(enableRenewal=True, renewalDate="2024-03-01"))

    renewal = service.generate_renewal_invoice("inv-1")

    invoices = service.get_invoices()
    assert [i["number"] for i in invoices] == ["INV-001", "INV-001-REN"]
    assert renewal["id"] == invoices[1]["id"]
    assert len(_reminders(service, "renewal", renewal["id"])) == 1
    assert len(_reminders(service, "renewal", "inv-1")) == 1


def test_generate_renewal_invoice_unknown_id(service) -> None:
    assert service.generate_renewal_invoice("missing") is None
