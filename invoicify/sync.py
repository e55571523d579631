"""
Sync layer for Invoicify.

Every collection read goes to the Google Sheet first and falls back to the
local store; every write lands locally first and is then pushed to the sheet
as a full-collection replace. A SyncSignal tells the UI when a remote call
is in flight.
"""

import logging
import threading
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Callable, Optional

from .api import APIClient, TransportError
from .database import Database
from .models import Collection

log = logging.getLogger("invoicify.sync")


def utc_now_iso() -> str:
    """Current UTC time as ISO-8601 with milliseconds and a Z suffix."""
    now = datetime.now(timezone.utc)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")


class SyncSignal:
    """
    Observable "is syncing" flag plus a channel for user-visible warnings.

    - Any number of listeners may subscribe; each gets True when the first
      remote call starts and False once the last one has finished.
    - Warning listeners receive non-blocking messages such as
      "saved locally only".
    """

    def __init__(self):
        self._listeners: list[Callable[[bool], None]] = []
        self._warning_listeners: list[Callable[[str], None]] = []
        self._active = 0
        self._lock = threading.Lock()

    # ------------------------------------------------------------------
    # Subscription
    # ------------------------------------------------------------------
    def add_listener(self, callback: Callable[[bool], None]):
        with self._lock:
            if callback not in self._listeners:
                self._listeners.append(callback)

    def remove_listener(self, callback: Callable[[bool], None]):
        with self._lock:
            if callback in self._listeners:
                self._listeners.remove(callback)

    def set_listener(self, callback: Callable[[bool], None]):
        """Replace every registered listener with callback."""
        with self._lock:
            self._listeners = [callback]

    def add_warning_listener(self, callback: Callable[[str], None]):
        with self._lock:
            if callback not in self._warning_listeners:
                self._warning_listeners.append(callback)

    def remove_warning_listener(self, callback: Callable[[str], None]):
        with self._lock:
            if callback in self._warning_listeners:
                self._warning_listeners.remove(callback)

    @property
    def is_syncing(self) -> bool:
        return self._active > 0

    # ------------------------------------------------------------------
    # Emitting
    # ------------------------------------------------------------------
    def set_syncing(self, syncing: bool):
        with self._lock:
            if syncing:
                self._active += 1
                changed = self._active == 1
            elif self._active > 0:
                self._active -= 1
                changed = self._active == 0
            else:
                changed = False
            listeners = list(self._listeners)
        if changed:
            self._emit(listeners, syncing)

    @contextmanager
    def syncing(self):
        """Hold the flag True for the duration of a remote call."""
        self.set_syncing(True)
        try:
            yield
        finally:
            self.set_syncing(False)

    def warn(self, message: str):
        log.warning(message)
        with self._lock:
            listeners = list(self._warning_listeners)
        self._emit(listeners, message)

    @staticmethod
    def _emit(listeners: list, value):
        for callback in listeners:
            try:
                callback(value)
            except Exception:
                log.exception("Sync listener failed")


class CollectionRepository:
    """
    Reconciliation engine for one collection.

    - get():    remote-first; a successful fetch overwrites the local copy,
                a failed one falls back to it silently
    - save():   local upsert by id, then full-collection push
    - delete(): local removal by id, then full-collection push

    Saves and deletes on the same collection are serialized by a
    per-collection lock, and the push happens inside it, so overlapping
    writes reach the sheet in the order they were applied locally.
    """

    def __init__(self, collection: Collection, db: Database, api: APIClient,
                 signal: SyncSignal,
                 settings_provider: Optional[Callable[[], dict]] = None,
                 clock: Optional[Callable[[], str]] = None):
        self.collection = collection
        self.db = db
        self.api = api
        self.signal = signal
        self.settings_provider = settings_provider or db.get_settings
        self.clock = clock or utc_now_iso
        self._lock = threading.RLock()

    @property
    def key(self) -> str:
        return self.collection.storage_key

    @property
    def sheet(self) -> str:
        return self.collection.sheet

    def sheet_url(self) -> str:
        return (self.settings_provider().get("googleSheetUrl") or "").strip()

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------
    def get(self) -> list[dict]:
        """Return the collection, preferring the sheet when one is configured."""
        url = self.sheet_url()
        if not url:
            return self._copies(self.db.read(self.key))

        with self._lock:
            try:
                with self.signal.syncing():
                    records = self.api.fetch_all(url, self.sheet)
            except TransportError as e:
                log.warning(f"Failed to fetch {self.sheet}, falling back to local: {e}")
                self.db.log_sync(self.sheet, "pull", 0, "error", str(e))
                return self._copies(self.db.read(self.key))

            self.db.write(self.key, records)
            self.db.log_sync(self.sheet, "pull", len(records))
            log.info(f"Pulled {len(records)} {self.sheet}")
            return self._copies(records)

    def local(self) -> list[dict]:
        """The local snapshot, without touching the network."""
        return self._copies(self.db.read(self.key))

    def find_local(self, predicate: Callable[[dict], bool]) -> Optional[dict]:
        for record in self.db.read(self.key):
            if predicate(record):
                return dict(record)
        return None

    @staticmethod
    def _copies(records: list[dict]) -> list[dict]:
        return [dict(r) for r in records]

    # ------------------------------------------------------------------
    # Write
    # ------------------------------------------------------------------
    def save(self, item: dict) -> list[dict]:
        """Upsert item by id and return the updated collection."""
        with self._lock:
            items = list(self.db.read(self.key))
            record = dict(item)
            if not record.get("id"):
                record["id"] = str(uuid.uuid4())

            now = self.clock()
            index = next(
                (i for i, existing in enumerate(items) if existing.get("id") == record["id"]),
                None,
            )
            record["updatedAt"] = now
            if index is None:
                record["createdAt"] = now
                items.append(record)
            else:
                record["createdAt"] = (
                    items[index].get("createdAt") or record.get("createdAt") or now
                )
                items[index] = record

            self.db.write(self.key, items)
            log.debug(f"Saved {self.sheet} record {record['id']}")
            self._push(items, f"Could not save to {self.sheet} sheet. Data saved locally only.")
            return self._copies(items)

    def delete(self, record_id: str) -> list[dict]:
        """Remove the record with record_id and return the updated collection."""
        with self._lock:
            items = [r for r in self.db.read(self.key) if r.get("id") != record_id]
            self.db.write(self.key, items)
            log.debug(f"Deleted {self.sheet} record {record_id}")
            self._push(items, f"Could not delete from {self.sheet} sheet. Deleted locally only.")
            return self._copies(items)

    def _push(self, items: list[dict], warning: str) -> bool:
        """Replace the remote sheet with items. False if it did not happen."""
        url = self.sheet_url()
        if not url:
            return False

        try:
            with self.signal.syncing():
                self.api.replace_all(url, self.sheet, items)
        except TransportError as e:
            log.error(f"Failed to push {self.sheet}: {e}")
            self.db.log_sync(self.sheet, "push", 0, "error", str(e))
            self.signal.warn(warning)
            return False

        self.db.log_sync(self.sheet, "push", len(items))
        return True
