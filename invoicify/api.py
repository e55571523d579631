"""
HTTP client for the Google Apps Script sheet endpoint.
Two verbs against a named sheet: fetch everything, or replace everything.
"""

import json
import logging
import requests

from . import config

log = logging.getLogger("invoicify.api")


class TransportError(Exception):
    """Raised when the sheet endpoint cannot be reached or reports an error."""
    pass


class APIClient:
    """Thin wrapper around requests to call the sheet endpoint.

    Stateless apart from the HTTP session: the endpoint URL is passed on
    every call because it lives in the user's settings and can change at
    any time. Failures are never retried here; the repository decides what
    to fall back to.
    """

    def __init__(self, timeout: int = None, session: requests.Session = None):
        self.timeout = timeout or config.SYNC_TIMEOUT_SECONDS
        self.session = session or requests.Session()
        self.session.headers.update({
            "User-Agent": f"{config.APP_NAME}/{config.APP_VERSION}",
        })

    # ------------------------------------------------------------------
    # GET: read a whole sheet
    # ------------------------------------------------------------------
    def fetch_all(self, url: str, sheet: str) -> list[dict]:
        """Return every record in the sheet."""
        result = self._request(url, {"action": "GET", "sheet": sheet})
        data = result.get("data")
        if data is None:
            raise TransportError(f"{sheet} response carried no data")
        if not isinstance(data, list):
            raise TransportError(f"Unexpected {sheet} data type: {type(data).__name__}")
        return data

    # ------------------------------------------------------------------
    # SYNC: overwrite a whole sheet
    # ------------------------------------------------------------------
    def replace_all(self, url: str, sheet: str, records: list[dict]):
        """Overwrite the sheet with records. The remote side clears first."""
        self._request(url, {"action": "SYNC", "sheet": sheet, "payload": list(records)})

    # ------------------------------------------------------------------
    # Health check
    # ------------------------------------------------------------------
    def is_online(self, url: str) -> bool:
        """Quick check whether the sheet endpoint is reachable."""
        if not url:
            return False
        try:
            self.fetch_all(url, "Reminders")
            return True
        except TransportError as e:
            log.info(f"Sheet endpoint unreachable: {e}")
            return False

    # ------------------------------------------------------------------
    # Internal request handler
    # ------------------------------------------------------------------
    def _request(self, url: str, body: dict) -> dict:
        """
        POST one JSON body and return the parsed success envelope.
        Apps Script answers with a 302 to googleusercontent and requests
        follows it.
        """
        action, sheet = body.get("action"), body.get("sheet")
        try:
            # text/plain keeps Apps Script from demanding a CORS preflight
            resp = self.session.post(
                url,
                data=json.dumps(body),
                headers={"Content-Type": "text/plain;charset=utf-8"},
                timeout=self.timeout,
                allow_redirects=True,
            )
        except requests.exceptions.Timeout as e:
            raise TransportError(f"{action} {sheet} timed out after {self.timeout}s") from e
        except requests.exceptions.RequestException as e:
            raise TransportError(f"{action} {sheet} failed: {e}") from e

        if not 200 <= resp.status_code < 300:
            raise TransportError(f"{action} {sheet} returned HTTP {resp.status_code}")

        try:
            result = resp.json()
        except ValueError as e:
            text = (resp.text or "").strip()
            raise TransportError(f"Non-JSON response: {text[:200]}") from e

        if not isinstance(result, dict):
            raise TransportError(f"Unexpected response type: {type(result).__name__}")

        if result.get("status") != "success":
            message = result.get("message") or result.get("error") or "unknown error"
            raise TransportError(f"{action} {sheet} rejected: {message}")

        log.debug(f"{action} {sheet} ok")
        return result
