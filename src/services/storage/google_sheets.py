"""
Google Sheets Key-Value Backend

DESIGN DECISION: Google Sheets is kept as a durable backend because:
1. Non-technical users can view their data directly in Sheets
2. No database setup required
3. Built-in backup (Google's infrastructure)

The worksheet holds one row per storage key:

    key | value | updated_at

where `value` is the serialized collection (a JSON array).

TRADEOFFS:
- A cell holds at most 50,000 characters, plenty for a personal ledger
- No transactions; each set() is one range update or one row append
- Every get() reads the key column, we don't cache
"""

from datetime import datetime, timezone
from typing import Optional

import gspread
from google.oauth2.service_account import Credentials
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from src.config import GoogleSheetsSettings, get_settings
from src.services.storage.interface import (
    BackendUnavailableError,
    ConnectionError,
    KeyValueBackend,
)


STORE_COLUMNS = ["key", "value", "updated_at"]


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for API calls.
    """

    def __init__(self, settings: Optional[GoogleSheetsSettings] = None):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = settings or get_settings().google_sheets

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def connect(self) -> gspread.Client:
        """
        Establish connection to Google Sheets.

        Uses service account credentials for authentication.
        """
        if self._client is None:
            try:
                scopes = [
                    "https://www.googleapis.com/auth/spreadsheets",
                    "https://www.googleapis.com/auth/drive",
                ]
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError:
                raise ConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise ConnectionError(f"Failed to connect to Google Sheets: {e}")

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(
                    self._settings.spreadsheet_id
                )
            except gspread.SpreadsheetNotFound:
                raise ConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def get_store_sheet(self) -> gspread.Worksheet:
        """Get or create the key-value worksheet."""
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(self._settings.store_sheet_name)
        except gspread.WorksheetNotFound:
            # Create the sheet with headers
            sheet = spreadsheet.add_worksheet(
                title=self._settings.store_sheet_name,
                rows=100,
                cols=len(STORE_COLUMNS),
            )
            sheet.append_row(STORE_COLUMNS)
        return sheet


class GoogleSheetsKeyValueBackend(KeyValueBackend):
    """
    Google Sheets implementation of the key-value backend.

    Transient API errors are retried; anything still failing surfaces as
    BackendUnavailableError.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        retry=retry_if_exception_type(gspread.exceptions.APIError),
        reraise=True,
    )
    def _find_row(self, key: str) -> tuple[gspread.Worksheet, Optional[int], list[str]]:
        """Locate the row for `key`. Row numbers are 1-based, row 1 is the header."""
        sheet = self._client.get_store_sheet()
        all_rows = sheet.get_all_values()

        for idx, row in enumerate(all_rows[1:], start=2):
            if row and row[0] == key:
                return sheet, idx, row

        return sheet, None, []

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        retry=retry_if_exception_type(gspread.exceptions.APIError),
        reraise=True,
    )
    def _write_row(self, key: str, value: str) -> None:
        sheet, idx, _ = self._find_row(key)
        updated_at = datetime.now(timezone.utc).isoformat()

        if idx is None:
            sheet.append_row([key, value, updated_at], value_input_option="RAW")
        else:
            # Value and timestamp in one request, stored verbatim
            sheet.update(
                range_name=f"B{idx}:C{idx}",
                values=[[value, updated_at]],
                value_input_option="RAW",
            )

    async def get(self, key: str) -> Optional[str]:
        """Return the value cell for `key`, or None when no row exists."""
        try:
            _, idx, row = self._find_row(key)
        except Exception as e:
            raise BackendUnavailableError("get", key, str(e)) from e

        if idx is None:
            return None
        return row[1] if len(row) > 1 else ""

    async def set(self, key: str, value: str) -> None:
        """Update the row for `key` in place, or append one."""
        try:
            self._write_row(key, value)
        except Exception as e:
            raise BackendUnavailableError("set", key, str(e)) from e
