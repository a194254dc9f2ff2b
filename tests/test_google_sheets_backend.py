"""
Tests for the Google Sheets key-value backend.

The gspread worksheet is mocked; no network calls are made.
"""

import pytest
from unittest.mock import MagicMock

from src.services.storage import BackendUnavailableError, GoogleSheetsKeyValueBackend


HEADER = ["key", "value", "updated_at"]


@pytest.fixture
def sheet():
    sheet = MagicMock()
    sheet.get_all_values.return_value = [
        HEADER,
        ["@loans", "[]", "2024-01-01T00:00:00+00:00"],
        ["@transactions", '[{"id":"tx_1"}]', "2024-01-01T00:00:00+00:00"],
    ]
    return sheet


@pytest.fixture
def sheets_backend(sheet):
    client = MagicMock()
    client.get_store_sheet.return_value = sheet
    return GoogleSheetsKeyValueBackend(client)


class TestGoogleSheetsKeyValueBackend:
    """Tests for get/set against a mocked worksheet."""

    @pytest.mark.asyncio
    async def test_get_existing_key(self, sheets_backend):
        """Test the value column is returned."""
        assert await sheets_backend.get("@transactions") == '[{"id":"tx_1"}]'

    @pytest.mark.asyncio
    async def test_get_missing_key(self, sheets_backend):
        """Test an absent key reads as None."""
        assert await sheets_backend.get("@institutional_banks") is None

    @pytest.mark.asyncio
    async def test_header_is_not_a_key(self, sheets_backend):
        """Test the header row is skipped."""
        assert await sheets_backend.get("key") is None

    @pytest.mark.asyncio
    async def test_set_existing_key_updates_in_place(self, sheets_backend, sheet):
        """Test set() writes value and timestamp of the matching row in one RAW request."""
        await sheets_backend.set("@transactions", "[]")

        sheet.append_row.assert_not_called()
        sheet.update.assert_called_once()
        kwargs = sheet.update.call_args.kwargs
        assert kwargs["range_name"] == "B3:C3"
        assert kwargs["values"][0][0] == "[]"
        assert len(kwargs["values"][0]) == 2
        assert kwargs["value_input_option"] == "RAW"

    @pytest.mark.asyncio
    async def test_set_new_key_appends_row(self, sheets_backend, sheet):
        """Test set() appends a row for a new key."""
        await sheets_backend.set("@local_institutions", "[]")

        sheet.update.assert_not_called()
        row = sheet.append_row.call_args.args[0]
        assert row[:2] == ["@local_institutions", "[]"]
        assert sheet.append_row.call_args.kwargs["value_input_option"] == "RAW"

    @pytest.mark.asyncio
    async def test_get_failure_is_wrapped(self, sheets_backend, sheet):
        """Test client errors surface as BackendUnavailableError."""
        sheet.get_all_values.side_effect = RuntimeError("quota exceeded")

        with pytest.raises(BackendUnavailableError) as exc_info:
            await sheets_backend.get("@loans")

        assert exc_info.value.operation == "get"
        assert exc_info.value.key == "@loans"
        assert "quota exceeded" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_set_failure_is_wrapped(self, sheets_backend, sheet):
        """Test write errors surface as BackendUnavailableError."""
        sheet.update.side_effect = RuntimeError("permission denied")

        with pytest.raises(BackendUnavailableError) as exc_info:
            await sheets_backend.set("@loans", "[]")

        assert exc_info.value.operation == "set"
