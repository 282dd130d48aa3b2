"""
Google Sheets REST API (v4) ledger provider.

Column-addressed reads, batch appends, and single-cell updates, all with
valueInputOption=USER_ENTERED so Sheets parses numbers and dates the same
way it would for a user typing them in.
"""

from typing import Any, List, Optional
from urllib.parse import quote

import httpx

SHEETS_API_URL = "https://sheets.googleapis.com/v4/spreadsheets"
_TIMEOUT = 30


class SheetsClient:
    """Minimal Sheets client scoped to one access token."""

    def __init__(self, access_token: str, client: Optional[httpx.Client] = None):
        self._client = client or httpx.Client(timeout=_TIMEOUT)
        self._headers = {"Authorization": f"Bearer {access_token}"}

    def _values_url(self, spreadsheet_id: str, cell_range: str) -> str:
        return f"{SHEETS_API_URL}/{spreadsheet_id}/values/{quote(cell_range, safe='')}"

    def read_column(self, spreadsheet_id: str, cell_range: str) -> List[List[Any]]:
        """Return the rows of a range; an empty range yields []."""
        response = self._client.get(
            self._values_url(spreadsheet_id, cell_range),
            headers=self._headers,
        )
        response.raise_for_status()
        return response.json().get("values") or []

    def append_rows(self, spreadsheet_id: str, cell_range: str, rows: List[List[Any]]) -> None:
        """Append rows after the last row of a table range in one request."""
        response = self._client.post(
            f"{self._values_url(spreadsheet_id, cell_range)}:append",
            params={"valueInputOption": "USER_ENTERED"},
            json={"values": rows},
            headers=self._headers,
        )
        response.raise_for_status()

    def update_cell(self, spreadsheet_id: str, cell_range: str, value: Any) -> None:
        """Overwrite a single cell."""
        response = self._client.put(
            self._values_url(spreadsheet_id, cell_range),
            params={"valueInputOption": "USER_ENTERED"},
            json={"values": [[value]]},
            headers=self._headers,
        )
        response.raise_for_status()

    def close(self) -> None:
        self._client.close()
