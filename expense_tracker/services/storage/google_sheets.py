"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is the storage backend because:
1. The household reads its expenses directly in Sheets
2. Summary and breakdown cells are live spreadsheet formulas
3. No database setup required
4. Built-in backup (Google's infrastructure)

TRADEOFFS:
- No transactions (we rely on the API serializing writes per range)
- Every query re-reads the sheet (no local cache by design)
- Limited query capabilities (we sum in Python)

Only the connect step is retried. Command-time failures surface
immediately as StorageError subclasses.
"""

import asyncio
import copy
import json
from pathlib import Path
from typing import Optional

import gspread
import structlog
from google.auth.exceptions import GoogleAuthError, RefreshError, TransportError
from google.oauth2.service_account import Credentials
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from expense_tracker.config import GoogleSheetsSettings, get_settings
from expense_tracker.models.ledger import RangeValues, ValueRender, WriteMode
from expense_tracker.services.storage.interface import (
    AuthenticationError,
    ConnectionError,
    DuplicateError,
    NotFoundError,
    PermissionDeniedError,
    SheetBackendInterface,
    StorageError,
)


logger = structlog.get_logger(__name__)

SCOPES = [
    "https://www.googleapis.com/auth/spreadsheets",
]

# Size of a freshly added tab
NEW_TAB_ROWS = 1000
NEW_TAB_COLS = 26


def translate_error(error: Exception, context: str) -> StorageError:
    """
    Map a gspread / google-auth exception onto the storage error taxonomy.

    Credential problems are kept distinct from transient failures because
    they need an operator, not a retry.
    """
    if isinstance(error, StorageError):
        return error

    message = f"{context}: {error}"
    lowered = str(error).lower()

    if "invalid jwt signature" in lowered or isinstance(error, RefreshError):
        return AuthenticationError(message)
    if isinstance(error, gspread.exceptions.SpreadsheetNotFound):
        return NotFoundError(message)
    if isinstance(error, gspread.exceptions.WorksheetNotFound):
        return NotFoundError(message)
    if isinstance(error, gspread.exceptions.APIError):
        status = getattr(error.response, "status_code", None)
        if status == 404:
            return NotFoundError(message)
        if status == 403:
            return PermissionDeniedError(message)
        if status == 401:
            return AuthenticationError(message)
        if status == 400 and "already exists" in lowered:
            return DuplicateError(message)
        if status == 400 and "unable to parse range" in lowered:
            return NotFoundError(message)
        return ConnectionError(message)
    if isinstance(error, TransportError):
        return ConnectionError(message)
    if isinstance(error, GoogleAuthError):
        return AuthenticationError(message)
    return ConnectionError(message)


def load_service_account_info(credentials_path: str) -> dict:
    """
    Read and sanity-check a service account key file.

    Raises:
        AuthenticationError: If the file is missing, not JSON, or lacks
            client_email / private_key
    """
    path = Path(credentials_path)
    if not path.exists():
        raise AuthenticationError(
            f"Credentials file not found at: {credentials_path}. "
            "Please check GOOGLE_SHEETS_CREDENTIALS_PATH."
        )
    try:
        info = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise AuthenticationError(f"Invalid JSON in credentials file: {e}")

    for field in ("client_email", "private_key"):
        if not info.get(field):
            raise AuthenticationError(f'Credentials file is missing "{field}" field')

    # Keys pasted through env files often carry escaped newlines
    info["private_key"] = info["private_key"].replace("\\n", "\n")
    if "BEGIN PRIVATE KEY" not in info["private_key"] and \
            "BEGIN RSA PRIVATE KEY" not in info["private_key"]:
        logger.warning("private_key_format_suspicious", path=credentials_path)

    return info


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and opening the configured spreadsheet.
    """

    def __init__(self, settings: Optional[GoogleSheetsSettings] = None):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = settings or get_settings().google_sheets

    @property
    def spreadsheet_id(self) -> str:
        return self._settings.spreadsheet_id

    @retry(
        retry=retry_if_exception_type(ConnectionError),
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
            info = load_service_account_info(self._settings.credentials_path)
            try:
                credentials = Credentials.from_service_account_info(
                    info,
                    scopes=SCOPES,
                )
                self._client = gspread.authorize(credentials)
            except (ValueError, GoogleAuthError) as e:
                raise AuthenticationError(f"Malformed service account credentials: {e}")
            except Exception as e:
                raise ConnectionError(f"Failed to connect to Google Sheets: {e}")

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(self._settings.spreadsheet_id)
            except Exception as e:
                raise translate_error(
                    e, f"Spreadsheet {self._settings.spreadsheet_id} could not be opened"
                )
        return self._spreadsheet


class GoogleSheetsBackend(SheetBackendInterface):
    """
    Google Sheets implementation of the spreadsheet backend.

    Uses the spreadsheet-level values API so that every call is a single
    request addressed by an A1 range. gspread is blocking, so each call
    runs in a worker thread and the bot's event loop keeps polling.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _spreadsheet(self) -> gspread.Spreadsheet:
        return self._client.get_spreadsheet()

    async def _call(self, context: str, method: str, *args, **kwargs):
        """Run one spreadsheet method off the event loop, translating errors."""
        def call():
            return getattr(self._spreadsheet(), method)(*args, **kwargs)

        try:
            return await asyncio.to_thread(call)
        except Exception as e:
            raise translate_error(e, context)

    async def list_tabs(self) -> list[str]:
        """List tab titles."""
        worksheets = await self._call("Failed to list sheets", "worksheets")
        return [ws.title for ws in worksheets]

    async def add_tab(self, name: str) -> None:
        """Create a new tab."""
        await self._call(
            f"Failed to create sheet {name}",
            "add_worksheet",
            title=name,
            rows=NEW_TAB_ROWS,
            cols=NEW_TAB_COLS,
        )

    async def tab_id(self, name: str) -> Optional[int]:
        """Look up the numeric sheetId of a tab."""
        worksheets = await self._call(f"Failed to look up sheet {name}", "worksheets")
        for ws in worksheets:
            if ws.title == name:
                return ws.id
        return None

    async def get_values(
        self,
        range_name: str,
        render: ValueRender = ValueRender.FORMATTED,
    ) -> RangeValues:
        """Read a range; an empty range yields an empty RangeValues."""
        params = {"valueRenderOption": render.value}
        if render is ValueRender.UNFORMATTED:
            # Dates would otherwise come back as serial numbers
            params["dateTimeRenderOption"] = "FORMATTED_STRING"

        response = await self._call(
            f"Failed to read {range_name}", "values_get", range_name, params=params
        )
        return RangeValues(range=range_name, rows=response.get("values", []))

    async def update_values(
        self,
        range_name: str,
        rows: list[list],
        mode: WriteMode = WriteMode.RAW,
    ) -> None:
        """Overwrite a range."""
        await self._call(
            f"Failed to write {range_name}",
            "values_update",
            range_name,
            params={"valueInputOption": mode.value},
            body={"values": rows},
        )

    async def append_values(
        self,
        range_name: str,
        rows: list[list],
        mode: WriteMode = WriteMode.RAW,
    ) -> None:
        """Append rows to the table found in a range."""
        await self._call(
            f"Failed to append to {range_name}",
            "values_append",
            range_name,
            params={"valueInputOption": mode.value},
            body={"values": rows},
        )

    async def clear_values(self, range_name: str) -> None:
        """Clear a range."""
        await self._call(f"Failed to clear {range_name}", "values_clear", range_name)

    async def format_cells(self, sheet_name: str, requests: list[dict]) -> None:
        """Apply formatting requests, scoping each one to the tab's sheetId."""
        sheet_id = await self.tab_id(sheet_name)
        if sheet_id is None:
            raise NotFoundError(f"Sheet {sheet_name} not found")

        scoped = []
        for request in requests:
            request = copy.deepcopy(request)
            for body in request.values():
                if isinstance(body, dict) and isinstance(body.get("range"), dict):
                    body["range"]["sheetId"] = sheet_id
            scoped.append(request)

        await self._call(
            f"Failed to format {sheet_name}", "batch_update", {"requests": scoped}
        )
