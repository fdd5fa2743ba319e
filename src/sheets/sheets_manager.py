"""
Google Sheets Integration
Read-only access to the production schedule and van details spreadsheet
"""
from typing import List

import gspread
from google.oauth2.service_account import Credentials

import config
from errors import SheetsFetchError
from utils.logger import get_logger

SCOPES = ['https://www.googleapis.com/auth/spreadsheets.readonly']


class SheetsManager:
    """Read ranges from the operations spreadsheet as lists of rows"""

    def __init__(self, sheet_id: str = None):
        """Initialize Google Sheets connection with environment-aware credentials

        Args:
            sheet_id: Optional spreadsheet ID. When None, falls back to
                      config.GOOGLE_SHEET_ID.
        """
        target_sheet_id = sheet_id or config.GOOGLE_SHEET_ID
        if not target_sheet_id:
            raise SheetsFetchError("GOOGLE_SHEET_ID is not configured")

        self.client = None
        try:
            creds_path = config.get_credentials_path()

            if creds_path:
                # Service account JSON file (local, Docker, or Cloud Run with secret)
                creds = Credentials.from_service_account_file(creds_path, scopes=SCOPES)
            else:
                # Application Default Credentials (Cloud Run with Workload Identity)
                import google.auth
                creds, _project = google.auth.default(scopes=SCOPES)

            self.client = gspread.authorize(creds)
            self.spreadsheet = self.client.open_by_key(target_sheet_id)
        except SheetsFetchError:
            raise
        except Exception as e:
            self.close()
            raise SheetsFetchError(f"Failed to open Google Sheet: {str(e)}") from e

    @classmethod
    def from_spreadsheet(cls, spreadsheet) -> 'SheetsManager':
        """Wrap an already-open spreadsheet (or a test double) without authenticating."""
        manager = cls.__new__(cls)
        manager.client = None
        manager.spreadsheet = spreadsheet
        return manager

    def get_values(self, range_expr: str, value_render_option: str = 'FORMATTED_VALUE',
                   require_data: bool = True) -> List[List]:
        """
        Read a range such as "SCHEDULE!A:S".

        Args:
            range_expr: A1-notation range, optionally prefixed with a tab name
            value_render_option: FORMATTED_VALUE, UNFORMATTED_VALUE or FORMULA
            require_data: Treat an empty range as a failure

        Returns:
            Rows (header row first); trailing empty cells are omitted by the API

        Raises:
            SheetsFetchError: on any transport, credential or quota failure,
                or when require_data is set and the range holds no data
        """
        logger = get_logger()
        try:
            response = self.spreadsheet.values_get(
                range_expr,
                params={'valueRenderOption': value_render_option},
            )
        except Exception as e:
            logger.log_error(range_expr, type(e).__name__, str(e))
            raise SheetsFetchError(f"Failed to read '{range_expr}': {str(e)}") from e

        rows = response.get('values') or []
        if not rows and require_data:
            raise SheetsFetchError(f"No data found in sheet range '{range_expr}'")

        logger.log_sheet_fetch(range_expr, len(rows))
        return rows

    def close(self):
        """Close the HTTP session held by the gspread client. Safe to call twice."""
        if self.client is not None:
            self.client.http_client.session.close()
            self.client = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    # Ranges used by the API

    def get_dealer_rows(self) -> List[List]:
        return self.get_values(config.DEALER_RANGE, value_render_option='UNFORMATTED_VALUE')

    def get_production_rows(self) -> List[List]:
        return self.get_values(config.PRODUCTION_RANGE)

    def get_dashboard_rows(self) -> List[List]:
        return self.get_values(config.DASHBOARD_RANGE)

    def get_van_detail_rows(self) -> List[List]:
        return self.get_values(config.VAN_DETAILS_RANGE, require_data=False)
