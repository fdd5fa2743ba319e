"""
API helper functions shared across route modules.
Provides SheetsManager resolution and translation of upstream failures.
"""
from fastapi import HTTPException, status

from errors import SheetsFetchError, SupabaseError
from utils.logger import get_logger


def get_sheets_manager():
    """
    FastAPI dependency yielding a connected ``SheetsManager``.

    A new connection is opened per request and closed once the route
    finishes, whether it returned or raised.
    """
    from sheets.sheets_manager import SheetsManager

    try:
        manager = SheetsManager()
    except SheetsFetchError as e:
        raise upstream_error("open spreadsheet", e)

    try:
        yield manager
    finally:
        manager.close()


def upstream_error(context: str, error: Exception) -> HTTPException:
    """
    Log an upstream failure and build the 500 response for it.

    Args:
        context: What the route was doing, for the log line
        error: SheetsFetchError, SupabaseError or a row-shape ValueError

    Returns:
        HTTPException to raise
    """
    get_logger().log_error(context, type(error).__name__, str(error))
    if isinstance(error, SheetsFetchError):
        detail = f"Failed to fetch sheet data: {error}"
    elif isinstance(error, SupabaseError):
        detail = f"Failed to {context}: {error}"
    else:
        detail = str(error)
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=detail)
