"""
Exceptions raised by the service layers and translated at the route boundary.
"""


class SheetsFetchError(Exception):
    """Google Sheets could not be reached, authorized, or returned no data."""


class SessionResolutionError(Exception):
    """The auth provider could not be asked about the caller's session."""


class SupabaseError(Exception):
    """A Supabase REST or Storage call failed."""

    def __init__(self, message: str, status_code: int = None):
        super().__init__(message)
        self.status_code = status_code
