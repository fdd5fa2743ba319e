"""
Thin Supabase REST client (PostgREST tables, RPC, Storage) over requests.
Every call opens its own HTTP session and closes it before returning.
"""
from typing import Any, Dict, Iterable, List, Optional
from urllib.parse import quote

import requests

from errors import SupabaseError
from utils.logger import get_logger


class SupabaseClient:
    """Calls Supabase as the anon role, or as a signed-in user when given their access token."""

    def __init__(self, url: str, api_key: str, access_token: str = None, timeout: float = 10):
        if not url or not api_key:
            raise SupabaseError("Supabase URL and API key must be configured")
        self.url = url.rstrip("/")
        self.api_key = api_key
        self.access_token = access_token
        self.timeout = timeout

    def _headers(self, extra: Dict[str, str] = None) -> Dict[str, str]:
        headers = {
            "apikey": self.api_key,
            "Authorization": f"Bearer {self.access_token or self.api_key}",
        }
        if extra:
            headers.update(extra)
        return headers

    def request(self, method: str, path: str, params: Dict[str, Any] = None,
                json: Any = None, data: bytes = None,
                headers: Dict[str, str] = None) -> Any:
        """
        Perform a request against ``{url}{path}``.

        Returns:
            Decoded JSON body, or None for empty responses

        Raises:
            SupabaseError: transport failure or non-2xx response
        """
        logger = get_logger()
        try:
            with requests.Session() as http:
                response = http.request(
                    method,
                    f"{self.url}{path}",
                    params=params,
                    json=json,
                    data=data,
                    headers=self._headers(headers),
                    timeout=self.timeout,
                )
                logger.log_store_call(method, path, response.status_code)

                if response.status_code >= 400:
                    raise SupabaseError(
                        f"{method} {path} failed: {_error_message(response)}",
                        status_code=response.status_code,
                    )

                if response.status_code == 204 or not response.content:
                    return None
                return response.json()
        except requests.RequestException as e:
            raise SupabaseError(f"{method} {path} failed: {str(e)}") from e

    # ── PostgREST ─────────────────────────────────────────────────

    def select(self, table: str, filters: Dict[str, str] = None, order: str = None,
               columns: str = "*") -> List[Dict]:
        """
        Select rows. ``filters`` use PostgREST operators, e.g.
        {"is_completed": "eq.false"}; ``order`` e.g. "due_date.asc".
        """
        params = {"select": columns}
        params.update(filters or {})
        if order:
            params["order"] = order
        return self.request("GET", f"/rest/v1/{table}", params=params) or []

    def insert(self, table: str, rows: Iterable[Dict]) -> List[Dict]:
        return self.request(
            "POST", f"/rest/v1/{table}",
            json=list(rows),
            headers={"Prefer": "return=representation"},
        ) or []

    def update(self, table: str, values: Dict, filters: Dict[str, str]) -> List[Dict]:
        if not filters:
            raise SupabaseError("Refusing to update without a filter")
        return self.request(
            "PATCH", f"/rest/v1/{table}",
            params=filters,
            json=values,
            headers={"Prefer": "return=representation"},
        ) or []

    def delete(self, table: str, filters: Dict[str, str]) -> List[Dict]:
        if not filters:
            raise SupabaseError("Refusing to delete without a filter")
        return self.request(
            "DELETE", f"/rest/v1/{table}",
            params=filters,
            headers={"Prefer": "return=representation"},
        ) or []

    # ── Storage ───────────────────────────────────────────────────

    def list_buckets(self) -> List[Dict]:
        return self.request("GET", "/storage/v1/bucket") or []

    def create_bucket(self, name: str, public: bool = True, file_size_limit: int = None,
                      allowed_mime_types: List[str] = None) -> Any:
        body = {"id": name, "name": name, "public": public}
        if file_size_limit:
            body["file_size_limit"] = file_size_limit
        if allowed_mime_types:
            body["allowed_mime_types"] = allowed_mime_types
        return self.request("POST", "/storage/v1/bucket", json=body)

    def list_objects(self, bucket: str, prefix: str = "", limit: int = 100) -> List[Dict]:
        return self.request(
            "POST", f"/storage/v1/object/list/{bucket}",
            json={
                "prefix": prefix,
                "limit": limit,
                "offset": 0,
                "sortBy": {"column": "name", "order": "asc"},
            },
        ) or []

    def upload_object(self, bucket: str, path: str, content: bytes, content_type: str,
                      upsert: bool = False, cache_control: str = "3600") -> Any:
        return self.request(
            "POST", f"/storage/v1/object/{bucket}/{quote(path)}",
            data=content,
            headers={
                "Content-Type": content_type,
                "x-upsert": "true" if upsert else "false",
                "cache-control": f"max-age={cache_control}",
            },
        )

    def move_object(self, bucket: str, source: str, destination: str) -> Any:
        return self.request(
            "POST", "/storage/v1/object/move",
            json={"bucketId": bucket, "sourceKey": source, "destinationKey": destination},
        )

    def remove_objects(self, bucket: str, paths: List[str]) -> Any:
        return self.request("DELETE", f"/storage/v1/object/{bucket}", json={"prefixes": paths})

    def public_url(self, bucket: str, path: str) -> str:
        return f"{self.url}/storage/v1/object/public/{bucket}/{quote(path)}"


def _error_message(response) -> str:
    """Best-effort message from a Supabase error body."""
    try:
        body = response.json()
    except ValueError:
        return f"HTTP {response.status_code}"
    if isinstance(body, dict):
        for key in ("message", "msg", "error_description", "error"):
            if body.get(key):
                return str(body[key])
    return f"HTTP {response.status_code}"


def get_client(access_token: Optional[str] = None, service_role: bool = False) -> SupabaseClient:
    """Build a client from configuration."""
    import config
    api_key = config.SUPABASE_SERVICE_ROLE_KEY if service_role else config.SUPABASE_ANON_KEY
    return SupabaseClient(
        config.SUPABASE_URL,
        api_key,
        access_token=access_token,
        timeout=config.HTTP_TIMEOUT_SECONDS,
    )
