"""
Layout images kept in a public Supabase Storage bucket.
"""
import secrets
import time
from dataclasses import dataclass, asdict
from pathlib import PurePosixPath
from typing import Dict, List, Optional

from errors import SupabaseError
from store.supabase_client import SupabaseClient
from utils.logger import get_logger


@dataclass
class LayoutImage:
    name: str
    url: str
    path: str
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    def to_dict(self) -> Dict:
        return asdict(self)


def file_extension(filename: str) -> str:
    """Extension without the dot, lowercased; '' when there is none."""
    return PurePosixPath(filename or "").suffix.lstrip(".").lower()


def random_filename(original_name: str) -> str:
    """Unique object name that keeps the uploaded file's extension."""
    stem = f"{secrets.token_hex(6)}_{int(time.time() * 1000)}"
    ext = file_extension(original_name)
    return f"{stem}.{ext}" if ext else stem


def renamed_path(current_path: str, new_name: str) -> str:
    """New object name with the current extension carried over."""
    new_name = new_name.strip()
    if not new_name or "/" in new_name:
        raise ValueError("New name must be a non-empty file name")
    ext = file_extension(current_path)
    return f"{new_name}.{ext}" if ext else new_name


class LayoutStore:

    def __init__(self, client: SupabaseClient, bucket: str = None,
                 max_bytes: int = None, allowed_mime_types: List[str] = None):
        import config
        self.client = client
        self.bucket = bucket or config.LAYOUTS_BUCKET
        self.max_bytes = max_bytes or config.LAYOUT_MAX_BYTES
        self.allowed_mime_types = allowed_mime_types or config.LAYOUT_ALLOWED_MIME_TYPES
        self.logger = get_logger()

    def ensure_bucket(self) -> bool:
        """
        Create the bucket if it does not exist.

        Returns:
            True if the bucket was created, False if it already existed
        """
        buckets = self.client.list_buckets()
        if any(b.get("name") == self.bucket for b in buckets):
            return False
        self.client.create_bucket(
            self.bucket,
            public=True,
            file_size_limit=self.max_bytes,
            allowed_mime_types=self.allowed_mime_types,
        )
        self.logger.info(f"Created storage bucket '{self.bucket}'", "Layouts")
        return True

    def _to_layout(self, obj: Dict) -> LayoutImage:
        name = obj["name"]
        return LayoutImage(
            name=name,
            url=self.client.public_url(self.bucket, name),
            path=name,
            created_at=obj.get("created_at"),
            updated_at=obj.get("updated_at"),
        )

    def list_layouts(self) -> List[LayoutImage]:
        objects = self.client.list_objects(self.bucket)
        # Storage lists a placeholder entry for empty folders
        return [self._to_layout(o) for o in objects
                if o.get("name") and o.get("name") != ".emptyFolderPlaceholder"]

    def validate_upload(self, content_type: str, size: int) -> None:
        """Raise ValueError for a non-image or oversized upload."""
        if not content_type or not content_type.startswith("image/"):
            raise ValueError("Please upload an image file")
        if self.allowed_mime_types and content_type not in self.allowed_mime_types:
            raise ValueError(f"Unsupported image type: {content_type}")
        if size > self.max_bytes:
            raise ValueError(f"File size must be less than {self.max_bytes // (1024 * 1024)}MB")

    def upload(self, filename: str, content: bytes, content_type: str) -> LayoutImage:
        self.validate_upload(content_type, len(content))
        path = random_filename(filename)
        self.client.upload_object(self.bucket, path, content, content_type,
                                  upsert=False, cache_control="3600")
        self.logger.info(f"Uploaded layout {path} ({len(content)} bytes)", "Layouts")
        return LayoutImage(name=path, url=self.client.public_url(self.bucket, path), path=path)

    def rename(self, path: str, new_name: str) -> LayoutImage:
        destination = renamed_path(path, new_name)
        self.client.move_object(self.bucket, path, destination)
        self.logger.info(f"Renamed layout {path} -> {destination}", "Layouts")
        return LayoutImage(name=destination,
                           url=self.client.public_url(self.bucket, destination),
                           path=destination)

    def delete(self, path: str) -> None:
        self.client.remove_objects(self.bucket, [path])
        self.logger.info(f"Deleted layout {path}", "Layouts")


def init_layouts_bucket() -> bool:
    """
    Ensure the layouts bucket exists using the service role key.
    Failures are logged and swallowed so the API still starts.
    """
    import config
    from store.supabase_client import get_client

    logger = get_logger()
    if not (config.SUPABASE_URL and config.SUPABASE_SERVICE_ROLE_KEY):
        logger.warning("Service role key not set; skipping layouts bucket check", "Layouts")
        return False
    try:
        LayoutStore(get_client(service_role=True)).ensure_bucket()
        return True
    except SupabaseError as e:
        logger.log_error("init_layouts_bucket", type(e).__name__, str(e))
        return False
