from __future__ import annotations

import logging
import random
import time
from pathlib import Path
from typing import Optional, Protocol

import requests

from ..errors import UploadFailureError

logger = logging.getLogger(__name__)


class ObjectStorage(Protocol):
    def upload(self, bucket: str, filename: str, data: bytes, content_type: str = "image/png") -> str:
        """Store `data` under `bucket/filename` and return its public URL. Never overwrites."""


def make_filename(
    purpose: str,
    *,
    ident: Optional[object] = None,
    index: Optional[int] = None,
    random_suffix: bool = False,
    now_ms: Optional[int] = None,
    ext: str = "png",
) -> str:
    """`<purpose>[-<ident>]-<timestamp>[-<random>][-seg-<index>].<ext>`"""
    parts = [purpose]
    if ident is not None:
        parts.append(str(ident))
    parts.append(str(now_ms if now_ms is not None else int(time.time() * 1000)))
    if random_suffix:
        parts.append(str(random.randint(0, 10**9)))
    name = "-".join(parts)
    if index is not None:
        name += f"-seg-{index}"
    return f"{name}.{ext}"


class LocalObjectStorage:
    """Files under `root/<bucket>/`; an existing name is never replaced.

    Layout:
    <root>/<bucket>/<filename>
    """

    def __init__(self, root: Path | str, base_url: Optional[str] = None) -> None:
        self.root = Path(root)
        self.base_url = base_url.rstrip("/") if base_url else None

    def upload(self, bucket: str, filename: str, data: bytes, content_type: str = "image/png") -> str:
        bucket_dir = self.root / bucket
        bucket_dir.mkdir(parents=True, exist_ok=True)
        path = bucket_dir / filename
        try:
            # "x" refuses to open an existing file
            with path.open("xb") as fh:
                fh.write(data)
        except FileExistsError as e:
            raise UploadFailureError(f"{bucket}/{filename} already exists") from e
        except OSError as e:
            raise UploadFailureError(f"Could not write {bucket}/{filename}: {e}") from e
        logger.info("Stored %s (%d bytes, %s)", path, len(data), content_type)
        if self.base_url:
            return f"{self.base_url}/{bucket}/{filename}"
        return path.resolve().as_uri()


class SupabaseStorage:
    """Supabase Storage REST API (`/storage/v1/object`), uploads with `x-upsert: false`."""

    def __init__(
        self,
        url: str,
        key: str,
        *,
        session: Optional[requests.Session] = None,
        timeout: int = 30,
    ) -> None:
        self.url = url.rstrip("/")
        self.key = key
        self.session = session or requests.Session()
        self.timeout = timeout

    def public_url(self, bucket: str, filename: str) -> str:
        return f"{self.url}/storage/v1/object/public/{bucket}/{filename}"

    def upload(self, bucket: str, filename: str, data: bytes, content_type: str = "image/png") -> str:
        headers = {
            "Authorization": f"Bearer {self.key}",
            "apikey": self.key,
            "Content-Type": content_type,
            "Cache-Control": "3600",
            "x-upsert": "false",
        }
        try:
            resp = self.session.post(
                f"{self.url}/storage/v1/object/{bucket}/{filename}",
                data=data,
                headers=headers,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise UploadFailureError(f"Upload of {filename} failed: {e}") from e
        if resp.status_code >= 400:
            logger.error("Supabase upload error %s: %s", resp.status_code, resp.text[:200])
            raise UploadFailureError(f"Upload of {filename} rejected ({resp.status_code})")
        return self.public_url(bucket, filename)
