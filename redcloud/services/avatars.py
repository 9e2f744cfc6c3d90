"""Avatar objects stored in the avatars bucket directory."""

from __future__ import annotations

import logging
import shutil
from pathlib import Path
from typing import IO
from uuid import uuid4

from ..core.config import settings

logger = logging.getLogger(__name__)

CONTENT_TYPES = {
    "image/png": "png",
    "image/jpeg": "jpg",
    "image/webp": "webp",
    "image/gif": "gif",
}
AVATAR_URL_PREFIX = "/avatars/"


def avatars_root() -> Path:
    return settings.avatars_dir


def _resolve(key: str) -> Path:
    root = avatars_root().resolve()
    path = (root / key).resolve()
    if root not in path.parents:
        raise LookupError("Avatar not found")
    return path


def store_avatar(user_id: str, content_type: str | None, stream: IO[bytes]) -> str:
    """Copy ``stream`` into the bucket and return its object key."""

    extension = CONTENT_TYPES.get((content_type or "").lower())
    if extension is None:
        raise ValueError("Avatar must be a PNG, JPEG, WebP or GIF image")
    user_dir = avatars_root() / user_id
    user_dir.mkdir(parents=True, exist_ok=True)
    key = f"{user_id}/{uuid4().hex}.{extension}"
    target = avatars_root() / key
    written = 0
    with target.open("wb") as handle:
        while True:
            chunk = stream.read(64 * 1024)
            if not chunk:
                break
            written += len(chunk)
            if written > settings.AVATAR_MAX_BYTES:
                handle.close()
                target.unlink(missing_ok=True)
                raise ValueError("Avatar file is too large")
            handle.write(chunk)
    if written == 0:
        target.unlink(missing_ok=True)
        raise ValueError("Avatar file is empty")
    return key


def avatar_path(key: str) -> Path:
    path = _resolve(key)
    if not path.is_file():
        raise LookupError("Avatar not found")
    return path


def avatar_url(key: str) -> str:
    return f"{AVATAR_URL_PREFIX}{key}"


def key_from_url(url: str | None) -> str | None:
    if not url or not url.startswith(AVATAR_URL_PREFIX):
        return None
    return url[len(AVATAR_URL_PREFIX):]


def owns_key(user_id: str, key: str) -> bool:
    return key.startswith(f"{user_id}/") and ".." not in key.split("/")


def delete_avatar(key: str | None) -> None:
    if not key:
        return
    try:
        path = _resolve(key)
    except LookupError:
        return
    path.unlink(missing_ok=True)


def delete_user_avatars(user_id: str) -> None:
    shutil.rmtree(avatars_root() / user_id, ignore_errors=True)
