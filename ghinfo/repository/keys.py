"""Cache key derivation for metadata entries and downloaded blobs."""

import hashlib
from pathlib import PurePosixPath

from ghinfo.schema.cache import CacheKind

BLOB_KEY_PREFIX = "file:"
DEFAULT_EXTENSION = "bin"


def meta_key(kind: CacheKind, owner: str, repo: str) -> str:
    """Key of a metadata entry, e.g. ``repo_info:octocat:Hello-World``."""
    return f"{CacheKind(kind).value}:{owner}:{repo}"


def url_digest(url: str) -> str:
    return hashlib.sha256(url.encode("utf-8")).hexdigest()


def blob_key(url: str) -> str:
    """Key of a blob: ``file:`` followed by the hex SHA-256 of the full URL."""
    return BLOB_KEY_PREFIX + url_digest(url)


def original_filename(url: str) -> str:
    """Last path segment of ``url`` with any query string removed."""
    name = url.rsplit("/", 1)[-1].split("?", 1)[0]
    return name or "file"


def blob_filename(url: str) -> str:
    """Name of the file holding the body of ``url`` inside the blob directory."""
    extension = PurePosixPath(original_filename(url)).suffix.lstrip(".")
    return f"{url_digest(url)}.{extension or DEFAULT_EXTENSION}"
