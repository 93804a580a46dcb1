from __future__ import annotations
from dataclasses import dataclass
from typing import Dict, Any
from pathlib import Path
from urllib.parse import urlsplit, unquote
import logging
import time
import yaml

from .errors import InvalidUriError, PathSafetyError, FilesystemError, log_and_reraise

GCS_SCHEME = "gs://"


@log_and_reraise(FilesystemError, level=logging.DEBUG)
def ensure_dir(path: Path | str) -> None:
    Path(path).mkdir(parents=True, exist_ok=True)


def read_yaml(path: str) -> Dict[str, Any]:
    with open(path, "r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


@dataclass(frozen=True)
class SourceSpec:
    bucket: str
    prefix: str
    raw_uri: str


def parse_gcs_uri(uri: str) -> SourceSpec:
    """
    Split gs://bucket[/prefix] into bucket and prefix.
    Only the first leading slash of the path is dropped; the rest is kept verbatim.
    """
    if not uri.startswith(GCS_SCHEME):
        raise InvalidUriError(f"missing scheme {GCS_SCHEME!r}: {uri}")
    if any(ord(c) < 0x20 or ord(c) == 0x7f for c in uri):
        raise InvalidUriError(f"could not parse uri: {uri!r}")
    try:
        parts = urlsplit(uri)
    except ValueError as e:
        raise InvalidUriError(f"could not parse uri: {uri}") from e
    bucket = parts.netloc
    if not bucket:
        raise InvalidUriError(f"missing bucket: {uri}")
    path = unquote(parts.path)
    if path.startswith("/"):
        path = path[1:]
    return SourceSpec(bucket=bucket, prefix=path, raw_uri=uri)


def map_local_path(dst_root: Path | str, key: str) -> Path:
    """
    Join key onto dst_root, refusing anything that would land outside of it,
    and make sure the parent directory exists.
    """
    root = Path(dst_root)
    if not key or key.startswith("/") or ".." in key.split("/"):
        raise PathSafetyError(f"unsafe object key: {key!r}")
    candidate = root / key
    resolved_root = root.resolve()
    resolved = candidate.resolve()
    if resolved == resolved_root or resolved_root not in resolved.parents:
        raise PathSafetyError(f"object key {key!r} escapes {root}")
    ensure_dir(candidate.parent)
    return candidate


class Deadline:
    """Wall-clock budget for a multi-step network operation."""

    def __init__(self, seconds: float):
        self.seconds = seconds
        self._expires = time.monotonic() + seconds

    @property
    def expired(self) -> bool:
        return time.monotonic() >= self._expires

    def check(self, what: str) -> None:
        if self.expired:
            raise TimeoutError(f"{what} exceeded {self.seconds:g}s")
