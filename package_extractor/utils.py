from __future__ import annotations

import hashlib
import json
import os
from pathlib import Path
from typing import Any, Mapping


def ensure_directory(path: str | Path) -> Path:
    """Create a directory and return its Path object."""

    path = Path(path)
    path.mkdir(parents=True, exist_ok=True)
    return path


def sha256_digest(data: bytes) -> str:
    """Content digest of ``data`` in ``sha256:<hex>`` form."""

    return "sha256:" + hashlib.sha256(data).hexdigest()


def canonical_json(payload: Any) -> bytes:
    """Compact, key-sorted JSON encoding used wherever bytes are content addressed."""

    return json.dumps(payload, sort_keys=True, separators=(",", ":")).encode("utf-8")


def dump_json(path: str | Path, payload: Mapping[str, object], *, indent: int = 2) -> None:
    """Write structured JSON to disk with a trailing newline for readability."""

    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_name(path.name + ".tmp")
    tmp_path.write_text(json.dumps(payload, indent=indent, sort_keys=True) + "\n")
    os.replace(tmp_path, path)
