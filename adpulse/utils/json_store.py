"""Helpers for the small JSON documents kept under the cache directory."""
import json
import os
import tempfile
from typing import Any


def read_json(path: str) -> Any:
    """Load a JSON document. Raises FileNotFoundError or ValueError."""
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def write_json_atomic(path: str, data: Any) -> None:
    """Write JSON to a temp file beside ``path`` and rename it into place.

    Readers see either the old document or the new one, never a partial
    write. Creates the containing directory if needed.
    """
    directory = os.path.dirname(os.path.abspath(path))
    os.makedirs(directory, exist_ok=True)

    fd, tmp_path = tempfile.mkstemp(dir=directory, prefix=".tmp-", suffix=".json")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_path, path)
    except BaseException:
        if os.path.exists(tmp_path):
            os.unlink(tmp_path)
        raise
