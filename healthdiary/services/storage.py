"""
File Storage - uploaded analyses and generated reports on local disk.

Paths stored in the database are relative to UPLOAD_DIR.
"""
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator
import logging
import re
import secrets
import time

from healthdiary.config import get_settings

logger = logging.getLogger(__name__)

ANALYSES = "analyses"
REPORTS = "reports"


def upload_root() -> Path:
    return Path(get_settings().upload_dir)


def ensure_dirs() -> None:
    for sub in (ANALYSES, REPORTS):
        (upload_root() / sub).mkdir(parents=True, exist_ok=True)


def safe_filename(name: str) -> str:
    """Keep only the base name and a conservative character set."""
    name = Path(name or "file").name
    name = re.sub(r"[^\w.\-]+", "_", name, flags=re.UNICODE).strip("._")
    return name or "file"


def unique_name(original: str) -> str:
    return f"{int(time.time() * 1000)}-{secrets.randbelow(10**9)}-{safe_filename(original)}"


def relative_path(folder: str, filename: str) -> str:
    return f"{folder}/{filename}"


def resolve(rel_path: str) -> Path:
    """Absolute path for a stored relative path. Refuses paths that escape UPLOAD_DIR."""
    root = upload_root().resolve()
    path = (root / rel_path).resolve()
    if root != path and root not in path.parents:
        raise ValueError(f"Path escapes upload directory: {rel_path}")
    return path


def save_bytes(folder: str, original_name: str, content: bytes) -> str:
    ensure_dirs()
    rel = relative_path(folder, unique_name(original_name))
    resolve(rel).write_bytes(content)
    return rel


def remove(rel_path: str) -> bool:
    """Delete a stored file. Returns False if it was already gone."""
    try:
        path = resolve(rel_path)
    except ValueError:
        logger.warning(f"Refusing to delete outside upload dir: {rel_path}")
        return False

    if not path.exists():
        return False
    path.unlink()
    return True


def exists(rel_path: str) -> bool:
    try:
        return resolve(rel_path).is_file()
    except ValueError:
        return False


@contextmanager
def removed_on_failure(rel_path: str) -> Iterator[str]:
    """
    Compensating delete for file-then-row writes.

    Wrap the database commit that references a freshly written file; if it
    raises, the file is removed before the error propagates.
    """
    try:
        yield rel_path
    except BaseException:
        if remove(rel_path):
            logger.warning(f"Removed orphaned file {rel_path} after failed write")
        raise
