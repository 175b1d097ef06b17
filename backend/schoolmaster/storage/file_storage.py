"""Durable local storage for uploaded import files."""

from __future__ import annotations

import logging
import os
import shutil
import uuid
from pathlib import Path
from typing import BinaryIO

logger = logging.getLogger(__name__)


def save_upload(file_obj: BinaryIO, imports_dir: Path, original_name: str | None = None) -> Path:
    """Persist the uploaded CSV to disk and return its absolute path.

    The file is fsynced before returning so a job never starts against a
    partially written upload.
    """
    imports_dir = Path(imports_dir).resolve()
    imports_dir.mkdir(parents=True, exist_ok=True)
    suffix = Path(original_name or "upload.csv").suffix or ".csv"
    target_path = (imports_dir / f"users-{uuid.uuid4()}{suffix}").resolve()
    file_obj.seek(0)
    with target_path.open("wb") as destination:
        shutil.copyfileobj(file_obj, destination)
        destination.flush()
        os.fsync(destination.fileno())
    logger.info(f"Staged upload {original_name!r} at {target_path}")
    return target_path

