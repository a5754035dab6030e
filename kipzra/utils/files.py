# kipzra/utils/files.py

import uuid
import logging
from pathlib import Path
from typing import Iterable

import aiofiles
from fastapi import UploadFile

from kipzra.core.config import settings
from kipzra.core.exceptions import PersistenceError, ValidationError

logger = logging.getLogger(__name__)

IMPORT_EXTENSIONS = (".csv", ".xlsx")


async def save_upload_file(
    upload_file: UploadFile, sub_dir: str, allowed_extensions: Iterable[str] = IMPORT_EXTENSIONS
) -> Path:
    """
    Сохраняет загруженный файл в UPLOAD_DIR/<sub_dir> под уникальным именем.

    Returns:
        Path: путь к сохранённому файлу
    """
    extension = Path(upload_file.filename or "").suffix.lower()
    if extension not in allowed_extensions:
        raise ValidationError(
            f"Unsupported file type '{extension or upload_file.filename}'. Allowed: {', '.join(allowed_extensions)}",
            kind="file-type",
        )

    upload_directory = Path(settings.UPLOAD_DIR) / sub_dir
    upload_directory.mkdir(parents=True, exist_ok=True)

    content = await upload_file.read()
    if not content:
        raise ValidationError("Uploaded file is empty", kind="file-empty")

    save_path = upload_directory / f"{uuid.uuid4()}{extension}"
    try:
        async with aiofiles.open(save_path, "wb") as f:
            await f.write(content)
    except OSError as e:
        logger.error("Failed to save upload %s: %s", upload_file.filename, e)
        raise PersistenceError("Failed to save uploaded file", kind="file-save") from e

    logger.info("Saved upload %s to %s (%d bytes)", upload_file.filename, save_path, len(content))
    return save_path
