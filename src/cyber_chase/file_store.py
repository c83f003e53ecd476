"""Task attachment storage on local disk."""

import shutil
from pathlib import Path

import aiofiles
from loguru import logger


class FileStore:
    """Keeps each task's files in ``<upload_dir>/<task_id>/``."""

    def __init__(self, upload_dir: str):
        self.root = Path(upload_dir)

    def path(self, task_id: str, filename: str) -> Path:
        """Full path of a task file."""
        return self.root / task_id / Path(filename).name

    async def save(self, task_id: str, filename: str, content: bytes) -> Path:
        """Write an uploaded file and return where it landed."""
        target = self.path(task_id, filename)
        target.parent.mkdir(parents=True, exist_ok=True)
        async with aiofiles.open(target, "wb") as f:
            await f.write(content)
        logger.debug("Stored {} for task {}", target.name, task_id)
        return target

    async def read(self, task_id: str, filename: str) -> bytes:
        async with aiofiles.open(self.path(task_id, filename), "rb") as f:
            return await f.read()

    def delete(self, task_id: str) -> None:
        """Remove every file belonging to a task."""
        shutil.rmtree(self.root / task_id, ignore_errors=True)
