"""File-backed ledger store.

Writes the snapshot as tab-indented JSON to a temp file next to the target
and renames it into place, so a crash mid-write leaves the previous ledger.
"""

import json
from pathlib import Path
from typing import Union

import aiofiles
import aiofiles.os

from app_migrator.core.exceptions import LedgerError
from app_migrator.core.logging import logger
from app_migrator.core.protocols import LedgerSnapshot


class FileLedgerStore:
    """LedgerStore reading and writing a JSON file."""

    def __init__(self, path: Union[str, Path]):
        """Initialize the store.

        Args:
            path: Ledger file; need not exist yet
        """
        self.path = Path(path)

    async def load(self) -> LedgerSnapshot:
        """Load the snapshot; a missing or empty file loads as ``{}``."""
        if not await aiofiles.os.path.exists(self.path):
            logger.debug(f"No ledger at {self.path}, starting empty")
            return {}

        async with aiofiles.open(self.path, "r", encoding="utf-8") as f:
            raw = await f.read()

        if not raw.strip():
            return {}

        try:
            return json.loads(raw)
        except json.JSONDecodeError as e:
            raise LedgerError(f"ledger file {self.path} is not valid JSON: {e}") from e

    async def save(self, snapshot: LedgerSnapshot) -> None:
        """Write the snapshot, replacing the previous file."""
        await aiofiles.os.makedirs(self.path.parent, exist_ok=True)
        temp_path = self.path.with_name(self.path.name + ".tmp")

        async with aiofiles.open(temp_path, "w", encoding="utf-8") as f:
            await f.write(json.dumps(snapshot, indent="\t", sort_keys=True))

        await aiofiles.os.replace(temp_path, self.path)
        logger.debug(f"Saved ledger to {self.path}")
