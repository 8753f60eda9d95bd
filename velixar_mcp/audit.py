"""Append-only audit trail of tool calls."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from pathlib import Path
from typing import Optional

import aiofiles

logger = logging.getLogger(__name__)


class AuditLog:
    """Writes one line per tool outcome when a path is configured.

    Entry format: timestamp | user_id | action | details
    """

    def __init__(self, path: Optional[Path], user_id: str):
        self.path = path
        self.user_id = user_id
        self._lock = asyncio.Lock()

    @property
    def enabled(self) -> bool:
        return self.path is not None

    async def record(self, action: str, details: str = "") -> None:
        if self.path is None:
            return

        timestamp = datetime.now().isoformat()
        entry = f"{timestamp} | {self.user_id} | {action} | {details}\n"

        async with self._lock:
            try:
                async with aiofiles.open(self.path, "a") as f:
                    await f.write(entry)
            except OSError as e:
                # Audit failures never fail the tool call
                logger.error("Audit log write failed: %s", e)
