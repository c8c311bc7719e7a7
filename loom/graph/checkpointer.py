# Copyright 2025 Vijaykumar Singh <singhvjd@gmail.com>
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""Durable checkpointer implementations.

Provides storage backends that outlive the process, so a paused execution
can be resumed by a new runtime instance.

Implementations:
    - SQLiteCheckpointer: File-based SQLite storage
    - JSONFileCheckpointer: One JSON file per checkpoint

Every write is all-or-nothing: SQLite writes run in a transaction, JSON
files are written to a temporary file and moved into place with
``os.replace``.

Example:
    from loom.graph.checkpointer import SQLiteCheckpointer

    checkpointer = SQLiteCheckpointer("~/.loom/graph_checkpoints.db")
    runtime = GraphRuntime(definition, checkpointer=checkpointer)
    outcome = await runtime.start({"messages": []})

    # Later, possibly in another process
    checkpointer = SQLiteCheckpointer("~/.loom/graph_checkpoints.db")
    runtime = GraphRuntime(definition, checkpointer=checkpointer)
    outcome = await runtime.resume(outcome.thread_id, "approved")
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import sqlite3
import tempfile
import time
from pathlib import Path
from typing import Any, List, Optional

from loom.core.errors import CheckpointError
from loom.graph.checkpoint import Checkpoint, CheckpointerProtocol, MemoryCheckpointer

logger = logging.getLogger(__name__)


def _dumps(checkpoint: Checkpoint) -> str:
    try:
        return json.dumps(checkpoint.to_dict())
    except (TypeError, ValueError) as e:
        raise CheckpointError(
            f"Checkpoint for thread {checkpoint.thread_id} is not JSON-serialisable: {e}",
            recovery_hint="Keep state values to JSON types when using a durable checkpointer.",
        ) from e


def _loads(payload: str) -> Checkpoint:
    try:
        data = json.loads(payload)
    except json.JSONDecodeError as e:
        raise CheckpointError(f"Corrupt checkpoint payload: {e}") from e
    return Checkpoint.from_dict(data)


class SQLiteCheckpointer:
    """SQLite-based checkpointer for graph state persistence.

    Stores checkpoints in a SQLite database file for durability
    and queryability.

    Attributes:
        db_path: Path to SQLite database file
        table_name: Name of the checkpoints table

    Example:
        checkpointer = SQLiteCheckpointer("~/.loom/graph_checkpoints.db")
        await checkpointer.save(checkpoint)
        latest = await checkpointer.load("thread-123")
    """

    def __init__(
        self,
        db_path: str | Path = "~/.loom/graph_checkpoints.db",
        table_name: str = "checkpoints",
    ):
        """Initialize SQLite checkpointer.

        Args:
            db_path: Path to database file (will be created if not exists)
            table_name: Name for checkpoints table
        """
        self.db_path = Path(os.path.expanduser(str(db_path)))
        self.table_name = table_name
        self._conn: Optional[sqlite3.Connection] = None

    def _get_connection(self) -> sqlite3.Connection:
        """Get or create database connection."""
        if self._conn is None:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            conn = sqlite3.connect(str(self.db_path), check_same_thread=False)
            conn.row_factory = sqlite3.Row
            self._init_schema(conn)
            self._conn = conn
        return self._conn

    def _init_schema(self, conn: sqlite3.Connection) -> None:
        """Initialize database schema."""
        with conn:
            conn.execute(f"""
                CREATE TABLE IF NOT EXISTS {self.table_name} (
                    seq INTEGER PRIMARY KEY AUTOINCREMENT,
                    checkpoint_id TEXT NOT NULL UNIQUE,
                    thread_id TEXT NOT NULL,
                    status TEXT NOT NULL,
                    step INTEGER NOT NULL,
                    timestamp REAL NOT NULL,
                    data TEXT NOT NULL
                )
            """)
            conn.execute(f"""
                CREATE INDEX IF NOT EXISTS idx_{self.table_name}_thread_seq
                ON {self.table_name}(thread_id, seq DESC)
            """)
        logger.debug(f"Initialized checkpoint schema: {self.db_path}")

    async def _run(self, func: Any, *args: Any) -> Any:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, func, *args)

    async def save(self, checkpoint: Checkpoint) -> None:
        """Save a checkpoint to SQLite.

        Raises:
            CheckpointError: If the checkpoint cannot be serialised or written
        """
        payload = _dumps(checkpoint)
        await self._run(self._save_sync, checkpoint, payload)

    def _save_sync(self, checkpoint: Checkpoint, payload: str) -> None:
        conn = self._get_connection()
        try:
            with conn:
                conn.execute(
                    f"""
                    INSERT INTO {self.table_name}
                    (checkpoint_id, thread_id, status, step, timestamp, data)
                    VALUES (?, ?, ?, ?, ?, ?)
                """,
                    (
                        checkpoint.checkpoint_id,
                        checkpoint.thread_id,
                        checkpoint.status.value,
                        checkpoint.step,
                        checkpoint.timestamp,
                        payload,
                    ),
                )
        except sqlite3.Error as e:
            raise CheckpointError(f"Failed to save checkpoint: {e}") from e
        logger.debug(
            f"Saved checkpoint: {checkpoint.checkpoint_id} "
            f"(thread: {checkpoint.thread_id}, node: {checkpoint.current_node})"
        )

    async def load(self, thread_id: str) -> Optional[Checkpoint]:
        """Load the latest checkpoint for a thread.

        Args:
            thread_id: Thread identifier

        Returns:
            Latest checkpoint or None if not found
        """
        return await self._run(self._load_sync, thread_id)

    def _load_sync(self, thread_id: str) -> Optional[Checkpoint]:
        conn = self._get_connection()
        row = conn.execute(
            f"""
            SELECT data FROM {self.table_name}
            WHERE thread_id = ?
            ORDER BY seq DESC
            LIMIT 1
        """,
            (thread_id,),
        ).fetchone()
        if row is None:
            return None
        return _loads(row["data"])

    async def list(self, thread_id: str) -> List[Checkpoint]:
        """List all checkpoints for a thread, oldest first."""
        return await self._run(self._list_sync, thread_id)

    def _list_sync(self, thread_id: str) -> List[Checkpoint]:
        conn = self._get_connection()
        rows = conn.execute(
            f"""
            SELECT data FROM {self.table_name}
            WHERE thread_id = ?
            ORDER BY seq ASC
        """,
            (thread_id,),
        ).fetchall()
        return [_loads(row["data"]) for row in rows]

    async def delete_thread(self, thread_id: str) -> int:
        """Delete all checkpoints for a thread.

        Returns:
            Number of checkpoints deleted
        """
        return await self._run(self._delete_thread_sync, thread_id)

    def _delete_thread_sync(self, thread_id: str) -> int:
        conn = self._get_connection()
        with conn:
            cursor = conn.execute(
                f"DELETE FROM {self.table_name} WHERE thread_id = ?",
                (thread_id,),
            )
        return cursor.rowcount

    async def cleanup(self, max_age_hours: int = 24, max_per_thread: int = 10) -> int:
        """Clean up old checkpoints.

        The latest checkpoint of every thread is always kept.

        Args:
            max_age_hours: Delete checkpoints older than this
            max_per_thread: Keep only this many per thread

        Returns:
            Number of checkpoints deleted
        """
        return await self._run(self._cleanup_sync, max_age_hours, max(1, max_per_thread))

    def _cleanup_sync(self, max_age_hours: int, max_per_thread: int) -> int:
        conn = self._get_connection()
        cutoff = time.time() - (max_age_hours * 3600)
        deleted = 0
        with conn:
            threads = conn.execute(
                f"SELECT DISTINCT thread_id FROM {self.table_name}"
            ).fetchall()
            for (thread_id,) in threads:
                keep = conn.execute(
                    f"""
                    SELECT seq FROM {self.table_name}
                    WHERE thread_id = ?
                    ORDER BY seq DESC
                    LIMIT ?
                """,
                    (thread_id, max_per_thread),
                ).fetchall()
                keep_seqs = [row[0] for row in keep]
                latest = keep_seqs[0]
                placeholders = ",".join("?" * len(keep_seqs))
                cursor = conn.execute(
                    f"""
                    DELETE FROM {self.table_name}
                    WHERE thread_id = ? AND seq != ?
                    AND (seq NOT IN ({placeholders}) OR timestamp < ?)
                """,
                    (thread_id, latest, *keep_seqs, cutoff),
                )
                deleted += cursor.rowcount
        logger.info(f"Cleaned up {deleted} checkpoints")
        return deleted

    def close(self) -> None:
        """Close database connection."""
        if self._conn:
            self._conn.close()
            self._conn = None


class JSONFileCheckpointer:
    """JSON file-based checkpointer for simple storage.

    Stores each checkpoint as a separate JSON file under one directory per
    thread. File names carry a sequence number so ordering does not depend
    on filesystem timestamps.

    Attributes:
        base_dir: Directory to store checkpoint files
    """

    def __init__(self, base_dir: str | Path = "~/.loom/checkpoints"):
        """Initialize JSON file checkpointer.

        Args:
            base_dir: Directory for checkpoint files
        """
        self.base_dir = Path(os.path.expanduser(str(base_dir)))
        self.base_dir.mkdir(parents=True, exist_ok=True)

    def _get_thread_dir(self, thread_id: str, create: bool = False) -> Path:
        """Get directory for a thread's checkpoints."""
        if not thread_id or "/" in thread_id or "\\" in thread_id or thread_id in (".", ".."):
            raise CheckpointError(f"Invalid thread id for file storage: {thread_id!r}")
        thread_dir = self.base_dir / thread_id
        if create:
            thread_dir.mkdir(parents=True, exist_ok=True)
        return thread_dir

    def _files(self, thread_id: str) -> List[Path]:
        thread_dir = self._get_thread_dir(thread_id)
        if not thread_dir.is_dir():
            return []
        return sorted(thread_dir.glob("*.json"))

    async def save(self, checkpoint: Checkpoint) -> None:
        """Save checkpoint to JSON file atomically."""
        payload = _dumps(checkpoint)
        thread_dir = self._get_thread_dir(checkpoint.thread_id, create=True)
        seq = len(self._files(checkpoint.thread_id))
        filepath = thread_dir / f"{seq:08d}_{checkpoint.checkpoint_id}.json"

        fd, tmp_path = tempfile.mkstemp(dir=thread_dir, suffix=".tmp")
        try:
            with os.fdopen(fd, "w") as f:
                f.write(payload)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, filepath)
        except OSError as e:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise CheckpointError(f"Failed to write checkpoint {filepath}: {e}") from e

        logger.debug(f"Saved checkpoint to: {filepath}")

    async def load(self, thread_id: str) -> Optional[Checkpoint]:
        """Load latest checkpoint for thread."""
        files = self._files(thread_id)
        if not files:
            return None
        return self._read(files[-1])

    async def list(self, thread_id: str) -> List[Checkpoint]:
        """List all checkpoints for thread, oldest first."""
        return [self._read(path) for path in self._files(thread_id)]

    async def delete_thread(self, thread_id: str) -> int:
        files = self._files(thread_id)
        for path in files:
            path.unlink()
        thread_dir = self._get_thread_dir(thread_id)
        if thread_dir.is_dir() and not any(thread_dir.iterdir()):
            thread_dir.rmdir()
        return len(files)

    @staticmethod
    def _read(path: Path) -> Checkpoint:
        try:
            with open(path) as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise CheckpointError(f"Failed to read checkpoint {path}: {e}") from e
        return Checkpoint.from_dict(data)


def create_checkpointer(
    backend: str = "memory", path: Optional[str | Path] = None
) -> CheckpointerProtocol:
    """Create a checkpointer for a backend name.

    Args:
        backend: "memory", "sqlite" or "json"
        path: Database file (sqlite) or directory (json)

    Raises:
        ValueError: If the backend is unknown
    """
    backend = backend.lower()
    if backend == "memory":
        return MemoryCheckpointer()
    if backend == "sqlite":
        return SQLiteCheckpointer(path) if path else SQLiteCheckpointer()
    if backend == "json":
        return JSONFileCheckpointer(path) if path else JSONFileCheckpointer()
    raise ValueError(f"Unknown checkpointer backend '{backend}'. Available: memory, sqlite, json")


__all__ = [
    "SQLiteCheckpointer",
    "JSONFileCheckpointer",
    "create_checkpointer",
]
