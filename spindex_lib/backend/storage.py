"""
SQLite persistence for encoded silent blocks.

Blocks are stored as their raw wire encoding and served back byte for
byte, so the query side never re-encodes anything.
"""

import logging
import sqlite3
from typing import Optional

logger = logging.getLogger('spindex.storage')

_SCHEMA = """
CREATE TABLE IF NOT EXISTS silent_blocks (
    height INTEGER PRIMARY KEY,
    hash   TEXT    NOT NULL UNIQUE,
    data   BLOB    NOT NULL
)
"""


class SilentBlockStore:
    """
    Height- and hash-addressable store of encoded silent blocks.

    Lookups return None for unknown or not yet indexed blocks.
    """

    def __init__(self, path: str = ':memory:'):
        """
        Open (and create if needed) the store.

        Args:
            path: SQLite database file, or ':memory:'
        """
        self.path = path
        self._conn = sqlite3.connect(path)
        self._conn.execute(_SCHEMA)
        self._conn.commit()
        logger.debug(f"Opened silent block store at {path}")

    def __enter__(self) -> 'SilentBlockStore':
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def close(self) -> None:
        """Close the underlying connection."""
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def put(self, height: int, block_hash: str, data: bytes) -> None:
        """
        Store the encoded silent block of a block.

        Re-indexing a height replaces the previous entry.

        Args:
            height: Block height
            block_hash: Block hash (hex)
            data: Encoded silent block
        """
        with self._conn:
            self._conn.execute(
                "INSERT OR REPLACE INTO silent_blocks (height, hash, data) VALUES (?, ?, ?)",
                (height, block_hash.lower(), bytes(data))
            )

    def get_by_height(self, height: int) -> Optional[bytes]:
        """Return the encoded silent block at height, or None."""
        row = self._conn.execute(
            "SELECT data FROM silent_blocks WHERE height = ?", (height,)
        ).fetchone()
        return bytes(row[0]) if row else None

    def get_by_hash(self, block_hash: str) -> Optional[bytes]:
        """Return the encoded silent block of the block with this hex hash, or None."""
        row = self._conn.execute(
            "SELECT data FROM silent_blocks WHERE hash = ?", (block_hash.lower(),)
        ).fetchone()
        return bytes(row[0]) if row else None

    def has_height(self, height: int) -> bool:
        row = self._conn.execute(
            "SELECT 1 FROM silent_blocks WHERE height = ?", (height,)
        ).fetchone()
        return row is not None

    def latest_height(self) -> Optional[int]:
        """Return the highest indexed height, or None if the store is empty."""
        row = self._conn.execute("SELECT MAX(height) FROM silent_blocks").fetchone()
        return row[0]

    def count(self) -> int:
        return self._conn.execute("SELECT COUNT(*) FROM silent_blocks").fetchone()[0]
