"""SQLite-based file processing state tracker.

Records each data file of a batch as it is normalized, so an interrupted
batch can be restarted without redoing finished files.
"""

import sqlite3
import logging
from pathlib import Path
from datetime import datetime, timezone
from typing import Optional, Dict, List
import threading

logger = logging.getLogger(__name__)

__all__ = ['FileProcessingTracker']


class FileProcessingTracker:
    """Tracks the normalization state of each data file.

    **Database Schema:**

    SQLite table `file_processing`:

    - file_id: Unique file name (e.g., sample01.gpr, chip7.CEL)
    - file_path: Source path
    - data_type: Declared role (raw, normalized, ...)
    - status: pending, completed, failed
    - Results: format_type, qt_type, row_count, percent_null, md5, output_path
    - error_message: Exception text of a failed attempt
    - Timestamps: registered_at, normalized_at, updated_at

    **Resumability:**

    Completed files are skipped on the next run. Use `reset_failed()` to
    retry failed files and `cleanup_deleted_files()` to forget files that
    were removed from disk.

    **Thread Safety:**

    All methods are thread-safe via internal locking; worker threads of the
    batch pool share one tracker.

    Example::

        with FileProcessingTracker(db_path) as tracker:
            tracker.register_file("sample01.gpr", path, "raw")
            if tracker.should_process("sample01.gpr"):
                ...
                tracker.mark_complete("sample01.gpr", output_path, record)
    """

    # Record keys stored in format_type, qt_type, row_count, percent_null, md5
    _RECORD_KEYS = ('format_type', 'qt_type', 'rows', 'percent_null', 'md5')

    def __init__(self, db_path: Path | str):
        """Initialize tracker.

        Parameters
        ----------
        db_path : Path or str
            Path to SQLite database file. Created if it doesn't exist.
        """
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        self._conn = None
        self._lock = threading.Lock()

        self._init_database()
        logger.info("File tracker initialized: %s", self.db_path)

    def _get_connection(self) -> sqlite3.Connection:
        if self._conn is None:
            self._conn = sqlite3.connect(str(self.db_path), check_same_thread=False)
            self._conn.row_factory = sqlite3.Row
        return self._conn

    def _init_database(self):
        """Create database schema if it doesn't exist."""
        conn = self._get_connection()

        with self._lock:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS file_processing (
                    file_id TEXT PRIMARY KEY,
                    file_path TEXT NOT NULL,
                    data_type TEXT,

                    format_type TEXT,
                    qt_type TEXT,
                    row_count INTEGER,
                    percent_null TEXT,
                    md5 TEXT,
                    output_path TEXT,

                    status TEXT DEFAULT 'pending',
                    error_message TEXT,

                    registered_at TEXT,
                    normalized_at TEXT,
                    updated_at TEXT
                )
            """)
            conn.execute("CREATE INDEX IF NOT EXISTS idx_status ON file_processing(status)")
            conn.commit()

    @staticmethod
    def _now() -> str:
        return datetime.now(timezone.utc).isoformat()

    def register_file(self, file_id: str, file_path: Path | str,
                      data_type: Optional[str] = None) -> bool:
        """Register a file for tracking.

        Returns
        -------
        bool
            True if newly registered, False if already known. A duplicate
            registration is not an error.
        """
        conn = self._get_connection()

        with self._lock:
            cursor = conn.execute("SELECT file_id FROM file_processing WHERE file_id = ?", (file_id,))
            if cursor.fetchone():
                return False

            now = self._now()
            conn.execute("""
                INSERT INTO file_processing
                (file_id, file_path, data_type, status, registered_at, updated_at)
                VALUES (?, ?, ?, 'pending', ?, ?)
            """, (file_id, str(file_path), data_type, now, now))
            conn.commit()

            logger.debug("Registered file: %s", file_id)
            return True

    def mark_complete(self, file_id: str, output_path: Optional[Path | str] = None,
                      record: Optional[Dict] = None):
        """Store the results of a successful normalization.

        Parameters
        ----------
        file_id : str
            File identifier (registered via register_file).
        output_path : Path or str, optional
            Canonical file written for this input.
        record : dict, optional
            Metrics record; its ``format_type``, ``qt_type``, ``rows``,
            ``percent_null`` and ``md5`` entries are stored.
        """
        record = record or {}
        conn = self._get_connection()
        now = self._now()

        with self._lock:
            conn.execute("""
                UPDATE file_processing
                SET format_type = ?,
                    qt_type = ?,
                    row_count = ?,
                    percent_null = ?,
                    md5 = ?,
                    output_path = ?,
                    status = 'completed',
                    error_message = NULL,
                    normalized_at = ?,
                    updated_at = ?
                WHERE file_id = ?
            """, (
                *(record.get(key) for key in self._RECORD_KEYS),
                str(output_path) if output_path else None,
                now,
                now,
                file_id,
            ))
            conn.commit()

            logger.debug("Marked complete: %s", file_id)

    def mark_failed(self, file_id: str, error: str):
        """Record a failed attempt; the file is retried after reset_failed()."""
        conn = self._get_connection()

        with self._lock:
            conn.execute("""
                UPDATE file_processing
                SET status = 'failed', error_message = ?, updated_at = ?
                WHERE file_id = ?
            """, (error, self._now(), file_id))
            conn.commit()

            logger.debug("Marked failed: %s", file_id)

    def get_file_status(self, file_id: str) -> Optional[Dict]:
        """Full record for a file, or None if not registered."""
        conn = self._get_connection()

        with self._lock:
            cursor = conn.execute("SELECT * FROM file_processing WHERE file_id = ?", (file_id,))
            row = cursor.fetchone()
            return dict(row) if row else None

    def get_pending_files(self, limit: Optional[int] = None) -> List[Dict]:
        """Files registered but not yet completed or failed, oldest first."""
        conn = self._get_connection()

        query = "SELECT * FROM file_processing WHERE status = 'pending' ORDER BY registered_at, file_id"
        params = []
        if limit:
            query += " LIMIT ?"
            params.append(limit)

        with self._lock:
            cursor = conn.execute(query, params)
            return [dict(row) for row in cursor.fetchall()]

    def get_statistics(self) -> Dict:
        """Counts by status plus the total of normalized rows."""
        conn = self._get_connection()

        with self._lock:
            cursor = conn.execute("""
                SELECT
                    COUNT(*) as total,
                    SUM(CASE WHEN status = 'completed' THEN 1 ELSE 0 END) as completed,
                    SUM(CASE WHEN status = 'failed' THEN 1 ELSE 0 END) as failed,
                    SUM(CASE WHEN status = 'pending' THEN 1 ELSE 0 END) as pending,
                    SUM(row_count) as total_rows
                FROM file_processing
            """)
            row = cursor.fetchone()
            return {k: (v or 0) for k, v in dict(row).items()} if row else {}

    def should_process(self, file_id: str) -> bool:
        """True unless the file has already been normalized."""
        status = self.get_file_status(file_id)
        if not status:
            return True
        return status.get('status') != 'completed'

    def reset_failed(self):
        """Reset all failed files to pending for retry."""
        conn = self._get_connection()

        with self._lock:
            conn.execute("""
                UPDATE file_processing
                SET status = 'pending', error_message = NULL, updated_at = ?
                WHERE status = 'failed'
            """, (self._now(),))
            conn.commit()

            logger.info("Reset failed files to pending")

    def cleanup_deleted_files(self) -> List[str]:
        """Remove records whose source file no longer exists on disk.

        Returns
        -------
        list of str
            The removed file ids.
        """
        conn = self._get_connection()

        with self._lock:
            cursor = conn.execute("SELECT file_id, file_path FROM file_processing")
            deleted = [
                row['file_id'] for row in cursor.fetchall()
                if not Path(row['file_path']).exists()
            ]

            if deleted:
                placeholders = ','.join('?' * len(deleted))
                conn.execute(
                    f"DELETE FROM file_processing WHERE file_id IN ({placeholders})", deleted
                )
                conn.commit()
                logger.info("Cleaned up %d deleted file(s)", len(deleted))
            return deleted

    def close(self):
        """Close database connection. Safe to call multiple times."""
        if self._conn:
            self._conn.close()
            self._conn = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
