import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Optional, Union

DB_PATH = Path("storage/sqlite/scholarflow.db")


def configure(path: Union[str, Path]) -> None:
    global DB_PATH
    DB_PATH = Path(path)


def init_db() -> None:
    with get_connection() as conn:
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS kv_entries (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL,
                updated_at TEXT DEFAULT (datetime('now'))
            )
            """
        )
        # high-water marks; clearing kv_entries leaves them in place
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS kv_counters (
                key TEXT PRIMARY KEY,
                value INTEGER NOT NULL
            )
            """
        )
        conn.commit()


@contextmanager
def get_connection(db_path: Optional[Path] = None):
    path = Path(db_path) if db_path is not None else DB_PATH
    path.parent.mkdir(parents=True, exist_ok=True)
    connection = sqlite3.connect(path, isolation_level=None)
    try:
        yield connection
    finally:
        connection.close()
