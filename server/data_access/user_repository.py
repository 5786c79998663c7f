# server/data_access/user_repository.py
from typing import Any, Dict, Iterable, List, Mapping, Optional

from storage.sqlite.database import get_connection

from .seed_data import DEMO_PROFILES


# --- Schema init (idempotent) -------------------------------------------------
def ensure_users_table() -> None:
    """Create users table if it doesn't exist. Safe to call multiple times."""
    with get_connection() as conn:
        cur = conn.cursor()
        cur.execute("""
        CREATE TABLE IF NOT EXISTS users (
            id TEXT PRIMARY KEY,
            name TEXT NOT NULL,
            email TEXT UNIQUE NOT NULL,
            role TEXT NOT NULL,
            avatar TEXT,
            created_at TEXT DEFAULT (datetime('now'))
        )
        """)
        conn.commit()


def seed_demo_profiles(profiles: Iterable[Mapping[str, Any]] = DEMO_PROFILES) -> None:
    """Insert the role-switcher profiles; existing ids are left untouched."""
    ensure_users_table()
    with get_connection() as conn:
        cur = conn.cursor()
        cur.executemany(
            "INSERT OR IGNORE INTO users (id, name, email, role, avatar) VALUES (?, ?, ?, ?, ?)",
            [(p["id"], p["name"], p["email"], p["role"], p.get("avatar")) for p in profiles],
        )
        conn.commit()


# --- Row factory to dict ------------------------------------------------------
def _dict_factory(cursor, row):
    return {col[0]: row[idx] for idx, col in enumerate(cursor.description)}


# --- CRUD ---------------------------------------------------------------------
def create_user(user_id: str, name: str, email: str, role: str, avatar: Optional[str] = None) -> str:
    with get_connection() as conn:
        cur = conn.cursor()
        cur.execute(
            "INSERT INTO users (id, name, email, role, avatar) VALUES (?, ?, ?, ?, ?)",
            (user_id, name, email, role, avatar),
        )
        conn.commit()
        return user_id


def find_user_by_id(user_id: str) -> Optional[Dict[str, Any]]:
    with get_connection() as conn:
        conn.row_factory = _dict_factory
        cur = conn.cursor()
        cur.execute("SELECT * FROM users WHERE id = ?", (user_id,))
        return cur.fetchone()


def find_user_by_email(email: str) -> Optional[Dict[str, Any]]:
    with get_connection() as conn:
        conn.row_factory = _dict_factory
        cur = conn.cursor()
        cur.execute("SELECT * FROM users WHERE email = ?", (email,))
        return cur.fetchone()


def list_users() -> List[Dict[str, Any]]:
    with get_connection() as conn:
        conn.row_factory = _dict_factory
        cur = conn.cursor()
        cur.execute("SELECT * FROM users ORDER BY created_at, id")
        return cur.fetchall()
