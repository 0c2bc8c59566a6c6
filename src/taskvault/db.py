from __future__ import annotations

import os
import sqlite3
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from threading import RLock
from typing import Any, Generator, List, Mapping, Optional, Tuple

from .errors import DuplicateEmailError
from .models import TaskEntity, UserEntity
from .repositories import ListQuery, TaskStore, UserStore


@dataclass(frozen=True)
class _TaskCols:
    table: str = "tasks"
    id: str = "id"
    title: str = "title"
    description: str = "description"
    status: str = "status"
    owner_id: str = "owner_id"
    created_at: str = "created_at"
    updated_at: str = "updated_at"


@dataclass(frozen=True)
class _UserCols:
    table: str = "users"
    id: str = "id"
    name: str = "name"
    email: str = "email"
    password_hash: str = "password_hash"
    created_at: str = "created_at"


_T = _TaskCols()
_U = _UserCols()

_UPDATABLE = {_T.title, _T.description, _T.status, _T.updated_at}


def _casefold(value: Optional[str]) -> Optional[str]:
    return value.casefold() if value is not None else None


class SQLiteDatabase:
    """
    One SQLite connection shared by every request for the life of the process.

    sqlite3 connections are not safe for concurrent use, so every statement
    runs under a lock; FastAPI's worker threads serialize here.
    """

    def __init__(self, db_path: str) -> None:
        if db_path != ":memory:":
            os.makedirs(os.path.dirname(db_path) or ".", exist_ok=True)
        self._db_path = db_path
        self._lock = RLock()
        self._connection = sqlite3.connect(db_path, check_same_thread=False)
        self._connection.row_factory = sqlite3.Row
        self._connection.create_function("casefold", 1, _casefold, deterministic=True)
        self._init_db()

    @contextmanager
    def conn(self) -> Generator[sqlite3.Connection, None, None]:
        with self._lock:
            try:
                yield self._connection
                self._connection.commit()
            except BaseException:
                self._connection.rollback()
                raise

    def close(self) -> None:
        with self._lock:
            self._connection.close()

    def _init_db(self) -> None:
        with self.conn() as conn:
            conn.execute(
                f"""
                CREATE TABLE IF NOT EXISTS {_U.table} (
                    {_U.id} TEXT PRIMARY KEY,
                    {_U.name} TEXT NOT NULL,
                    {_U.email} TEXT NOT NULL UNIQUE,
                    {_U.password_hash} TEXT NOT NULL,
                    {_U.created_at} TEXT NOT NULL
                )
                """
            )
            conn.execute(
                f"""
                CREATE TABLE IF NOT EXISTS {_T.table} (
                    {_T.id} TEXT PRIMARY KEY,
                    {_T.title} TEXT NOT NULL,
                    {_T.description} TEXT NOT NULL DEFAULT '',
                    {_T.status} TEXT NOT NULL DEFAULT 'todo',
                    {_T.owner_id} TEXT NOT NULL,
                    {_T.created_at} TEXT NOT NULL,
                    {_T.updated_at} TEXT NOT NULL
                )
                """
            )
            conn.execute(
                f"CREATE INDEX IF NOT EXISTS idx_{_T.table}_owner_created "
                f"ON {_T.table}({_T.owner_id}, {_T.created_at} DESC)"
            )
            conn.execute(
                f"CREATE INDEX IF NOT EXISTS idx_{_T.table}_owner_status "
                f"ON {_T.table}({_T.owner_id}, {_T.status})"
            )


def _row_to_user(row: sqlite3.Row) -> UserEntity:
    return {
        "id": str(row[_U.id]),
        "name": str(row[_U.name]),
        "email": str(row[_U.email]),
        "password_hash": str(row[_U.password_hash]),
        "created_at": datetime.fromisoformat(row[_U.created_at]),
    }


def _row_to_task(row: sqlite3.Row) -> TaskEntity:
    return {
        "id": str(row[_T.id]),
        "title": str(row[_T.title]),
        "description": row[_T.description] or "",
        "status": str(row[_T.status]),
        "owner_id": str(row[_T.owner_id]),
        "created_at": datetime.fromisoformat(row[_T.created_at]),
        "updated_at": datetime.fromisoformat(row[_T.updated_at]),
    }


class SQLiteUserStore(UserStore):
    """
    SQLite-backed user store. Email uniqueness is enforced by the schema.
    """

    def __init__(self, database: SQLiteDatabase) -> None:
        self._db = database

    def insert(self, user: UserEntity) -> UserEntity:
        try:
            with self._db.conn() as conn:
                conn.execute(
                    f"""
                    INSERT INTO {_U.table} ({_U.id}, {_U.name}, {_U.email}, {_U.password_hash}, {_U.created_at})
                    VALUES (?, ?, ?, ?, ?)
                    """,
                    (user["id"], user["name"], user["email"], user["password_hash"], user["created_at"].isoformat()),
                )
        except sqlite3.IntegrityError as e:
            raise DuplicateEmailError() from e
        return user.copy()  # type: ignore[return-value]

    def get(self, user_id: str) -> Optional[UserEntity]:
        with self._db.conn() as conn:
            row = conn.execute(f"SELECT * FROM {_U.table} WHERE {_U.id} = ?", (user_id,)).fetchone()
            return _row_to_user(row) if row else None

    def get_by_email(self, email: str) -> Optional[UserEntity]:
        with self._db.conn() as conn:
            row = conn.execute(f"SELECT * FROM {_U.table} WHERE {_U.email} = ?", (email,)).fetchone()
            return _row_to_user(row) if row else None

    def ping(self) -> None:
        with self._db.conn() as conn:
            conn.execute("SELECT 1").fetchone()


class SQLiteTaskStore(TaskStore):
    """
    SQLite-backed task store implementing the TaskStore interface.
    """

    def __init__(self, database: SQLiteDatabase) -> None:
        self._db = database

    def insert(self, task: TaskEntity) -> TaskEntity:
        with self._db.conn() as conn:
            conn.execute(
                f"""
                INSERT INTO {_T.table} ({_T.id}, {_T.title}, {_T.description}, {_T.status},
                    {_T.owner_id}, {_T.created_at}, {_T.updated_at})
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    task["id"],
                    task["title"],
                    task["description"],
                    task["status"],
                    task["owner_id"],
                    task["created_at"].isoformat(),
                    task["updated_at"].isoformat(),
                ),
            )
            row = conn.execute(f"SELECT * FROM {_T.table} WHERE {_T.id} = ?", (task["id"],)).fetchone()
            assert row is not None
            return _row_to_task(row)

    def get(self, task_id: str) -> Optional[TaskEntity]:
        with self._db.conn() as conn:
            row = conn.execute(f"SELECT * FROM {_T.table} WHERE {_T.id} = ?", (task_id,)).fetchone()
            return _row_to_task(row) if row else None

    def update(self, task_id: str, fields: Mapping[str, Any]) -> Optional[TaskEntity]:
        unknown = set(fields) - _UPDATABLE
        if unknown:
            raise ValueError(f"Cannot update columns: {sorted(unknown)}")

        assignments = []
        params: List[Any] = []
        for column, value in fields.items():
            assignments.append(f"{column} = ?")
            params.append(value.isoformat() if isinstance(value, datetime) else value)

        with self._db.conn() as conn:
            if assignments:
                conn.execute(
                    f"UPDATE {_T.table} SET {', '.join(assignments)} WHERE {_T.id} = ?",
                    [*params, task_id],
                )
            row = conn.execute(f"SELECT * FROM {_T.table} WHERE {_T.id} = ?", (task_id,)).fetchone()
            return _row_to_task(row) if row else None

    def delete(self, task_id: str) -> bool:
        with self._db.conn() as conn:
            cur = conn.execute(f"DELETE FROM {_T.table} WHERE {_T.id} = ?", (task_id,))
            return cur.rowcount > 0

    def find(self, owner_id: str, query: ListQuery) -> Tuple[List[TaskEntity], int]:
        clauses = [f"{_T.owner_id} = ?"]
        params: List[Any] = [owner_id]

        if query.status and query.status != "all":
            clauses.append(f"{_T.status} = ?")
            params.append(query.status)

        if query.search:
            # Literal substring match; no LIKE wildcards from user input
            clauses.append(f"instr(casefold({_T.title}), ?) > 0")
            params.append(query.search.casefold())

        where_sql = f"WHERE {' AND '.join(clauses)}"
        order_sql = f"ORDER BY {_T.created_at} DESC, rowid DESC"

        with self._db.conn() as conn:
            count_row = conn.execute(
                f"SELECT COUNT(*) as cnt FROM {_T.table} {where_sql}", params
            ).fetchone()
            total = int(count_row["cnt"]) if count_row else 0
            if query.offset >= total:
                return [], total

            rows = conn.execute(
                f"""
                SELECT * FROM {_T.table}
                {where_sql}
                {order_sql}
                LIMIT ? OFFSET ?
                """,
                [*params, query.page_size, query.offset],
            ).fetchall()
            return [_row_to_task(r) for r in rows], total

    def ping(self) -> None:
        with self._db.conn() as conn:
            conn.execute("SELECT 1").fetchone()
