from __future__ import annotations

import logging
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from threading import RLock
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Union

from pydantic import ValidationError as PydanticValidationError

from .crypto import FieldCipher
from .errors import (
    AuthorizationError,
    DuplicateEmailError,
    NotFoundError,
    ValidationError,
)
from .models import TASK_STATUSES, TaskEntity, UserEntity
from .schemas import TaskCreate, TaskUpdate
from .settings import Settings
from .utils import field_errors

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 50


@dataclass(frozen=True)
class ListQuery:
    """
    Query parameters for listing a user's tasks.
    """
    page: int = 1
    page_size: int = 10
    status: Optional[str] = None  # None or 'all' means every status
    search: Optional[str] = None  # case-insensitive substring of the title

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return uuid.uuid4().hex


# PUBLIC_INTERFACE
class UserStore(ABC):
    """Abstract storage contract for user records."""

    @abstractmethod
    def insert(self, user: UserEntity) -> UserEntity:
        """Persist a new user. Raise DuplicateEmailError if the email is taken."""

    @abstractmethod
    def get(self, user_id: str) -> Optional[UserEntity]:
        """Return a user by id, or None if not found."""

    @abstractmethod
    def get_by_email(self, email: str) -> Optional[UserEntity]:
        """Return a user by (lower-cased) email, or None if not found."""

    @abstractmethod
    def ping(self) -> None:
        """Raise if the backing storage is unreachable."""


# PUBLIC_INTERFACE
class TaskStore(ABC):
    """
    Abstract storage contract for raw task records.

    Stores see descriptions exactly as persisted (encrypted envelopes); the
    TaskRepository owns encryption and ownership rules.
    """

    @abstractmethod
    def insert(self, task: TaskEntity) -> TaskEntity:
        """Persist a new task and return it."""

    @abstractmethod
    def get(self, task_id: str) -> Optional[TaskEntity]:
        """Return a task by id, or None if not found."""

    @abstractmethod
    def update(self, task_id: str, fields: Mapping[str, Any]) -> Optional[TaskEntity]:
        """Overwrite the given fields. Return the updated task or None if not found."""

    @abstractmethod
    def delete(self, task_id: str) -> bool:
        """Delete a task by id. Return True if deleted, False if not found."""

    @abstractmethod
    def find(self, owner_id: str, query: ListQuery) -> Tuple[List[TaskEntity], int]:
        """
        Return one page of the owner's tasks and the total count matching filters.
        - Always restricted to owner_id
        - Optional status filter
        - Case-insensitive substring search on title only
        - Newest first by created_at, ties broken by insertion order
        """

    @abstractmethod
    def ping(self) -> None:
        """Raise if the backing storage is unreachable."""


class InMemoryUserStore(UserStore):
    """
    Thread-safe in-memory user store suitable for testing and default runtime.
    """

    def __init__(self) -> None:
        self._lock = RLock()
        self._items: Dict[str, UserEntity] = {}
        self._by_email: Dict[str, str] = {}

    def insert(self, user: UserEntity) -> UserEntity:
        with self._lock:
            if user["email"] in self._by_email:
                raise DuplicateEmailError()
            self._items[user["id"]] = user.copy()  # type: ignore[typeddict-item]
            self._by_email[user["email"]] = user["id"]
            return user.copy()  # type: ignore[return-value]

    def get(self, user_id: str) -> Optional[UserEntity]:
        with self._lock:
            item = self._items.get(user_id)
            return None if item is None else item.copy()  # type: ignore[return-value]

    def get_by_email(self, email: str) -> Optional[UserEntity]:
        with self._lock:
            user_id = self._by_email.get(email)
            return None if user_id is None else self.get(user_id)

    def ping(self) -> None:
        return None


class InMemoryTaskStore(TaskStore):
    """
    Thread-safe in-memory task store suitable for testing and default runtime.
    """

    def __init__(self) -> None:
        self._lock = RLock()
        self._items: Dict[str, TaskEntity] = {}
        self._seq: Dict[str, int] = {}
        self._next_seq = 1

    def insert(self, task: TaskEntity) -> TaskEntity:
        with self._lock:
            self._items[task["id"]] = task.copy()  # type: ignore[typeddict-item]
            self._seq[task["id"]] = self._next_seq
            self._next_seq += 1
            return task.copy()  # type: ignore[return-value]

    def get(self, task_id: str) -> Optional[TaskEntity]:
        with self._lock:
            item = self._items.get(task_id)
            return None if item is None else item.copy()  # type: ignore[return-value]

    def update(self, task_id: str, fields: Mapping[str, Any]) -> Optional[TaskEntity]:
        with self._lock:
            existing = self._items.get(task_id)
            if existing is None:
                return None
            updated = existing.copy()
            updated.update(fields)  # type: ignore[typeddict-item]
            self._items[task_id] = updated  # type: ignore[assignment]
            return updated.copy()  # type: ignore[return-value]

    def delete(self, task_id: str) -> bool:
        with self._lock:
            self._seq.pop(task_id, None)
            return self._items.pop(task_id, None) is not None

    def find(self, owner_id: str, query: ListQuery) -> Tuple[List[TaskEntity], int]:
        with self._lock:
            items: Iterable[TaskEntity] = [t for t in self._items.values() if t["owner_id"] == owner_id]

            if query.status and query.status != "all":
                items = [t for t in items if t["status"] == query.status]

            if query.search:
                s = query.search.casefold()
                items = [t for t in items if s in t["title"].casefold()]

            items = list(items)
            total = len(items)

            items_sorted = sorted(
                items,
                key=lambda t: (t["created_at"], self._seq[t["id"]]),
                reverse=True,
            )

            start = query.offset
            page = items_sorted[start:start + query.page_size]

            # Return copies to avoid external mutation
            return [t.copy() for t in page], total  # type: ignore[misc]

    def ping(self) -> None:
        return None


# PUBLIC_INTERFACE
class TaskRepository:
    """
    Owner-scoped task access with description encryption at the storage boundary.

    Descriptions are sealed with the FieldCipher before they reach the store
    and opened with ``safe_decrypt`` on the way out, so callers only ever see
    cleartext. Ownership is checked by loading the record and comparing
    owners: a missing id is NotFoundError, someone else's id is
    AuthorizationError.
    """

    def __init__(self, store: TaskStore, cipher: FieldCipher) -> None:
        self._store = store
        self._cipher = cipher

    def _seal(self, description: str) -> str:
        return self._cipher.encrypt(description) if description else ""

    def _open(self, task: TaskEntity) -> TaskEntity:
        out = task.copy()
        out["description"] = self._cipher.safe_decrypt(task.get("description") or "")
        return out  # type: ignore[return-value]

    def _load_owned(self, task_id: str, owner_id: str) -> TaskEntity:
        task = self._store.get(task_id)
        if task is None:
            raise NotFoundError("Task not found")
        if task["owner_id"] != owner_id:
            raise AuthorizationError("Forbidden")
        return task

    def create(self, owner_id: str, data: TaskCreate) -> TaskEntity:
        now = utcnow()
        entity: TaskEntity = {
            "id": new_id(),
            "title": data.title,
            "description": self._seal(data.description),
            "status": data.status,
            "owner_id": owner_id,
            "created_at": now,
            "updated_at": now,
        }
        created = self._store.insert(entity)
        logger.debug("Created task %s for owner %s", created["id"], owner_id)
        out = created.copy()
        out["description"] = data.description
        return out  # type: ignore[return-value]

    def get(self, task_id: str, owner_id: str) -> TaskEntity:
        return self._open(self._load_owned(task_id, owner_id))

    def list(self, owner_id: str, query: Optional[ListQuery] = None) -> Tuple[List[TaskEntity], int]:
        q = query or ListQuery()
        if not owner_id:
            raise ValidationError("An owner is required to list tasks")
        if q.page < 1:
            raise ValidationError("page must be >= 1", details={"page": ["must be >= 1"]})
        if not 1 <= q.page_size <= MAX_PAGE_SIZE:
            raise ValidationError(
                f"limit must be between 1 and {MAX_PAGE_SIZE}",
                details={"limit": [f"must be between 1 and {MAX_PAGE_SIZE}"]},
            )
        if q.status not in (None, "all") and q.status not in TASK_STATUSES:
            raise ValidationError("Unknown status filter", details={"status": ["unknown status"]})

        search = q.search.strip() if q.search else None
        items, total = self._store.find(
            owner_id,
            ListQuery(page=q.page, page_size=q.page_size, status=q.status, search=search or None),
        )
        return [self._open(t) for t in items], total

    def update(
        self,
        task_id: str,
        owner_id: str,
        patch: Union[TaskUpdate, Mapping[str, Any]],
    ) -> TaskEntity:
        self._load_owned(task_id, owner_id)

        if isinstance(patch, TaskUpdate):
            data = patch
        else:
            try:
                data = TaskUpdate.model_validate(patch)
            except PydanticValidationError as e:
                raise ValidationError("Validation failed", details=field_errors(e.errors())) from e

        # Update only provided fields
        fields: Dict[str, Any] = {}
        if data.title is not None:
            fields["title"] = data.title
        if data.status is not None:
            fields["status"] = data.status
        if data.description is not None:
            fields["description"] = self._seal(data.description)
        fields["updated_at"] = utcnow()

        updated = self._store.update(task_id, fields)
        if updated is None:
            # Deleted between load and write
            raise NotFoundError("Task not found")
        return self._open(updated)

    def delete(self, task_id: str, owner_id: str) -> None:
        self._load_owned(task_id, owner_id)
        if not self._store.delete(task_id):
            raise NotFoundError("Task not found")
        logger.debug("Deleted task %s for owner %s", task_id, owner_id)


# PUBLIC_INTERFACE
def build_stores(settings: Settings) -> Tuple[UserStore, TaskStore]:
    """
    Factory returning the configured user and task stores based on settings.
    - memory: InMemoryUserStore / InMemoryTaskStore
    - sqlite: SQLiteUserStore / SQLiteTaskStore sharing one connection
    """
    if settings.persistence_backend == "sqlite":
        from .db import SQLiteDatabase, SQLiteTaskStore, SQLiteUserStore

        database = SQLiteDatabase(settings.sqlite_db_path)
        logger.info("Using sqlite persistence at %s", settings.sqlite_db_path)
        return SQLiteUserStore(database), SQLiteTaskStore(database)
    logger.info("Using in-memory persistence")
    return InMemoryUserStore(), InMemoryTaskStore()
