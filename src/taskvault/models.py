from __future__ import annotations

from datetime import datetime
from typing import Literal, Tuple, TypedDict

TaskStatus = Literal["todo", "in-progress", "done"]
TASK_STATUSES: Tuple[str, ...] = ("todo", "in-progress", "done")


# PUBLIC_INTERFACE
class UserEntity(TypedDict):
    """
    A stored user record.

    Fields:
    - id: Unique identifier (uuid4 hex)
    - name: Display name (1..50 chars)
    - email: Lower-cased, unique email address
    - password_hash: bcrypt hash; never serialized outward
    - created_at: UTC creation timestamp
    """

    id: str
    name: str
    email: str
    password_hash: str
    created_at: datetime


# PUBLIC_INTERFACE
class TaskEntity(TypedDict):
    """
    A stored task record.

    Fields:
    - id: Unique identifier (uuid4 hex)
    - title: Short title (1..200 chars, trimmed on input via schemas)
    - description: Encrypted envelope at rest, cleartext once it leaves the repository
    - status: One of todo, in-progress, done
    - owner_id: Identifier of the owning user
    - created_at: UTC creation timestamp
    - updated_at: UTC last update timestamp
    """

    id: str
    title: str
    description: str
    status: str
    owner_id: str
    created_at: datetime
    updated_at: datetime
