from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from .models import TaskStatus


def _strip_bounded(value: str, field: str, min_len: int, max_len: int) -> str:
    s = value.strip()
    if not (min_len <= len(s) <= max_len):
        raise ValueError(f"{field} length must be between {min_len} and {max_len} characters")
    return s


# PUBLIC_INTERFACE
class RegisterRequest(BaseModel):
    """Schema for registering a new user."""

    model_config = ConfigDict(
        json_schema_extra={
            "example": {"name": "Ann", "email": "ann@example.com", "password": "pw123456"}
        }
    )

    name: str = Field(..., description="Display name", min_length=1, max_length=50)
    email: EmailStr = Field(..., description="Email address, unique case-insensitively")
    password: str = Field(..., description="Password", min_length=8, max_length=100)

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        return _strip_bounded(v, "name", 1, 50)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.strip().lower()


# PUBLIC_INTERFACE
class LoginRequest(BaseModel):
    """Schema for logging in."""

    email: EmailStr = Field(..., description="Email address")
    password: str = Field(..., description="Password", min_length=1)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.strip().lower()


# PUBLIC_INTERFACE
class UserOut(BaseModel):
    """Public projection of a user; never carries the password hash."""

    id: str
    name: str
    email: str


class AuthResponse(BaseModel):
    message: str
    user: UserOut


class MeResponse(BaseModel):
    user: UserOut


class MessageResponse(BaseModel):
    message: str


# PUBLIC_INTERFACE
class TaskCreate(BaseModel):
    """
    Schema for creating a new task.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "title": "Buy milk",
                "description": "2% organic",
                "status": "todo",
            }
        }
    )

    title: str = Field(..., description="Short title for the task", min_length=1, max_length=200)
    description: str = Field(default="", description="Optional detailed description", max_length=2000)
    status: TaskStatus = Field(default="todo", description="Workflow status")

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str) -> str:
        """
        Strip whitespace and enforce 1..200 length.
        """
        return _strip_bounded(v, "title", 1, 200)


# PUBLIC_INTERFACE
class TaskUpdate(BaseModel):
    """
    Schema for updating an existing task.
    All fields are optional; only provided fields will be updated.
    """

    model_config = ConfigDict(
        extra="ignore",
        json_schema_extra={"example": {"status": "done"}},
    )

    title: Optional[str] = Field(default=None, description="Short title for the task", min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, description="Detailed description; empty string clears it", max_length=2000)
    status: Optional[TaskStatus] = Field(default=None, description="Workflow status")

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: Optional[str]) -> Optional[str]:
        """
        If title is provided, strip whitespace and enforce 1..200 length.
        """
        if v is None:
            return v
        return _strip_bounded(v, "title", 1, 200)


# PUBLIC_INTERFACE
class TaskOut(BaseModel):
    """
    Schema returned by the API for a task. The description is always cleartext.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "id": "6f1c0d5e9a2b4c7d8e9f0a1b2c3d4e5f",
                "title": "Buy milk",
                "description": "2% organic",
                "status": "todo",
                "owner_id": "0a1b2c3d4e5f6a7b8c9d0e1f2a3b4c5d",
                "created_at": "2025-01-25T10:15:30.123456Z",
                "updated_at": "2025-01-26T09:00:00.000001Z",
            }
        }
    )

    id: str = Field(..., description="Unique identifier of the task")
    title: str = Field(..., description="Short title for the task")
    description: str = Field(default="", description="Cleartext description")
    status: TaskStatus = Field(..., description="Workflow status")
    owner_id: str = Field(..., description="Identifier of the owning user")
    created_at: datetime = Field(..., description="Creation timestamp")
    updated_at: datetime = Field(..., description="Last update timestamp")


class TaskResponse(BaseModel):
    task: TaskOut


class Pagination(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    page: int = Field(..., description="Current page (1-based)")
    limit: int = Field(..., description="Page size")
    total: int = Field(..., description="Total number of tasks matching the query")
    total_pages: int = Field(..., alias="totalPages", description="Number of pages")


class TaskListResponse(BaseModel):
    """
    Envelope for paginated list responses.
    """

    tasks: List[TaskOut] = Field(..., description="Tasks on this page")
    pagination: Pagination
