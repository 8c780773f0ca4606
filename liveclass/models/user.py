"""Portal users: admins, managers, teachers, students."""
from datetime import datetime
from enum import Enum
from typing import Optional

from beanie import Document, Indexed
from pydantic import BaseModel, EmailStr, Field


class UserRole(str, Enum):
    ADMIN = "admin"
    MANAGER = "manager"
    TEACHER = "teacher"
    STUDENT = "student"


class User(Document):
    """Login identity; teaching assignments and enrollments live in their own collections."""

    email: Indexed(EmailStr, unique=True)
    hashed_password: str
    role: UserRole
    name: str
    is_active: bool = True
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    class Settings:
        name = "users"
        use_state_management = True


class Caller(BaseModel):
    """The authenticated user as seen by the admission gate and the routers."""

    id: str
    email: str
    name: Optional[str] = None
    role: UserRole
    hashed_password: Optional[str] = Field(default=None, exclude=True)
    is_active: bool = True

    @property
    def display_name(self) -> str:
        return self.name or self.email
