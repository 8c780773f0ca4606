from datetime import datetime
from typing import Optional

from beanie import Document, Indexed
from pydantic import BaseModel, Field


class Teacher(Document):
    """Teaching assignment: the batches and subjects a teacher may run classes for."""

    user_id: Indexed(str)
    name: str
    email: str
    assigned_batches: list[str] = Field(default_factory=list)
    assigned_subjects: list[str] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=datetime.utcnow)

    class Settings:
        name = "teachers"
        use_state_management = True


class TeacherAssignment(BaseModel):
    id: str
    user_id: Optional[str] = None
    name: str
    email: str
    assigned_batches: list[str] = Field(default_factory=list)
    assigned_subjects: list[str] = Field(default_factory=list)
