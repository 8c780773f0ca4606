from datetime import datetime
from typing import Optional

from beanie import Document, Indexed
from pydantic import BaseModel, Field


class UserEnrollment(Document):
    """A student's enrollment in one batch/subject; its id is the class link key."""

    user_id: Indexed(str)
    batch_name: str
    subject_name: str
    email: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)

    class Settings:
        name = "user_enrollments"
        use_state_management = True


class Enrollment(BaseModel):
    id: str
    user_id: str
    batch_name: str
    subject_name: str
    email: Optional[str] = None
