"""Google Workspace mailing lists per batch (and optionally subject)."""
from datetime import datetime
from typing import Optional

from beanie import Document, Indexed
from pydantic import Field


class GoogleGroup(Document):
    batch_name: Indexed(str)
    subject_name: Optional[str] = None  # None = whole-batch list
    group_email: str
    is_active: bool = True
    created_at: datetime = Field(default_factory=datetime.utcnow)

    class Settings:
        name = "google_groups"
        use_state_management = True
