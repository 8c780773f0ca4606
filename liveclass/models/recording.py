"""Class recordings and their one-time announcement flag."""
import datetime
from typing import Optional

from beanie import Document, Indexed
from pydantic import BaseModel, Field


class _RecordingFields(BaseModel):
    batch: str
    subject: str
    topic: str
    date: datetime.date
    embed_link: Optional[str] = None
    # Flips to True once, after the recording-ready email goes out; never reset
    recording_email_sent: bool = False


class Recording(_RecordingFields, Document):
    date: Indexed(datetime.date)
    created_at: datetime.datetime = Field(default_factory=datetime.datetime.utcnow)

    class Settings:
        name = "recordings"
        use_state_management = True


class RecordingItem(_RecordingFields):
    id: str
