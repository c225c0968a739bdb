"""
app/models/user.py

Purpose: Dashboard user document

- Email/password account owning the provider connections
- Created on registration, never deleted
"""

from pydantic import Field

from app.models.base import Record, new_id
from utils.time_utils import utc_now_iso


class User(Record):
    id: str = Field(default_factory=new_id)
    email: str
    password: str
    name: str = ""
    created_at: str = Field(default_factory=utc_now_iso)

    def to_public(self) -> dict:
        return {"id": self.id, "email": self.email, "name": self.name}
