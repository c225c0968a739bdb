"""
app/models/base.py

Purpose: Shared record configuration

- snake_case in MongoDB, camelCase on the API
- uuid4 string ids
"""

import uuid

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


def new_id() -> str:
    return str(uuid.uuid4())


class Record(BaseModel):
    """
    Base for stored documents.

    `to_document()` is what goes into Mongo; `to_api()` is what the
    dashboard receives.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_document(self) -> dict:
        return self.model_dump()

    def to_api(self, **kwargs) -> dict:
        return self.model_dump(by_alias=True, **kwargs)
