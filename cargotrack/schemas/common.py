from datetime import datetime
from typing import Annotated

from pydantic import BaseModel, AfterValidator
from pydantic.alias_generators import to_camel

from ..utils import as_utc


# Always aware UTC, so responses carry the zone ("Z")
UtcDateTime = Annotated[datetime, AfterValidator(as_utc)]


class ApiModel(BaseModel):
    """camelCase on the wire, snake_case in Python; both accepted on input."""

    class Config:
        alias_generator = to_camel
        populate_by_name = True
        from_attributes = True


class MessageResponse(ApiModel):
    message: str
