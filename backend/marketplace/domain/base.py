"""
Shared base for domain models

Fields are snake_case in Python and camelCase on the wire, so JSON keys
match what the storefront sends and expects (productId, unitPrice, ...).
"""
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


def jsonable(value: Any) -> Any:
    """Recursively convert Decimal, Enum and datetime values to JSON types"""
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, dict):
        return {k: jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [jsonable(v) for v in value]
    return value


class DomainModel(BaseModel):
    """Base model: camelCase aliases, ORM/row friendly, Decimal-safe to_dict()"""

    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True,
        alias_generator=to_camel,
    )

    def to_dict(self) -> dict:
        """Convert to a JSON-ready dict with camelCase keys"""
        return jsonable(self.model_dump(by_alias=True))
