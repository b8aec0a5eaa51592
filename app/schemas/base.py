"""
Base Schema Classes for Pydantic Models

The storefront frontend speaks camelCase JSON, so every request and
response schema here inherits from CamelSchema: fields are declared in
snake_case and exposed as camelCase.
"""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelSchema(BaseModel):
    """
    Base class for API schemas.

    Features:
    - camelCase aliases on the wire, snake_case attributes in Python
    - from_attributes for ORM rows and service dataclasses
    - Accepts either the alias or the field name on input
    """
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )
