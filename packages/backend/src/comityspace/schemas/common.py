"""Shared schema base.

Learn: The frontend speaks camelCase (refreshToken, organizationId), the
Python side speaks snake_case. CamelModel maps one onto the other, and
populate_by_name lets tests and services build models with either.
"""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class MessageResponse(CamelModel):
    success: bool = True
    message: str
