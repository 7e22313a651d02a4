"""Shared base for response schemas.

Responses are serialized in camelCase (``totalKeys``, ``hitRate``) to match
what the web client already consumes; Python code uses snake_case names.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)
