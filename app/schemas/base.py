from __future__ import annotations

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Wire models use the camelCase names the web frontend expects."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class OkResponse(BaseModel):
    ok: bool
