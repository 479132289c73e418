from __future__ import annotations

import re
from typing import Any

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

USERNAME_RE = re.compile(r"^[A-Za-z0-9._]{1,30}$")

RawProfileData = dict[str, Any]


class IGBaseModel(BaseModel):
    model_config = ConfigDict(extra="forbid")


class IGRecordModel(BaseModel):
    """Immutable record serialized with camelCase keys."""

    model_config = ConfigDict(
        extra="forbid",
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )


def normalize_optional_text(value: object) -> str | None:
    if not isinstance(value, str):
        return None
    normalized = " ".join(value.split())
    if not normalized:
        return None
    return normalized


def is_username_like(value: object) -> bool:
    return isinstance(value, str) and USERNAME_RE.match(value) is not None
