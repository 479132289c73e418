from __future__ import annotations

import time
from enum import Enum
from typing import Any, Generic, TypeVar

from pydantic import Field, model_validator

from igscrape.schemas import IGRecordModel

T = TypeVar("T")


class ErrorType(str, Enum):
    auth_required = "AUTH_REQUIRED"
    checkpoint = "CHECKPOINT"
    rate_limit = "RATE_LIMIT"
    private_restricted = "PRIVATE_RESTRICTED"
    not_found = "NOT_FOUND"
    network = "NETWORK"
    scrape_failed = "SCRAPE_FAILED"
    parse_changed = "PARSE_CHANGED"


_RETRYABLE_ERRORS = frozenset({ErrorType.network, ErrorType.rate_limit})


class ErrorRecord(IGRecordModel):
    type: ErrorType
    message: str
    hint: str | None = None
    cause: Any = None
    retryable: bool | None = None
    checkpoint_url: str | None = None


class ResultMeta(IGRecordModel):
    duration_ms: int = Field(ge=0)
    debug_id: str | None = None


class ResultData(IGRecordModel, Generic[T]):
    raw: Any
    normalized: T


class ResultEnvelope(IGRecordModel, Generic[T]):
    ok: bool
    data: ResultData[T] | None = None
    error: ErrorRecord | None = None
    warnings: list[str] | None = None
    meta: ResultMeta

    @model_validator(mode="after")
    def validate_branches(self) -> "ResultEnvelope[T]":
        if self.ok:
            if self.data is None or self.error is not None:
                raise ValueError("successful results must carry data and no error")
        else:
            if self.error is None or self.data is not None:
                raise ValueError("failed results must carry an error and no data")
            if self.warnings:
                raise ValueError("failed results cannot carry warnings")
        return self

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(mode="python", by_alias=True, exclude_none=True)


class ProfileScrapeError(RuntimeError):
    """Raised instead of returning a failed result when raise_on_error is enabled."""

    def __init__(self, result: ResultEnvelope[Any]) -> None:
        self.result = result
        error = result.error
        message = "profile scrape failed"
        if error is not None:
            message = f"{error.type.value}: {error.message}"
        super().__init__(message)


def build_error(
    error_type: ErrorType,
    message: str,
    *,
    hint: str | None = None,
    cause: Any = None,
    checkpoint_url: str | None = None,
) -> ErrorRecord:
    return ErrorRecord(
        type=error_type,
        message=message,
        hint=hint,
        cause=cause,
        retryable=error_type in _RETRYABLE_ERRORS,
        checkpoint_url=checkpoint_url,
    )


def start_timer() -> float:
    return time.monotonic()


def elapsed_ms(started_at: float) -> int:
    return max(0, int(round((time.monotonic() - started_at) * 1000)))


def ok_result(
    raw: Any,
    normalized: T,
    *,
    started_at: float,
    warnings: list[str] | None = None,
    debug_id: str | None = None,
) -> ResultEnvelope[T]:
    return ResultEnvelope(
        ok=True,
        data={"raw": raw, "normalized": normalized},
        warnings=list(warnings) if warnings else None,
        meta=ResultMeta(duration_ms=elapsed_ms(started_at), debug_id=debug_id),
    )


def fail_result(
    error: ErrorRecord,
    *,
    started_at: float,
    debug_id: str | None = None,
) -> ResultEnvelope[Any]:
    return ResultEnvelope(
        ok=False,
        error=error,
        meta=ResultMeta(duration_ms=elapsed_ms(started_at), debug_id=debug_id),
    )
