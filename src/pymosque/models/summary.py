"""Search result and caller-facing summary models."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from pymosque.exceptions import ErrorKind, SearchError, describe_error
from pymosque.models.poi import PoiRecord


class SearchResult(BaseModel):
    """Outcome of one search: either ``pois`` or an ``error``."""

    model_config = ConfigDict(frozen=True)

    pois: list[PoiRecord] = Field(default_factory=list)
    error: ErrorKind | None = None
    status_code: int | None = None
    detail: str | None = None

    @model_validator(mode="after")
    def _check_exclusive(self) -> SearchResult:
        if self.error is not None and self.pois:
            raise ValueError("a failed search cannot carry POIs")
        return self

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, pois: list[PoiRecord]) -> SearchResult:
        return cls(pois=pois)

    @classmethod
    def failure(cls, exc: SearchError) -> SearchResult:
        kind = exc.kind or ErrorKind.NETWORK_UNAVAILABLE
        return cls(
            error=kind,
            status_code=getattr(exc, "status_code", None),
            detail=str(exc),
        )


class SearchSummary(BaseModel):
    """Status reported to the host after each search or tracking error."""

    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        alias_generator=to_camel,
    )

    mosque_count: int = 0
    error_message: str | None = None
    error: ErrorKind | None = None
    message: str = ""

    @classmethod
    def found(cls, count: int) -> SearchSummary:
        if count == 0:
            message = "No mosques found nearby."
        elif count == 1:
            message = "Found 1 mosque nearby."
        else:
            message = f"Found {count} mosques nearby."
        return cls(mosque_count=count, message=message)

    @classmethod
    def failed(cls, kind: ErrorKind, *, status_code: int | None = None, count: int = 0) -> SearchSummary:
        text = describe_error(kind, status_code)
        return cls(mosque_count=count, error_message=text, error=kind, message=text)

    @classmethod
    def from_result(cls, result: SearchResult) -> SearchSummary:
        if result.error is not None:
            return cls.failed(result.error, status_code=result.status_code)
        return cls.found(len(result.pois))

    def to_event(self) -> dict[str, Any]:
        """Serialize as the ``{mosqueCount, errorMessage}`` host event."""
        return self.model_dump(by_alias=True, include={"mosque_count", "error_message"})
