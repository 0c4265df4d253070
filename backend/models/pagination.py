"""
Pagination filters and response metadata.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, SerializerFunctionWrapHandler, model_serializer

from backend.validation.validator import Validator, permitted_value

MAX_PAGE = 10_000_000
MAX_PAGE_SIZE = 100


class Metadata(BaseModel):
    """Pagination metadata for list responses. All zero when nothing matched."""

    model_config = ConfigDict(frozen=True)

    current_page: int = 0
    page_size: int = 0
    first_page: int = 0
    last_page: int = 0
    total_records: int = 0

    @model_serializer(mode="wrap")
    def serialize_non_zero(self, handler: SerializerFunctionWrapHandler) -> dict[str, Any]:
        return {key: value for key, value in handler(self).items() if value}


def calculate_metadata(total_records: int, page: int, page_size: int) -> Metadata:
    if total_records == 0:
        return Metadata()

    return Metadata(
        current_page=page,
        page_size=page_size,
        first_page=1,
        last_page=(total_records + page_size - 1) // page_size,
        total_records=total_records,
    )


class UnsafeSortError(ValueError):
    """Raised when sort_column() is reached with a value outside the safelist."""


class Filters(BaseModel):
    page: int = 1
    page_size: int = 20
    sort: str = "id"
    sort_safelist: list[str] = Field(default_factory=lambda: ["id", "-id"])

    def sort_column(self) -> str:
        """
        Column name for ORDER BY, without the direction prefix.

        The sort value must already have passed validate_filters(); hitting
        an unsafe value here means a handler skipped validation.
        """
        if self.sort in self.sort_safelist:
            return self.sort.lstrip("-")
        raise UnsafeSortError(f"unsafe sort parameter: {self.sort}")

    def sort_direction(self) -> str:
        return "DESC" if self.sort.startswith("-") else "ASC"

    def limit(self) -> int:
        return self.page_size

    def offset(self) -> int:
        return (self.page - 1) * self.page_size


def validate_filters(v: Validator, f: Filters) -> None:
    v.check(f.page > 0, "page", "must be greater than zero")
    v.check(f.page <= MAX_PAGE, "page", "must be a maximum of 10 million")
    v.check(f.page_size > 0, "page_size", "must be greater than zero")
    v.check(f.page_size <= MAX_PAGE_SIZE, "page_size", "must be a maximum of 100")
    v.check(permitted_value(f.sort, *f.sort_safelist), "sort", "invalid sort value")
