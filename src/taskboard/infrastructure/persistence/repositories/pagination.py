"""Offset pagination options and results shared by all repositories"""
from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass
from typing import Any, Generic, Literal, TypeVar

from pydantic import BaseModel, ConfigDict, Field

T = TypeVar("T")

MAX_PAGE_SIZE = 100


class PaginationOptions(BaseModel):
    """
    Page request for find_all and the entity-specific list queries.

    Range checks happen here, when the options are built by the caller:
    page >= 1 and 1 <= limit <= 100. Field names in filters, order_by and
    relations are checked against the model by the repository.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    page: int = Field(default=1, ge=1)
    limit: int = Field(default=10, ge=1, le=MAX_PAGE_SIZE)
    # Column equality; None matches IS NULL, a list matches IN (...)
    filters: dict[str, Any] = Field(default_factory=dict)
    order_by: dict[str, Literal["asc", "desc"]] = Field(
        default_factory=lambda: {"created_at": "desc"}
    )
    relations: list[str] = Field(default_factory=list)
    include_deleted: bool = False

    @property
    def skip(self) -> int:
        return (self.page - 1) * self.limit

    def with_filters(self, **filters: Any) -> PaginationOptions:
        """Copy with extra equality filters layered over the caller's"""
        return self.model_copy(update={"filters": {**self.filters, **filters}})

    def with_relations(self, *relations: str) -> PaginationOptions:
        merged = list(dict.fromkeys([*self.relations, *relations]))
        return self.model_copy(update={"relations": merged})

    def canonical_json(self) -> str:
        return json.dumps(self.model_dump(mode="json"), sort_keys=True, separators=(",", ":"))

    def cache_digest(self) -> str:
        """Stable short hash identifying these options inside a cache key"""
        return hashlib.sha256(self.canonical_json().encode("utf-8")).hexdigest()[:16]


class PaginationMeta(BaseModel):
    """Pagination block returned with every page"""

    page: int
    limit: int
    total: int
    total_pages: int
    has_next: bool
    has_previous: bool

    @classmethod
    def build(cls, page: int, limit: int, total: int) -> PaginationMeta:
        total_pages = (total + limit - 1) // limit
        return cls(
            page=page,
            limit=limit,
            total=total,
            total_pages=total_pages,
            has_next=page < total_pages,
            has_previous=page > 1,
        )


@dataclass
class PaginatedResult(Generic[T]):
    """One page of ORM rows plus its pagination block"""

    items: list[T]
    pagination: PaginationMeta
