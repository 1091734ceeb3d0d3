from typing import Generic, TypeVar

from pydantic import BaseModel

from taskboard.infrastructure.persistence.repositories.pagination import (
    PaginatedResult, PaginationMeta)

T = TypeVar("T")


class Page(BaseModel, Generic[T]):
    """One page of read models, as returned by list operations and cached for owner lists"""

    items: list[T]
    pagination: PaginationMeta


def page_of(read_model: type[T], result: PaginatedResult) -> Page[T]:
    """Convert a repository page of ORM rows into a Page of read models"""
    return Page[read_model](  # type: ignore[valid-type]
        items=[read_model.model_validate(item) for item in result.items],  # type: ignore[attr-defined]
        pagination=result.pagination,
    )
