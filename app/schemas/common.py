from typing import List, Generic, TypeVar
from pydantic import BaseModel

T = TypeVar("T")


# Paginated response wrapper, used by all list endpoints
class PaginatedResponse(BaseModel, Generic[T]):
    data: List[T]
    total: int
    page: int
    limit: int
    total_pages: int


def paginate(items: List, total: int, page: int, limit: int) -> dict:
    return {
        "data": items,
        "total": total,
        "page": page,
        "limit": limit,
        "total_pages": -(-total // limit) if total else 0,
    }


# Error responses (rendered from app.core.errors)
class ErrorResponse(BaseModel):
    error: str
    message: str


class SeatsUnavailableError(ErrorResponse):
    unavailable_seat_ids: List[str]
