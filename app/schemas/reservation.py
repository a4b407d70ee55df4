from typing import Annotated, Optional, List
from pydantic import BaseModel, Field, UUID4
from datetime import datetime


class HoldRequest(BaseModel):
    seat_ids: Annotated[List[str], Field(min_length=1)]
    ttl_seconds: Optional[int] = None


class HoldBatch(BaseModel):
    hold_batch_id: UUID4
    show_id: UUID4
    seat_ids: List[str]
    status: str
    expires_at: datetime
    ttl_seconds: int


class HoldConfirmRequest(BaseModel):
    special_requests: Optional[str] = None


class HoldReleaseResponse(BaseModel):
    hold_batch_id: UUID4
    status: str
    released_seats: List[str]


def batch_to_schema(batch, now: datetime) -> HoldBatch:
    return HoldBatch(
        hold_batch_id=batch.id,
        show_id=batch.show_id,
        seat_ids=batch.seat_list,
        status=batch.status,
        expires_at=batch.expires_at,
        ttl_seconds=max(0, int((batch.expires_at - now).total_seconds())),
    )
