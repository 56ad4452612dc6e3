from dataclasses import dataclass

from pydantic import BaseModel

from spendsync.integrations.gmail.dto import RawEmailDTO


@dataclass(frozen=True)
class UpsertResult:
    """Outcome of a raw email upsert; is_new is reported by the insert itself."""

    is_new: bool
    id: str


class RawEmailPage(BaseModel):
    data: list[RawEmailDTO]
    total: int
    limit: int
    offset: int
    has_more: bool
