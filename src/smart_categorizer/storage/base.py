from abc import ABC, abstractmethod
from typing import Any

from pydantic import BaseModel, Field


class StoreQuery(BaseModel):
    filters: dict[str, Any] = Field(default_factory=dict)  # column == value
    not_null: tuple[str, ...] = ()
    order_by: str | None = None
    descending: bool = False
    limit: int | None = None


class StoreResult(BaseModel):
    data: list[dict[str, Any]] = Field(default_factory=list)
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class RecordStore(ABC):
    """
    Generic record store. Implementations never raise across this boundary;
    failures come back as ``StoreResult.error``.
    """

    @abstractmethod
    async def find_many(self, table: str, query: StoreQuery | None = None) -> StoreResult:
        pass

    @abstractmethod
    async def insert(self, table: str, row: dict[str, Any]) -> StoreResult:
        pass

    @abstractmethod
    async def upsert(self, table: str, key: str, fields: dict[str, Any]) -> StoreResult:
        """Insert ``fields`` or update the row whose ``key`` column matches."""
        pass

    async def aclose(self) -> None:
        return None
