"""Record store interface."""

from __future__ import annotations

from typing import Any, Callable, Iterable, Mapping, Protocol

Row = dict[str, str]


class RecordStore(Protocol):
    def insert(self, table: str, fields: Mapping[str, Any]) -> int:
        ...

    def insert_unique(self, table: str, fields: Mapping[str, Any], unique: Iterable[str]) -> int | None:
        ...

    def fetch_one(self, table: str, where: Mapping[str, Any]) -> Row | None:
        ...

    def fetch_all(self, table: str, where: Mapping[str, Any] | None = None) -> list[Row]:
        ...

    def update(self, table: str, patch: Mapping[str, Any], where: Mapping[str, Any]) -> bool:
        ...

    def modify(
        self,
        table: str,
        where: Mapping[str, Any],
        change: Callable[[Row], Mapping[str, Any]],
    ) -> int:
        ...

    def delete(self, table: str, where: Mapping[str, Any]) -> int:
        ...

    def count(self, table: str, where: Mapping[str, Any] | None = None) -> int:
        ...

    def filter(self, table: str, predicate: Callable[[Row], bool]) -> list[Row]:
        ...

    def cleanup(self, table: str, time_field: str, cutoff: float) -> int:
        ...
