"""Insertion-ordered containers that silently stop growing at a fixed capacity."""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from typing import Generic, TypeVar

T = TypeVar("T")


class CappedList(Generic[T]):
    __slots__ = ("_cap", "_items")

    def __init__(self, cap: int, items: Iterable[T] = ()) -> None:
        if cap < 0:
            raise ValueError("cap must be >= 0")
        self._cap = cap
        self._items: list[T] = []
        self.extend(items)

    @property
    def cap(self) -> int:
        return self._cap

    @property
    def is_full(self) -> bool:
        return len(self._items) >= self._cap

    def append(self, item: T) -> bool:
        """Append unless full; returns whether the item was kept."""

        if self.is_full:
            return False
        self._items.append(item)
        return True

    def extend(self, items: Iterable[T]) -> None:
        for item in items:
            if not self.append(item):
                return

    def copy(self) -> CappedList[T]:
        return CappedList(self._cap, self._items)

    def to_list(self) -> list[T]:
        return list(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[T]:
        return iter(self._items)

    def __getitem__(self, position: int) -> T:
        return self._items[position]

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, CappedList):
            return NotImplemented
        return self._cap == other._cap and self._items == other._items

    def __repr__(self) -> str:
        return f"CappedList(cap={self._cap}, items={self._items!r})"


class CappedSet(Generic[T]):
    """Distinct values in first-seen order, at most ``cap`` of them."""

    __slots__ = ("_cap", "_items")

    def __init__(self, cap: int, items: Iterable[T] = ()) -> None:
        if cap < 0:
            raise ValueError("cap must be >= 0")
        self._cap = cap
        self._items: dict[T, None] = {}
        self.update(items)

    @property
    def cap(self) -> int:
        return self._cap

    @property
    def is_full(self) -> bool:
        return len(self._items) >= self._cap

    def add(self, item: T) -> bool:
        if item in self._items:
            return True
        if self.is_full:
            return False
        self._items[item] = None
        return True

    def update(self, items: Iterable[T]) -> None:
        for item in items:
            if self.is_full:
                return
            self.add(item)

    def copy(self) -> CappedSet[T]:
        return CappedSet(self._cap, self._items)

    def to_list(self) -> list[T]:
        return list(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, item: object) -> bool:
        return item in self._items

    def __iter__(self) -> Iterator[T]:
        return iter(self._items)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, CappedSet):
            return NotImplemented
        return self._cap == other._cap and list(self._items) == list(other._items)

    def __repr__(self) -> str:
        return f"CappedSet(cap={self._cap}, items={list(self._items)!r})"


__all__ = ["CappedList", "CappedSet"]
