"""Lazy index -> value sequences over lattice storage."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Callable, Iterator, List, Optional, Union


class ArrayView(Sequence):
    """Fixed-length sequence backed by a getter and an optional setter.

    Reads go through ``getter(i)``. A view built without a setter, or with
    ``readonly=True``, rejects assignment with ``TypeError``.
    """

    __slots__ = ("_getter", "_setter", "_length", "readonly")

    def __init__(
        self,
        getter: Callable[[int], float],
        length: int,
        setter: Optional[Callable[[int, float], None]] = None,
        readonly: bool = True,
    ):
        if length < 0:
            raise ValueError("View length must be non-negative")
        self._getter = getter
        self._setter = setter
        self._length = length
        self.readonly = readonly or setter is None

    def __len__(self) -> int:
        return self._length

    def _index(self, index: int) -> int:
        if index < 0:
            index += self._length
        if not 0 <= index < self._length:
            raise IndexError(f"View index out of range: {index}")
        return index

    def __getitem__(self, index: Union[int, slice]):
        if isinstance(index, slice):
            return [self._getter(i) for i in range(*index.indices(self._length))]
        return self._getter(self._index(index))

    def __setitem__(self, index: int, value: float) -> None:
        if self.readonly:
            raise TypeError("Cannot assign through a read-only view")
        self._setter(self._index(index), value)  # type: ignore[misc]

    def __iter__(self) -> Iterator[float]:
        for i in range(self._length):
            yield self._getter(i)

    def to_list(self) -> List[float]:
        return list(self)

    def __repr__(self) -> str:
        mode = "readonly" if self.readonly else "mutable"
        return f"ArrayView(len={self._length}, {mode})"
