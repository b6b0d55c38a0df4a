"""Stored elements held in slots.

A slot holds an optional value behind a lock. Once emptied, every holder
of the slot sees it empty. Elements put a stored container in a slot and
can keep a cached copy of the data they read from it.
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Generic, Iterator, Optional, TypeVar, Union

import numpy as np
import pandas as pd

from annstore.arraydata import (
    array_data_shape,
    data_type,
    overwrite_data,
    read_array_data,
    read_array_data_select,
    read_array_data_shape,
    read_data,
    select_array_data,
    write_data,
)
from annstore.arrays import CategoricalArray
from annstore.memory import (
    DataType,
    Dataset,
    Group,
    delete_container,
    encoding_type,
    set_axis,
)

T = TypeVar("T")
Container = Union[Group, Dataset]


class EmptySlotError(RuntimeError):
    """Raised when the value of an empty slot is accessed."""


class Slot(Generic[T]):
    """An optional value behind a lock, shared by all who hold the slot."""

    def __init__(self, value: Optional[T] = None) -> None:
        self._lock = threading.RLock()
        self._value: Optional[T] = value

    @classmethod
    def empty(cls) -> "Slot[T]":
        return cls()

    def is_empty(self) -> bool:
        with self._lock:
            return self._value is None

    def inner(self) -> T:
        """Return the held value; raise EmptySlotError when there is none."""
        with self._lock:
            if self._value is None:
                raise EmptySlotError("accessing an empty slot")
            return self._value

    def insert(self, data: T) -> Optional[T]:
        """Put ``data`` in the slot and return what it held before."""
        with self._lock:
            old, self._value = self._value, data
            return old

    def extract(self) -> Optional[T]:
        """Take the value out; the slot is empty afterwards."""
        with self._lock:
            old, self._value = self._value, None
            return old

    def drop(self) -> None:
        self.extract()

    def swap(self, other: "Slot[T]") -> None:
        if other is self:
            return
        first, second = sorted((self, other), key=id)
        with first._lock, second._lock:
            self._value, other._value = other._value, self._value

    def clear(self) -> None:
        """Empty the slot and delete whatever storage the value owned."""
        value = self.extract()
        if value is not None:
            self._release(value)

    def _release(self, value: T) -> None:
        """Free storage owned by a value taken out by ``clear``."""

    @contextmanager
    def _locked(self) -> Iterator[T]:
        with self._lock:
            yield self.inner()

    def __str__(self) -> str:
        with self._lock:
            if self._value is None:
                return "Empty or closed slot"
            return str(self._value)


def _copy(value: Any) -> Any:
    if isinstance(value, (np.ndarray, pd.DataFrame)):
        return value.copy()
    if isinstance(value, CategoricalArray):
        return CategoricalArray(value.codes.copy(), value.categories.copy())
    return value


def _is_full_elem(elem: Any) -> bool:
    return elem is None or elem is Ellipsis or (isinstance(elem, slice) and elem == slice(None))


def _all_full(selection: Any) -> bool:
    if _is_full_elem(selection):
        return True
    if isinstance(selection, (list, tuple)):
        return all(_is_full_elem(e) for e in selection)
    return False


def _describe(dtype: DataType, cache_enabled: bool, cached: bool) -> str:
    return (
        f"{dtype} element, cache_enabled: {'yes' if cache_enabled else 'no'}, "
        f"cached: {'yes' if cached else 'no'}"
    )


@dataclass
class _ElemState:
    dtype: DataType
    container: Container
    cache_enabled: bool = False
    element: Any = None

    def __str__(self) -> str:
        return _describe(self.dtype, self.cache_enabled, self.element is not None)


@dataclass
class _ArrayElemState:
    dtype: DataType
    shape: tuple
    container: Container
    cache_enabled: bool = False
    element: Any = None

    def __str__(self) -> str:
        return _describe(self.dtype, self.cache_enabled, self.element is not None)


class Elem(Slot[_ElemState]):
    """A stored element of any supported data type."""

    @property
    def dtype(self) -> DataType:
        with self._locked() as state:
            return state.dtype

    def enable_cache(self) -> None:
        with self._locked() as state:
            state.cache_enabled = True

    def disable_cache(self) -> None:
        with self._locked() as state:
            state.element = None
            state.cache_enabled = False

    def data(self) -> Any:
        """Return the element's data, from the cache when it holds it."""
        with self._locked() as state:
            if state.element is not None:
                return _copy(state.element)
            value = read_data(state.container)
            if state.cache_enabled:
                state.element = _copy(value)
            return value

    def save(self, data: Any) -> None:
        """Replace the stored data with ``data``."""
        with self._locked() as state:
            dtype = data_type(data)
            state.container = overwrite_data(data, state.container)
            state.dtype = dtype
            if state.element is not None:
                state.element = _copy(data)

    def export(self, location: Group, name: str) -> None:
        with self._locked() as state:
            value = state.element if state.element is not None else read_data(state.container)
            write_data(value, location, name)

    def _release(self, value: _ElemState) -> None:
        delete_container(value.container)


class ArrayElem(Slot[_ArrayElemState]):
    """A stored array, categorical array or data frame."""

    @property
    def dtype(self) -> DataType:
        with self._locked() as state:
            return state.dtype

    @property
    def shape(self) -> tuple:
        with self._locked() as state:
            return tuple(state.shape)

    def enable_cache(self) -> None:
        with self._locked() as state:
            state.cache_enabled = True

    def disable_cache(self) -> None:
        with self._locked() as state:
            state.element = None
            state.cache_enabled = False

    def data(self) -> Any:
        """Return the whole array, from the cache when it holds it."""
        with self._locked() as state:
            if state.element is not None:
                return _copy(state.element)
            value = read_array_data(state.container)
            if state.cache_enabled:
                state.element = _copy(value)
            return value

    def save(self, data: Any) -> None:
        """Replace the stored array with ``data``."""
        with self._locked() as state:
            dtype = data_type(data)
            shape = array_data_shape(data)
            state.container = overwrite_data(data, state.container)
            state.dtype = dtype
            state.shape = tuple(shape)
            if state.element is not None:
                state.element = _copy(data)

    def export(self, location: Group, name: str) -> None:
        with self._locked() as state:
            if state.element is not None:
                value = state.element
            else:
                value = read_array_data(state.container)
            write_data(value, location, name)

    def select(self, selection: Any) -> Any:
        """Return the part of the array that ``selection`` picks."""
        if _all_full(selection):
            return self.data()
        with self._locked() as state:
            if state.element is not None:
                return select_array_data(state.element, selection)
            return read_array_data_select(state.container, selection)

    def select_axis(self, axis: int, selection: Any) -> Any:
        return self.select(set_axis(selection, axis, len(self.shape)))

    def export_select(self, selection: Any, location: Group, name: str) -> None:
        if _all_full(selection):
            self.export(location, name)
        else:
            write_data(self.select(selection), location, name)

    def export_axis(self, axis: int, selection: Any, location: Group, name: str) -> None:
        self.export_select(set_axis(selection, axis, len(self.shape)), location, name)

    def subset(self, selection: Any) -> None:
        """Keep only the part of the array that ``selection`` picks."""
        with self._locked() as state:
            if state.element is not None:
                data = select_array_data(state.element, selection)
            else:
                data = read_array_data_select(state.container, selection)
            state.shape = tuple(array_data_shape(data))
            state.container = overwrite_data(data, state.container)
            if state.element is not None:
                state.element = data

    def subset_axis(self, axis: int, selection: Any) -> None:
        self.subset(set_axis(selection, axis, len(self.shape)))

    def chunked(self, chunk_size: int) -> "ChunkedArrayElem":
        return ChunkedArrayElem(self, chunk_size)

    def _release(self, value: _ArrayElemState) -> None:
        delete_container(value.container)


class ChunkedArrayElem:
    """Iterate over an array element in row chunks.

    Each item is ``(data, start, stop)`` with the rows ``start:stop``.
    """

    def __init__(self, elem: ArrayElem, chunk_size: int) -> None:
        if chunk_size <= 0:
            raise ValueError("chunk size must be positive")
        self._elem = elem
        self._chunk_size = int(chunk_size)
        self._num_items = elem.shape[0]
        self._position = 0

    def __iter__(self) -> "ChunkedArrayElem":
        return self

    def __next__(self) -> tuple:
        if self._position >= self._num_items:
            raise StopIteration
        start = self._position
        stop = min(self._num_items, start + self._chunk_size)
        self._position = stop
        return self._elem.select_axis(0, slice(start, stop)), start, stop

    def __len__(self) -> int:
        """Number of chunks the element splits into."""
        n, remain = divmod(self._num_items, self._chunk_size)
        return n if remain == 0 else n + 1


def open_elem(container: Container) -> Elem:
    """Open a stored container as an element."""
    return Elem(_ElemState(dtype=encoding_type(container), container=container))


def open_array_elem(container: Container) -> ArrayElem:
    """Open a stored array container as an array element."""
    dtype = encoding_type(container)
    shape = tuple(read_array_data_shape(container))
    return ArrayElem(_ArrayElemState(dtype=dtype, shape=shape, container=container))