"""Dense n-dimensional arrays and categorical arrays.

A dense array is a numpy ndarray whose element type is one of the scalar
types of the storage backend (strings are held in object arrays). A
categorical array stores integer codes into a list of category labels.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, Sequence, Union

import numpy as np

from annstore.memory import (
    DataKind,
    DataType,
    Dataset,
    Group,
    ScalarType,
    normalize_selection,
    scalar_type_of,
)


def _string_array(values: Iterable[Any]) -> np.ndarray:
    items = [str(v) for v in values]
    out = np.empty(len(items), dtype=object)
    out[:] = items
    return out


@dataclass(eq=False)
class CategoricalArray:
    """An array of labels stored as codes into a table of categories."""

    codes: np.ndarray
    categories: np.ndarray

    def __post_init__(self) -> None:
        self.codes = np.asarray(self.codes, dtype=np.uint32)
        self.categories = _string_array(np.asarray(self.categories, dtype=object).reshape(-1))
        if self.codes.size and int(self.codes.max()) >= len(self.categories):
            raise ValueError("categorical code out of range of the categories")

    __hash__ = None  # type: ignore[assignment]

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, CategoricalArray):
            return NotImplemented
        return (
            self.codes.shape == other.codes.shape
            and bool(np.array_equal(self.codes, other.codes))
            and list(self.categories) == list(other.categories)
        )

    @classmethod
    def from_values(cls, values: Iterable[str]) -> CategoricalArray:
        """Encode labels; categories are numbered in order of first appearance."""
        ids: dict[str, int] = {}
        codes = [ids.setdefault(str(v), len(ids)) for v in values]
        return cls(np.array(codes, dtype=np.uint32), _string_array(ids))

    def shape(self) -> tuple[int, ...]:
        return tuple(self.codes.shape)

    def values(self) -> np.ndarray:
        """Return the decoded labels as an object array of the same shape."""
        if self.codes.size == 0:
            return np.empty(self.codes.shape, dtype=object)
        return self.categories[self.codes.astype(np.int64)]

    def get(self, index: Sequence[int]) -> str | None:
        code = _lookup(self.codes, index)
        if code is None:
            return None
        return str(self.categories[int(code)])

    def select(self, selection: Any) -> CategoricalArray:
        return CategoricalArray(_select(self.codes, selection), self.categories.copy())

    def write(self, location: Group, name: str) -> Group:
        group = location.create_group(name)
        group.write_str_attr("encoding-type", "categorical")
        group.write_str_attr("encoding-version", "0.2.0")
        group.write_scalar_attr("ordered", False)
        group.write_array("codes", self.codes)
        group.write_array("categories", self.categories)
        return group

    @classmethod
    def read(cls, container: Group) -> CategoricalArray:
        codes = container.open_dataset("codes").read_array()
        categories = container.open_dataset("categories").read_array()
        return cls(codes, categories)

    @classmethod
    def read_shape(cls, container: Group) -> tuple[int, ...]:
        return container.open_dataset("codes").shape()

    @classmethod
    def read_select(cls, container: Group, selection: Any) -> CategoricalArray:
        codes = container.open_dataset("codes").read_array_slice(selection)
        categories = container.open_dataset("categories").read_array()
        return cls(codes, categories)


Array = Union[np.ndarray, CategoricalArray]


def _lookup(arr: np.ndarray, index: Sequence[int]) -> Any:
    index = tuple(int(i) for i in index)
    if len(index) != arr.ndim:
        return None
    if any(i < 0 or i >= n for i, n in zip(index, arr.shape)):
        return None
    return arr[index]


def _select(arr: np.ndarray, selection: Any) -> np.ndarray:
    indices = normalize_selection(selection, arr.shape)
    if arr.ndim == 0:
        return arr.copy()
    return arr[np.ix_(*indices)]


def array_data_type(array: Array) -> DataType:
    """Return the stored data type of an array."""
    if isinstance(array, CategoricalArray):
        return DataType(DataKind.CATEGORICAL)
    return DataType(DataKind.ARRAY, scalar_type_of(np.asarray(array).dtype))


def array_shape(array: Array) -> tuple[int, ...]:
    if isinstance(array, CategoricalArray):
        return array.shape()
    return tuple(np.shape(array))


def get_array_item(array: Array, index: Sequence[int]) -> Any:
    """Return the element at ``index``, or None when it is out of bounds."""
    if isinstance(array, CategoricalArray):
        return array.get(index)
    value = _lookup(np.asarray(array), index)
    if isinstance(value, np.generic):
        return value.item()
    return value


def select_array(array: Array, selection: Any) -> Array:
    """Select a sub-array; each axis is chosen independently."""
    if isinstance(array, CategoricalArray):
        return array.select(selection)
    return _select(np.asarray(array), selection)


def _vstack_categorical(arrays: list[CategoricalArray]) -> CategoricalArray:
    ids: dict[str, int] = {}
    parts = []
    for cat in arrays:
        mapping = np.array(
            [ids.setdefault(str(c), len(ids)) for c in cat.categories], dtype=np.uint32
        )
        if cat.codes.size:
            parts.append(mapping[cat.codes.astype(np.int64)])
        else:
            parts.append(cat.codes.astype(np.uint32))
    return CategoricalArray(np.concatenate(parts, axis=0), _string_array(ids))


def vstack_arrays(arrays: Iterable[Array]) -> Array:
    """Concatenate arrays of the same type along the first axis."""
    items = list(arrays)
    if not items:
        raise ValueError("Cannot vstack empty iterator")
    first = items[0]
    if isinstance(first, CategoricalArray):
        if not all(isinstance(x, CategoricalArray) for x in items):
            raise TypeError("Cannot vstack categorical and dense arrays together")
        return _vstack_categorical(items)
    if any(isinstance(x, CategoricalArray) for x in items):
        raise TypeError("Cannot vstack categorical and dense arrays together")
    dense = [np.asarray(x) for x in items]
    kind = scalar_type_of(dense[0].dtype)
    for arr in dense[1:]:
        other = scalar_type_of(arr.dtype)
        if other != kind:
            raise TypeError(f"Cannot vstack {other} array onto {kind} array")
    return np.concatenate(dense, axis=0)


def write_array(array: Array, location: Group, name: str) -> Group | Dataset:
    """Write an array under ``name`` with its encoding attributes."""
    if isinstance(array, CategoricalArray):
        return array.write(location, name)
    dataset = location.write_array(name, array)
    encoding = "string-array" if dataset.dtype() == ScalarType.STRING else "array"
    dataset.write_str_attr("encoding-type", encoding)
    dataset.write_str_attr("encoding-version", "0.2.0")
    return dataset


def read_array(container: Group | Dataset) -> Array:
    if isinstance(container, Dataset):
        return container.read_array()
    return CategoricalArray.read(container)


def read_array_shape(container: Group | Dataset) -> tuple[int, ...]:
    if isinstance(container, Dataset):
        return container.shape()
    return CategoricalArray.read_shape(container)


def read_array_select(container: Group | Dataset, selection: Any) -> Array:
    if isinstance(container, Dataset):
        return container.read_array_slice(selection)
    return CategoricalArray.read_select(container, selection)