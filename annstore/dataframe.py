"""Data frames, their series and their row index in the storage backend.

A data frame is stored as a group holding one element per column, a
``column-order`` attribute and a string dataset for the row index, whose
name is kept in the ``_index`` attribute.
"""

from __future__ import annotations

from typing import Any, Iterable, Iterator, Sequence

import numpy as np
import pandas as pd

from annstore.arrays import CategoricalArray, read_array, write_array
from annstore.memory import (
    Dataset,
    Group,
    normalize_selection,
    open_container,
    scalar_type_of,
)


def _string_array(values: Iterable[Any]) -> np.ndarray:
    items = [str(v) for v in values]
    out = np.empty(len(items), dtype=object)
    out[:] = items
    return out


def _open_or_create(location: Group, name: str) -> Group:
    if location.exists(name):
        return location.open_group(name)
    return location.create_group(name)


# ---------------------------------------------------------------------------
# Row index


class DataFrameIndex:
    """Row labels of a data frame, either explicit names or an integer range."""

    def __init__(self, names: Iterable[Any] = (), *, index_name: str = "index") -> None:
        self.index_name = index_name
        self._range: range | None = None
        self._names: tuple[str, ...] = tuple(str(n) for n in names)
        self._positions: dict[str, int] = {}
        for i, key in enumerate(self._names):
            self._positions.setdefault(key, i)

    @classmethod
    def empty(cls) -> DataFrameIndex:
        return cls()

    @classmethod
    def from_names(cls, names: Iterable[Any]) -> DataFrameIndex:
        return cls(names)

    @classmethod
    def from_range(cls, start: int, end: int) -> DataFrameIndex:
        start, end = int(start), int(end)
        if start < 0 or end < start:
            raise ValueError(f"invalid index range {start}..{end}")
        index = cls()
        index._range = range(start, end)
        return index

    def __len__(self) -> int:
        if self._range is not None:
            return len(self._range)
        return len(self._names)

    def __iter__(self) -> Iterator[str]:
        if self._range is not None:
            return (str(i) for i in self._range)
        return iter(self._names)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, DataFrameIndex):
            return NotImplemented
        return len(self) == len(other) and self.to_list() == other.to_list()

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        if self._range is not None:
            return f"DataFrameIndex(range({self._range.start}, {self._range.stop}))"
        return f"DataFrameIndex({list(self._names)!r})"

    def is_empty(self) -> bool:
        return len(self) == 0

    def get_index(self, key: str) -> int | None:
        """Return the position of ``key``, or None when it is absent."""
        if self._range is not None:
            try:
                value = int(key)
            except (TypeError, ValueError):
                return None
            if str(value) != key or value not in self._range:
                return None
            return value - self._range.start
        return self._positions.get(key)

    def to_list(self) -> list[str]:
        return list(self)

    def select(self, selection: Any) -> DataFrameIndex:
        idx = normalize_selection(selection, (len(self),))[0]
        if self._range is not None and (idx.size == 0 or bool(np.all(np.diff(idx) == 1))):
            start = self._range.start + (int(idx[0]) if idx.size else 0)
            result = DataFrameIndex.from_range(start, start + idx.size)
        else:
            names = self.to_list()
            result = DataFrameIndex(names[int(i)] for i in idx)
        result.index_name = self.index_name
        return result

    def write(self, location: Group, name: str) -> Group:
        return self.overwrite(_open_or_create(location, name))

    def overwrite(self, container: Group) -> Group:
        """Replace the index stored in ``container`` with this one."""
        if container.has_attr("_index"):
            old = container.read_str_attr("_index")
            if container.exists(old):
                container.delete(old)
        container.write_str_attr("_index", self.index_name)
        data = container.write_array(self.index_name, _string_array(self))
        if self._range is not None:
            data.write_str_attr("index_type", "range")
            data.write_scalar_attr("start", self._range.start)
            data.write_scalar_attr("end", self._range.stop)
        else:
            data.write_str_attr("index_type", "list")
        return container

    @classmethod
    def read(cls, container: Group) -> DataFrameIndex:
        index_name = container.read_str_attr("_index")
        dataset = container.open_dataset(index_name)
        index_type = (
            dataset.read_str_attr("index_type") if dataset.has_attr("index_type") else "list"
        )
        if index_type == "list":
            index = cls(dataset.read_array().reshape(-1))
        elif index_type == "range":
            index = cls.from_range(
                dataset.read_scalar_attr("start"), dataset.read_scalar_attr("end")
            )
        else:
            raise ValueError(f"Unknown index type: {index_type}")
        index.index_name = index_name
        return index


# ---------------------------------------------------------------------------
# Series


def _series_array(series: pd.Series) -> np.ndarray | CategoricalArray:
    dtype = series.dtype
    if isinstance(dtype, pd.CategoricalDtype):
        if bool(series.isna().any()):
            raise ValueError("series contains missing values")
        return CategoricalArray.from_values(str(v) for v in series)
    types = pd.api.types
    if types.is_bool_dtype(dtype) or types.is_integer_dtype(dtype) or types.is_float_dtype(dtype):
        if isinstance(dtype, np.dtype):
            arr = series.to_numpy(copy=True)
        else:
            if bool(series.isna().any()):
                raise ValueError("series contains missing values")
            arr = series.to_numpy(dtype=dtype.numpy_dtype)
        scalar_type_of(arr.dtype)
        return arr
    if dtype == object or types.is_string_dtype(dtype):
        values = series.tolist()
        for value in values:
            if not isinstance(value, str):
                if pd.isna(value):
                    raise ValueError("series contains missing values")
                raise TypeError(f"Unsupported value in string series: {value!r}")
        return _string_array(values)
    raise TypeError(f"Unsupported series data type: {dtype}")


def write_series(series: pd.Series, location: Group, name: str) -> Group | Dataset:
    """Write a series as an array element named ``name``."""
    return write_array(_series_array(series), location, name)


def read_series(container: Group | Dataset) -> pd.Series:
    """Read a one-dimensional array element back as a series."""
    arr = read_array(container)
    if isinstance(arr, CategoricalArray):
        if arr.codes.ndim != 1:
            raise ValueError("a series must be one-dimensional")
        return pd.Series(
            pd.Categorical.from_codes(arr.codes.astype(np.int64), categories=list(arr.categories))
        )
    if arr.ndim != 1:
        raise ValueError("a series must be one-dimensional")
    if arr.dtype == object:
        return pd.Series(arr, dtype=object)
    return pd.Series(arr)


def select_series(series: pd.Series, selection: Any) -> pd.Series:
    rows = normalize_selection(selection, (len(series),))[0]
    return series.iloc[rows].reset_index(drop=True)


# ---------------------------------------------------------------------------
# Data frames


def _write_columns(df: pd.DataFrame, group: Group) -> None:
    group.write_arr_attr("column-order", _string_array(df.columns))
    for name, column in df.items():
        write_series(column, group, str(name))


def write_dataframe(df: pd.DataFrame, location: Group, name: str) -> Group:
    """Write a data frame under ``name`` with a fresh integer row index."""
    group = _open_or_create(location, name)
    group.write_str_attr("encoding-type", "dataframe")
    group.write_str_attr("encoding-version", "0.2.0")
    _write_columns(df, group)
    return DataFrameIndex.from_range(0, len(df)).overwrite(group)


def overwrite_dataframe(df: pd.DataFrame, container: Group) -> Group:
    """Replace the columns stored in ``container``.

    The existing row index is kept when its length matches the new frame
    (or the frame has no rows); otherwise an integer index is written.
    """
    n = len(df)
    if container.has_attr("_index"):
        index_name = container.read_str_attr("_index")
        for obj in container.list():
            if obj != index_name:
                container.delete(obj)
        if n != 0 and n != container.open_dataset(index_name).shape()[0]:
            DataFrameIndex.from_range(0, n).overwrite(container)
    else:
        for obj in container.list():
            container.delete(obj)
        DataFrameIndex.from_range(0, n).overwrite(container)
    _write_columns(df, container)
    container.write_str_attr("encoding-type", "dataframe")
    container.write_str_attr("encoding-version", "0.2.0")
    return container


def _frame(columns: Sequence[str], series: Sequence[pd.Series]) -> pd.DataFrame:
    if not columns:
        return pd.DataFrame()
    lengths = {len(s) for s in series}
    if len(lengths) > 1:
        raise ValueError("columns of a data frame must have the same length")
    return pd.DataFrame({name: s.reset_index(drop=True) for name, s in zip(columns, series)})


def _column_names(container: Group) -> list[str]:
    return [str(c) for c in container.read_arr_attr("column-order")]


def read_dataframe(container: Group) -> pd.DataFrame:
    columns = _column_names(container)
    series = [read_series(open_container(container, name)) for name in columns]
    return _frame(columns, series)


def read_dataframe_shape(container: Group) -> tuple[int, int]:
    index_name = container.read_str_attr("_index")
    nrows = container.open_dataset(index_name).shape()[0]
    return (nrows, len(_column_names(container)))


def read_dataframe_select(container: Group, selection: Any) -> pd.DataFrame:
    columns = _column_names(container)
    rows, cols = normalize_selection(selection, read_dataframe_shape(container))
    names = [columns[int(i)] for i in cols]
    series = [
        read_series(open_container(container, name)).iloc[rows].reset_index(drop=True)
        for name in names
    ]
    return _frame(names, series)


def select_dataframe(df: pd.DataFrame, selection: Any) -> pd.DataFrame:
    rows, cols = normalize_selection(selection, df.shape)
    return df.iloc[rows, cols].reset_index(drop=True)


def get_dataframe_item(df: pd.DataFrame, index: Sequence[int]) -> Any:
    """Return the value at (row, column), or None when out of bounds."""
    row, col = (int(i) for i in index)
    nrows, ncols = df.shape
    if not (0 <= row < nrows and 0 <= col < ncols):
        return None
    value = df.iat[row, col]
    return value.item() if isinstance(value, np.generic) else value


def vstack_dataframes(frames: Iterable[pd.DataFrame]) -> pd.DataFrame:
    """Stack frames with identical columns on top of each other."""
    items = list(frames)
    if not items:
        return pd.DataFrame()
    columns = [str(c) for c in items[0].columns]
    for frame in items[1:]:
        if [str(c) for c in frame.columns] != columns:
            raise ValueError("cannot vstack dataframes with different columns")
    if not columns:
        return pd.DataFrame()
    data = {}
    for position, name in enumerate(columns):
        parts = [frame.iloc[:, position] for frame in items]
        if all(isinstance(p.dtype, pd.CategoricalDtype) for p in parts):
            merged = pd.api.types.union_categoricals([p.array for p in parts])
            data[name] = pd.Series(merged)
        else:
            data[name] = pd.concat(parts, ignore_index=True)
    return pd.DataFrame(data)