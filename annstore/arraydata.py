"""Generic array data and stored elements.

Array data is a dense numpy array, a categorical array or a pandas data
frame. Data in general is array data or a scalar value (bool, int, float,
str or a numpy scalar). The functions here dispatch on the kind of value,
or on the encoding of a stored container when reading.
"""

from __future__ import annotations

from typing import Any, Iterable, Sequence, Union

import numpy as np
import pandas as pd

from annstore.arrays import (
    CategoricalArray,
    array_data_type,
    array_shape,
    get_array_item,
    read_array,
    read_array_select,
    read_array_shape,
    select_array,
    vstack_arrays,
    write_array,
)
from annstore.dataframe import (
    get_dataframe_item,
    overwrite_dataframe,
    read_dataframe,
    read_dataframe_select,
    read_dataframe_shape,
    select_dataframe,
    vstack_dataframes,
    write_dataframe,
)
from annstore.memory import (
    DataKind,
    DataType,
    Dataset,
    Group,
    ScalarType,
    delete_container,
    encoding_type,
    scalar_type_of,
    set_axis,
)

ArrayData = Union[np.ndarray, CategoricalArray, pd.DataFrame]
Container = Union[Group, Dataset]

_ARRAY_KINDS = {DataKind.ARRAY, DataKind.CATEGORICAL}


def _is_scalar(value: Any) -> bool:
    return isinstance(value, (bool, int, float, str, np.generic))


def _check_array_data(data: Any) -> None:
    if not isinstance(data, (np.ndarray, CategoricalArray, pd.DataFrame)):
        raise TypeError(f"Cannot use {type(data).__name__} as array data")


def data_type(data: Any) -> DataType:
    """Return the stored data type of a value."""
    if isinstance(data, pd.DataFrame):
        return DataType(DataKind.DATAFRAME)
    if isinstance(data, (np.ndarray, CategoricalArray)):
        return array_data_type(data)
    if _is_scalar(data):
        return DataType(DataKind.SCALAR, scalar_type_of(np.asarray(data).dtype))
    raise TypeError(f"Cannot convert {type(data).__name__} to data")


def array_data_shape(data: ArrayData) -> tuple[int, ...]:
    _check_array_data(data)
    if isinstance(data, pd.DataFrame):
        return tuple(data.shape)
    return array_shape(data)


def get_item(data: ArrayData, index: Sequence[int]) -> Any:
    """Return the element at ``index``, or None when it is out of bounds."""
    _check_array_data(data)
    if isinstance(data, pd.DataFrame):
        return get_dataframe_item(data, index)
    return get_array_item(data, index)


def select_array_data(data: ArrayData, selection: Any) -> ArrayData:
    _check_array_data(data)
    if isinstance(data, pd.DataFrame):
        return select_dataframe(data, selection)
    return select_array(data, selection)


def select_array_data_axis(data: ArrayData, axis: int, selection: Any) -> ArrayData:
    """Select along one axis, keeping the other axes whole."""
    ndim = len(array_data_shape(data))
    return select_array_data(data, set_axis(selection, axis, ndim))


def vstack_array_data(items: Iterable[ArrayData]) -> ArrayData:
    """Concatenate array data of one kind along the first axis."""
    values = list(items)
    if not values:
        raise ValueError("Cannot vstack empty iterator")
    for value in values:
        _check_array_data(value)
    if isinstance(values[0], pd.DataFrame):
        if not all(isinstance(v, pd.DataFrame) for v in values):
            raise TypeError("Cannot vstack dataframes with other array data")
        return vstack_dataframes(values)
    if any(isinstance(v, pd.DataFrame) for v in values):
        raise TypeError("Cannot vstack dataframes with other array data")
    return vstack_arrays(values)


def _write_scalar(value: Any, location: Group, name: str) -> Dataset:
    dataset = location.write_scalar(name, value)
    encoding = "string" if dataset.dtype() == ScalarType.STRING else "numeric-scalar"
    dataset.write_str_attr("encoding-type", encoding)
    dataset.write_str_attr("encoding-version", "0.2.0")
    return dataset


def write_data(data: Any, location: Group, name: str) -> Container:
    """Write data under ``name`` and return the new container."""
    if isinstance(data, pd.DataFrame):
        return write_dataframe(data, location, name)
    if isinstance(data, (np.ndarray, CategoricalArray)):
        return write_array(data, location, name)
    if _is_scalar(data):
        return _write_scalar(data, location, name)
    raise TypeError(f"Cannot write {type(data).__name__} as data")


def overwrite_data(data: Any, container: Container) -> Container:
    """Replace what is stored at ``container`` with ``data``."""
    if isinstance(data, pd.DataFrame) and isinstance(container, Group):
        return overwrite_dataframe(data, container)
    data_type(data)
    parent = container.parent
    if parent is None:
        raise ValueError("cannot overwrite the root of a file")
    name = container.name
    delete_container(container)
    return write_data(data, parent, name)


def read_data(container: Container) -> Any:
    """Read any supported element from ``container``."""
    dtype = encoding_type(container)
    if dtype.kind is DataKind.SCALAR:
        if not isinstance(container, Dataset):
            raise TypeError(f"'{container.path}' is not a dataset")
        return container.read_scalar()
    return read_array_data(container)


def read_array_data(container: Container) -> ArrayData:
    dtype = encoding_type(container)
    if dtype.kind in _ARRAY_KINDS:
        return read_array(container)
    if dtype.kind is DataKind.DATAFRAME:
        return read_dataframe(container)
    raise TypeError(f"Cannot read type '{dtype}' as matrix data")


def read_array_data_shape(container: Container) -> tuple[int, ...]:
    dtype = encoding_type(container)
    if dtype.kind in _ARRAY_KINDS:
        return read_array_shape(container)
    if dtype.kind is DataKind.DATAFRAME:
        return read_dataframe_shape(container)
    raise TypeError(f"Cannot read shape information from type '{dtype}'")


def read_array_data_select(container: Container, selection: Any) -> ArrayData:
    dtype = encoding_type(container)
    if dtype.kind in _ARRAY_KINDS:
        return read_array_select(container, selection)
    if dtype.kind is DataKind.DATAFRAME:
        return read_dataframe_select(container, selection)
    raise TypeError(f"Cannot read type '{dtype}' as matrix data")