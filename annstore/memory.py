"""In-memory hierarchical storage backend.

Groups hold named children (groups or datasets), and every location carries
a set of attributes. File paths are recorded but nothing is written to disk.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Iterable, Sequence

import numpy as np


class ScalarType(Enum):
    """Element types a dataset or attribute can hold."""

    I8 = "i8"
    I16 = "i16"
    I32 = "i32"
    I64 = "i64"
    U8 = "u8"
    U16 = "u16"
    U32 = "u32"
    U64 = "u64"
    USIZE = "usize"
    F32 = "f32"
    F64 = "f64"
    BOOL = "bool"
    STRING = "string"

    @property
    def numpy_dtype(self) -> np.dtype:
        return _NUMPY_DTYPES[self]

    def __str__(self) -> str:
        return self.name


_NUMPY_DTYPES = {
    ScalarType.I8: np.dtype(np.int8),
    ScalarType.I16: np.dtype(np.int16),
    ScalarType.I32: np.dtype(np.int32),
    ScalarType.I64: np.dtype(np.int64),
    ScalarType.U8: np.dtype(np.uint8),
    ScalarType.U16: np.dtype(np.uint16),
    ScalarType.U32: np.dtype(np.uint32),
    ScalarType.U64: np.dtype(np.uint64),
    ScalarType.USIZE: np.dtype(np.uint64),
    ScalarType.F32: np.dtype(np.float32),
    ScalarType.F64: np.dtype(np.float64),
    ScalarType.BOOL: np.dtype(np.bool_),
    ScalarType.STRING: np.dtype(object),
}

_FROM_NUMPY = {
    np.dtype(np.int8): ScalarType.I8,
    np.dtype(np.int16): ScalarType.I16,
    np.dtype(np.int32): ScalarType.I32,
    np.dtype(np.int64): ScalarType.I64,
    np.dtype(np.uint8): ScalarType.U8,
    np.dtype(np.uint16): ScalarType.U16,
    np.dtype(np.uint32): ScalarType.U32,
    np.dtype(np.uint64): ScalarType.U64,
    np.dtype(np.float32): ScalarType.F32,
    np.dtype(np.float64): ScalarType.F64,
    np.dtype(np.bool_): ScalarType.BOOL,
}


def scalar_type_of(dtype: Any) -> ScalarType:
    """Return the scalar type matching a numpy dtype."""
    dt = np.dtype(dtype)
    if dt.kind in "OUS":
        return ScalarType.STRING
    try:
        return _FROM_NUMPY[dt]
    except KeyError:
        raise TypeError(f"Unsupported type: {dt}") from None


class DataKind(Enum):
    """Kinds of stored elements."""

    ARRAY = "Array"
    CATEGORICAL = "Categorical"
    CSR_MATRIX = "CsrMatrix"
    CSC_MATRIX = "CscMatrix"
    DATAFRAME = "DataFrame"
    SCALAR = "Scalar"
    MAPPING = "Mapping"


_KINDS_WITH_SCALAR = {DataKind.ARRAY, DataKind.CSR_MATRIX, DataKind.CSC_MATRIX, DataKind.SCALAR}


@dataclass(frozen=True)
class DataType:
    """The kind of a stored element, with its element type where it has one."""

    kind: DataKind
    scalar: ScalarType | None = None

    def __post_init__(self) -> None:
        if self.kind in _KINDS_WITH_SCALAR and self.scalar is None:
            raise ValueError(f"{self.kind.value} requires a scalar type")
        if self.kind not in _KINDS_WITH_SCALAR and self.scalar is not None:
            raise ValueError(f"{self.kind.value} takes no scalar type")

    def __str__(self) -> str:
        if self.scalar is None:
            return self.kind.value
        return f"{self.kind.value}({self.scalar})"


# ---------------------------------------------------------------------------
# Selections


def _is_full(elem: Any) -> bool:
    return elem is None or (
        isinstance(elem, slice) and elem.start is None and elem.stop is None and elem.step is None
    )


def _is_single_element(selection: Any) -> bool:
    if isinstance(selection, (slice, np.ndarray)):
        return True
    if isinstance(selection, (list, tuple)):
        return len(selection) > 0 and all(
            isinstance(x, (int, np.integer)) and not isinstance(x, bool) for x in selection
        )
    return False


def _as_elements(selection: Any) -> list:
    if selection is None or selection is Ellipsis:
        return []
    if _is_single_element(selection):
        return [selection]
    if isinstance(selection, (list, tuple)):
        return list(selection)
    raise TypeError(f"invalid selection: {selection!r}")


def _bound(elem: Any, n: int) -> np.ndarray:
    if elem is None:
        return np.arange(n, dtype=np.int64)
    if isinstance(elem, slice):
        return np.arange(n, dtype=np.int64)[elem]
    arr = np.asarray(elem)
    if arr.ndim != 1:
        raise ValueError("index selection must be one-dimensional")
    if arr.dtype == np.bool_:
        if arr.shape[0] != n:
            raise IndexError(f"boolean mask of length {arr.shape[0]} for axis of length {n}")
        return np.flatnonzero(arr).astype(np.int64)
    if arr.size == 0:
        return np.zeros(0, dtype=np.int64)
    if arr.dtype.kind not in "iu":
        raise TypeError(f"index selection must hold integers, got {arr.dtype}")
    idx = arr.astype(np.int64)
    idx = np.where(idx < 0, idx + n, idx)
    if np.any(idx < 0) or np.any(idx >= n):
        raise IndexError(f"index out of bounds for axis of length {n}")
    return idx


def normalize_selection(selection: Any, shape: Sequence[int]) -> tuple[np.ndarray, ...]:
    """Turn a selection into one array of integer positions per axis.

    A selection is a sequence of per-axis elements (a slice, a sequence of
    integers, a boolean mask or None for the full axis); a single element
    applies to the first axis. Missing trailing axes are selected in full.
    """
    elems = _as_elements(selection)
    if len(elems) > len(shape):
        raise ValueError(f"selection has {len(elems)} elements but the shape has {len(shape)} axes")
    elems = elems + [None] * (len(shape) - len(elems))
    return tuple(_bound(e, n) for e, n in zip(elems, shape))


def set_axis(selection: Any, axis: int, ndim: int) -> list:
    """Build an ndim-long selection that applies ``selection`` on ``axis`` only."""
    if not 0 <= axis < ndim:
        raise IndexError(f"axis {axis} out of range for {ndim} dimensions")
    result: list = [slice(None)] * ndim
    result[axis] = selection
    return result


# ---------------------------------------------------------------------------
# Value conversion


def _strings(values: Iterable[Any], shape: tuple[int, ...]) -> np.ndarray:
    out = np.empty(shape, dtype=object)
    flat = out.reshape(-1)
    for i, value in enumerate(values):
        flat[i] = value
    return out


def _to_array(value: Any) -> np.ndarray:
    arr = np.array(value, copy=True)
    if arr.dtype.kind == "U":
        return _strings((str(x) for x in arr.flat), arr.shape)
    if arr.dtype.kind == "S":
        return _strings((x.decode() for x in arr.flat), arr.shape)
    if arr.dtype.kind == "O":
        if not all(isinstance(x, str) for x in arr.flat):
            raise TypeError("object arrays must hold only strings")
        return arr
    scalar_type_of(arr.dtype)
    return arr


def _scalar_array(value: Any) -> np.ndarray:
    if isinstance(value, (bool, np.bool_)):
        return np.array(bool(value), dtype=np.bool_)
    if isinstance(value, str):
        return _strings([value], ())
    if isinstance(value, np.generic):
        return _to_array(value)
    if isinstance(value, int):
        return np.array(value, dtype=np.int64)
    if isinstance(value, float):
        return np.array(value, dtype=np.float64)
    raise TypeError(f"unsupported scalar value: {value!r}")


def _to_python(value: Any) -> Any:
    return value.item() if isinstance(value, np.generic) else value


# ---------------------------------------------------------------------------
# Locations


class Location:
    """A named node of a file that carries attributes."""

    def __init__(self, file: File | None, parent: Group | None, name: str) -> None:
        self._file = file if file is not None else self
        self._parent = parent
        self._name = name
        self._attrs: dict[str, Any] = {}

    @property
    def name(self) -> str:
        return self._name

    @property
    def path(self) -> str:
        if self._parent is None:
            return "/"
        return self._parent.path.rstrip("/") + "/" + self._name

    @property
    def file(self) -> File:
        return self._file

    @property
    def parent(self) -> Group | None:
        return self._parent

    def _ensure_open(self) -> None:
        if self._file._closed:
            raise ValueError("file is closed")

    def has_attr(self, name: str) -> bool:
        self._ensure_open()
        return name in self._attrs

    def _get_attr(self, name: str) -> Any:
        self._ensure_open()
        try:
            return self._attrs[name]
        except KeyError:
            raise KeyError(f"attribute '{name}' not found at '{self.path}'") from None

    def write_str_attr(self, name: str, value: str) -> None:
        self._ensure_open()
        if not isinstance(value, str):
            raise TypeError("string attribute value must be a str")
        self._attrs[name] = value

    def read_str_attr(self, name: str) -> str:
        value = self._get_attr(name)
        if not isinstance(value, str):
            raise TypeError(f"Cannot read string from attribute '{name}'")
        return value

    def write_arr_attr(self, name: str, value: Any) -> None:
        self._ensure_open()
        self._attrs[name] = _to_array(value)

    def read_arr_attr(self, name: str) -> np.ndarray:
        value = self._get_attr(name)
        if not isinstance(value, np.ndarray):
            raise TypeError(f"attribute '{name}' is not an array")
        return value.copy()

    def write_scalar_attr(self, name: str, value: Any) -> None:
        self._ensure_open()
        self._attrs[name] = _scalar_array(value)

    def read_scalar_attr(self, name: str) -> Any:
        value = self._get_attr(name)
        if isinstance(value, np.ndarray):
            if value.ndim != 0:
                raise TypeError(f"attribute '{name}' is not a scalar")
            return _to_python(value[()])
        return value


class Dataset(Location):
    """A leaf node holding one n-dimensional array."""

    def __init__(self, file: File, parent: Group, name: str, data: np.ndarray) -> None:
        super().__init__(file, parent, name)
        self._data = data

    def __repr__(self) -> str:
        return f"Dataset({self.path!r}, shape={self._data.shape})"

    def dtype(self) -> ScalarType:
        self._ensure_open()
        return scalar_type_of(self._data.dtype)

    def shape(self) -> tuple[int, ...]:
        self._ensure_open()
        return tuple(self._data.shape)

    def read_scalar(self) -> Any:
        self._ensure_open()
        if self._data.ndim != 0:
            raise ValueError(f"dataset '{self.path}' is not a scalar")
        return _to_python(self._data[()])

    def read_array(self) -> np.ndarray:
        self._ensure_open()
        return self._data.copy()

    def read_array_slice(self, selection: Any) -> np.ndarray:
        self._ensure_open()
        elems = _as_elements(selection)
        if len(elems) > self._data.ndim:
            raise ValueError(
                f"selection has {len(elems)} elements but the dataset has {self._data.ndim} axes"
            )
        if all(e is None or isinstance(e, slice) for e in elems):
            key = tuple(slice(None) if e is None else e for e in elems)
            return self._data[key].copy()
        indices = normalize_selection(elems, self._data.shape)
        return self._data[np.ix_(*indices)].copy()


class Group(Location):
    """A node holding named child groups and datasets."""

    def __init__(self, file: File | None, parent: Group | None, name: str) -> None:
        super().__init__(file, parent, name)
        self._children: dict[str, Group | Dataset] = {}

    def __repr__(self) -> str:
        return f"Group({self.path!r})"

    def _resolve_parent(self, name: str) -> tuple[Group, str]:
        self._ensure_open()
        start: Group = self._file if name.startswith("/") else self
        parts = [p for p in name.split("/") if p]
        if not parts:
            raise ValueError(f"invalid name: {name!r}")
        group = start
        for part in parts[:-1]:
            child = group._children.get(part)
            if not isinstance(child, Group):
                raise KeyError(f"group '{part}' not found under '{group.path}'")
            group = child
        return group, parts[-1]

    def _lookup(self, name: str) -> Group | Dataset:
        parent, leaf = self._resolve_parent(name)
        try:
            return parent._children[leaf]
        except KeyError:
            raise KeyError(f"'{leaf}' not found under '{parent.path}'") from None

    def _new_slot(self, name: str) -> tuple[Group, str]:
        parent, leaf = self._resolve_parent(name)
        if leaf in parent._children:
            raise ValueError(f"'{leaf}' already exists under '{parent.path}'")
        return parent, leaf

    def list(self) -> list[str]:
        self._ensure_open()
        return sorted(self._children)

    def create_group(self, name: str) -> Group:
        parent, leaf = self._new_slot(name)
        group = Group(self._file, parent, leaf)
        parent._children[leaf] = group
        return group

    def open_group(self, name: str) -> Group:
        obj = self._lookup(name)
        if not isinstance(obj, Group):
            raise TypeError(f"'{obj.path}' is not a group")
        return obj

    def open_dataset(self, name: str) -> Dataset:
        obj = self._lookup(name)
        if not isinstance(obj, Dataset):
            raise TypeError(f"'{obj.path}' is not a dataset")
        return obj

    def delete(self, name: str) -> None:
        parent, leaf = self._resolve_parent(name)
        if leaf not in parent._children:
            raise KeyError(f"'{leaf}' not found under '{parent.path}'")
        del parent._children[leaf]

    def exists(self, name: str) -> bool:
        try:
            self._lookup(name)
        except KeyError:
            return False
        return True

    def write_scalar(self, name: str, value: Any) -> Dataset:
        data = _scalar_array(value)
        parent, leaf = self._new_slot(name)
        dataset = Dataset(self._file, parent, leaf, data)
        parent._children[leaf] = dataset
        return dataset

    def write_array(self, name: str, data: Any) -> Dataset:
        arr = _to_array(data)
        parent, leaf = self._new_slot(name)
        dataset = Dataset(self._file, parent, leaf, arr)
        parent._children[leaf] = dataset
        return dataset


class File(Group):
    """The root group of a store."""

    def __init__(self, path: str | Path) -> None:
        self._closed = False
        super().__init__(None, None, "")
        self._filename = Path(path)

    def __repr__(self) -> str:
        return f"File({str(self._filename)!r})"

    def __enter__(self) -> File:
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()

    @property
    def closed(self) -> bool:
        return self._closed

    def filename(self) -> Path:
        return self._filename

    def close(self) -> None:
        self._closed = True


def create(path: str | Path) -> File:
    """Create a new, empty store."""
    return File(path)


def open_container(group: Group, name: str) -> Group | Dataset:
    """Open the child ``name`` of ``group``, whether a group or a dataset."""
    return group._lookup(name)


def delete_container(container: Group | Dataset) -> None:
    """Remove a group or dataset from its file."""
    if isinstance(container, File):
        raise ValueError("cannot delete the root of a file")
    container.file.delete(container.path)


def encoding_type(container: Group | Dataset) -> DataType:
    """Determine the kind of element stored at ``container``."""
    if not container.has_attr("encoding-type"):
        if isinstance(container, Dataset):
            if len(container.shape()) == 0:
                return DataType(DataKind.SCALAR, container.dtype())
            return DataType(DataKind.ARRAY, container.dtype())
        return DataType(DataKind.MAPPING)

    enc = container.read_str_attr("encoding-type")
    if enc in ("array", "string-array"):
        if not isinstance(container, Dataset):
            raise TypeError(f"'{container.path}' is encoded as {enc} but is not a dataset")
        return DataType(DataKind.ARRAY, container.dtype())
    if enc == "categorical":
        return DataType(DataKind.CATEGORICAL)
    if enc in ("csr_matrix", "csc_matrix"):
        if not isinstance(container, Group):
            raise TypeError(f"'{container.path}' is encoded as {enc} but is not a group")
        kind = DataKind.CSR_MATRIX if enc == "csr_matrix" else DataKind.CSC_MATRIX
        return DataType(kind, container.open_dataset("data").dtype())
    if enc == "dataframe":
        return DataType(DataKind.DATAFRAME)
    if enc == "dict":
        return DataType(DataKind.MAPPING)
    if enc in ("string", "numeric-scalar"):
        if not isinstance(container, Dataset):
            raise TypeError(f"'{container.path}' is encoded as {enc} but is not a dataset")
        return DataType(DataKind.SCALAR, container.dtype())
    raise ValueError(f"unsupported encoding type: {enc}")