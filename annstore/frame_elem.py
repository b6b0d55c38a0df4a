"""Stored data frame elements.

A data frame element keeps a stored data frame group in a slot together
with its row index and column names. The frame is read on first use and
kept in memory afterwards.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional

import numpy as np
import pandas as pd

from annstore.dataframe import (
    DataFrameIndex,
    overwrite_dataframe,
    read_dataframe,
    select_dataframe,
)
from annstore.elements import Slot
from annstore.memory import (
    DataKind,
    Group,
    delete_container,
    encoding_type,
    set_axis,
)


def _is_full_elem(elem: Any) -> bool:
    return elem is None or elem is Ellipsis or (isinstance(elem, slice) and elem == slice(None))


def _pair(selection: Any) -> list:
    """Check that ``selection`` holds one element for rows and one for columns."""
    if not isinstance(selection, (list, tuple)) or len(selection) != 2:
        raise ValueError("DataFrame only support 2D selection")
    for elem in selection:
        if isinstance(elem, (bool, int, np.integer)):
            raise TypeError(f"invalid selection element: {elem!r}")
    return list(selection)


@dataclass
class _FrameState:
    container: Group
    index: DataFrameIndex
    column_names: list = field(default_factory=list)
    element: Optional[pd.DataFrame] = None

    def __str__(self) -> str:
        return "Dataframe element"


class DataFrameElem(Slot[_FrameState]):
    """A stored data frame with its row index."""

    @classmethod
    def create(
        cls, location: Group, name: str, index: DataFrameIndex, df: pd.DataFrame
    ) -> "DataFrameElem":
        """Write ``df`` with ``index`` under ``name`` and return the element."""
        if len(df) != 0 and len(index) != len(df):
            raise ValueError(
                "cannot create dataframe element as lengths of index and dataframe differ"
            )
        container = overwrite_dataframe(df, index.write(location, name))
        state = _FrameState(
            container=container,
            index=index,
            column_names=[str(c) for c in df.columns],
        )
        return cls(state)

    @property
    def index(self) -> DataFrameIndex:
        with self._locked() as state:
            return state.index

    def width(self) -> int:
        with self._locked() as state:
            return len(state.column_names)

    def height(self) -> int:
        with self._locked() as state:
            return len(state.index)

    def column_names(self) -> list:
        with self._locked() as state:
            return list(state.column_names)

    def _frame(self, state: _FrameState) -> pd.DataFrame:
        if state.element is None:
            state.element = read_dataframe(state.container)
        return state.element

    def data(self) -> pd.DataFrame:
        """Return the whole frame, reading it once and keeping it afterwards."""
        with self._locked() as state:
            return self._frame(state).copy()

    def column(self, name: str) -> pd.Series:
        with self._locked() as state:
            df = self._frame(state)
            if name not in df.columns:
                raise KeyError(f"column '{name}' not found")
            return df[name].copy()

    def set_column(self, name: str, values: Any) -> None:
        """Replace the column ``name``, or add it when it is absent."""
        with self._locked() as state:
            df = self._frame(state).copy()
            series = values if isinstance(values, pd.Series) else pd.Series(values)
            series = series.reset_index(drop=True)
            if len(df.columns) > 0 and len(series) != len(df):
                raise ValueError("cannot set a column whose length differs from the dataframe")
            df[name] = series
            self._save(state, df)

    def set_index(self, index: DataFrameIndex) -> None:
        with self._locked() as state:
            if len(state.index) != len(index):
                raise ValueError("cannot change the index as the lengths differ")
            state.index = index
            state.container = index.overwrite(state.container)

    def _save(self, state: _FrameState, df: pd.DataFrame) -> None:
        num_recs = len(df)
        if num_recs != 0 and len(state.index) != num_recs:
            raise ValueError("cannot update dataframe as lengths differ")
        state.container = overwrite_dataframe(df, state.container)
        state.column_names = [str(c) for c in df.columns]
        if state.element is not None:
            state.element = df.copy()

    def save(self, df: pd.DataFrame) -> None:
        """Replace the stored columns with those of ``df``."""
        with self._locked() as state:
            self._save(state, df)

    def export(self, location: Group, name: str) -> None:
        with self._locked() as state:
            df = state.element if state.element is not None else read_dataframe(state.container)
            overwrite_dataframe(df, state.index.write(location, name))

    def select(self, selection: Any) -> pd.DataFrame:
        """Return the rows and columns that ``selection`` picks."""
        pair = _pair(selection)
        with self._locked() as state:
            return select_dataframe(self._frame(state), pair)

    def select_axis(self, axis: int, selection: Any) -> pd.DataFrame:
        return self.select(set_axis(selection, axis, 2))

    def export_select(self, selection: Any, location: Group, name: str) -> None:
        pair = _pair(selection)
        if all(_is_full_elem(e) for e in pair):
            self.export(location, name)
            return
        with self._locked() as state:
            df = select_dataframe(self._frame(state), pair)
            index = state.index.select(pair[0])
            overwrite_dataframe(df, index.write(location, name))

    def export_axis(self, axis: int, selection: Any, location: Group, name: str) -> None:
        self.export_select(set_axis(selection, axis, 2), location, name)

    def subset(self, selection: Any) -> None:
        """Keep only the rows and columns that ``selection`` picks."""
        pair = _pair(selection)
        with self._locked() as state:
            df = select_dataframe(self._frame(state), pair)
            state.index = state.index.select(pair[0])
            state.container = state.index.overwrite(state.container)
            self._save(state, df)

    def subset_axis(self, axis: int, selection: Any) -> None:
        self.subset(set_axis(selection, axis, 2))

    def clear(self) -> None:
        """Empty the element and delete the stored frame."""
        super().clear()

    def _release(self, value: _FrameState) -> None:
        delete_container(value.container)


def open_dataframe_elem(container: Group) -> DataFrameElem:
    """Open a stored data frame group as an element."""
    dtype = encoding_type(container)
    if dtype.kind is not DataKind.DATAFRAME or not isinstance(container, Group):
        raise ValueError(f"Expecting a dataframe but found: '{dtype}'")
    index = DataFrameIndex.read(container)
    column_names = [str(c) for c in container.read_arr_attr("column-order")]
    return DataFrameElem(
        _FrameState(container=container, index=index, column_names=column_names)
    )