# annstore

`annstore` stores annotated data (typed n-dimensional numpy arrays,
categorical arrays and pandas data frames with a row index) in a
hierarchical store of groups, datasets and attributes. Elements are marked
with `encoding-type` and `encoding-version` attributes; data frames keep
their column order in a `column-order` attribute and the name of their row
index dataset in `_index`.

On top of the store sit element objects that read data lazily, cache it
when asked, and support selection, subsetting, export and chunked
iteration.

## Installation

```
pip install .
```

For the test suite:

```
pip install ".[test]"
pytest
```

## Modules

- `annstore.memory`: the store. `create(path)` returns a `File`, which is
  the root `Group`. Groups list, create, open, delete and check for
  children (`create_group`, `open_group`, `open_dataset`, `delete`,
  `exists`, `list`) and write datasets (`write_scalar`, `write_array`).
  A `Dataset` reports its `dtype()` and `shape()` and reads its data with
  `read_scalar`, `read_array` and `read_array_slice`. Every location holds
  string, array and scalar attributes (`write_str_attr`, `read_str_attr`,
  `write_arr_attr`, `read_arr_attr`, `write_scalar_attr`,
  `read_scalar_attr`, `has_attr`). The module also defines `ScalarType`,
  `DataKind` and `DataType`, `encoding_type`, `open_container`,
  `delete_container`, and the selection helpers `normalize_selection` and
  `set_axis`.
- `annstore.arrays`: numpy arrays and `CategoricalArray` (codes into a
  table of categories, built with `CategoricalArray.from_values`). Provides
  `array_data_type`, `array_shape`, `get_array_item`, `select_array`,
  `vstack_arrays`, `write_array`, `read_array`, `read_array_shape` and
  `read_array_select`.
- `annstore.dataframe`: `DataFrameIndex` (a list of names or an integer
  range) and the functions that write, read, select and stack pandas
  series and data frames (`write_series`, `read_series`, `select_series`,
  `write_dataframe`, `overwrite_dataframe`, `read_dataframe`,
  `read_dataframe_shape`, `read_dataframe_select`, `select_dataframe`,
  `get_dataframe_item`, `vstack_dataframes`).
- `annstore.arraydata`: one entry point for any supported value: a numpy
  array, a categorical array, a data frame or a scalar (`bool`, `int`,
  `float`, `str`, numpy scalar). Provides `data_type`, `array_data_shape`,
  `get_item`, `select_array_data`, `select_array_data_axis`,
  `vstack_array_data`, `write_data`, `overwrite_data`, `read_data`,
  `read_array_data`, `read_array_data_shape` and `read_array_data_select`.
- `annstore.elements`: `Slot`, a lock-guarded optional value shared by all
  holders; `Elem` and `ArrayElem`, stored elements with an optional cache
  (opened with `open_elem` and `open_array_elem`); and `ChunkedArrayElem`,
  which yields `(data, start, stop)` row chunks.
- `annstore.frame_elem`: `DataFrameElem`, a data frame stored with its row
  index, read on first use and kept in memory afterwards (opened with
  `open_dataframe_elem` or made with `DataFrameElem.create`).

## Example

```python
import numpy as np
import pandas as pd

from annstore.memory import create
from annstore.arraydata import write_data, read_data
from annstore.elements import open_array_elem
from annstore.dataframe import DataFrameIndex
from annstore.frame_elem import DataFrameElem

store = create("example.h5ad")

container = write_data(np.arange(12, dtype=np.int32).reshape(4, 3), store, "X")
print(read_data(container))

elem = open_array_elem(container)
for chunk, start, stop in elem.chunked(2):
    print(start, stop, chunk.shape)

obs = DataFrameElem.create(
    store,
    "obs",
    DataFrameIndex.from_names(["a", "b", "c", "d"]),
    pd.DataFrame({"n": [1, 2, 3, 4]}),
)
print(obs.height(), obs.column_names())
```

Selections follow numpy: per axis, a list of integers, a `slice` or a
boolean mask, with `None` or `slice(None)` meaning the whole axis. A single
element applies to the first axis.

## What it does not do

- The store lives in memory only. `create(path)` records the path, which
  `File.filename()` returns, but nothing is read from or written to disk.
- Sparse matrices are not supported: `DataKind` names CSR and CSC
  matrices, and `encoding_type` recognises them, but no function reads or
  writes them.
- Groups without an `encoding-type` (or encoded as `dict`) are reported as
  mappings, but mappings cannot be read or written as data.
- There are no collections of elements and no stacking of several stored
  elements into one view; `vstack_array_data` stacks values in memory.