import numpy as np
import pandas as pd
import pytest

from annstore.dataframe import DataFrameIndex, read_dataframe
from annstore.elements import EmptySlotError
from annstore.frame_elem import DataFrameElem, open_dataframe_elem
from annstore.memory import create


NAMES = ["c1", "c2", "c3"]


def _frame():
    return pd.DataFrame(
        {
            "a": np.array([1, 2, 3], dtype=np.int64),
            "b": pd.Series(["x", "y", "z"], dtype=object),
        }
    )


@pytest.fixture
def store():
    return create("frames.h5")


@pytest.fixture
def elem(store):
    return DataFrameElem.create(store, "obs", DataFrameIndex.from_names(NAMES), _frame())


def test_create_and_read(elem):
    df = elem.data()
    assert df["a"].tolist() == [1, 2, 3]
    assert df["b"].tolist() == ["x", "y", "z"]
    assert elem.width() == 2
    assert elem.height() == 3
    assert elem.column_names() == ["a", "b"]


def test_create_length_mismatch(store):
    with pytest.raises(ValueError):
        DataFrameElem.create(store, "obs", DataFrameIndex.from_names(["a", "b"]), _frame())


def test_create_empty_frame_keeps_index(store):
    e = DataFrameElem.create(store, "obs", DataFrameIndex.from_names(NAMES), pd.DataFrame())
    assert e.height() == len(NAMES)
    assert e.width() == 0


def test_open_existing(store, elem):
    reopened = open_dataframe_elem(store.open_group("obs"))
    assert reopened.index.to_list() == NAMES
    assert reopened.column_names() == ["a", "b"]
    assert reopened.data()["a"].tolist() == [1, 2, 3]


def test_open_non_dataframe(store):
    ds = store.write_array("arr", np.arange(3))
    ds.write_str_attr("encoding-type", "array")
    with pytest.raises(ValueError):
        open_dataframe_elem(ds)


def test_column(elem):
    assert elem.column("b").tolist() == ["x", "y", "z"]
    with pytest.raises(KeyError):
        elem.column("missing")


def test_set_column_add_and_replace(store, elem):
    elem.set_column("c", [1.5, 2.5, 3.5])
    elem.set_column("a", [7, 8, 9])
    assert elem.column_names() == ["a", "b", "c"]
    stored = read_dataframe(store.open_group("obs"))
    assert stored["a"].tolist() == [7, 8, 9]
    assert stored["c"].tolist() == [1.5, 2.5, 3.5]


def test_set_column_wrong_length(elem):
    with pytest.raises(ValueError):
        elem.set_column("c", [1, 2])


def test_set_index(store, elem):
    elem.set_index(DataFrameIndex.from_names(["r1", "r2", "r3"]))
    reopened = open_dataframe_elem(store.open_group("obs"))
    assert reopened.index.to_list() == ["r1", "r2", "r3"]
    with pytest.raises(ValueError):
        elem.set_index(DataFrameIndex.from_names(["only"]))


def test_save(store, elem):
    new = pd.DataFrame({"z": np.array([0.0, 1.0, 2.0])})
    elem.save(new)
    assert elem.column_names() == ["z"]
    assert read_dataframe(store.open_group("obs"))["z"].tolist() == [0.0, 1.0, 2.0]
    assert open_dataframe_elem(store.open_group("obs")).index.to_list() == NAMES
    with pytest.raises(ValueError):
        elem.save(pd.DataFrame({"z": [1, 2]}))


def test_select(elem):
    df = elem.select([[0, 2], None])
    assert df["a"].tolist() == [1, 3]
    assert df["b"].tolist() == ["x", "z"]
    cols = elem.select_axis(1, [1])
    assert list(cols.columns) == ["b"]
    assert len(cols) == 3


def test_select_requires_pair(elem):
    with pytest.raises(ValueError):
        elem.select(slice(0, 2))


def test_subset(store, elem):
    elem.subset([[1, 2], slice(None)])
    assert elem.height() == 2
    assert elem.index.to_list() == ["c2", "c3"]
    assert elem.data()["a"].tolist() == [2, 3]
    reopened = open_dataframe_elem(store.open_group("obs"))
    assert reopened.index.to_list() == ["c2", "c3"]
    assert reopened.data()["b"].tolist() == ["y", "z"]


def test_subset_axis_columns(elem):
    elem.subset_axis(1, [0])
    assert elem.column_names() == ["a"]
    assert elem.height() == 3


def test_export(elem):
    target = create("out.h5")
    elem.export(target, "copy")
    copy = open_dataframe_elem(target.open_group("copy"))
    assert copy.index.to_list() == NAMES
    pd.testing.assert_frame_equal(copy.data(), elem.data())


def test_export_select_and_axis(elem):
    target = create("out.h5")
    elem.export_select([[0, 1], slice(None)], target, "part")
    part = open_dataframe_elem(target.open_group("part"))
    assert part.index.to_list() == ["c1", "c2"]
    assert part.data()["a"].tolist() == [1, 2]

    elem.export_axis(0, slice(1, 3), target, "rows")
    rows = open_dataframe_elem(target.open_group("rows"))
    assert rows.index.to_list() == ["c2", "c3"]
    assert rows.data()["b"].tolist() == ["y", "z"]


def test_clear(store, elem):
    elem.clear()
    assert elem.is_empty()
    assert not store.exists("obs")
    with pytest.raises(EmptySlotError):
        elem.height()


def test_str(elem):
    assert str(elem) == "Dataframe element"
    elem.drop()
    assert str(elem) == "Empty or closed slot"