import numpy as np
import pytest

from annstore import memory
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
from annstore.memory import DataKind, DataType, ScalarType


@pytest.fixture
def store():
    return memory.create("store.h5")


def test_from_values_codes_and_categories():
    values = ["b", "a", "b", "c"]
    cat = CategoricalArray.from_values(values)
    assert cat.codes.tolist() == [0, 1, 0, 2]
    assert list(cat.values()) == values
    assert len(cat.categories) == len(set(values))
    assert cat.codes.dtype == np.uint32


def test_categorical_shape_and_get():
    cat = CategoricalArray.from_values(["x", "y", "x"])
    assert cat.shape() == (3,)
    assert cat.get([1]) == "y"
    assert cat.get([3]) is None
    assert cat.get([0, 0]) is None


def test_categorical_code_out_of_range():
    with pytest.raises(ValueError):
        CategoricalArray(np.array([0, 3], dtype=np.uint32), ["a", "b"])


def test_categorical_select_keeps_categories():
    cat = CategoricalArray.from_values(["a", "b", "c", "a"])
    sub = cat.select([[3, 1]])
    assert list(sub.values()) == ["a", "b"]
    assert list(sub.categories) == list(cat.categories)


def test_categorical_write_read_round_trip(store):
    cat = CategoricalArray.from_values(["u", "v", "u", "w"])
    group = cat.write(store, "cat")
    assert group.read_str_attr("encoding-type") == "categorical"
    assert group.read_str_attr("encoding-version") == "0.2.0"
    assert group.read_scalar_attr("ordered") is False
    assert CategoricalArray.read(group) == cat
    assert CategoricalArray.read_shape(group) == (4,)
    assert read_array(group) == cat


def test_categorical_read_select(store):
    cat = CategoricalArray.from_values(["u", "v", "u", "w"])
    cat.write(store, "cat")
    group = store.open_group("cat")
    sub = read_array_select(group, [slice(1, 3)])
    assert sub == cat.select([slice(1, 3)])


def test_array_data_type():
    assert array_data_type(np.zeros(3, dtype=np.float32)) == DataType(DataKind.ARRAY, ScalarType.F32)
    assert array_data_type(np.array(["a"], dtype=object)) == DataType(DataKind.ARRAY, ScalarType.STRING)
    assert array_data_type(CategoricalArray.from_values(["a"])) == DataType(DataKind.CATEGORICAL)


def test_array_shape():
    arr = np.zeros((2, 5), dtype=np.int32)
    assert array_shape(arr) == (2, 5)
    assert array_shape(CategoricalArray.from_values(["a", "b"])) == (2,)


def test_get_array_item():
    arr = np.arange(6, dtype=np.int64).reshape(2, 3)
    assert get_array_item(arr, [1, 2]) == arr[1, 2]
    assert get_array_item(arr, [2, 0]) is None
    assert get_array_item(arr, [0]) is None
    assert get_array_item(np.array(["p", "q"], dtype=object), [1]) == "q"


def test_select_array_slices_and_indices():
    arr = np.arange(20, dtype=np.float64).reshape(4, 5)
    assert np.array_equal(select_array(arr, [slice(1, 3)]), arr[1:3])
    out = select_array(arr, [slice(None), [4, 0]])
    assert np.array_equal(out, arr[:, [4, 0]])
    mask = np.array([True, False, True, False])
    assert np.array_equal(select_array(arr, [mask, [2]]), arr[mask][:, [2]])


def test_select_array_rejects_too_many_axes():
    with pytest.raises(ValueError):
        select_array(np.arange(3), [slice(None), slice(None)])


def test_vstack_dense():
    a = np.arange(6, dtype=np.int32).reshape(2, 3)
    b = np.arange(3, dtype=np.int32).reshape(1, 3)
    out = vstack_arrays([a, b])
    assert out.shape == (3, 3)
    assert np.array_equal(out[:2], a)
    assert np.array_equal(out[2:], b)


def test_vstack_errors():
    with pytest.raises(ValueError):
        vstack_arrays([])
    with pytest.raises(TypeError):
        vstack_arrays([np.zeros(2, dtype=np.int32), np.zeros(2, dtype=np.float64)])
    with pytest.raises(TypeError):
        vstack_arrays([np.zeros(2), CategoricalArray.from_values(["a"])])


def test_vstack_categorical_preserves_values():
    a = CategoricalArray.from_values(["x", "y"])
    b = CategoricalArray.from_values(["z", "x"])
    out = vstack_arrays([a, b])
    assert list(out.values()) == ["x", "y", "z", "x"]
    assert sorted(out.categories) == ["x", "y", "z"]


@pytest.mark.parametrize(
    "arr, encoding",
    [
        (np.arange(12, dtype=np.int16).reshape(3, 4), "array"),
        (np.array([1.5, 2.5]), "array"),
        (np.array([True, False]), "array"),
        (np.array(["a", "bb"], dtype=object), "string-array"),
    ],
)
def test_dense_write_read_round_trip(store, arr, encoding):
    dataset = write_array(arr, store, "data")
    assert dataset.read_str_attr("encoding-type") == encoding
    assert dataset.read_str_attr("encoding-version") == "0.2.0"
    back = read_array(dataset)
    assert back.dtype == arr.dtype
    assert np.array_equal(back, arr)
    assert read_array_shape(dataset) == arr.shape


def test_dense_read_select(store):
    arr = np.arange(12, dtype=np.uint8).reshape(3, 4)
    dataset = write_array(arr, store, "data")
    assert np.array_equal(read_array_select(dataset, [[2, 0], slice(1, 3)]), arr[[2, 0]][:, 1:3])


def test_write_existing_name_fails(store):
    write_array(np.zeros(2), store, "data")
    with pytest.raises(ValueError):
        write_array(np.zeros(2), store, "data")