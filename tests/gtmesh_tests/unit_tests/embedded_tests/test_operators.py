# GTMesh - GridTools Framework
#
# Copyright (c) 2014-2024, ETH Zurich
# All rights reserved.
#
# Please, refer to the LICENSE file in the root directory.
# SPDX-License-Identifier: BSD-3-Clause

import numpy as np
import pytest

from gtmesh import common, errors
from gtmesh.embedded import operators as embedded_operators
from gtmesh.embedded.nd_array_field import Field


IDim = common.Dimension("IDim")
JDim = common.Dimension("JDim")


def _field(values, dims=(IDim,)):
    return Field(dims, np.asarray(values, dtype=np.float64))


def test_embedded_operator():
    op = embedded_operators.EmbeddedOperator(lambda a, b=1: a + b)
    assert op(1) == 2
    assert op(1, b=3) == 4


def test_copy_field():
    out = _field([0.0, 0.0, 0.0])
    embedded_operators.copy_field(out, _field([1.0, 2.0, 3.0]))
    assert np.array_equal(out.ndarray, [1.0, 2.0, 3.0])


def test_copy_field_casts_to_out_dtype():
    out = Field((IDim,), np.zeros(2, dtype=np.int32))
    embedded_operators.copy_field(out, _field([1.0, 2.0]))
    assert out.dtype == np.int32
    assert np.array_equal(out.ndarray, [1, 2])


@pytest.mark.parametrize("value", [3.0, np.float32(3.0), Field((), np.asarray(3.0))])
def test_copy_field_broadcasts_scalars(value):
    out = _field([0.0, 0.0])
    embedded_operators.copy_field(out, value)
    assert np.array_equal(out.ndarray, [3.0, 3.0])


def test_copy_field_tuples():
    out = (_field([0.0, 0.0]), (_field([0.0]), _field([0.0, 0.0, 0.0])))
    result = (_field([1.0, 2.0]), (_field([3.0]), 4.0))

    embedded_operators.copy_field(out, result)

    assert np.array_equal(out[0].ndarray, [1.0, 2.0])
    assert np.array_equal(out[1][0].ndarray, [3.0])
    assert np.array_equal(out[1][1].ndarray, [4.0, 4.0, 4.0])


@pytest.mark.parametrize(
    "result",
    [
        _field([1.0, 2.0, 3.0]),
        Field((JDim,), np.array([1.0, 2.0])),
    ],
)
def test_copy_field_shape_mismatch(result):
    out = _field([0.0, 0.0])
    with pytest.raises(errors.ShapeMismatchError):
        embedded_operators.copy_field(out, result)


def test_copy_field_is_positional():
    out = _field([0.0, 0.0])
    embedded_operators.copy_field(out, Field((IDim,), np.array([1.0, 2.0]), origin={IDim: 1}))
    assert np.array_equal(out.ndarray, [1.0, 2.0])
    assert out.origin == (0,)


@pytest.mark.parametrize(
    "out, result",
    [
        ((_field([0.0]), _field([0.0])), _field([1.0])),
        ((_field([0.0]), _field([0.0])), (_field([1.0]),)),
        (_field([0.0]), (_field([1.0]),)),
    ],
)
def test_copy_field_tuple_mismatch(out, result):
    with pytest.raises(errors.TupleShapeMismatchError):
        embedded_operators.copy_field(out, result)


def test_copy_field_invalid_types():
    with pytest.raises(errors.InvalidArgumentTypeError, match="'out\\[1\\]'"):
        embedded_operators.copy_field((_field([0.0]), np.zeros(1)), (1.0, 2.0))
    with pytest.raises(errors.InvalidArgumentTypeError, match="'result'"):
        embedded_operators.copy_field(_field([0.0]), [1.0])


def test_copy_field_validates_before_writing():
    out = (_field([0.0, 0.0]), _field([0.0, 0.0]))
    result = (_field([1.0, 2.0]), _field([1.0, 2.0, 3.0]))

    with pytest.raises(errors.ShapeMismatchError):
        embedded_operators.copy_field(out, result)

    assert not np.any(out[0].ndarray)


def test_is_output_target():
    assert embedded_operators.is_output_target(_field([0.0]))
    assert embedded_operators.is_output_target((_field([0.0]), (_field([0.0]),)))
    assert not embedded_operators.is_output_target(())
    assert not embedded_operators.is_output_target(np.zeros(3))
    assert not embedded_operators.is_output_target((_field([0.0]), 1.0))
