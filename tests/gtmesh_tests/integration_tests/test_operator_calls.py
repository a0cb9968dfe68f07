# GTMesh - GridTools Framework
#
# Copyright (c) 2014-2024, ETH Zurich
# All rights reserved.
#
# Please, refer to the LICENSE file in the root directory.
# SPDX-License-Identifier: BSD-3-Clause

import numpy as np
import pytest

import gtmesh
from gtmesh import errors, neighbor_sum, sqrt, where
from gtmesh.embedded import context as embedded_context, exceptions as embedded_exceptions

from gtmesh_tests.definitions import ALL_BACKENDS
from gtmesh_tests.toy_connectivity import (
    C2E,
    E2C,
    K,
    C2EDim,
    Cell,
    E2CDim,
    Edge,
    c2e_arr,
    cell_values,
    offset_provider,
)


SCALE = 3.0
COEFF = 1.0


@pytest.fixture
def cells():
    return gtmesh.as_field([Cell], cell_values)


def test_nested_operator_calls(backend, cells):
    @gtmesh.field_operator(backend=backend)
    def edge_average(cells):
        return 0.5 * neighbor_sum(cells(E2C), axis=E2CDim)

    @gtmesh.field_operator(backend=backend)
    def cell_smoothing(cells):
        return neighbor_sum(edge_average(cells)(C2E), axis=C2EDim) / 3.0

    out = gtmesh.zeros({Cell: 6})
    cell_smoothing(cells, out=out, offset_provider=offset_provider)

    edge_avg = 0.5 * np.array([5, 7, 7, 8, 3, 4, 9, 11, 13, 14, 11, 7], dtype=np.float64)
    assert np.allclose(out.asnumpy(), edge_avg[c2e_arr - 1].sum(axis=1) / 3.0)
    assert not embedded_context.within_valid_context()


def test_nested_calls_across_backends(cells):
    @gtmesh.field_operator(backend="roundtrip")
    def gather(cells):
        return cells(E2C[1])

    @gtmesh.field_operator(backend="embedded")
    def double_gather(cells):
        return gather(cells) * 2.0

    out = gtmesh.zeros({Edge: 12})
    double_gather(cells, out=out, offset_provider=offset_provider)

    assert np.array_equal(out.asnumpy(), 2.0 * np.array([5, 7, 7, 8, 3, 4, 5, 5, 6, 6, 8, 3]))


def test_nested_tuple_out(backend, cells):
    @gtmesh.field_operator(backend=backend)
    def fan_out(cells):
        return cells, (cells + 1.0, 2.0)

    out = (gtmesh.zeros({Cell: 6}), (gtmesh.zeros({Cell: 6}), gtmesh.zeros({Cell: 6}, np.int32)))
    fan_out(cells, out=out)

    assert np.array_equal(out[0].asnumpy(), cell_values)
    assert np.array_equal(out[1][0].asnumpy(), cell_values + 1.0)
    assert np.array_equal(out[1][1].asnumpy(), np.full(6, 2))
    assert out[1][1].dtype == np.int32


def test_keyword_arguments(backend, cells):
    @gtmesh.field_operator(backend=backend)
    def scale(cells, factor=1.0):
        return cells * factor

    out = gtmesh.zeros({Cell: 6})
    scale(cells, factor=3.0, out=out)

    assert np.array_equal(out.asnumpy(), 3.0 * cell_values)


def test_default_argument_from_module_scope(backend, cells):
    @gtmesh.field_operator(backend=backend)
    def scale(cells, factor=SCALE):
        return cells * factor

    out = gtmesh.zeros({Cell: 6})
    scale(cells, out=out)

    assert np.array_equal(out.asnumpy(), SCALE * cell_values)


def test_rebound_global_between_calls(backend, cells, monkeypatch):
    @gtmesh.field_operator(backend=backend)
    def weighted(cells):
        return cells * COEFF

    first, second = gtmesh.zeros({Cell: 6}), gtmesh.zeros({Cell: 6})
    weighted(cells, out=first)
    monkeypatch.setitem(globals(), "COEFF", 3.0)
    weighted(cells, out=second)

    assert np.array_equal(first.asnumpy(), cell_values)
    assert np.array_equal(second.asnumpy(), 3.0 * cell_values)


def test_out_mismatch_leaves_out_untouched(backend, cells):
    @gtmesh.field_operator(backend=backend)
    def pair(cells):
        return cells, cells(E2C[1])

    out = (gtmesh.zeros({Cell: 6}), gtmesh.zeros({Cell: 6}))
    with pytest.raises(errors.ShapeMismatchError):
        pair(cells, out=out, offset_provider=offset_provider)

    assert not np.any(out[0].asnumpy())
    assert not embedded_context.within_valid_context()


def test_out_tuple_structure_mismatch(backend, cells):
    @gtmesh.field_operator(backend=backend)
    def single(cells):
        return cells

    with pytest.raises(errors.TupleShapeMismatchError):
        single(cells, out=(gtmesh.zeros({Cell: 6}), gtmesh.zeros({Cell: 6})))


def test_undefined_offset(backend, cells):
    @gtmesh.field_operator(backend=backend)
    def gather(cells):
        return cells(E2C[1])

    with pytest.raises(errors.UndefinedOffsetError, match="'E2C'"):
        gather(cells, out=gtmesh.zeros({Edge: 12}))
    assert not embedded_context.within_valid_context()


def test_gather_out_of_bounds(backend):
    # only cells 1..3 are stored
    few_cells = gtmesh.as_field([Cell], cell_values[:3])

    @gtmesh.field_operator(backend=backend)
    def gather(cells):
        return cells(E2C[1])

    with pytest.raises(embedded_exceptions.IndexOutOfBounds):
        gather(few_cells, out=gtmesh.zeros({Edge: 12}), offset_provider=offset_provider)


def test_nested_call_with_out(backend, cells):
    @gtmesh.field_operator(backend=backend)
    def inner(cells):
        return cells

    @gtmesh.field_operator(backend=backend)
    def outer(cells):
        inner(cells, out=cells)
        return cells

    with pytest.raises(errors.UnexpectedArgumentError, match="'out'"):
        outer(cells, out=gtmesh.zeros({Cell: 6}))
    assert not embedded_context.within_valid_context()


def test_shift_outside_of_operator(cells):
    with pytest.raises(errors.ContextError, match="No offset provider is active"):
        cells(E2C)


def test_consecutive_outermost_calls(backend, cells):
    @gtmesh.field_operator(backend=backend)
    def gather(cells):
        return cells(E2C[1])

    first, second = gtmesh.zeros({Edge: 12}), gtmesh.zeros({Edge: 12})
    gather(cells, out=first, offset_provider=offset_provider)
    gather(cells * 2.0, out=second, offset_provider=offset_provider)

    assert np.array_equal(second.asnumpy(), 2.0 * first.asnumpy())


def roughness(cells, edges, threshold):
    gradient = edges * (cells(E2C[1]) - cells(E2C[2]))
    flagged = where(gradient > threshold, gradient, 0.0)
    return sqrt(neighbor_sum(flagged(C2E) * flagged(C2E), axis=C2EDim)), gradient


def test_backends_agree():
    rng = np.random.default_rng(42)
    cells = gtmesh.as_field([Cell, K], rng.normal(size=(6, 4)))
    edges = gtmesh.as_field([Edge], rng.uniform(size=12))

    results = {}
    for backend_id in ALL_BACKENDS:
        out = (gtmesh.zeros({Cell: 6, K: 4}), gtmesh.zeros({Edge: 12, K: 4}))
        gtmesh.field_operator(roughness, backend=backend_id.value)(
            cells, edges, 0.1, out=out, offset_provider=offset_provider
        )
        results[backend_id] = out

    reference, *others = results.values()
    for other in others:
        for ref_field, field in zip(reference, other):
            assert np.array_equal(ref_field.asnumpy(), field.asnumpy())
