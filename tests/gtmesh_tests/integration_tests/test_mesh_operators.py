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
from gtmesh import broadcast, max_over, min_over, neighbor_sum, where

from gtmesh_tests.toy_connectivity import (
    C2E,
    E2C,
    K,
    C2EDim,
    Cell,
    E2CDim,
    Edge,
    Koff,
    c2e_arr,
    cell_values,
    e2c_arr,
    offset_provider,
)


@pytest.fixture
def cells():
    return gtmesh.as_field([Cell], cell_values)


@pytest.fixture
def edges():
    return gtmesh.as_field([Edge], np.arange(1.0, 13.0))


def reference_gather(values, table):
    return np.where(table != gtmesh.SKIP_VALUE, values[table - 1], 0)


def test_gather_first_neighbor(backend, cells):
    @gtmesh.field_operator(backend=backend)
    def first_neighbor(cells):
        return cells(E2C[1])

    out = gtmesh.zeros({Edge: 12})
    first_neighbor(cells, out=out, offset_provider=offset_provider)

    assert np.array_equal(out.asnumpy(), [5, 7, 7, 8, 3, 4, 5, 5, 6, 6, 8, 3])


def test_gather_second_neighbor(backend, cells):
    @gtmesh.field_operator(backend=backend)
    def second_neighbor(cells):
        return cells(E2C[2])

    out = gtmesh.full({Edge: 12}, -1.0)
    second_neighbor(cells, out=out, offset_provider=offset_provider)

    assert np.array_equal(out.asnumpy()[:6], np.zeros(6))
    assert np.array_equal(out.asnumpy()[6:], [4, 6, 7, 8, 3, 4])


def test_gather_all_neighbors(backend, cells):
    @gtmesh.field_operator(backend=backend)
    def all_neighbors(cells):
        return cells(E2C)

    out = gtmesh.zeros({Edge: 12, E2CDim: 2})
    all_neighbors(cells, out=out, offset_provider=offset_provider)

    assert np.array_equal(out.asnumpy(), reference_gather(cell_values, e2c_arr))


def test_neighbor_sum(backend, cells):
    @gtmesh.field_operator(backend=backend)
    def sum_adjacent_cells(cells):
        return neighbor_sum(cells(E2C), axis=E2CDim)

    out = gtmesh.zeros({Edge: 12})
    sum_adjacent_cells(cells, out=out, offset_provider=offset_provider)

    assert np.array_equal(out.asnumpy(), [5, 7, 7, 8, 3, 4, 9, 11, 13, 14, 11, 7])


def test_neighbor_sum_with_vertical_dimension(backend):
    cells_k = gtmesh.as_field([Cell, K], np.outer(cell_values, [1.0, 10.0, 100.0]))

    @gtmesh.field_operator(backend=backend)
    def sum_adjacent_cells(cells):
        return neighbor_sum(cells(E2C), axis=E2CDim)

    out = gtmesh.zeros({Edge: 12, K: 3})
    sum_adjacent_cells(cells_k, out=out, offset_provider=offset_provider)

    expected = reference_gather(cell_values, e2c_arr).sum(axis=1)
    assert np.array_equal(out.asnumpy(), np.outer(expected, [1.0, 10.0, 100.0]))


def test_max_and_min_over(backend, edges):
    @gtmesh.field_operator(backend=backend)
    def extrema(edges):
        neighbors = edges(C2E)
        return max_over(neighbors, axis=C2EDim), min_over(neighbors, axis=C2EDim)

    out = (gtmesh.zeros({Cell: 6}), gtmesh.zeros({Cell: 6}))
    extrema(edges, out=out, offset_provider=offset_provider)

    assert np.array_equal(out[0].asnumpy(), c2e_arr.max(axis=1))
    assert np.array_equal(out[1].asnumpy(), c2e_arr.min(axis=1))


def test_combine_gathered_fields(backend, cells, edges):
    @gtmesh.field_operator(backend=backend)
    def flux(cells, edges):
        return edges * (cells(E2C[1]) - cells(E2C[2]))

    out = gtmesh.zeros({Edge: 12})
    flux(cells, edges, out=out, offset_provider=offset_provider)

    gathered = reference_gather(cell_values, e2c_arr)
    assert np.array_equal(out.asnumpy(), np.arange(1.0, 13.0) * (gathered[:, 0] - gathered[:, 1]))


def test_where_with_tuples(backend, cells):
    @gtmesh.field_operator(backend=backend)
    def select(cells):
        return where(cells > 5.0, (cells, cells * 2.0), (0.0, -cells))

    out = (gtmesh.zeros({Cell: 6}), gtmesh.zeros({Cell: 6}))
    select(cells, out=out)

    mask = cell_values > 5.0
    assert np.array_equal(out[0].asnumpy(), np.where(mask, cell_values, 0.0))
    assert np.array_equal(out[1].asnumpy(), np.where(mask, cell_values * 2.0, -cell_values))


def test_where_on_skip_values(backend, cells):
    @gtmesh.field_operator(backend=backend)
    def max_with_default(cells):
        neighbors = cells(E2C)
        has_neighbor = neighbors != broadcast(0.0, (Edge, E2CDim))
        return max_over(where(has_neighbor, neighbors, -1.0), axis=E2CDim)

    out = gtmesh.zeros({Edge: 12})
    max_with_default(cells, out=out, offset_provider=offset_provider)

    gathered = reference_gather(cell_values, e2c_arr)
    assert np.array_equal(out.asnumpy(), np.where(gathered != 0, gathered, -1.0).max(axis=1))


def test_vertical_shift_with_origin(backend):
    # origin K=1: the three values live at the external indices 2..4
    k_field = gtmesh.as_field([K], np.array([10.0, 20.0, 40.0]), origin={K: 1})
    assert k_field.domain == gtmesh.domain({K: (2, 5)})

    @gtmesh.field_operator(backend=backend)
    def backward_difference(a):
        return a - a(Koff[1])

    out = gtmesh.zeros({K: 2})
    backward_difference(k_field, out=out, offset_provider={"Koff": K})

    assert np.array_equal(out.asnumpy(), [10.0, 20.0])


def test_shift_along_missing_dimension_is_a_noop(backend, cells):
    @gtmesh.field_operator(backend=backend)
    def shift_cells(cells):
        return cells(Koff)

    out = gtmesh.zeros({Cell: 6})
    shift_cells(cells, out=out, offset_provider={"Koff": K})

    assert np.array_equal(out.asnumpy(), cell_values)
