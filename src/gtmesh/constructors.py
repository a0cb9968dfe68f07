# GTMesh - GridTools Framework
#
# Copyright (c) 2014-2024, ETH Zurich
# All rights reserved.
#
# Please, refer to the LICENSE file in the root directory.
# SPDX-License-Identifier: BSD-3-Clause

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any, Optional, cast

import numpy as np
import numpy.typing as npt

from gtmesh import common, errors
from gtmesh.embedded import nd_array_field


DomainLike = common.Domain | Mapping[common.Dimension, common.RangeLike | int]


def empty(
    domain: DomainLike,
    dtype: npt.DTypeLike = np.float64,
    *,
    broadcast_dims: Optional[Sequence[common.Dimension]] = None,
) -> nd_array_field.Field:
    """Create a `Field` of uninitialized (undefined) values.

    Arguments:
        domain: Definition of the domain of the field (which fix the shape of the allocated field buffer).
            See :class:`gtmesh.common.Domain` for details.
        dtype: Definition of the data type of the field. Defaults to `float64`.

    Keyword Arguments:
        broadcast_dims: Dimensions the field is promoted to when combined with other fields.
            Defaults to the dimensions of `domain`.

    Examples:
        Initialize a field in one dimension with a range domain:

        >>> IDim = common.Dimension("I")
        >>> a = empty({IDim: range(3, 10)})
        >>> a.shape
        (7,)

        An integer domain works like a shape with named dimensions:

        >>> JDim = common.Dimension("J")
        >>> b = empty({IDim: 3, JDim: 3}, int)
        >>> b.shape
        (3, 3)
    """
    actual_domain = common.domain(domain)
    buffer = np.empty(actual_domain.shape, dtype=np.dtype(dtype))
    return nd_array_field.Field.from_array(buffer, domain=actual_domain, broadcast_dims=broadcast_dims)


def zeros(
    domain: DomainLike,
    dtype: npt.DTypeLike = np.float64,
    *,
    broadcast_dims: Optional[Sequence[common.Dimension]] = None,
) -> nd_array_field.Field:
    """Create a Field containing all zeros.

    See :func:`empty` for further details about the meaning of the arguments.

    Examples:
        >>> IDim = common.Dimension("I")
        >>> zeros({IDim: range(3, 10)}).ndarray
        array([0., 0., 0., 0., 0., 0., 0.])
    """
    field = empty(domain, dtype, broadcast_dims=broadcast_dims)
    field.ndarray[...] = field.dtype.type(0)
    return field


def ones(
    domain: DomainLike,
    dtype: npt.DTypeLike = np.float64,
    *,
    broadcast_dims: Optional[Sequence[common.Dimension]] = None,
) -> nd_array_field.Field:
    """Create a Field containing all ones.

    See :func:`empty` for further details about the meaning of the arguments.

    Examples:
        >>> IDim = common.Dimension("I")
        >>> ones({IDim: range(3, 10)}).ndarray
        array([1., 1., 1., 1., 1., 1., 1.])
    """
    field = empty(domain, dtype, broadcast_dims=broadcast_dims)
    field.ndarray[...] = field.dtype.type(1)
    return field


def full(
    domain: DomainLike,
    fill_value: Any,
    dtype: Optional[npt.DTypeLike] = None,
    *,
    broadcast_dims: Optional[Sequence[common.Dimension]] = None,
) -> nd_array_field.Field:
    """Create a Field where all values are set to `fill_value`.

    See :func:`empty` for further details about the meaning of the arguments.

    Arguments:
        domain: Definition of the domain of the field (and consequently of the shape of the allocated field buffer).
        fill_value: Each point in the field will be initialized to this value.
        dtype: Definition of the data type of the field. Defaults to the dtype of `fill_value`.

    Examples:
        >>> IDim = common.Dimension("I")
        >>> full({IDim: 3}, 5).ndarray
        array([5, 5, 5])
    """
    field = empty(
        domain,
        dtype if dtype is not None else np.asarray(fill_value).dtype,
        broadcast_dims=broadcast_dims,
    )
    field.ndarray[...] = field.dtype.type(fill_value)
    return field


def as_field(
    domain: DomainLike | Sequence[common.Dimension],
    data: npt.ArrayLike,
    dtype: Optional[npt.DTypeLike] = None,
    *,
    origin: Optional[Mapping[common.Dimension, int]] = None,
    broadcast_dims: Optional[Sequence[common.Dimension]] = None,
) -> nd_array_field.Field:
    """Create a Field from a copy of an array-like object.

    Arguments:
        domain: Definition of the domain of the field (and consequently of the shape of the allocated field buffer).
            In addition to the values allowed in `empty`, it can also just be a sequence of dimensions,
            in which case the sizes of each dimension will then be taken from the shape of `data`.
        data: Array like data object to initialize the field with
        dtype: Definition of the data type of the field. Defaults to the same as `data`.

    Keyword Arguments:
        origin: Only allowed if `domain` is a sequence of dimensions. Offset of the first
            external (1-based) index of each listed dimension: the first element of the
            axis is found at index ``origin + 1``.
        broadcast_dims: See :func:`empty`.

    Examples:
        >>> IDim = common.Dimension("I")
        >>> xdata = np.array([1, 2, 3])

        Automatic domain from just dimensions:

        >>> a = as_field([IDim], xdata)
        >>> a.ndarray
        array([1, 2, 3])
        >>> a.domain.ranges[0]
        UnitRange(1, 4)

        Shifted domain using origin:

        >>> b = as_field([IDim], xdata, origin={IDim: 1})
        >>> b.domain.ranges[0]
        UnitRange(2, 5)

        Equivalent domain fully specified:

        >>> as_field({IDim: range(2, 5)}, xdata).domain.ranges[0]
        UnitRange(2, 5)
    """
    array = np.array(data, dtype=None if dtype is None else np.dtype(dtype))
    if isinstance(domain, Sequence) and all(isinstance(dim, common.Dimension) for dim in domain):
        dims = tuple(cast(Sequence[common.Dimension], domain))
        if len(dims) != array.ndim:
            raise errors.ShapeMismatchError(
                f"Cannot construct 'Field' from array of shape '{array.shape}' and dimensions "
                f"'{', '.join(str(d) for d in dims)}'."
            )
        if origin and (unknown_dims := set(origin.keys()) - set(dims)):
            raise ValueError(
                f"Origin keys {sorted(str(d) for d in unknown_dims)} not in dimensions {dims}."
            )
        return nd_array_field.Field(dims, array, broadcast_dims, origin=origin)

    if origin:
        raise ValueError(f"Cannot specify origin for domain {domain}")
    actual_domain = common.domain(cast(DomainLike, domain))
    if array.shape != actual_domain.shape:
        raise errors.ShapeMismatchError(
            f"Cannot construct 'Field' from array of shape '{array.shape}' over {actual_domain}."
        )
    return nd_array_field.Field.from_array(array, domain=actual_domain, broadcast_dims=broadcast_dims)


def as_connectivity(
    target: common.Dimension,
    source: common.Dimension,
    data: npt.ArrayLike,
    dtype: Optional[npt.DTypeLike] = None,
    *,
    max_neighbors: Optional[int] = None,
) -> common.Connectivity:
    """
    Construct a `Connectivity` from a copy of a neighbor table.

    Arguments:
        target: The dimension enumerating the rows of the table.
        source: The dimension the 1-based table entries index into.
        data: The neighbor table, one row per `target` element and one column per neighbor slot.
            Empty slots hold :data:`gtmesh.common.SKIP_VALUE`.
        dtype: The integer data type of the table. If not provided, it will be inferred from the data.

    Raises:
        InvalidConnectivityError: If the table is not a 2-dimensional integer array, or its width
            differs from `max_neighbors`.

    Examples:
        >>> Vertex, Edge = common.Dimension("Vertex"), common.Dimension("Edge")
        >>> e2v = as_connectivity(Edge, Vertex, [[1, 2], [2, 3]])
        >>> print(e2v)
        Connectivity(Edge[horizontal] -> Vertex[horizontal], 2 elements x 2 neighbors)
    """
    table = np.array(data, dtype=None if dtype is None else np.dtype(dtype))
    return common.Connectivity(table, source=source, target=target, max_neighbors=max_neighbors)
