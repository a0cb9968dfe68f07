# GTMesh - GridTools Framework
#
# Copyright (c) 2014-2024, ETH Zurich
# All rights reserved.
#
# Please, refer to the LICENSE file in the root directory.
# SPDX-License-Identifier: BSD-3-Clause

from __future__ import annotations

import dataclasses
import functools
from collections.abc import Callable, Mapping, Sequence
from typing import Any, Optional, TypeAlias

import numpy as np
from numpy import typing as npt

from gtmesh import common, errors
from gtmesh.embedded import context as embedded_context, exceptions as embedded_exceptions
from gtmesh.ffront import fbuiltins


Scalar: TypeAlias = bool | int | float | np.generic
Selector: TypeAlias = int | np.integer | common.UnitRange | range | slice


def _is_int_index(value: Any) -> bool:
    return isinstance(value, (int, np.integer)) and not isinstance(value, (bool, np.bool_))


def _relative_slice(rng: common.UnitRange, axis_range: common.UnitRange) -> slice:
    """Storage slice selecting the external range `rng` of an axis spanning `axis_range`."""
    if len(rng) == 0:
        return slice(0, 0)
    return slice(rng.start - axis_range.start, rng.stop - axis_range.start)


def _make_builtin(
    builtin_name: str, array_builtin_name: str, reverse: bool = False
) -> Callable[..., Field]:
    def _builtin_op(*fields: Field | Scalar) -> Field:
        op = getattr(np, array_builtin_name)

        all_fields = [f for f in fields if isinstance(f, Field)]
        broadcast_dims = common.promote_dims(*[f.broadcast_dims for f in all_fields])
        out_domain = _domain_intersection(broadcast_dims, all_fields)

        transformed: list[np.ndarray | Scalar] = []
        for f in fields:
            if isinstance(f, Field):
                transformed.append(_broadcast_ndarray(f, out_domain))
            else:
                transformed.append(f)
        if reverse:
            transformed.reverse()
        new_data = op(*transformed)
        return Field.from_array(new_data, domain=out_domain, broadcast_dims=broadcast_dims)

    _builtin_op.__name__ = builtin_name
    return _builtin_op


@dataclasses.dataclass(frozen=True, eq=False, init=False)
class Field(common.FieldBuiltinFuncRegistry):
    """
    Dense array tagged with one dimension per axis.

    Every axis ``i`` exposes the 1-based external indices
    ``origin[i] + 1 .. origin[i] + shape[i]``. `broadcast_dims` lists the
    dimensions the field is promoted to when combined with other fields and is
    always a superset of `dims`.

    Examples:
        >>> K = common.Dimension("K", kind=common.DimensionKind.VERTICAL)
        >>> f = Field(K, np.array([10, 20, 30]), origin={K: 1})
        >>> f.axes
        (UnitRange(2, 5),)
        >>> int(f[2]), int(f[4])
        (10, 30)
    """

    dims: tuple[common.Dimension, ...]
    ndarray: np.ndarray
    broadcast_dims: tuple[common.Dimension, ...]
    origin: tuple[int, ...]

    def __init__(
        self,
        dims: common.Dimension | Sequence[common.Dimension],
        data: npt.ArrayLike,
        broadcast_dims: Optional[common.Dimension | Sequence[common.Dimension]] = None,
        *,
        origin: Optional[Mapping[common.Dimension, int] | Sequence[int]] = None,
    ) -> None:
        dims = (dims,) if isinstance(dims, common.Dimension) else tuple(dims)
        if not all(isinstance(d, common.Dimension) for d in dims):
            raise errors.InvalidArgumentTypeError("dims", "a sequence of 'Dimension's", dims)
        array = np.asarray(data)
        if len(dims) != array.ndim:
            raise errors.ShapeMismatchError(
                f"Number of dimensions ({len(dims)}) does not match the rank of the data ({array.ndim})."
            )
        common.check_unique_dims(dims)

        if broadcast_dims is None:
            broadcast_dims = dims
        elif isinstance(broadcast_dims, common.Dimension):
            broadcast_dims = (broadcast_dims,)
        broadcast_dims = tuple(broadcast_dims)
        common.check_unique_dims(broadcast_dims)
        if missing := [d for d in dims if d not in broadcast_dims]:
            raise errors.ShapeMismatchError(
                f"'broadcast_dims' must contain all dimensions of the field, missing: "
                f"{', '.join(str(d) for d in missing)}."
            )

        object.__setattr__(self, "dims", dims)
        object.__setattr__(self, "ndarray", array)
        object.__setattr__(self, "broadcast_dims", broadcast_dims)
        object.__setattr__(self, "origin", _normalize_origin(dims, origin))

    @classmethod
    def from_array(
        cls,
        data: npt.ArrayLike,
        /,
        *,
        domain: common.Domain,
        broadcast_dims: Optional[Sequence[common.Dimension]] = None,
    ) -> Field:
        array = np.asarray(data)
        assert len(domain) == array.ndim
        assert all(len(r) == s for r, s in zip(domain.ranges, array.shape))
        return cls(
            domain.dims,
            array,
            common.promote_dims(broadcast_dims or (), domain.dims),
            origin=tuple(r.start - 1 if len(r) else -1 for r in domain.ranges),
        )

    @functools.cached_property
    def domain(self) -> common.Domain:
        return common.Domain(
            dims=self.dims,
            ranges=tuple(
                common.UnitRange.from_origin(o, s) for o, s in zip(self.origin, self.ndarray.shape)
            ),
        )

    @property
    def axes(self) -> tuple[common.UnitRange, ...]:
        return self.domain.ranges

    @property
    def shape(self) -> tuple[int, ...]:
        return self.ndarray.shape

    @property
    def ndim(self) -> int:
        return self.ndarray.ndim

    @property
    def dtype(self) -> np.dtype:
        return self.ndarray.dtype

    def asnumpy(self) -> np.ndarray:
        return np.asarray(self.ndarray)

    def as_scalar(self) -> Any:
        if self.ndim != 0:
            raise ValueError(
                f"'as_scalar' is only valid on 0-dimensional 'Field's, got a {self.ndim}-dimensional 'Field'."
            )
        # note: `.item()` would return a Python type, therefore we use indexing with an empty tuple
        return self.ndarray[()]

    def __str__(self) -> str:
        return (
            f"Field({self.domain}, broadcast_dims=({', '.join(str(d) for d in self.broadcast_dims)}), "
            f"dtype={self.dtype})"
        )

    def __bool__(self) -> bool:
        raise ValueError(
            "The truth value of a 'Field' is ambiguous, use 'where' for elementwise selection."
        )

    # -- Index translation --

    def _storage_index(self, indices: Sequence[Any]) -> tuple[int, ...]:
        """Translate 1-based external indices to storage indices, checking bounds."""
        if len(indices) != self.ndim:
            raise errors.ShapeMismatchError(
                f"Expected {self.ndim} indices for a field over "
                f"({', '.join(str(d) for d in self.dims)}), got {len(indices)}."
            )
        storage_index = []
        for index, (dim, rng) in zip(indices, self.domain):
            if not _is_int_index(index):
                raise TypeError(f"Indices must be integers, got '{type(index).__name__}'.")
            if index not in rng:
                raise embedded_exceptions.IndexOutOfBounds(
                    domain=self.domain, indices=tuple(indices), index=index, dim=dim
                )
            storage_index.append(int(index) - rng.start)
        return tuple(storage_index)

    def get(self, indices: int | Sequence[int]) -> Any:
        indices = tuple(indices) if isinstance(indices, Sequence) else (indices,)
        return self.ndarray[self._storage_index(indices)]

    def set(self, indices: int | Sequence[int], value: Any) -> None:
        indices = tuple(indices) if isinstance(indices, Sequence) else (indices,)
        self.ndarray[self._storage_index(indices)] = value

    def slice(self, *selectors: Selector) -> Field:
        """
        Restrict the field to the given external indices or ranges.

        Integer selectors drop their axis, range selectors (``UnitRange``,
        ``range`` or ``slice``, all half-open in external coordinates) keep it.
        Missing trailing selectors select the whole axis. The result shares the
        memory of this field and external indices keep addressing the same
        elements.
        """
        if len(selectors) > self.ndim:
            raise errors.ShapeMismatchError(
                f"Too many selectors ({len(selectors)}) for a field with {self.ndim} dimensions."
            )
        selectors = (*selectors, *([slice(None)] * (self.ndim - len(selectors))))

        buffer_slice: list[int | slice] = []
        new_ranges: list[common.NamedRange] = []
        new_broadcast_dims = list(self.broadcast_dims)
        for selector, (dim, rng) in zip(selectors, self.domain):
            if _is_int_index(selector):
                if selector not in rng:
                    raise embedded_exceptions.IndexOutOfBounds(
                        domain=self.domain, indices=selectors, index=selector, dim=dim
                    )
                buffer_slice.append(int(selector) - rng.start)
                new_broadcast_dims.remove(dim)
                continue

            if isinstance(selector, slice) and selector.step in (None, 1):
                selected = common.UnitRange(
                    rng.start if selector.start is None else selector.start,
                    rng.stop if selector.stop is None else selector.stop,
                )
            else:
                try:
                    selected = common.unit_range(selector)
                except ValueError as ex:
                    raise TypeError(f"Invalid selector '{selector!r}' for dimension '{dim}'.") from ex
            if not selected <= rng:
                raise embedded_exceptions.IndexOutOfBounds(
                    domain=self.domain, indices=selectors, index=selector, dim=dim
                )
            buffer_slice.append(_relative_slice(selected, rng))
            new_ranges.append(common.NamedRange(dim, selected))

        return Field.from_array(
            self.ndarray[tuple(buffer_slice)],
            domain=common.Domain(*new_ranges),
            broadcast_dims=new_broadcast_dims,
        )

    def __getitem__(self, index: Selector | tuple[Selector, ...]) -> Any:
        index = index if isinstance(index, tuple) else (index,)
        if len(index) == self.ndim and all(_is_int_index(i) for i in index):
            return self.get(index)
        return self.slice(*index)

    def __setitem__(self, index: Selector | tuple[Selector, ...], value: Any) -> None:
        index = index if isinstance(index, tuple) else (index,)
        if len(index) == self.ndim and all(_is_int_index(i) for i in index):
            self.set(index, value)
            return

        target = self.slice(*index)
        if isinstance(value, Field):
            if value.domain != target.domain:
                raise errors.ShapeMismatchError(
                    f"Incompatible 'Domain' in assignment. Source domain = '{value.domain}', target domain = '{target.domain}'."
                )
            value = value.ndarray
        target.ndarray[...] = value

    def broadcast_to(self, new_broadcast_dims: Sequence[common.Dimension]) -> Field:
        new_broadcast_dims = tuple(new_broadcast_dims)
        if missing := [d for d in self.dims if d not in new_broadcast_dims]:
            raise errors.ShapeMismatchError(
                f"Cannot broadcast field over ({', '.join(str(d) for d in self.dims)}) to "
                f"({', '.join(str(d) for d in new_broadcast_dims)}): missing "
                f"{', '.join(str(d) for d in missing)}."
            )
        return Field(self.dims, self.ndarray, new_broadcast_dims, origin=self.origin)

    def astype(self, dtype: npt.DTypeLike) -> Field:
        return Field(self.dims, self.ndarray.astype(dtype), self.broadcast_dims, origin=self.origin)

    # -- Shifts and neighbor gathers --

    def __call__(
        self,
        offset: fbuiltins.FieldOffset | tuple[fbuiltins.FieldOffset, int],
        index: Optional[int] = None,
    ) -> Field:
        """
        Apply an offset, as in ``field(E2C)`` or ``field(E2C[1])``.

        The offset name is resolved in the active offset provider: a
        `Dimension` shifts this field along that axis by `index` (``1`` by
        default) while a `Connectivity` gathers the neighbor values.
        """
        if isinstance(offset, tuple):
            if index is not None:
                raise TypeError("Neighbor slot given twice.")
            offset, index = offset
        if not isinstance(offset, fbuiltins.FieldOffset):
            raise TypeError(f"Expected a 'FieldOffset', got '{type(offset).__name__}'.")

        match embedded_context.resolve_offset(offset.value):
            case common.Dimension() as dim:
                return _shift(self, dim, 1 if index is None else index)
            case common.Connectivity() as connectivity:
                return _neighbor_gather(self, offset, connectivity, index)
            case other:
                raise errors.UnsupportedOffsetProviderError(offset.value, other)

    # -- Elementwise operators --

    __abs__ = _make_builtin("abs", "abs")

    __neg__ = _make_builtin("neg", "negative")

    __add__ = __radd__ = _make_builtin("add", "add")

    __pos__ = _make_builtin("pos", "positive")

    __sub__ = _make_builtin("sub", "subtract")
    __rsub__ = _make_builtin("sub", "subtract", reverse=True)

    __mul__ = __rmul__ = _make_builtin("mul", "multiply")

    __truediv__ = _make_builtin("div", "divide")
    __rtruediv__ = _make_builtin("div", "divide", reverse=True)

    __floordiv__ = _make_builtin("floordiv", "floor_divide")
    __rfloordiv__ = _make_builtin("floordiv", "floor_divide", reverse=True)

    __pow__ = _make_builtin("pow", "power")
    __rpow__ = _make_builtin("pow", "power", reverse=True)

    __mod__ = _make_builtin("mod", "mod")
    __rmod__ = _make_builtin("mod", "mod", reverse=True)

    __ne__ = _make_builtin("not_equal", "not_equal")  # type: ignore # mypy wants return `bool`

    __eq__ = _make_builtin("equal", "equal")  # type: ignore # mypy wants return `bool`

    __gt__ = _make_builtin("greater", "greater")

    __ge__ = _make_builtin("greater_equal", "greater_equal")

    __lt__ = _make_builtin("less", "less")

    __le__ = _make_builtin("less_equal", "less_equal")

    def __and__(self, other: Field | Scalar) -> Field:
        if self.dtype == np.bool_:
            return _make_builtin("logical_and", "logical_and")(self, other)
        raise NotImplementedError("'__and__' not implemented for non-'bool' fields.")

    __rand__ = __and__

    def __or__(self, other: Field | Scalar) -> Field:
        if self.dtype == np.bool_:
            return _make_builtin("logical_or", "logical_or")(self, other)
        raise NotImplementedError("'__or__' not implemented for non-'bool' fields.")

    __ror__ = __or__

    def __xor__(self, other: Field | Scalar) -> Field:
        if self.dtype == np.bool_:
            return _make_builtin("logical_xor", "logical_xor")(self, other)
        raise NotImplementedError("'__xor__' not implemented for non-'bool' fields.")

    __rxor__ = __xor__

    def __invert__(self) -> Field:
        if self.dtype == np.bool_:
            return _make_builtin("invert", "invert")(self)
        raise NotImplementedError("'__invert__' not implemented for non-'bool' fields.")


def _normalize_origin(
    dims: tuple[common.Dimension, ...],
    origin: Optional[Mapping[common.Dimension, int] | Sequence[int]],
) -> tuple[int, ...]:
    if origin is None:
        return (0,) * len(dims)
    if isinstance(origin, Mapping):
        if unknown := [d for d in origin if d not in dims]:
            raise errors.ShapeMismatchError(
                f"Origin given for dimensions {', '.join(str(d) for d in unknown)} "
                f"which are not part of the field."
            )
        values = tuple(origin.get(d, 0) for d in dims)
    else:
        values = tuple(origin)
        if len(values) != len(dims):
            raise errors.ShapeMismatchError(
                f"Expected {len(dims)} origin values, got {len(values)}."
            )
    if not all(_is_int_index(v) for v in values):
        raise TypeError(f"Origin values must be integers, got '{values}'.")
    return tuple(int(v) for v in values)


def _domain_intersection(
    broadcast_dims: Sequence[common.Dimension], fields: Sequence[Field]
) -> common.Domain:
    """Intersect the domains of `fields`, ordering the dimensions as in `broadcast_dims`."""
    present = {d for f in fields for d in f.dims}
    dims = tuple(d for d in broadcast_dims if d in present)
    intersection = functools.reduce(
        lambda a, b: a & b, [f.domain for f in fields], common.Domain()
    )
    return common.Domain(*[common.NamedRange(d, intersection[d].unit_range) for d in dims])


def _broadcast_ndarray(field: Field, domain: common.Domain) -> np.ndarray:
    """View of the data of `field` restricted to `domain`, with size-1 axes for missing dimensions."""
    if field.ndim == 0:
        return field.ndarray.reshape((1,) * domain.ndim)
    buffer = field.ndarray[
        tuple(_relative_slice(domain[dim].unit_range, rng) for dim, rng in field.domain)
    ]
    order = sorted(range(field.ndim), key=lambda i: domain.dims.index(field.dims[i]))
    buffer = np.transpose(buffer, order)
    return buffer[tuple(slice(None) if d in field.dims else np.newaxis for d in domain.dims)]


def _shift(field: Field, dim: common.Dimension, distance: int) -> Field:
    if (pos := common.dim_index(field.dims, dim)) is None:
        return field
    new_origin = list(field.origin)
    new_origin[pos] += distance
    return Field(field.dims, field.ndarray, field.broadcast_dims, origin=tuple(new_origin))


def _neighbor_gather(
    field: Field,
    offset: fbuiltins.FieldOffset,
    connectivity: common.Connectivity,
    slot: Optional[int],
) -> Field:
    if connectivity.source != offset.source or connectivity.target != offset.target[0]:
        raise errors.InvalidConnectivityError(
            f"Connectivity {connectivity} does not match offset {offset}."
        )
    if (pos := common.dim_index(field.dims, offset.source)) is None:
        raise errors.ShapeMismatchError(
            f"Offset '{offset.value}' requires a field with dimension '{offset.source}', "
            f"got a field over ({', '.join(str(d) for d in field.dims)})."
        )

    if slot is not None:
        if not 1 <= slot <= connectivity.max_neighbors:
            raise embedded_exceptions.IndexOutOfBounds(
                domain=field.domain,
                indices=(offset.value, slot),
                index=slot,
                dim=offset.local_dim or offset.target[0],
            )
        table = connectivity.ndarray[:, slot - 1]
        new_axes: tuple[common.Dimension, ...] = (offset.target[0],)
    else:
        if offset.local_dim is None:
            raise errors.ShapeMismatchError(
                f"Offset '{offset.value}' has no local dimension, a neighbor slot must be selected."
            )
        table = connectivity.ndarray
        new_axes = (offset.target[0], offset.local_dim)

    new_dims = (*field.dims[:pos], *new_axes, *field.dims[pos + 1 :])
    common.check_unique_dims(new_dims)
    # unsigned tables must not wrap around for sources with a negative origin
    table = table.astype(np.intp, copy=False)

    if np.any(table < 0):
        raise errors.InvalidConnectivityError(
            f"Connectivity for offset '{offset.value}' contains negative neighbor indices, "
            f"empty neighbor slots must be marked with '{common.SKIP_VALUE}'."
        )
    source_range = field.domain.ranges[pos]
    present = table != common.SKIP_VALUE
    out_of_range = present & ((table < source_range.start) | (table >= source_range.stop))
    if np.any(out_of_range):
        raise embedded_exceptions.IndexOutOfBounds(
            domain=field.domain,
            indices=(offset.value, slot),
            index=int(table[out_of_range].flat[0]),
            dim=offset.source,
        )

    out_shape = (*field.shape[:pos], *table.shape, *field.shape[pos + 1 :])
    if not np.any(present):
        new_data = np.zeros(out_shape, dtype=field.dtype)
    else:
        storage_index = np.where(present, table - source_range.start, 0)
        gathered = np.take(field.ndarray, storage_index, axis=pos)
        mask = present.reshape((1,) * pos + table.shape + (1,) * (field.ndim - pos - 1))
        new_data = np.where(mask, gathered, np.zeros((), dtype=field.dtype))

    new_ranges = (
        *field.domain.ranges[:pos],
        *(common.UnitRange.from_origin(0, n) for n in table.shape),
        *field.domain.ranges[pos + 1 :],
    )
    new_broadcast_dims: list[common.Dimension] = []
    for dim in field.broadcast_dims:
        new_broadcast_dims.extend(new_axes if dim == offset.source else (dim,))

    return Field.from_array(
        new_data,
        domain=common.Domain(dims=new_dims, ranges=new_ranges),
        broadcast_dims=new_broadcast_dims,
    )


# -- Specialized implementations for builtin operations on array fields --

Field.register_builtin_func(
    fbuiltins.abs,  # type: ignore[attr-defined]
    Field.__abs__,
)
Field.register_builtin_func(
    fbuiltins.neg,  # type: ignore[attr-defined]
    Field.__neg__,
)
Field.register_builtin_func(
    fbuiltins.power,  # type: ignore[attr-defined]
    Field.__pow__,
)

for name in fbuiltins.UNARY_MATH_FP_BUILTIN_NAMES + fbuiltins.UNARY_MATH_FP_PREDICATE_BUILTIN_NAMES:
    Field.register_builtin_func(getattr(fbuiltins, name), _make_builtin(name, name))

for name in ("minimum", "maximum", "fmod"):
    Field.register_builtin_func(getattr(fbuiltins, name), _make_builtin(name, name))

Field.register_builtin_func(fbuiltins.where, _make_builtin("where", "where"))


def _make_reduction(builtin_name: str, array_builtin_name: str) -> Callable[..., Field]:
    def _builtin_op(field: Field, axis: common.Dimension) -> Field:
        if (reduce_dim_index := common.dim_index(field.dims, axis)) is None:
            raise errors.ShapeMismatchError(
                f"Field can not be reduced as it doesn't have dimension '{axis}'."
            )
        if field.shape[reduce_dim_index] == 0 and builtin_name != "neighbor_sum":
            raise errors.ShapeMismatchError(
                f"'{builtin_name}' over the empty dimension '{axis}' is undefined."
            )
        new_domain = common.Domain(*[nr for nr in field.domain if nr.dim != axis])

        return Field.from_array(
            getattr(np, array_builtin_name)(field.ndarray, axis=reduce_dim_index),
            domain=new_domain,
            broadcast_dims=[d for d in field.broadcast_dims if d != axis],
        )

    _builtin_op.__name__ = builtin_name
    return _builtin_op


Field.register_builtin_func(fbuiltins.neighbor_sum, _make_reduction("neighbor_sum", "sum"))
Field.register_builtin_func(fbuiltins.max_over, _make_reduction("max_over", "max"))
Field.register_builtin_func(fbuiltins.min_over, _make_reduction("min_over", "min"))


def _builtins_broadcast(field: Field, new_dimensions: tuple[common.Dimension, ...]) -> Field:
    return field.broadcast_to(new_dimensions)


Field.register_builtin_func(fbuiltins.broadcast, _builtins_broadcast)


def _astype(field: Field, type_: type) -> Field:
    return field.astype(type_)


Field.register_builtin_func(fbuiltins.astype, _astype)
