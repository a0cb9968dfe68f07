# GTMesh - GridTools Framework
#
# Copyright (c) 2014-2024, ETH Zurich
# All rights reserved.
#
# Please, refer to the LICENSE file in the root directory.
# SPDX-License-Identifier: BSD-3-Clause

from __future__ import annotations

import collections
import dataclasses
import enum
import functools
from collections.abc import Callable, Iterator, Mapping, Sequence
from typing import (
    TYPE_CHECKING,
    Any,
    Final,
    NamedTuple,
    Optional,
    ParamSpec,
    TypeAlias,
    TypeVar,
    overload,
)

import numpy as np
from typing_extensions import Self

from gtmesh import errors


_P = ParamSpec("_P")
_R = TypeVar("_R")


class DimensionKind(str, enum.Enum):
    HORIZONTAL = "horizontal"
    VERTICAL = "vertical"
    LOCAL = "local"

    def __str__(self) -> str:
        return self.value


@dataclasses.dataclass(frozen=True)
class Dimension:
    value: str
    kind: DimensionKind = dataclasses.field(default=DimensionKind.HORIZONTAL)

    def __str__(self) -> str:
        return f"{self.value}[{self.kind}]"


def get_dim_name(dim: Dimension) -> str:
    return dim.value


def get_dim_kind(dim: Dimension) -> DimensionKind:
    return dim.kind


def dim_index(dims: Sequence[Dimension], dim: Dimension) -> Optional[int]:
    """Position of the first occurrence of `dim` in `dims`, or `None` if missing."""
    try:
        return tuple(dims).index(dim)
    except ValueError:
        return None


def check_unique_dims(dims: Sequence[Dimension]) -> None:
    if repeated := [d for d, count in collections.Counter(dims).items() if count > 1]:
        raise errors.ShapeMismatchError(
            f"Dimensions must be unique, but {', '.join(str(d) for d in repeated)} repeated in "
            f"'({', '.join(str(d) for d in dims)})'."
        )


def promote_dims(*dims_list: Sequence[Dimension]) -> tuple[Dimension, ...]:
    """
    Merge multiple sequences of dimensions keeping the first-seen order.

    Examples:
        >>> I = Dimension("I")
        >>> J = Dimension("J")
        >>> K = Dimension("K", DimensionKind.VERTICAL)
        >>> promote_dims([I, K], [J, K]) == (I, K, J)
        True
        >>> promote_dims([], [K]) == (K,)
        True
    """
    result: list[Dimension] = []
    for dims in dims_list:
        for dim in dims:
            if dim not in result:
                result.append(dim)
    return tuple(result)


@dataclasses.dataclass(frozen=True, init=False)
class UnitRange(Sequence[int]):
    """Half-open range from `start` to `stop` with step size one."""

    start: int
    stop: int

    def __init__(self, start: int, stop: int) -> None:
        if start < stop:
            object.__setattr__(self, "start", int(start))
            object.__setattr__(self, "stop", int(stop))
        else:
            # make UnitRange(0,0) the single empty UnitRange
            object.__setattr__(self, "start", 0)
            object.__setattr__(self, "stop", 0)

    @classmethod
    def from_origin(cls, origin: int, size: int) -> UnitRange:
        """Range of the 1-based external indices of an axis with the given `origin` and `size`."""
        return cls(origin + 1, origin + size + 1)

    def __len__(self) -> int:
        return max(0, self.stop - self.start)

    def __repr__(self) -> str:
        return f"UnitRange({self.start}, {self.stop})"

    @overload
    def __getitem__(self, index: int) -> int: ...

    @overload
    def __getitem__(self, index: slice) -> UnitRange: ...

    def __getitem__(self, index: int | slice) -> int | UnitRange:
        if isinstance(index, slice):
            start, stop, step = index.indices(len(self))
            if step != 1:
                raise ValueError("'UnitRange': step required to be '1'.")
            return UnitRange(self.start + start, self.start + stop)
        else:
            if index < 0:
                index += len(self)
            if 0 <= index < len(self):
                return self.start + index
            raise IndexError("'UnitRange' index out of range")

    def __iter__(self) -> Iterator[int]:
        return iter(range(self.start, self.stop))

    def __and__(self, other: UnitRange) -> UnitRange:
        return UnitRange(max(self.start, other.start), min(self.stop, other.stop))

    def __contains__(self, value: Any) -> bool:
        if isinstance(value, (int, np.integer)) and not isinstance(value, bool):
            return self.start <= int(value) < self.stop
        return False

    def __le__(self, other: UnitRange) -> bool:
        return len(self) == 0 or (self.start >= other.start and self.stop <= other.stop)

    def __add__(self, other: int) -> UnitRange:
        return UnitRange(self.start + other, self.stop + other)

    def __sub__(self, other: int) -> UnitRange:
        return self + (-other)

    def __str__(self) -> str:
        return f"({self.start}:{self.stop})"


RangeLike: TypeAlias = UnitRange | range | slice | tuple[int, int]


def unit_range(r: RangeLike) -> UnitRange:
    """
    Normalize a range-like object to a `UnitRange`.

    Tuples and ranges are interpreted as half-open `(start, stop)` pairs.

    >>> unit_range((2, 5))
    UnitRange(2, 5)
    >>> unit_range(range(1, 4))
    UnitRange(1, 4)
    """
    if isinstance(r, UnitRange):
        return r
    if isinstance(r, range):
        if r.step != 1:
            raise ValueError(f"'UnitRange' requires step size 1, got '{r.step}'.")
        return UnitRange(r.start, r.stop)
    if isinstance(r, slice):
        if r.step not in (None, 1) or r.start is None or r.stop is None:
            raise ValueError(f"Only bounded slices with step size 1 can be converted, got '{r}'.")
        return UnitRange(r.start, r.stop)
    if isinstance(r, tuple) and len(r) == 2 and all(isinstance(e, int) for e in r):
        return UnitRange(*r)
    raise ValueError(f"'{r!r}' cannot be interpreted as 'UnitRange'.")


class NamedRange(NamedTuple):
    dim: Dimension
    unit_range: UnitRange

    def __str__(self) -> str:
        return f"{self.dim}={self.unit_range}"


@dataclasses.dataclass(frozen=True, init=False)
class Domain(Sequence[NamedRange]):
    """Describes the `Domain` of a `Field` as a `Sequence` of `NamedRange` s."""

    dims: tuple[Dimension, ...]
    ranges: tuple[UnitRange, ...]

    def __init__(
        self,
        *args: NamedRange,
        dims: Optional[Sequence[Dimension]] = None,
        ranges: Optional[Sequence[UnitRange]] = None,
    ) -> None:
        if dims is not None or ranges is not None:
            if dims is None or ranges is None:
                raise ValueError("Either specify both 'dims' and 'ranges' or neither.")
            if len(args) > 0:
                raise ValueError(
                    "No extra 'args' allowed when constructing from 'dims' and 'ranges'."
                )
            if len(dims) != len(ranges):
                raise ValueError(
                    f"Number of provided dimensions ({len(dims)}) does not match number of provided ranges ({len(ranges)})."
                )
            object.__setattr__(self, "dims", tuple(dims))
            object.__setattr__(self, "ranges", tuple(ranges))
        else:
            if not all(isinstance(arg, NamedRange) for arg in args):
                raise ValueError(
                    f"Elements of 'Domain' need to be instances of 'NamedRange', got '{args}'."
                )
            dims, ranges = zip(*args) if args else ((), ())
            object.__setattr__(self, "dims", tuple(dims))
            object.__setattr__(self, "ranges", tuple(ranges))

        check_unique_dims(self.dims)

    @property
    def ndim(self) -> int:
        return len(self.dims)

    @property
    def shape(self) -> tuple[int, ...]:
        return tuple(len(r) for r in self.ranges)

    def __len__(self) -> int:
        return len(self.ranges)

    def __str__(self) -> str:
        return f"Domain({', '.join(f'{e}' for e in self)})"

    @overload
    def __getitem__(self, index: int) -> NamedRange: ...

    @overload
    def __getitem__(self, index: slice) -> Self: ...

    @overload
    def __getitem__(self, index: Dimension) -> NamedRange: ...

    def __getitem__(self, index: int | slice | Dimension) -> NamedRange | Domain:
        if isinstance(index, Dimension):
            try:
                index = self.dims.index(index)
            except ValueError as ex:
                raise KeyError(f"No Dimension of type '{index}' is present in the Domain.") from ex
        if isinstance(index, int):
            return NamedRange(dim=self.dims[index], unit_range=self.ranges[index])
        if isinstance(index, slice):
            return Domain(dims=self.dims[index], ranges=self.ranges[index])

        raise KeyError("Invalid index type, must be either int, slice, or Dimension.")

    def __and__(self, other: Domain) -> Domain:
        """
        Intersect `Domain`s, missing `Dimension`s are taken from the other operand unchanged.

        Examples:
            >>> I = Dimension("I")
            >>> J = Dimension("J")
            >>> print(Domain(NamedRange(I, UnitRange(1, 4))) & Domain(NamedRange(I, UnitRange(2, 7))))
            Domain(I[horizontal]=(2:4))
            >>> print(
            ...     Domain(NamedRange(I, UnitRange(1, 4)), NamedRange(J, UnitRange(2, 4)))
            ...     & Domain(NamedRange(I, UnitRange(2, 7)))
            ... )
            Domain(I[horizontal]=(2:4), J[horizontal]=(2:4))
        """
        dims = promote_dims(self.dims, other.dims)
        ranges = []
        for dim in dims:
            rngs = [d.ranges[d.dims.index(dim)] for d in (self, other) if dim in d.dims]
            ranges.append(functools.reduce(lambda a, b: a & b, rngs))
        return Domain(dims=dims, ranges=ranges)

    def dim_index(self, dim: Dimension) -> Optional[int]:
        return dim_index(self.dims, dim)


def domain(domain_like: Domain | Mapping[Dimension, RangeLike | int]) -> Domain:
    """
    Construct a `Domain` from a domain-like mapping.

    Integer values are interpreted as the number of elements, starting at the
    first (1-based) external index.

    >>> I = Dimension("I")
    >>> print(domain({I: 3}))
    Domain(I[horizontal]=(1:4))
    >>> print(domain({I: (2, 5)}))
    Domain(I[horizontal]=(2:5))
    """
    if isinstance(domain_like, Domain):
        return domain_like
    if isinstance(domain_like, Mapping):
        return Domain(
            dims=tuple(domain_like.keys()),
            ranges=tuple(
                UnitRange.from_origin(0, r) if isinstance(r, int) else unit_range(r)
                for r in domain_like.values()
            ),
        )
    raise ValueError(f"'{domain_like}' is not 'DomainLike'.")


#: Value marking an empty neighbor slot in a connectivity table.
#: Valid neighbor indices are 1-based, so the value never clashes with a real index.
SKIP_VALUE: Final[int] = 0


@dataclasses.dataclass(frozen=True, eq=False)
class Connectivity:
    """
    Neighbor table linking elements of `target` to neighboring elements of `source`.

    Row ``r`` (1-based) lists the 1-based indices along `source` of the neighbors
    of element ``r`` of `target`; every column is a neighbor slot. Empty slots
    are marked with :data:`SKIP_VALUE`.
    """

    ndarray: np.ndarray
    source: Dimension
    target: Dimension
    max_neighbors: Optional[int] = None

    def __post_init__(self) -> None:
        table = np.asarray(self.ndarray)
        if table.ndim != 2:
            raise errors.InvalidConnectivityError(
                f"Connectivity table must be 2-dimensional, got a {table.ndim}-dimensional array."
            )
        if not np.issubdtype(table.dtype, np.integer):
            raise errors.InvalidConnectivityError(
                f"Connectivity table must contain integers, got dtype '{table.dtype}'."
            )
        if self.max_neighbors is None:
            object.__setattr__(self, "max_neighbors", table.shape[1])
        elif table.shape[1] != self.max_neighbors:
            raise errors.InvalidConnectivityError(
                f"Connectivity table has {table.shape[1]} neighbor slots, "
                f"but 'max_neighbors' is {self.max_neighbors}."
            )
        object.__setattr__(self, "ndarray", table)

    @property
    def shape(self) -> tuple[int, int]:
        return self.ndarray.shape  # type: ignore[return-value] # checked to be 2D

    @property
    def has_skip_values(self) -> bool:
        return bool(np.any(self.ndarray == SKIP_VALUE))

    def __str__(self) -> str:
        return (
            f"Connectivity({self.target} -> {self.source}, "
            f"{self.shape[0]} elements x {self.max_neighbors} neighbors)"
        )


OffsetProviderElem: TypeAlias = Dimension | Connectivity
OffsetProvider: TypeAlias = Mapping[str, OffsetProviderElem]


class FieldBuiltinFuncRegistry:
    """
    Mixin for adding `fbuiltins` registry to a `Field`.

    Subclasses of a `Field` with `FieldBuiltinFuncRegistry` get their own registry,
    dispatching (via ChainMap) to its parent's registries.
    """

    _builtin_func_map: collections.ChainMap[fbuiltins.BuiltInFunction, Callable] = (
        collections.ChainMap()
    )

    def __init_subclass__(cls, **kwargs: Any) -> None:
        cls._builtin_func_map = collections.ChainMap(
            {},  # New empty `dict` for new registrations on this class
            *[
                c.__dict__["_builtin_func_map"].maps[0]  # adding parent `dict`s in mro order
                for c in cls.__mro__
                if "_builtin_func_map" in c.__dict__
            ],
        )

    @classmethod
    def register_builtin_func(
        cls, /, op: fbuiltins.BuiltInFunction[_R, _P], op_func: Optional[Callable[_P, _R]] = None
    ) -> Any:
        assert op not in cls._builtin_func_map
        if op_func is None:  # when used as a decorator
            return functools.partial(cls.register_builtin_func, op)
        return cls._builtin_func_map.setdefault(op, op_func)

    @classmethod
    def __gt_builtin_func__(cls, /, func: fbuiltins.BuiltInFunction[_R, _P]) -> Callable[_P, _R]:
        return cls._builtin_func_map.get(func, NotImplemented)


if TYPE_CHECKING:
    from gtmesh.ffront import fbuiltins
