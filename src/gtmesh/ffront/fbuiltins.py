# GTMesh - GridTools Framework
#
# Copyright (c) 2014-2024, ETH Zurich
# All rights reserved.
#
# Please, refer to the LICENSE file in the root directory.
# SPDX-License-Identifier: BSD-3-Clause

import dataclasses
import math
import operator
from typing import Any, Callable, Final, Generic, Optional, ParamSpec, Tuple, TypeVar

import numpy as np

from gtmesh import common, errors, utils


_P = ParamSpec("_P")
_R = TypeVar("_R")


@dataclasses.dataclass(frozen=True)
class BuiltInFunction(Generic[_R, _P]):
    name: str = dataclasses.field(init=False)
    # `function` provides the default implementation, used when no argument type registers
    # a specialized one (e.g. the scalar version of a math function)
    function: Callable[_P, _R]

    def __post_init__(self) -> None:
        object.__setattr__(self, "name", f"{self.function.__module__}.{self.function.__name__}")
        object.__setattr__(self, "__doc__", self.function.__doc__)

    def __call__(self, *args: _P.args, **kwargs: _P.kwargs) -> _R:
        impl = self.dispatch(*args)
        return impl(*args, **kwargs)

    def dispatch(self, *args: Any) -> Callable[_P, _R]:
        arg_types = tuple(type(arg) for arg in args)
        for atype in arg_types:
            # current strategy is to select the implementation of the first arg that supports the operation
            if (dispatcher := getattr(atype, "__gt_builtin_func__", None)) is not None and (
                op_func := dispatcher(self)
            ) is not NotImplemented:
                return op_func
        else:
            return self.function


MaskT = TypeVar("MaskT")
FieldT = TypeVar("FieldT")


class WhereBuiltinFunction(
    BuiltInFunction[_R, [MaskT, FieldT, FieldT]], Generic[_R, MaskT, FieldT]
):
    def __call__(self, mask: MaskT, true_field: FieldT, false_field: FieldT) -> _R:
        true_structure = utils.tuple_structure(true_field)
        false_structure = utils.tuple_structure(false_field)
        if true_structure != false_structure:
            raise errors.TupleShapeMismatchError(
                f"Operands of 'where' must have the same tuple structure, got "
                f"'{true_structure}' and '{false_structure}' ('None' marks a leaf)."
            )
        return self._select(mask, true_field, false_field)

    def _select(self, mask: MaskT, true_field: Any, false_field: Any) -> Any:
        if isinstance(true_field, tuple):
            return tuple(self._select(mask, t, f) for t, f in zip(true_field, false_field))
        return super().__call__(mask, true_field, false_field)


def _raise_expected_field(name: str, value: Any) -> None:
    raise errors.InvalidArgumentTypeError(name, "a 'Field'", value)


@BuiltInFunction
def neighbor_sum(field: Any, /, axis: common.Dimension) -> Any:
    """Sum the values of `field` along `axis`, removing that dimension."""
    _raise_expected_field("field", field)


@BuiltInFunction
def max_over(field: Any, /, axis: common.Dimension) -> Any:
    """Maximum of the values of `field` along `axis`, removing that dimension."""
    _raise_expected_field("field", field)


@BuiltInFunction
def min_over(field: Any, /, axis: common.Dimension) -> Any:
    """Minimum of the values of `field` along `axis`, removing that dimension."""
    _raise_expected_field("field", field)


@BuiltInFunction
def broadcast(field: Any, dims: tuple[common.Dimension, ...], /) -> Any:
    """Widen the broadcast dimensions of `field`, turning scalars into 0-dimensional fields."""
    from gtmesh.embedded import nd_array_field  # avoid circular import

    # default implementation for scalars, Fields are handled via dispatch
    return nd_array_field.Field((), np.asarray(field), broadcast_dims=tuple(dims))


@WhereBuiltinFunction
def where(mask: Any, true_field: Any, false_field: Any, /) -> Any:
    """Select elements of `true_field` where `mask` holds and of `false_field` elsewhere."""
    # default implementation for scalars, Fields are handled via dispatch
    return true_field if mask else false_field


@BuiltInFunction
def astype(value: Any, type_: type, /) -> Any:
    if isinstance(value, tuple):
        return tuple(astype(v, type_) for v in value)
    # default implementation for scalars, Fields are handled via dispatch
    return np.dtype(type_).type(value)


_UNARY_MATH_NUMBER_BUILTIN_IMPL: Final = {"abs": abs, "neg": operator.neg}
UNARY_MATH_NUMBER_BUILTIN_NAMES: Final = [*_UNARY_MATH_NUMBER_BUILTIN_IMPL.keys()]

_UNARY_MATH_FP_BUILTIN_IMPL: Final = {
    "sin": math.sin,
    "cos": math.cos,
    "tan": math.tan,
    "arcsin": math.asin,
    "arccos": math.acos,
    "arctan": math.atan,
    "sinh": math.sinh,
    "cosh": math.cosh,
    "tanh": math.tanh,
    "arcsinh": math.asinh,
    "arccosh": math.acosh,
    "arctanh": math.atanh,
    "sqrt": math.sqrt,
    "exp": math.exp,
    "log": math.log,
    "cbrt": np.cbrt,
    "floor": math.floor,
    "ceil": math.ceil,
    "trunc": math.trunc,
}
UNARY_MATH_FP_BUILTIN_NAMES: Final = [*_UNARY_MATH_FP_BUILTIN_IMPL.keys()]

_UNARY_MATH_FP_PREDICATE_BUILTIN_IMPL: Final = {
    "isfinite": math.isfinite,
    "isinf": math.isinf,
    "isnan": math.isnan,
}
UNARY_MATH_FP_PREDICATE_BUILTIN_NAMES: Final = [*_UNARY_MATH_FP_PREDICATE_BUILTIN_IMPL.keys()]


def _make_unary_math_builtin(name: str) -> None:
    _math_builtin = (
        _UNARY_MATH_NUMBER_BUILTIN_IMPL
        | _UNARY_MATH_FP_BUILTIN_IMPL
        | _UNARY_MATH_FP_PREDICATE_BUILTIN_IMPL
    )[name]

    def impl(value: Any, /) -> Any:
        # default implementation for scalars, Fields are handled via dispatch
        return _math_builtin(value)

    impl.__name__ = name
    globals()[name] = BuiltInFunction(impl)


for f in (
    UNARY_MATH_NUMBER_BUILTIN_NAMES
    + UNARY_MATH_FP_BUILTIN_NAMES
    + UNARY_MATH_FP_PREDICATE_BUILTIN_NAMES
):
    _make_unary_math_builtin(f)

BINARY_MATH_NUMBER_BUILTIN_NAMES = ["minimum", "maximum", "fmod", "power"]


def _make_binary_math_builtin(name: str) -> None:
    def impl(lhs: Any, rhs: Any, /) -> Any:
        # default implementation for scalars, Fields are handled via dispatch
        return getattr(np, name)(lhs, rhs)

    impl.__name__ = name
    globals()[name] = BuiltInFunction(impl)


for f in BINARY_MATH_NUMBER_BUILTIN_NAMES:
    _make_binary_math_builtin(f)

MATH_BUILTIN_NAMES = (
    UNARY_MATH_NUMBER_BUILTIN_NAMES
    + UNARY_MATH_FP_BUILTIN_NAMES
    + UNARY_MATH_FP_PREDICATE_BUILTIN_NAMES
    + BINARY_MATH_NUMBER_BUILTIN_NAMES
)

FUN_BUILTIN_NAMES = [
    "neighbor_sum",
    "max_over",
    "min_over",
    "broadcast",
    "where",
    "astype",
    *MATH_BUILTIN_NAMES,
]

BUILTINS = {name: globals()[name] for name in FUN_BUILTIN_NAMES}

__all__ = [*FUN_BUILTIN_NAMES, "FieldOffset"]


@dataclasses.dataclass(frozen=True)
class FieldOffset:
    """
    Named offset describing a shift from `source` to `target` dimensions.

    The name is resolved in the offset provider of the running operator call,
    either to a :class:`common.Dimension` (a shift along a regular axis) or to a
    :class:`common.Connectivity` (a neighbor gather). Every target dimension
    after the first one enumerates neighbor slots and must be ``LOCAL``.

    Indexing an offset selects a single (1-based) neighbor slot, or the shift
    distance for regular axes:

    >>> Cell = common.Dimension("Cell")
    >>> Edge = common.Dimension("Edge")
    >>> E2CDim = common.Dimension("E2C", kind=common.DimensionKind.LOCAL)
    >>> E2C = FieldOffset("E2C", source=Cell, target=(Edge, E2CDim))
    >>> E2C[2] == (E2C, 2)
    True
    """

    value: str
    source: common.Dimension
    target: Tuple[common.Dimension, ...]

    def __post_init__(self) -> None:
        if isinstance(self.target, common.Dimension):
            object.__setattr__(self, "target", (self.target,))
        object.__setattr__(self, "target", tuple(self.target))
        if len(self.target) == 0:
            raise ValueError(f"Offset '{self.value}' needs at least one target dimension.")
        if any(dim.kind != common.DimensionKind.LOCAL for dim in self.target[1:]):
            raise ValueError(
                f"Offset '{self.value}': dimensions after the first target dimension must be local dimensions."
            )

    @property
    def local_dim(self) -> Optional[common.Dimension]:
        return self.target[1] if len(self.target) > 1 else None

    def __getitem__(self, index: int) -> tuple["FieldOffset", int]:
        if not isinstance(index, (int, np.integer)) or isinstance(index, bool):
            raise TypeError(f"Offset '{self.value}' can only be indexed with integers.")
        return (self, int(index))

    def __str__(self) -> str:
        return f"{self.value}({self.source} -> {', '.join(str(d) for d in self.target)})"
