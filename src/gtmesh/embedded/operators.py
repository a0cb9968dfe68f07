# GTMesh - GridTools Framework
#
# Copyright (c) 2014-2024, ETH Zurich
# All rights reserved.
#
# Please, refer to the LICENSE file in the root directory.
# SPDX-License-Identifier: BSD-3-Clause

from __future__ import annotations

import dataclasses
from typing import Any, Callable, Generic, ParamSpec, TypeVar

import numpy as np

from gtmesh import errors, utils
from gtmesh.embedded import nd_array_field


_P = ParamSpec("_P")
_R = TypeVar("_R")


@dataclasses.dataclass(frozen=True)
class EmbeddedOperator(Generic[_R, _P]):
    fun: Callable[_P, _R]

    def __call__(self, *args: _P.args, **kwargs: _P.kwargs) -> _R:
        return self.fun(*args, **kwargs)


def is_output_target(value: Any) -> bool:
    """Check if `value` is a field or a (possibly nested) tuple of fields."""
    if isinstance(value, tuple):
        return len(value) > 0 and all(is_output_target(v) for v in value)
    return isinstance(value, nd_array_field.Field)


def _is_scalar(value: Any) -> bool:
    return isinstance(value, (bool, int, float, complex, np.generic))


def _check_assignable(target: Any, source: Any, path: tuple[int, ...] = ()) -> None:
    location = "".join(f"[{i}]" for i in path) or "value"
    if isinstance(target, tuple):
        if not isinstance(source, tuple) or len(source) != len(target):
            raise errors.TupleShapeMismatchError(
                f"Result {location} does not match the tuple structure of 'out': expected a tuple "
                f"of {len(target)} elements, got '{utils.tuple_structure(source)}'."
            )
        for i, (t, s) in enumerate(zip(target, source)):
            _check_assignable(t, s, (*path, i))
        return

    if not isinstance(target, nd_array_field.Field):
        raise errors.InvalidArgumentTypeError(
            f"out{''.join(f'[{i}]' for i in path)}", "a 'Field' or a tuple of 'Field's", target
        )
    if isinstance(source, tuple):
        raise errors.TupleShapeMismatchError(
            f"Result {location} is a tuple, but the corresponding 'out' element is a single 'Field'."
        )
    if isinstance(source, nd_array_field.Field):
        if source.ndim == 0:
            return
        if source.dims != target.dims or source.shape != target.shape:
            raise errors.ShapeMismatchError(
                f"Result {location} over {source.domain} can not be copied into 'out' over {target.domain}."
            )
    elif not _is_scalar(source):
        raise errors.InvalidArgumentTypeError(
            f"result{''.join(f'[{i}]' for i in path)}", "a 'Field' or a scalar", source
        )


@utils.tree_map
def _tuple_assign_field(target: nd_array_field.Field, source: Any) -> None:
    if isinstance(source, nd_array_field.Field):
        target.ndarray[...] = source.ndarray
    else:
        target.ndarray[...] = source


def copy_field(out: Any, result: Any) -> None:
    """
    Copy the values of `result` into the output buffer(s) `out`.

    `out` is a field or a (possibly nested) tuple of fields and `result` must
    have the same tuple structure, with fields of matching dimensions and shape
    (0-dimensional fields and scalars are broadcast). The whole structure is
    validated before the first element is written, so a failure leaves `out`
    untouched.
    """
    _check_assignable(out, result)
    _tuple_assign_field(out, result)
