# GTMesh - GridTools Framework
#
# Copyright (c) 2014-2024, ETH Zurich
# All rights reserved.
#
# Please, refer to the LICENSE file in the root directory.
# SPDX-License-Identifier: BSD-3-Clause

from __future__ import annotations

import functools
from typing import Any, Callable, Optional, ParamSpec, TypeVar, overload


_P = ParamSpec("_P")
_R = TypeVar("_R")


def tuple_structure(value: Any) -> Any:
    """
    Return the nesting structure of a (possibly nested) tuple with all leaves replaced by `None`.

    >>> tuple_structure((1, (2, 3)))
    (None, (None, None))
    >>> tuple_structure(4) is None
    True
    """
    if isinstance(value, tuple):
        return tuple(tuple_structure(v) for v in value)
    return None


@overload
def tree_map(fun: Callable[_P, _R]) -> Callable[..., _R | tuple[_R | tuple, ...]]: ...


@overload
def tree_map(
    *, collection_type: type = tuple
) -> Callable[[Callable[_P, _R]], Callable[..., Any]]: ...


def tree_map(
    fun: Optional[Callable[_P, _R]] = None,
    *,
    collection_type: type = tuple,
) -> Callable[..., _R | tuple[_R | tuple, ...]] | Callable[[Callable[_P, _R]], Callable[..., Any]]:
    """
    Apply `fun` to each entry of (possibly nested) collections (by default `tuple`s).

    All arguments must share the nesting structure of the first one.

    Examples:
        >>> tree_map(lambda x: x + 1)(((1, 2), 3))
        ((2, 3), 4)

        >>> tree_map(lambda x, y: x + y)(((1, 2), 3), ((4, 5), 6))
        ((5, 7), 9)

        >>> @tree_map
        ... def impl(x):
        ...     return x + 1
        >>> impl(((1, 2), 3))
        ((2, 3), 4)
    """

    if fun:

        @functools.wraps(fun)
        def impl(*args: Any | tuple[Any | tuple, ...]) -> _R | tuple[_R | tuple, ...]:
            if isinstance(args[0], collection_type):
                assert all(
                    isinstance(arg, collection_type) and len(args[0]) == len(arg) for arg in args
                )
                return collection_type(impl(*arg) for arg in zip(*args))

            return fun(*args)  # type: ignore[call-arg] # mypy not smart enough

        return impl
    else:
        return functools.partial(tree_map, collection_type=collection_type)
