# GTMesh - GridTools Framework
#
# Copyright (c) 2014-2024, ETH Zurich
# All rights reserved.
#
# Please, refer to the LICENSE file in the root directory.
# SPDX-License-Identifier: BSD-3-Clause

from __future__ import annotations

import contextlib
import contextvars
import logging
import types
from collections.abc import Generator, Mapping
from typing import Any, TypeVar, overload

from gtmesh import common, errors


LOGGER = logging.getLogger(__name__)

_offset_provider: contextvars.ContextVar[common.OffsetProvider] = contextvars.ContextVar(
    "_offset_provider"
)


_T = TypeVar("_T")


_NO_DEFAULT_SENTINEL: Any = object()


@overload
def get_offset_provider() -> common.OffsetProvider: ...


@overload
def get_offset_provider(default: _T) -> common.OffsetProvider | _T: ...


def get_offset_provider(default: _T = _NO_DEFAULT_SENTINEL) -> common.OffsetProvider | _T:
    """Offset provider of the operator call currently in flight."""
    result = _offset_provider.get(default)
    if result is _NO_DEFAULT_SENTINEL:
        raise errors.ContextError(
            "No offset provider is active: shifts are only valid inside an operator call."
        )
    return result


def resolve_offset(name: str) -> common.OffsetProviderElem:
    """Look up the `Dimension` or `Connectivity` registered for an offset name."""
    offset_provider = get_offset_provider()
    if name not in offset_provider:
        raise errors.UndefinedOffsetError(name)
    return offset_provider[name]


def _check_offset_provider(offset_provider: Any) -> None:
    if not isinstance(offset_provider, Mapping):
        raise errors.InvalidArgumentTypeError(
            "offset_provider", "a mapping of offset names", offset_provider
        )
    for name, value in offset_provider.items():
        if not isinstance(value, (common.Dimension, common.Connectivity)):
            raise errors.UnsupportedOffsetProviderError(name, value)


@contextlib.contextmanager
def new_context(
    *, offset_provider: common.OffsetProvider
) -> Generator[common.OffsetProvider, None, None]:
    """
    Activate `offset_provider` for the duration of an outermost operator call.

    Only one offset provider can be active at a time: entering a new context
    while another one is active raises :class:`errors.ContextAlreadyActiveError`.
    The active mapping is a read-only snapshot of `offset_provider`.
    """
    if within_valid_context():
        raise errors.ContextAlreadyActiveError()
    _check_offset_provider(offset_provider)

    frozen_offset_provider = types.MappingProxyType(dict(offset_provider))
    token = _offset_provider.set(frozen_offset_provider)
    LOGGER.debug("Offset provider context opened with offsets: %s.", list(offset_provider))
    try:
        yield frozen_offset_provider
    finally:
        _offset_provider.reset(token)
        LOGGER.debug("Offset provider context closed.")


def within_valid_context() -> bool:
    return _offset_provider.get(SENTINEL := object()) is not SENTINEL
