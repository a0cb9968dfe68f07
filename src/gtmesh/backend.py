# GTMesh - GridTools Framework
#
# Copyright (c) 2014-2024, ETH Zurich
# All rights reserved.
#
# Please, refer to the LICENSE file in the root directory.
# SPDX-License-Identifier: BSD-3-Clause

from __future__ import annotations

import abc
import dataclasses
import logging
from typing import TYPE_CHECKING, Any

from gtmesh import common, errors


if TYPE_CHECKING:
    from gtmesh.ffront import decorator


LOGGER = logging.getLogger(__name__)


@dataclasses.dataclass(frozen=True)
class Backend(abc.ABC):
    """
    Execution strategy for field operators.

    The invocation protocol (outermost or nested call, offset provider
    lifecycle) is handled by :class:`gtmesh.ffront.decorator.FieldOperator`;
    backends only execute the operator body.
    """

    name: str

    @abc.abstractmethod
    def execute(
        self,
        operator: decorator.FieldOperator,
        args: tuple[Any, ...],
        kwargs: dict[str, Any],
        *,
        out: Any,
        offset_provider: common.OffsetProvider,
    ) -> None:
        """Run an outermost call of `operator` and write the result into `out`."""
        ...

    @abc.abstractmethod
    def evaluate(
        self, operator: decorator.FieldOperator, args: tuple[Any, ...], kwargs: dict[str, Any]
    ) -> Any:
        """Run a nested call of `operator` inside the active offset provider context."""
        ...


_BACKENDS: dict[str, Backend] = {}


def register_backend(backend: Backend, *, replace: bool = False) -> Backend:
    if backend.name in _BACKENDS and not replace:
        raise ValueError(f"A backend named '{backend.name}' is already registered.")
    _BACKENDS[backend.name] = backend
    LOGGER.debug("Registered backend '%s'.", backend.name)
    return backend


def get_backend(backend: str | Backend) -> Backend:
    """Resolve a backend identifier, raising :class:`errors.UnknownBackendError` if unknown."""
    if isinstance(backend, Backend):
        return backend
    if not isinstance(backend, str) or backend not in _BACKENDS:
        raise errors.UnknownBackendError(str(backend), registered_backends())
    return _BACKENDS[backend]


def registered_backends() -> tuple[str, ...]:
    return tuple(_BACKENDS)
