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
import logging
import types
import typing
from typing import Any, Callable, Optional

from gtmesh import backend as gtmesh_backend, config, errors
from gtmesh.embedded import context as embedded_context, operators as embedded_operators
from gtmesh.ffront import source_utils


LOGGER = logging.getLogger(__name__)

DEFAULT_BACKEND: str = config.DEFAULT_BACKEND


@dataclasses.dataclass(frozen=True)
class FieldOperator:
    """
    Operator value wrapping a Python function over fields.

    A call to the resulting object either runs as an *outermost* call, which
    opens the offset provider context, executes the body and copies its result
    into the mandatory ``out`` argument, or as a *nested* call from inside the
    body of another operator, which reuses the active context and returns the
    computed value.

    Attributes:
        definition: The original Python function object the field operator
            was created from.
        backend: The backend used for executing the field operator, unless a
            ``backend`` keyword argument selects another one for a single call.
    """

    definition: types.FunctionType
    backend: gtmesh_backend.Backend

    @classmethod
    def from_function(
        cls, definition: types.FunctionType, backend: str | gtmesh_backend.Backend
    ) -> FieldOperator:
        return cls(definition=definition, backend=gtmesh_backend.get_backend(backend))

    @property
    def __name__(self) -> str:
        return self.definition.__name__

    @functools.cached_property
    def source_definition(self) -> source_utils.SourceDefinition:
        return source_utils.SourceDefinition.from_function(self.definition)

    @property
    def closure_vars(self) -> dict[str, Any]:
        """Names captured by the body of the operator mapped to their current values."""
        return source_utils.get_closure_vars(
            self.source_definition, source_utils.get_closure_vars_from_function(self.definition)
        )

    def with_backend(self, backend: str | gtmesh_backend.Backend) -> FieldOperator:
        return dataclasses.replace(self, backend=gtmesh_backend.get_backend(backend))

    def __call__(self, *args: Any, **kwargs: Any) -> Any:
        backend = self.backend
        if "backend" in kwargs:
            backend = gtmesh_backend.get_backend(kwargs.pop("backend"))

        if embedded_context.within_valid_context():
            for arg_name in ("out", "offset_provider"):
                if arg_name in kwargs:
                    raise errors.UnexpectedArgumentError(arg_name)
            LOGGER.debug("Nested call of '%s' on backend '%s'.", self.__name__, backend.name)
            return backend.evaluate(self, args, kwargs)

        out = kwargs.pop("out", None)
        if out is None:
            raise errors.MissingArgumentError("out", True)
        if not embedded_operators.is_output_target(out):
            raise errors.InvalidArgumentTypeError("out", "a 'Field' or a tuple of 'Field's", out)
        offset_provider = kwargs.pop("offset_provider", None)

        LOGGER.debug("Outermost call of '%s' on backend '%s'.", self.__name__, backend.name)
        with embedded_context.new_context(
            offset_provider={} if offset_provider is None else offset_provider
        ) as active_offset_provider:
            backend.execute(self, args, kwargs, out=out, offset_provider=active_offset_provider)
        return None


@typing.overload
def field_operator(
    definition: types.FunctionType, *, backend: Optional[str | gtmesh_backend.Backend] = None
) -> FieldOperator: ...


@typing.overload
def field_operator(
    *, backend: Optional[str | gtmesh_backend.Backend] = None
) -> Callable[[types.FunctionType], FieldOperator]: ...


def field_operator(
    definition: Optional[types.FunctionType] = None,
    *,
    backend: Optional[str | gtmesh_backend.Backend] = None,
) -> FieldOperator | Callable[[types.FunctionType], FieldOperator]:
    """
    Generate a field operator from a Python function object.

    The backend is resolved when the decorator is applied, so an unknown
    backend name fails right away.

    Examples:
        >>> @field_operator  # doctest: +SKIP
        ... def field_op(in_field):
        ...     return in_field + 1.0
        >>> field_op(in_field, out=out_field)  # noqa: F821 [undefined-name]  # doctest: +SKIP

        >>> # the backend can optionally be passed if already decided
        >>> # not passing it will result in embedded execution by default
        >>> @field_operator(backend="roundtrip")  # doctest: +SKIP
        ... def field_op(in_field):
        ...     return in_field + 1.0
    """

    def field_operator_inner(definition: types.FunctionType) -> FieldOperator:
        return FieldOperator.from_function(
            definition, DEFAULT_BACKEND if backend is None else backend
        )

    return field_operator_inner if definition is None else field_operator_inner(definition)
