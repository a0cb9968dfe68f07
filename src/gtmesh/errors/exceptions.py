# GTMesh - GridTools Framework
#
# Copyright (c) 2014-2024, ETH Zurich
# All rights reserved.
#
# Please, refer to the LICENSE file in the root directory.
# SPDX-License-Identifier: BSD-3-Clause

"""
The list of exception classes used in the library.

Every exception derives from :class:`GTMeshError` and, in addition, from the
builtin exception class closest to its meaning, so that generic handlers
(``except ValueError``, ``except LookupError``, ...) keep working. Exception
classes that are specific to embedded execution live in
:mod:`gtmesh.embedded.exceptions`.
"""

from __future__ import annotations

from typing import Any


class GTMeshError(Exception):
    @property
    def message(self) -> str:
        return self.args[0]


class ShapeMismatchError(GTMeshError, ValueError):
    """Dimensions, rank or extents of the involved fields are incompatible."""


class TupleShapeMismatchError(GTMeshError, ValueError):
    """Nested tuple structures of two operands can not be paired element by element."""


class InvalidConnectivityError(GTMeshError, ValueError):
    """A neighbor table is malformed or does not match the offset it is used with."""


class ContextError(GTMeshError, RuntimeError):
    """The offset provider context discipline has been violated."""


class ContextAlreadyActiveError(ContextError):
    def __init__(self) -> None:
        super().__init__(
            "An offset provider context is already active: nested operator calls "
            "must reuse it instead of opening a new one."
        )


class MissingArgumentError(ContextError):
    arg_name: str
    is_kwarg: bool

    def __init__(self, arg_name: str, is_kwarg: bool) -> None:
        super().__init__(f"Expected {'keyword-' if is_kwarg else ''}argument '{arg_name}'.")
        self.arg_name = arg_name
        self.is_kwarg = is_kwarg


class UnexpectedArgumentError(ContextError):
    arg_name: str

    def __init__(self, arg_name: str) -> None:
        super().__init__(
            f"Argument '{arg_name}' is only allowed in the outermost operator call, "
            "but an offset provider context is already active."
        )
        self.arg_name = arg_name


class UnsupportedOffsetProviderError(GTMeshError, TypeError):
    offset_name: str
    value: Any

    def __init__(self, offset_name: str, value: Any) -> None:
        super().__init__(
            f"Offset provider entry '{offset_name}' of type '{type(value).__name__}' is "
            "neither a 'Dimension' nor a 'Connectivity'."
        )
        self.offset_name = offset_name
        self.value = value


class UndefinedOffsetError(GTMeshError, LookupError):
    offset_name: str

    def __init__(self, offset_name: str) -> None:
        super().__init__(f"Offset '{offset_name}' is not defined in the offset provider.")
        self.offset_name = offset_name


class InvalidArgumentTypeError(GTMeshError, TypeError):
    arg_name: str
    value: Any

    def __init__(self, arg_name: str, expected: str, value: Any) -> None:
        super().__init__(
            f"Argument '{arg_name}' must be {expected}, got '{type(value).__name__}'."
        )
        self.arg_name = arg_name
        self.value = value


class UnknownBackendError(GTMeshError, ValueError):
    backend_name: str

    def __init__(self, backend_name: str, available: tuple[str, ...] = ()) -> None:
        available_str = ", ".join(f"'{name}'" for name in available) or "none"
        super().__init__(
            f"Unknown backend '{backend_name}' (registered backends: {available_str})."
        )
        self.backend_name = backend_name


class UndefinedSymbolError(GTMeshError, NameError):
    sym_name: str

    def __init__(self, name: str) -> None:
        super().__init__(f"Name '{name}' is not defined.")
        self.sym_name = name


class ClosureExtractionError(GTMeshError, ValueError):
    """Captured names of a function could not be determined."""
