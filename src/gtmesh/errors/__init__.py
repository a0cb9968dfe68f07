# GTMesh - GridTools Framework
#
# Copyright (c) 2014-2024, ETH Zurich
# All rights reserved.
#
# Please, refer to the LICENSE file in the root directory.
# SPDX-License-Identifier: BSD-3-Clause

"""Contains the exception classes used for error handling."""

from .exceptions import (
    ClosureExtractionError,
    ContextAlreadyActiveError,
    ContextError,
    GTMeshError,
    InvalidArgumentTypeError,
    InvalidConnectivityError,
    MissingArgumentError,
    ShapeMismatchError,
    TupleShapeMismatchError,
    UndefinedOffsetError,
    UndefinedSymbolError,
    UnexpectedArgumentError,
    UnknownBackendError,
    UnsupportedOffsetProviderError,
)


__all__ = [
    "ClosureExtractionError",
    "ContextAlreadyActiveError",
    "ContextError",
    "GTMeshError",
    "InvalidArgumentTypeError",
    "InvalidConnectivityError",
    "MissingArgumentError",
    "ShapeMismatchError",
    "TupleShapeMismatchError",
    "UndefinedOffsetError",
    "UndefinedSymbolError",
    "UnexpectedArgumentError",
    "UnknownBackendError",
    "UnsupportedOffsetProviderError",
]
