# GTMesh - GridTools Framework
#
# Copyright (c) 2014-2024, ETH Zurich
# All rights reserved.
#
# Please, refer to the LICENSE file in the root directory.
# SPDX-License-Identifier: BSD-3-Clause

"""
GTMesh - Composable stencils on unstructured meshes.

This module deviates from the project coding style (Google Python style) in the following way:

[style guide link](https://google.github.io/styleguide/pyguide.html#22-imports):

Functions and classes are imported from other modules in order to explicitly re-export them
to create a streamlined user experience. `from module import *` can be used but only if the
module in question is a submodule, defines `__all__` and exports many public API objects.
"""

import logging as _logging

from . import common, config, errors, ffront, program_processors
from .backend import Backend, get_backend, register_backend, registered_backends
from .common import (
    SKIP_VALUE,
    Connectivity,
    Dimension,
    DimensionKind,
    Domain,
    UnitRange,
    domain,
    unit_range,
)
from .constructors import as_connectivity, as_field, empty, full, ones, zeros
from .embedded import backend as _embedded_backend  # Just for registering the backend
from .embedded.context import get_offset_provider, new_context
from .embedded.nd_array_field import Field
from .embedded.operators import copy_field
from .ffront import fbuiltins
from .ffront.decorator import FieldOperator, field_operator
from .ffront.fbuiltins import *  # noqa: F403 [undefined-local-with-import-star]  explicitly reexport all from fbuiltins.__all__
from .ffront.fbuiltins import FieldOffset
from .program_processors.runners.roundtrip import default as roundtrip


_logger = _logging.getLogger(__name__)
_logger.addHandler(_logging.NullHandler())
_logger.setLevel(config.LOG_LEVEL)


__all__ = [
    # submodules
    "common",
    "config",
    "errors",
    "ffront",
    "program_processors",
    # from backend
    "Backend",
    "get_backend",
    "register_backend",
    "registered_backends",
    # from common
    "SKIP_VALUE",
    "Connectivity",
    "Dimension",
    "DimensionKind",
    "Domain",
    "UnitRange",
    "domain",
    "unit_range",
    # from constructors
    "empty",
    "zeros",
    "ones",
    "full",
    "as_field",
    "as_connectivity",
    # from embedded
    "Field",
    "copy_field",
    "get_offset_provider",
    "new_context",
    # from ffront
    "FieldOffset",
    "FieldOperator",
    "field_operator",
    # from program_processors
    "roundtrip",
    *fbuiltins.__all__,
]
