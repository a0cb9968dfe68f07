# GTMesh - GridTools Framework
#
# Copyright (c) 2014-2024, ETH Zurich
# All rights reserved.
#
# Please, refer to the LICENSE file in the root directory.
# SPDX-License-Identifier: BSD-3-Clause

import pytest

import gtmesh

from gtmesh_tests import definitions


@pytest.fixture(params=definitions.ALL_BACKENDS, ids=lambda p: p.value)
def backend(request) -> gtmesh.Backend:
    """Every registered backend must produce the same results."""
    return gtmesh.get_backend(request.param.value)
