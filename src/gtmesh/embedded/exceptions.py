# GTMesh - GridTools Framework
#
# Copyright (c) 2014-2024, ETH Zurich
# All rights reserved.
#
# Please, refer to the LICENSE file in the root directory.
# SPDX-License-Identifier: BSD-3-Clause

from __future__ import annotations

from typing import Any

from gtmesh import common
from gtmesh.errors import exceptions as gtmesh_exceptions


class IndexOutOfBounds(gtmesh_exceptions.GTMeshError, IndexError):
    domain: common.Domain
    indices: Any
    index: Any
    dim: common.Dimension

    def __init__(
        self,
        domain: common.Domain,
        indices: Any,
        index: Any,
        dim: common.Dimension,
    ):
        super().__init__(
            f"Out of bounds: indexing {domain} with `{indices}`, `{index}` is out of bounds in dimension `{dim}`."
        )
        self.domain = domain
        self.indices = indices
        self.index = index
        self.dim = dim
