# GTMesh - GridTools Framework
#
# Copyright (c) 2014-2024, ETH Zurich
# All rights reserved.
#
# Please, refer to the LICENSE file in the root directory.
# SPDX-License-Identifier: BSD-3-Clause

from __future__ import annotations

import dataclasses
import logging
from typing import TYPE_CHECKING, Any

from typing_extensions import override

from gtmesh import backend as gtmesh_backend, common
from gtmesh.embedded import operators as embedded_operators


if TYPE_CHECKING:
    from gtmesh.ffront import decorator


LOGGER = logging.getLogger(__name__)


@dataclasses.dataclass(frozen=True)
class EmbeddedBackend(gtmesh_backend.Backend):
    """Run the Python definition of the operator directly."""

    @override
    def execute(
        self,
        operator: decorator.FieldOperator,
        args: tuple[Any, ...],
        kwargs: dict[str, Any],
        *,
        out: Any,
        offset_provider: common.OffsetProvider,
    ) -> None:
        LOGGER.debug("Executing field operator '%s' in embedded mode.", operator.__name__)
        res = embedded_operators.EmbeddedOperator(operator.definition)(*args, **kwargs)
        embedded_operators.copy_field(out, res)

    @override
    def evaluate(
        self, operator: decorator.FieldOperator, args: tuple[Any, ...], kwargs: dict[str, Any]
    ) -> Any:
        return embedded_operators.EmbeddedOperator(operator.definition)(*args, **kwargs)


default = gtmesh_backend.register_backend(EmbeddedBackend(name="embedded"))
