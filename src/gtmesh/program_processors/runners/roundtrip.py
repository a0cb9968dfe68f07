# GTMesh - GridTools Framework
#
# Copyright (c) 2014-2024, ETH Zurich
# All rights reserved.
#
# Please, refer to the LICENSE file in the root directory.
# SPDX-License-Identifier: BSD-3-Clause

"""
Backend executing field operators from a staged copy of their source.

The source of the operator is parsed, stripped of decorators and annotations,
written to a temporary module and imported in a namespace holding only the
names captured by the operator. Running the staged function has to produce
exactly the same results as the embedded execution, which makes this backend
a conformance check for the closure extraction.
"""

from __future__ import annotations

import ast
import dataclasses
import importlib.machinery
import importlib.util
import logging
import pathlib
import tempfile
import types
import weakref
from collections.abc import Callable
from typing import TYPE_CHECKING, Any, Optional

from typing_extensions import override

from gtmesh import backend as gtmesh_backend, common, config, errors
from gtmesh.embedded import operators as embedded_operators


if TYPE_CHECKING:
    from gtmesh.ffront import decorator


LOGGER = logging.getLogger(__name__)


class _StripAnnotations(ast.NodeTransformer):
    def visit_FunctionDef(self, node: ast.FunctionDef) -> ast.FunctionDef:
        node.decorator_list = []
        node.returns = None
        args = node.args
        for arg in [*args.posonlyargs, *args.args, *args.kwonlyargs, args.vararg, args.kwarg]:
            if arg is not None:
                arg.annotation = None
        self.generic_visit(node)
        return node

    def visit_AnnAssign(self, node: ast.AnnAssign) -> Optional[ast.stmt]:
        if node.value is None:
            return None
        return ast.copy_location(ast.Assign(targets=[node.target], value=node.value), node)


def stage_source(source: str) -> tuple[str, str]:
    """
    Turn the source of an operator into plain Python source.

    Returns the name of the staged function together with the staged source.

    >>> name, staged = stage_source(
    ...     "@field_operator\\ndef add(a: Field, b: Field) -> Field:\\n    c: Field = a + b\\n    return c\\n"
    ... )
    >>> name
    'add'
    >>> print(staged)
    def add(a, b):
        c = a + b
        return c
    """
    tree = ast.parse(source)
    if len(tree.body) != 1 or not isinstance(tree.body[0], ast.FunctionDef):
        raise errors.ClosureExtractionError(
            f"Sources must contain exactly one function definition: \n{source}\n"
        )
    func_name = tree.body[0].name
    tree = ast.fix_missing_locations(_StripAnnotations().visit(tree))
    return func_name, ast.unparse(tree)


@dataclasses.dataclass(frozen=True)
class _StagedCode:
    func_name: str
    spec: importlib.machinery.ModuleSpec
    code: types.CodeType


_STAGED_CACHE: weakref.WeakKeyDictionary[types.FunctionType, _StagedCode] = (
    weakref.WeakKeyDictionary()
)


def _compile_operator(operator: decorator.FieldOperator, keep_sources: bool) -> _StagedCode:
    if (staged_code := _STAGED_CACHE.get(operator.definition)) is not None:
        LOGGER.debug("Using cached staged code for '%s'.", operator.__name__)
        return staged_code

    func_name, program = stage_source(operator.source_definition.source)
    with tempfile.NamedTemporaryFile(
        mode="w", suffix=".py", encoding="utf-8", delete=False
    ) as source_file:
        source_file_name = source_file.name
        source_file.write(program)
        source_file.write("\n")
    LOGGER.debug("Staged '%s' into '%s'.", operator.__name__, source_file_name)
    try:
        spec = importlib.util.spec_from_file_location(f"gtmesh_staged_{func_name}", source_file_name)
        assert spec is not None
        code = compile(program, source_file_name, "exec")
    finally:
        if not keep_sources:
            pathlib.Path(source_file_name).unlink(missing_ok=True)

    staged_code = _StagedCode(func_name=func_name, spec=spec, code=code)
    _STAGED_CACHE[operator.definition] = staged_code
    return staged_code


def stage_operator(operator: decorator.FieldOperator, keep_sources: bool) -> Callable:
    """
    Generate a directly executable function from a field operator.

    The staged code is compiled once per operator definition, while the captured
    names are looked up again every time, so rebinding a global the operator
    uses is visible to the next call.

    Arguments:
        operator: The field operator to stage.
        keep_sources: Keep the module source containing the staged function on disk.
    """
    staged_code = _compile_operator(operator, keep_sources)
    closure_vars = operator.closure_vars
    LOGGER.debug("Binding '%s' to captured names %s.", operator.__name__, sorted(closure_vars))

    mod = importlib.util.module_from_spec(staged_code.spec)
    mod.__dict__.update(closure_vars)
    exec(staged_code.code, mod.__dict__)

    staged = getattr(mod, staged_code.func_name)
    assert isinstance(staged, types.FunctionType)
    return staged


@dataclasses.dataclass(frozen=True)
class Roundtrip(gtmesh_backend.Backend):
    keep_sources: Optional[bool] = None

    def stage(self, operator: decorator.FieldOperator) -> Callable:
        keep_sources = config.KEEP_STAGED_SOURCES if self.keep_sources is None else self.keep_sources
        return stage_operator(operator, keep_sources)

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
        LOGGER.debug(
            "Executing staged '%s' with offsets %s.", operator.__name__, list(offset_provider)
        )
        res = self.stage(operator)(*args, **kwargs)
        embedded_operators.copy_field(out, res)

    @override
    def evaluate(
        self, operator: decorator.FieldOperator, args: tuple[Any, ...], kwargs: dict[str, Any]
    ) -> Any:
        return self.stage(operator)(*args, **kwargs)


default = gtmesh_backend.register_backend(Roundtrip(name="roundtrip"))
