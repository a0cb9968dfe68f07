# GTMesh - GridTools Framework
#
# Copyright (c) 2014-2024, ETH Zurich
# All rights reserved.
#
# Please, refer to the LICENSE file in the root directory.
# SPDX-License-Identifier: BSD-3-Clause

from __future__ import annotations

import ast
import builtins
import inspect
import pathlib
import symtable
import textwrap
from collections.abc import Callable, Iterator, Mapping
from dataclasses import dataclass
from typing import Any, cast

from gtmesh import errors


MISSING_FILENAME = "<string>"
_NOT_BUILTIN = object()


def get_closure_vars_from_function(function: Callable) -> dict[str, Any]:
    """Name environment visible from the body of `function`: module globals overridden by closure cells."""
    nonlocals = inspect.getclosurevars(function).nonlocals
    return {**function.__globals__, **nonlocals}


def make_source_definition_from_function(func: Callable) -> SourceDefinition:
    try:
        filename = str(pathlib.Path(inspect.getabsfile(func)).resolve())
        if not filename:
            raise errors.ClosureExtractionError(
                "Can not create field operator from a function that is not in a source file."
            )
        source_lines, line_offset = inspect.getsourcelines(func)
        source_code = textwrap.dedent(inspect.getsource(func))
        column_offset = min(
            [len(line) - len(line.lstrip()) for line in source_lines if line.lstrip()], default=0
        )
        return SourceDefinition(source_code, filename, line_offset - 1, column_offset)

    except (OSError, TypeError) as err:
        raise errors.ClosureExtractionError(
            f"Can not get source code of passed function '{func}'."
        ) from err


def _collect_nested_globals(table: symtable.SymbolTable) -> set[str]:
    names: set[str] = set()
    for child in table.get_children():
        names |= {
            sym.get_name() for sym in child.get_symbols() if sym.is_global() and sym.is_referenced()
        }
        names |= _collect_nested_globals(child)
    return names


def _collect_default_names(source: str) -> set[str]:
    # default values are evaluated in the enclosing scope, so symtable attributes them to the module
    func_def = next(
        node
        for node in ast.parse(source).body
        if isinstance(node, (ast.FunctionDef, ast.AsyncFunctionDef))
    )
    defaults = [d for d in (*func_def.args.defaults, *func_def.args.kw_defaults) if d is not None]
    return {
        node.id
        for default in defaults
        for node in ast.walk(default)
        if isinstance(node, ast.Name) and isinstance(node.ctx, ast.Load)
    }


def make_symbol_names_from_source(source: str, filename: str = MISSING_FILENAME) -> SymbolNames:
    try:
        mod_st = symtable.symtable(source, filename, "exec")
    except SyntaxError as err:
        raise errors.ClosureExtractionError(
            f"Unexpected error when parsing provided source code: \n{source}\n"
        ) from err

    assert mod_st.get_type() == "module"
    # annotation scopes of newer Python versions are siblings of the function table
    children = [c for c in mod_st.get_children() if c.get_type() in ("function", "class")]
    if len(children) != 1 or children[0].get_type() != "function":
        raise errors.ClosureExtractionError(
            f"Sources must contain exactly one function definition: \n{source}\n"
        )

    func_st: symtable.Function = cast(symtable.Function, children[0])

    param_names: set[str] = set()
    imported_names: set[str] = set()
    local_names: set[str] = set()
    for name in func_st.get_locals():
        if (s := func_st.lookup(name)).is_imported():
            imported_names.add(name)
        elif s.is_parameter():
            param_names.add(name)
        else:
            local_names.add(name)

    # symtable returns regular free (or non-local) variables in 'get_frees()' and
    # the free variables introduced with the 'nonlocal' statement in 'get_nonlocals()'
    nonlocal_names = set(func_st.get_frees()) | set(func_st.get_nonlocals())
    # names used only by nested scopes (lambdas, comprehensions, inner functions)
    global_names = set(func_st.get_globals()) | _collect_nested_globals(func_st)
    global_names |= _collect_default_names(source)

    return SymbolNames(
        params=param_names,
        locals=local_names,
        imported=imported_names,
        nonlocals=nonlocal_names,
        globals=global_names,
    )


def get_closure_vars(source_definition: SourceDefinition, env: Mapping[str, Any]) -> dict[str, Any]:
    """
    Map every name the source captures from its environment to its value.

    Names of Python builtins are not captured unless `env` rebinds them to
    something else. Any other free name missing from `env` raises
    :class:`errors.UndefinedSymbolError`.

    Examples
    --------
    >>> source = SourceDefinition("def foo(a):\\n    return scale * abs(a)\\n")
    >>> get_closure_vars(source, {"scale": 2, "unused": 3})
    {'scale': 2}
    """
    symbol_names = SymbolNames.from_source(source_definition.source, source_definition.filename)

    closure_vars: dict[str, Any] = {}
    for name in sorted(symbol_names.globals | symbol_names.nonlocals):
        builtin_value = getattr(builtins, name, _NOT_BUILTIN)
        if name in env and env[name] is not builtin_value:
            closure_vars[name] = env[name]
        elif builtin_value is _NOT_BUILTIN:
            raise errors.UndefinedSymbolError(name)

    return closure_vars


@dataclass(frozen=True)
class SourceDefinition:
    """
    A field operator source code definition encoded as a string.

    It can be created from an actual function object using :meth:`from_function()`.
    It also supports unpacking.


    Examples
    --------
    >>> def foo(a):
    ...     return a
    >>> src_def = SourceDefinition.from_function(foo)
    >>> print(src_def)  # doctest:+ELLIPSIS
    SourceDefinition(source='def foo(a):...', filename='...', line_offset=0, column_offset=0)

    >>> source, filename, starting_line = src_def
    >>> print(source)  # doctest:+ELLIPSIS
    def foo(a):
        return a
    ...
    """

    source: str
    filename: str = MISSING_FILENAME
    line_offset: int = 0
    column_offset: int = 0

    def __iter__(self) -> Iterator:
        yield self.source
        yield self.filename
        yield self.line_offset

    from_function = staticmethod(make_source_definition_from_function)


@dataclass(frozen=True)
class SymbolNames:
    """
    Collection of symbol names used in a function classified by kind.

    It can be created directly from source code using :meth:`from_source()`.
    It also supports unpacking.
    """

    params: set[str]
    locals: set[str]  # shadowing a python builtin
    imported: set[str]
    nonlocals: set[str]
    globals: set[str]  # shadowing a python builtin

    def __iter__(self) -> Iterator[set[str]]:
        yield self.params
        yield self.locals
        yield self.imported
        yield self.nonlocals
        yield self.globals

    from_source = staticmethod(make_symbol_names_from_source)
