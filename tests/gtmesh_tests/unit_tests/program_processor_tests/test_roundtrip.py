# GTMesh - GridTools Framework
#
# Copyright (c) 2014-2024, ETH Zurich
# All rights reserved.
#
# Please, refer to the LICENSE file in the root directory.
# SPDX-License-Identifier: BSD-3-Clause

import gc
import pathlib
import weakref

import numpy as np
import pytest

import gtmesh
from gtmesh import errors
from gtmesh.program_processors.runners import roundtrip


SCALE = 2.0

IDim = gtmesh.Dimension("IDim")


def test_stage_source_strips_decorators_and_annotations():
    source = (
        "@gtmesh.field_operator(backend='roundtrip')\n"
        "def foo(a: gtmesh.Field, /, *args: int, b: float = 1.0, **kwargs: int) -> gtmesh.Field:\n"
        "    tmp: gtmesh.Field\n"
        "    def inner(x: int) -> int:\n"
        "        return x\n"
        "    return a * b\n"
    )

    name, staged = roundtrip.stage_source(source)

    assert name == "foo"
    assert staged == (
        "def foo(a, /, *args, b=1.0, **kwargs):\n"
        "\n"
        "    def inner(x):\n"
        "        return x\n"
        "    return a * b"
    )


def test_stage_source_requires_single_function():
    with pytest.raises(errors.ClosureExtractionError):
        roundtrip.stage_source("def foo(a):\n    return a\n\ndef bar(a):\n    return a\n")


def test_stage_keeps_only_captured_names():
    def scale(a):
        return a * SCALE

    op = gtmesh.FieldOperator.from_function(scale, "roundtrip")
    staged = gtmesh.roundtrip.stage(op)

    assert staged is not scale
    assert staged(3.0) == 6.0
    assert staged.__globals__["SCALE"] == SCALE
    assert "pytest" not in staged.__globals__

    restaged = gtmesh.roundtrip.stage(op)
    assert restaged is not staged
    assert restaged.__code__ is staged.__code__


def test_stage_reads_current_global_values(monkeypatch):
    def scale(a):
        return a * SCALE

    op = gtmesh.FieldOperator.from_function(scale, "roundtrip")
    assert gtmesh.roundtrip.stage(op)(3.0) == 6.0

    monkeypatch.setitem(globals(), "SCALE", 5.0)
    assert gtmesh.roundtrip.stage(op)(3.0) == 15.0


def test_staged_code_is_released_with_the_definition():
    def identity(a):
        return a

    gtmesh.roundtrip.stage(gtmesh.FieldOperator.from_function(identity, "roundtrip"))
    assert identity in roundtrip._STAGED_CACHE

    ref = weakref.ref(identity)
    del identity
    gc.collect()
    assert ref() is None


@pytest.mark.parametrize("keep_sources", [True, False])
def test_stage_keep_sources(keep_sources):
    def identity(a):
        return a

    backend = roundtrip.Roundtrip(name="roundtrip_test", keep_sources=keep_sources)
    staged = backend.stage(gtmesh.FieldOperator.from_function(identity, backend))
    staged_file = pathlib.Path(staged.__code__.co_filename)

    assert staged_file.exists() == keep_sources
    if keep_sources:
        assert staged_file.read_text().startswith("def identity(a):")
        staged_file.unlink()


def test_stage_undefined_symbol():
    def broken(a):
        return a * undefined_name  # noqa: F821 [undefined-name]

    op = gtmesh.FieldOperator.from_function(broken, "roundtrip")
    with pytest.raises(errors.UndefinedSymbolError, match="'undefined_name'"):
        gtmesh.roundtrip.stage(op)


def test_roundtrip_execute():
    def scale(a):
        return a * SCALE

    op = gtmesh.field_operator(scale, backend="roundtrip")
    out = gtmesh.zeros({IDim: 3})

    op(gtmesh.as_field([IDim], np.array([1.0, 2.0, 3.0])), out=out)

    assert np.array_equal(out.asnumpy(), [2.0, 4.0, 6.0])
