#! /usr/bin/env -S uv run -q --script
#
# GTMesh - GridTools Framework
#
# Copyright (c) 2014-2024, ETH Zurich
# All rights reserved.
#
# Please, refer to the LICENSE file in the root directory.
# SPDX-License-Identifier: BSD-3-Clause
#
# /// script
# requires-python = ">=3.10"
# dependencies = ["nox>=2025.02.09"]
# ///

from __future__ import annotations

import pathlib
from typing import Final

import nox


# -- nox configuration --
nox.options.sessions = ["test_gtmesh-3.10", "test_gtmesh-3.11", "test_package-3.10"]

PYTHON_VERSIONS: Final[list[str]] = ["3.10", "3.11", "3.12"]

BackendOption: Final[list[str]] = ["embedded", "roundtrip"]


# -- Sessions --
@nox.session(python=PYTHON_VERSIONS, tags=["gtmesh"])
@nox.parametrize("backend", BackendOption)
def test_gtmesh(session: nox.Session, backend: str) -> None:
    """Run the 'gtmesh' tests with the default backend set to `backend`."""

    session.install("-e", ".[testing]")
    session.run(
        *"pytest --cache-clear -sv".split(),
        str(pathlib.Path("tests") / "gtmesh_tests"),
        *session.posargs,
        env={"GTMESH_BACKEND": backend},
    )


@nox.session(python=PYTHON_VERSIONS, tags=["package"])
def test_package(session: nox.Session) -> None:
    """Run doctests of the 'gtmesh' package."""

    session.install("-e", ".[testing]")
    session.run(
        *"pytest --doctest-modules -sv".split(),
        str(pathlib.Path("src") / "gtmesh"),
        *session.posargs,
    )


if __name__ == "__main__":
    nox.main()
