# GTMesh - GridTools Framework
#
# Copyright (c) 2014-2024, ETH Zurich
# All rights reserved.
#
# Please, refer to the LICENSE file in the root directory.
# SPDX-License-Identifier: BSD-3-Clause

from setuptools import find_packages, setup


if __name__ == "__main__":
    setup(
        name="gtmesh",
        version="0.1.0",
        description="Composable stencils on unstructured meshes with an embedded Python runtime",
        license="BSD-3-Clause",
        package_dir={"": "src"},
        packages=find_packages("src"),
        python_requires=">=3.10",
        install_requires=["numpy>=1.23.3", "typing-extensions>=4.10.0"],
        extras_require={"testing": ["pytest>=8.0.1", "nox>=2025.02.09"]},
    )
