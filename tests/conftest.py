# GTMesh - GridTools Framework
#
# Copyright (c) 2014-2024, ETH Zurich
# All rights reserved.
#
# Please, refer to the LICENSE file in the root directory.
# SPDX-License-Identifier: BSD-3-Clause

"""Global configuration of pytest for collecting and running tests."""

# Ignore hidden folders and disabled tests
collect_ignore_glob = [".*", "_disabled*"]
