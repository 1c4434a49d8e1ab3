# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Test package. Shared helpers are imported package-relative, as
``from tests.conftest import ...``, with the repository root as rootdir.
"""
