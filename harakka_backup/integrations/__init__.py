# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Harakka Backup Integrations - Framework plugins.

Available integrations:
- fastapi: FastAPI admin endpoints and lifespan
"""

__all__ = [
    "fastapi",
]
