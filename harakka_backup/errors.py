# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Human-friendly error message helpers for Harakka Backup.

These helpers centralize wording for common configuration errors so that
the library, the CLI and the FastAPI plugin present the same messages.
"""


def explain_missing_project_env() -> str:
    """
    Explain that neither the project id nor the Supabase URL is set.
    """

    return (
        "Supabase project is not configured. "
        "Set SUPABASE_PROJECT_ID or SUPABASE_URL, or pass project_id=... to create_config()."
    )


def explain_missing_service_key_env() -> str:
    """
    Explain that the service role key is missing.
    """

    return (
        "SUPABASE_SERVICE_ROLE_KEY is not set. "
        "Storage export and restore need the service role key to see every bucket. "
        "Add it to your environment or to the env file passed with --env-file."
    )


def explain_invalid_backend_env(value: str | None) -> str:
    """
    Explain that HARAKKA_STORAGE_BACKEND is invalid.
    """

    return (
        f"Invalid HARAKKA_STORAGE_BACKEND value: {value!r}. "
        "Expected 'supabase' or 's3'."
    )


def explain_invalid_positive_int_env(name: str, value: str | None) -> str:
    """
    Explain that an integer environment variable is invalid.
    """

    return f"Invalid {name} value: {value!r}. It must be a positive integer."


def explain_missing_env_file(path: str) -> str:
    """
    Explain that an explicitly requested env file does not exist.
    """

    return (
        f"Environment file not found: {path}. "
        "Create it or drop --env-file to use the process environment."
    )
