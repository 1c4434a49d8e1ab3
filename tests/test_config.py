# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Configuration Tests - builder, validation and environment loading.
"""

from pathlib import Path

import pytest

from harakka_backup.builder import (
    build_from_steps,
    create_config,
    pipe,
    create_empty_config,
    run_daily_at,
    with_backup_dir,
    with_list_page_size,
    with_project,
    with_s3_endpoint,
    with_service_key,
)
from harakka_backup.config import DEFAULT_BACKUP_DIR, StorageBackend
from harakka_backup.env import create_config_from_env, local_supabase
from harakka_backup.exceptions import ConfigurationError


# ============================================================================
# Builder
# ============================================================================

def test_builder_fluent_api(temp_dir: Path):
    """Builder functions compose into a validated config."""
    config = build_from_steps(
        lambda c: with_project(c, "abcd1234"),
        lambda c: with_service_key(c, "secret"),
        lambda c: with_backup_dir(c, str(temp_dir)),
        lambda c: run_daily_at(c, "02:30"),
    )

    assert config.project_url == "https://abcd1234.supabase.co"
    assert config.storage_dir == temp_dir / "storage"
    assert config.dumps_dir == temp_dir / "cloud-export"
    assert config.schedule_cron == "02:30"
    assert "secret" not in repr(config)


def test_pipe_composes_steps():
    step = pipe(
        lambda c: with_project(c, "abcd1234"),
        lambda c: with_s3_endpoint(c, "http://localhost:9000", "eu-north-1"),
    )

    config = step(create_empty_config())

    assert config["backend"] == StorageBackend.S3
    assert config["region"] == "eu-north-1"


def test_builder_rejects_bad_values():
    with pytest.raises(ValueError):
        with_list_page_size(create_empty_config(), 5000)
    with pytest.raises(ValueError):
        run_daily_at(create_empty_config(), "25:00")


def test_create_config_defaults():
    config = create_config(project_id="abcd1234")

    assert config.backend == StorageBackend.SUPABASE
    assert config.backup_dir == DEFAULT_BACKUP_DIR
    assert config.list_page_size == 1000
    assert config.max_depth == 64


def test_supabase_url_overrides_project_id():
    config = create_config(project_id="abcd1234", supabase_url="http://127.0.0.1:54321/")

    assert config.project_url == "http://127.0.0.1:54321"


@pytest.mark.parametrize(
    "kwargs",
    [
        {"supabase_url": "ftp://example.com"},
        {"list_page_size": 0},
        {"max_depth": 0},
        {"request_timeout": 0},
        {"supabase_cli": "  "},
    ],
)
def test_invalid_config_raises(kwargs):
    with pytest.raises(ConfigurationError) as exc_info:
        create_config(project_id="abcd1234", **kwargs)

    assert exc_info.value.details["errors"]


def test_with_updates_returns_new_config(temp_dir: Path):
    config = create_config(project_id="abcd1234")
    updated = config.with_updates(backup_dir=temp_dir)

    assert updated.backup_dir == temp_dir
    assert config.backup_dir == DEFAULT_BACKUP_DIR


# ============================================================================
# Environment
# ============================================================================

def test_config_from_env(clean_env, temp_dir: Path):
    clean_env.setenv("SUPABASE_PROJECT_ID", "abcd1234")
    clean_env.setenv("SUPABASE_SERVICE_ROLE_KEY", "secret")
    clean_env.setenv("HARAKKA_BACKUP_DIR", str(temp_dir))
    clean_env.setenv("HARAKKA_LIST_PAGE_SIZE", "250")
    clean_env.setenv("HARAKKA_SUPABASE_CLI", "supabase")

    config = create_config_from_env()

    assert config.project_id == "abcd1234"
    assert config.service_key == "secret"
    assert config.backup_dir == temp_dir
    assert config.list_page_size == 250
    assert config.supabase_cli == "supabase"


def test_config_from_env_requires_credentials(clean_env):
    with pytest.raises(ConfigurationError, match="SUPABASE_PROJECT_ID"):
        create_config_from_env()

    clean_env.setenv("SUPABASE_PROJECT_ID", "abcd1234")
    with pytest.raises(ConfigurationError, match="SUPABASE_SERVICE_ROLE_KEY"):
        create_config_from_env()

    config = create_config_from_env(require_credentials=False)
    assert config.service_key is None


def test_config_from_env_s3_backend_needs_no_service_key(clean_env):
    clean_env.setenv("HARAKKA_STORAGE_BACKEND", "S3")
    clean_env.setenv("HARAKKA_S3_ENDPOINT_URL", "http://localhost:9000")

    config = create_config_from_env()

    assert config.backend == StorageBackend.S3
    assert config.s3_endpoint_url == "http://localhost:9000"


@pytest.mark.parametrize(
    "name,value",
    [
        ("HARAKKA_STORAGE_BACKEND", "gcs"),
        ("HARAKKA_LIST_PAGE_SIZE", "many"),
        ("HARAKKA_MAX_DEPTH", "0"),
    ],
)
def test_config_from_env_rejects_invalid_values(clean_env, name, value):
    clean_env.setenv("SUPABASE_PROJECT_ID", "abcd1234")
    clean_env.setenv("SUPABASE_SERVICE_ROLE_KEY", "secret")
    clean_env.setenv(name, value)

    with pytest.raises(ConfigurationError, match=name):
        create_config_from_env()


def test_config_from_env_file(clean_env, temp_dir: Path):
    env_file = temp_dir / ".env.production"
    env_file.write_text(
        "SUPABASE_PROJECT_ID=fromfile\nSUPABASE_SERVICE_ROLE_KEY=filekey\n",
        encoding="utf-8",
    )

    config = create_config_from_env(env_file=env_file)

    assert config.project_id == "fromfile"
    assert config.service_key == "filekey"


def test_config_from_missing_env_file(clean_env, temp_dir: Path):
    with pytest.raises(ConfigurationError, match="Environment file not found"):
        create_config_from_env(env_file=temp_dir / "missing.env")


def test_local_supabase_profile():
    config = create_config(project_id="abcd1234", service_key="secret")

    local = local_supabase(config)

    assert local.project_url == "http://127.0.0.1:54321"
    assert local.service_key == "secret"
    assert config.project_url == "https://abcd1234.supabase.co"
