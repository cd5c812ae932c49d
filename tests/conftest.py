"""Pytest fixtures for Moments tests."""

import pytest

from moments.config import MomentsConfig
from moments.format import create_basic_frontmatter
from moments.paths import VaultPaths

MOMENTS_ENV_VARS = [
    "MOMENTS_VAULT",
    "MOMENTS_STORAGE_PATH",
    "MOMENTS_AUTO_CREATE_FILE",
    "MOMENTS_INSERTION",
    "MOMENTS_TRIM_INPUT",
    "MOMENTS_TIMESTAMP_FORMAT",
    "MOMENTS_MAX_RENDER_COUNT",
    "MOMENTS_SOFT_DELETE_TO_ARCHIVE",
]


@pytest.fixture(autouse=True)
def clean_moments_env(monkeypatch):
    """Keep the developer's MOMENTS_* environment out of the tests."""
    for name in MOMENTS_ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def temp_vault(tmp_path):
    """Create a temporary vault for testing.

    Args:
        tmp_path: pytest's built-in temporary directory fixture

    Returns:
        Path to temporary vault root
    """
    vault_root = tmp_path / "test_vault"
    vault_root.mkdir()
    return vault_root


@pytest.fixture
def vault_config(temp_vault):
    """Create MomentsConfig pointing to temporary vault."""
    return MomentsConfig(vault_path=temp_vault)


@pytest.fixture
def vault_paths(vault_config):
    """Create VaultPaths for temporary vault, with system folder and empty ledger."""
    paths = VaultPaths.from_config(vault_config)

    for directory in paths.get_all_directories():
        directory.mkdir(parents=True, exist_ok=True)

    paths.ledger_file.touch()

    return paths


@pytest.fixture
def moments_file(vault_paths):
    """Create a Moments file holding only the basic frontmatter."""
    vault_paths.moments_file.write_text(create_basic_frontmatter(), encoding="utf-8")
    return vault_paths.moments_file
