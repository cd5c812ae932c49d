"""Configuration management for Moments."""

import os
from pathlib import Path
from typing import Any, Literal, Optional

from pydantic import BaseModel, Field

from .timefmt import DEFAULT_TIMESTAMP_FORMAT

try:
    import tomllib  # Python 3.11+
except ImportError:
    import tomli as tomllib  # Python < 3.11


def _find_repo_root(start_dir: Path) -> Path:
    """Find repository root by walking upward looking for .git or pyproject.toml."""
    current_dir = start_dir

    while True:
        if (current_dir / ".git").exists() or (current_dir / "pyproject.toml").exists():
            return current_dir

        parent_dir = current_dir.parent

        # Stop at filesystem root
        if parent_dir == current_dir:
            return start_dir

        current_dir = parent_dir


def _load_repo_config_data(repo_root: Path) -> Optional[dict]:
    """Load repo config data from .moments/config.toml if it exists."""
    config_file = repo_root / ".moments" / "config.toml"

    if not config_file.exists():
        return None

    try:
        with open(config_file, "rb") as f:
            return tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError):
        # Malformed config is ignored
        return None


def _get_repo_config_section(data: Optional[dict], key: str) -> dict[str, Any]:
    if not data:
        return {}
    section = data.get(key)
    return section if isinstance(section, dict) else {}


def _env_bool(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "y", "on"}


def resolve_vault_root(cli_vault_path: Optional[str] = None) -> Path:
    """Resolve the directory holding the Moments file.

    Precedence:

    1. CLI --vault option (if provided)
    2. repo-local .moments/config.toml ``vault_root`` (walk upward from CWD)
    3. MOMENTS_VAULT environment variable
    4. Current working directory

    Raises:
        FileNotFoundError: If an explicitly configured path does not exist
    """
    if cli_vault_path:
        vault_path = Path(cli_vault_path).expanduser().resolve()
        if not vault_path.exists():
            raise FileNotFoundError(f"Specified vault path does not exist: {vault_path}")
        return vault_path

    repo_config = _load_repo_config_data(_find_repo_root(Path.cwd()))
    vault_root_str = (repo_config or {}).get("vault_root")
    if isinstance(vault_root_str, str) and vault_root_str.strip():
        vault_path = Path(vault_root_str).expanduser().resolve()
        if not vault_path.exists():
            raise FileNotFoundError(f"Vault path from .moments/config.toml does not exist: {vault_path}")
        return vault_path

    env_vault = os.environ.get("MOMENTS_VAULT")
    if env_vault:
        vault_path = Path(env_vault).expanduser().resolve()
        if not vault_path.exists():
            raise FileNotFoundError(f"MOMENTS_VAULT path does not exist: {vault_path}")
        return vault_path

    return Path.cwd()


class MomentsConfig(BaseModel):
    """Configuration for the Moments file and its editing behaviour."""

    vault_path: Path = Field(default_factory=Path.cwd)
    storage_path: str = Field(default="Moments.md", description="Moments file, relative to the vault")
    auto_create_file: bool = Field(default=True)
    insertion: Literal["prepend", "append"] = Field(default="prepend")
    trim_input: bool = Field(default=True)
    timestamp_format: str = Field(default=DEFAULT_TIMESTAMP_FORMAT, description="moment-style pattern")
    max_render_count: int = Field(default=200, description="0 disables the cap")
    soft_delete_to_archive: bool = Field(default=False)

    model_config = {"frozen": False}

    @classmethod
    def from_env(cls, cli_vault_path: Optional[str] = None) -> "MomentsConfig":
        """Load configuration from the repo config file and environment variables.

        Environment variables override values from ``[moments]`` in
        .moments/config.toml, which override the defaults.

        Args:
            cli_vault_path: Vault path from CLI --vault option (highest precedence)
        """
        vault_path = resolve_vault_root(cli_vault_path)
        repo_config = _load_repo_config_data(_find_repo_root(Path.cwd()))
        section = _get_repo_config_section(repo_config, "moments")
        defaults = cls.model_fields

        def setting(name: str) -> Any:
            value = section.get(name)
            return defaults[name].default if value is None else value

        return cls(
            vault_path=vault_path,
            storage_path=os.environ.get("MOMENTS_STORAGE_PATH", setting("storage_path")),
            auto_create_file=_env_bool("MOMENTS_AUTO_CREATE_FILE", setting("auto_create_file")),
            insertion=os.environ.get("MOMENTS_INSERTION", setting("insertion")),
            trim_input=_env_bool("MOMENTS_TRIM_INPUT", setting("trim_input")),
            timestamp_format=os.environ.get("MOMENTS_TIMESTAMP_FORMAT", setting("timestamp_format")),
            max_render_count=int(os.environ.get("MOMENTS_MAX_RENDER_COUNT", setting("max_render_count"))),
            soft_delete_to_archive=_env_bool("MOMENTS_SOFT_DELETE_TO_ARCHIVE", setting("soft_delete_to_archive")),
        )

    def to_toml_str(self) -> str:
        """Generate TOML configuration string."""
        return f"""# Moments configuration

vault_root = '{self.vault_path}'

[moments]
storage_path = '{self.storage_path}'
auto_create_file = {str(self.auto_create_file).lower()}
# Where new entries go: "prepend" or "append"
insertion = '{self.insertion}'
trim_input = {str(self.trim_input).lower()}
timestamp_format = '{self.timestamp_format}'
max_render_count = {self.max_render_count}
# Deleting moves entries below the archive separator instead
soft_delete_to_archive = {str(self.soft_delete_to_archive).lower()}
"""
