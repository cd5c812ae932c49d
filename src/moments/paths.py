"""Path management for a Moments vault."""

from pathlib import Path

from .config import MomentsConfig


class VaultPaths:
    """Manages paths within a Moments vault."""

    def __init__(self, vault_root: Path, storage_path: str = "Moments.md"):
        """Initialize vault paths from root directory.

        Args:
            vault_root: Directory holding the Moments file
            storage_path: Moments file path relative to the vault root
        """
        self.root = vault_root

        # System directory and files
        self.system = vault_root / ".moments"
        self.config_file = self.system / "config.toml"
        self.ledger_file = self.system / "ledger.jsonl"
        self.undo_file = self.system / "undo.json"

        # The Moments file itself
        self.moments_file = vault_root / storage_path

    @classmethod
    def from_config(cls, config: MomentsConfig) -> "VaultPaths":
        """Create VaultPaths from a MomentsConfig."""
        return cls(config.vault_path, config.storage_path)

    def get_all_directories(self) -> list[Path]:
        """Get list of all directories that should exist in the vault."""
        return [self.root, self.system, self.moments_file.parent]
