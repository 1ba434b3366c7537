"""Configuration loader for accounts and sort rules."""

import logging
from pathlib import Path
from typing import Optional

import yaml
from pydantic import ValidationError

from mail_archive.errors import RuleConfigError
from .archive_config import AccountsConfig
from .sort_config import SortConfig

logger = logging.getLogger(__name__)


class ConfigLoader:
    """Load and validate application configuration."""

    DEFAULT_ACCOUNTS_PATHS = [
        Path("~/.config/mail-archive/accounts.yaml"),
        Path("accounts.yaml"),
    ]
    DEFAULT_SORT_CONFIG_PATHS = [
        Path("~/.config/mail-archive/sort_rules.yaml"),
        Path("sort_rules.yaml"),
    ]

    def __init__(self, accounts_path: Optional[Path] = None, sort_config_path: Optional[Path] = None):
        """
        Initialize configuration loader.

        Args:
            accounts_path: Optional custom accounts file path
            sort_config_path: Optional custom sort rule file path
        """
        self.accounts_path = accounts_path
        self.sort_config_path = sort_config_path
        self._accounts: Optional[AccountsConfig] = None

    def load_accounts(self) -> AccountsConfig:
        """
        Load account configuration.

        Returns:
            AccountsConfig instance (empty when no file exists)

        Raises:
            ValueError: If the file is not valid YAML or fails validation
        """
        if self._accounts is not None:
            return self._accounts

        config_path = self._first_existing(self.accounts_path, self.DEFAULT_ACCOUNTS_PATHS)
        if config_path is None:
            logger.debug("No accounts file found, using empty configuration")
            self._accounts = AccountsConfig()
            return self._accounts

        try:
            data = self._read_yaml(config_path)
            self._accounts = AccountsConfig(**data)
        except (yaml.YAMLError, ValidationError, TypeError) as e:
            raise ValueError(f"Invalid accounts config in {config_path}: {e}") from e

        logger.debug("Loaded %d accounts from %s", len(self._accounts.accounts), config_path)
        return self._accounts

    def load_sort_config(self) -> SortConfig:
        """
        Load the classification rule set.

        Returns:
            SortConfig instance; built-in defaults when no file exists

        Raises:
            RuleConfigError: If the rule file is unparsable or invalid
        """
        config_path = self._first_existing(self.sort_config_path, self.DEFAULT_SORT_CONFIG_PATHS)
        if config_path is None:
            if self.sort_config_path is not None:
                raise RuleConfigError(f"Sort rule file not found: {self.sort_config_path}")
            logger.debug("No sort rule file found, using defaults")
            return SortConfig.default()

        try:
            data = self._read_yaml(config_path)
            return SortConfig(**data)
        except (yaml.YAMLError, ValidationError, TypeError) as e:
            raise RuleConfigError(f"Invalid sort rules in {config_path}: {e}") from e

    def save_sort_config(self, config: SortConfig, path: Path) -> None:
        """Write a rule set as YAML."""
        path = path.expanduser()
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            yaml.safe_dump(
                config.model_dump(mode="json", exclude_none=True),
                f,
                sort_keys=False,
                allow_unicode=True,
            )

    def reload(self) -> AccountsConfig:
        """Reload account configuration from file."""
        self._accounts = None
        return self.load_accounts()

    @staticmethod
    def _first_existing(explicit: Optional[Path], defaults: list[Path]) -> Optional[Path]:
        candidates = [explicit] if explicit else defaults
        for candidate in candidates:
            if candidate and candidate.expanduser().exists():
                return candidate.expanduser()
        return None

    @staticmethod
    def _read_yaml(path: Path) -> dict:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
        if data is None:
            return {}
        if not isinstance(data, dict):
            raise TypeError(f"Top-level YAML value must be a mapping, got {type(data).__name__}")
        return data
