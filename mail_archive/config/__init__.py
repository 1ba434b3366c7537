"""Configuration management"""

from .archive_config import AccountConfig, AccountsConfig
from .config_loader import ConfigLoader
from .sort_config import SortConfig, SortRuleConfig

__all__ = ["AccountConfig", "AccountsConfig", "ConfigLoader", "SortConfig", "SortRuleConfig"]
