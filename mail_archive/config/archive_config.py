"""Configuration models for mailbox accounts."""

from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, field_validator


class AccountConfig(BaseModel):
    """One mailbox account mirrored into the archive."""

    name: str
    server: str = ""
    port: int = 993
    username: str = ""
    export_directory: str
    ignored_folders: list[str] = Field(default_factory=list)
    quote_depth: Optional[int] = 1
    skip_existing: bool = True
    skip_signature_images: bool = False
    collect_contacts: bool = False
    signature_image_max_bytes: int = 20_000
    delete_after_export: bool = False
    max_workers: int = 4
    timeout: Optional[float] = 60.0

    @field_validator("name", "export_directory")
    def validate_required(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("must not be empty")
        return v

    @field_validator("port")
    def validate_port(cls, v: int) -> int:
        if not 0 < v < 65536:
            raise ValueError(f"Invalid port: {v}")
        return v

    @field_validator("quote_depth")
    def validate_quote_depth(cls, v: Optional[int]) -> Optional[int]:
        if v is not None and v < 0:
            raise ValueError("quote_depth must be >= 0")
        return v

    @field_validator("max_workers", "signature_image_max_bytes")
    def validate_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("must be positive")
        return v

    def get_export_directory(self) -> Path:
        """Get expanded export directory."""
        return Path(self.export_directory).expanduser()


class AccountsConfig(BaseModel):
    """Contents of accounts.yaml."""

    accounts: list[AccountConfig] = Field(default_factory=list)

    def get_account(self, name: str) -> Optional[AccountConfig]:
        """Get account by name (case-insensitive)."""
        for account in self.accounts:
            if account.name.lower() == name.lower():
                return account
        return None

    def list_accounts(self) -> list[str]:
        return [account.name for account in self.accounts]
