"""Environment-variable credential source."""

import os
from typing import Mapping, Optional

from mail_archive.errors import CredentialError
from .base import CredentialSource


def env_var_prefix(account_name: str) -> str:
    """
    Environment variable prefix for an account.

    Examples:
        >>> env_var_prefix("john.doe@example.com")
        'JOHN_DOE_EXAMPLE_COM'
    """
    prefix = account_name.upper()
    for char in "@.-":
        prefix = prefix.replace(char, "_")
    return prefix


class EnvCredentialSource(CredentialSource):
    """Read ``<NAME>_APPLICATION_PASSWORD`` or ``<NAME>_PASSWORD``."""

    def __init__(self, environ: Optional[Mapping[str, str]] = None):
        self.environ = os.environ if environ is None else environ

    def get_secret(self, account_name: str) -> str:
        prefix = env_var_prefix(account_name)
        for variable in (f"{prefix}_APPLICATION_PASSWORD", f"{prefix}_PASSWORD"):
            value = self.environ.get(variable)
            if value:
                return value
        raise CredentialError(
            f"No password found for account '{account_name}' "
            f"(set {prefix}_APPLICATION_PASSWORD or {prefix}_PASSWORD)"
        )
