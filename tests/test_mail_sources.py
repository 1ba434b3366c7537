"""Tests for credential lookup and IMAP response parsing."""

import pytest

from mail_archive.errors import CredentialError
from mail_archive.services.mail_source.credentials import EnvCredentialSource, env_var_prefix
from mail_archive.services.mail_source.imap_source import parse_folder_line, quote_mailbox_name


class TestEnvCredentialSource:
    """Test environment-variable secrets."""

    def test_prefix(self):
        assert env_var_prefix("john.doe@example.com") == "JOHN_DOE_EXAMPLE_COM"
        assert env_var_prefix("work-mail") == "WORK_MAIL"

    def test_application_password_preferred(self):
        source = EnvCredentialSource({"WORK_APPLICATION_PASSWORD": "app", "WORK_PASSWORD": "plain"})
        assert source.get_secret("work") == "app"

    def test_plain_password_fallback(self):
        source = EnvCredentialSource({"WORK_PASSWORD": "plain"})
        assert source.get_secret("Work") == "plain"

    def test_missing_secret_raises(self):
        with pytest.raises(CredentialError) as exc_info:
            EnvCredentialSource({}).get_secret("work")
        assert "WORK_PASSWORD" in str(exc_info.value)

    def test_empty_value_ignored(self):
        with pytest.raises(CredentialError):
            EnvCredentialSource({"WORK_PASSWORD": ""}).get_secret("work")


class TestParseFolderLine:
    """Test IMAP LIST response parsing."""

    def test_quoted_name(self):
        assert parse_folder_line(b'(\\HasNoChildren) "/" "INBOX"') == "INBOX"

    def test_name_with_spaces(self):
        assert parse_folder_line(b'(\\HasNoChildren) "." "Sent Items"') == "Sent Items"

    def test_unquoted_name(self):
        assert parse_folder_line(b'(\\HasChildren) "/" Archive') == "Archive"

    def test_noselect_skipped(self):
        assert parse_folder_line(b'(\\Noselect \\HasChildren) "/" "[Gmail]"') is None

    def test_nil_delimiter(self):
        assert parse_folder_line(b'() NIL "Flat"') == "Flat"

    def test_garbage_line(self):
        assert parse_folder_line(b"not a list line") is None

    def test_quote_mailbox_name(self):
        assert quote_mailbox_name('Odd "name"') == '"Odd \\"name\\""'
