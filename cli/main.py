"""Main CLI entry point for mail-archive."""

import argparse
import logging
import sys
from pathlib import Path
from typing import Callable, Optional

from mail_archive.config.archive_config import AccountConfig
from mail_archive.config.config_loader import ConfigLoader
from mail_archive.config.sort_config import SortConfig
from mail_archive.errors import CredentialError, RuleConfigError
from mail_archive.models.results import ExportStats, RepairStatus
from mail_archive.services.archive.exporter import ArchiveExporter
from mail_archive.services.mail_source.base import MailSource
from mail_archive.services.mail_source.credentials import EnvCredentialSource
from mail_archive.services.mail_source.imap_source import ImapMailSource
from mail_archive.services.mail_source.local_sources import MaildirMailSource, MboxMailSource
from mail_archive.services.repair.frontmatter_repair import FrontmatterRepairer
from mail_archive.services.sorting.classifier import EmailClassifier


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def resolve_account(loader: ConfigLoader, name: str) -> AccountConfig:
    """Look up an account by name, exiting with a message when it is unknown."""
    try:
        accounts = loader.load_accounts()
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    account = accounts.get_account(name)
    if account is None:
        known = ", ".join(accounts.list_accounts()) or "none configured"
        print(f"Unknown account '{name}' (known: {known})", file=sys.stderr)
        sys.exit(2)
    return account


def build_source_factory(
    account: AccountConfig,
    mbox: Optional[Path] = None,
    maildir: Optional[Path] = None,
) -> Callable[[], MailSource]:
    """
    Build the mail source factory for an export run.

    Local mbox/Maildir paths take precedence over the account's IMAP server.

    Raises:
        CredentialError: If no password is available for an IMAP account
    """
    if mbox is not None:
        return lambda: MboxMailSource(mbox)
    if maildir is not None:
        return lambda: MaildirMailSource(maildir)

    if not account.server:
        raise CredentialError(f"Account '{account.name}' has no server configured")

    password = EnvCredentialSource().get_secret(account.name)
    return lambda: ImapMailSource(
        account.server,
        account.port,
        account.username or account.name,
        password,
        timeout=account.timeout,
    )


def cmd_export(args) -> int:
    """Export command."""
    loader = ConfigLoader(accounts_path=args.accounts_config)
    account = resolve_account(loader, args.account)

    try:
        factory = build_source_factory(account, args.mbox, args.maildir)
    except CredentialError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    exporter = ArchiveExporter(account, factory)
    try:
        results = exporter.export_account()
    except KeyboardInterrupt:
        print("Export cancelled", file=sys.stderr)
        return 130

    total = ExportStats()
    for folder, stats in results.items():
        print(f"{folder}: {stats.summary_line()}")
        for omitted in stats.omitted_attachments:
            print(f"  omitted attachment: {omitted}")
        total = total.merge(stats)

    print("---")
    print(f"Total: {total.summary_line()}")
    if exporter.contacts_path is not None:
        print(f"Contacts written to: {exporter.contacts_path}")
    return 1 if total.aborted else 0


def cmd_fix(args) -> int:
    """Frontmatter repair command."""
    root = Path(args.directory).expanduser()
    if not root.is_dir():
        print(f"Directory not found: {root}", file=sys.stderr)
        return 2

    repairer = FrontmatterRepairer(root, max_workers=args.workers)
    report = repairer.run(apply=args.apply)

    for result in report.results:
        if result.status == RepairStatus.REPAIRED:
            action = "repaired" if result.applied else "would repair"
            print(f"{action}: {result.path}")
        elif result.status == RepairStatus.UNREPAIRABLE:
            print(f"unrepairable: {result.path} ({result.detail})")

    print("---")
    print(
        f"{report.repaired} repaired, {report.already_valid} already valid, "
        f"{report.unrepairable} unrepairable"
    )
    if report.dry_run and report.pending:
        print("Dry run: re-run with --apply to write changes")
    return 1 if report.unrepairable else 0


def cmd_sort(args) -> int:
    """Classification command."""
    loader = ConfigLoader(accounts_path=args.accounts_config, sort_config_path=args.config)

    if args.init_config:
        target = args.config or Path("sort_rules.yaml")
        loader.save_sort_config(SortConfig.default(), target)
        print(f"Default sort rules written to: {target}")
        return 0

    if args.account:
        root = resolve_account(loader, args.account).get_export_directory()
    elif args.directory:
        root = Path(args.directory).expanduser()
    else:
        print("Either a directory or --account is required", file=sys.stderr)
        return 2

    try:
        config = loader.load_sort_config()
    except RuleConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    classifier = EmailClassifier(config, max_workers=args.workers)
    try:
        report = classifier.classify(root, verbose=args.verbose)
    except FileNotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    summary = report.summary
    print(", ".join(f"{category}: {count}" for category, count in sorted(summary.items())))
    if report.errors:
        print(f"{len(report.errors)} files could not be read")

    if args.dry_run:
        sys.stdout.write(classifier.render_report(report))
    else:
        classifier.save_report(report, Path(args.report))
        print(f"Report written to: {args.report}")
    return 0


def cmd_accounts(args) -> int:
    """List configured accounts."""
    loader = ConfigLoader(accounts_path=args.accounts_config)
    try:
        accounts = loader.load_accounts()
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if not accounts.accounts:
        print("No accounts configured")
        return 0
    for account in accounts.accounts:
        server = f"{account.server}:{account.port}" if account.server else "(local)"
        print(f"{account.name}\t{server}\t{account.get_export_directory()}")
    return 0


def main(argv: Optional[list[str]] = None) -> int:
    """CLI entry point."""
    parser = argparse.ArgumentParser(description="mail-archive - Markdown mailbox archive")
    parser.add_argument("--verbose", action="store_true", help="Enable verbose logging")
    parser.add_argument("--accounts-config", type=Path, help="Custom accounts file path")
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    export_parser = subparsers.add_parser("export", help="Export an account to Markdown")
    export_parser.add_argument("--account", required=True, help="Account name")
    source_group = export_parser.add_mutually_exclusive_group()
    source_group.add_argument("--mbox", type=Path, help="Read from an mbox file or directory instead of IMAP")
    source_group.add_argument("--maildir", type=Path, help="Read from a Maildir instead of IMAP")

    fix_parser = subparsers.add_parser("fix", help="Repair legacy frontmatter")
    fix_parser.add_argument("directory", help="Archive directory")
    mode_group = fix_parser.add_mutually_exclusive_group()
    mode_group.add_argument("--apply", action="store_true", help="Write repaired files")
    mode_group.add_argument("--dry-run", action="store_true", help="Report only (default)")
    fix_parser.add_argument("--workers", type=int, default=4, help="Thread pool size")

    sort_parser = subparsers.add_parser("sort", help="Classify archive files")
    sort_parser.add_argument("directory", nargs="?", help="Archive directory")
    sort_parser.add_argument("--account", help="Classify the export directory of an account")
    sort_parser.add_argument("--config", type=Path, help="Sort rule file path")
    sort_parser.add_argument("--report", default="sort_report.json", help="Report output path")
    sort_parser.add_argument("--dry-run", action="store_true", help="Print the report instead of writing it")
    sort_parser.add_argument("--init-config", action="store_true", help="Write the default rule file and exit")
    sort_parser.add_argument("--workers", type=int, default=4, help="Thread pool size")

    subparsers.add_parser("accounts", help="List configured accounts")

    args = parser.parse_args(argv)
    if args.command is None:
        parser.print_help()
        return 1

    configure_logging(args.verbose)

    commands = {
        "export": cmd_export,
        "fix": cmd_fix,
        "sort": cmd_sort,
        "accounts": cmd_accounts,
    }
    return commands[args.command](args)


if __name__ == "__main__":
    sys.exit(main())
