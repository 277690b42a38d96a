"""CLI entrypoint for config-vault."""
import sys
import json
import asyncio
import argparse
import logging

from .validators import validate_input_file, validate_namespace_part, validate_output_file

VERSION = "1.0.0"

logger = logging.getLogger(__name__)


def _configure_logging(verbose: bool) -> None:
    """Log to stderr; stdout stays free for command output."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s" if verbose else "%(message)s",
        stream=sys.stderr
    )
    if verbose:
        # grpc and google.auth are chatty at debug level
        logging.getLogger("google").setLevel(logging.INFO)


def _build_vault(args):
    """Resolve settings from flags, environment and config file."""
    from config_vault.vault.domains.config_loader import resolve_settings
    from config_vault.vault.workflows.vault import ConfigVault

    settings = resolve_settings(
        overrides={
            "project": args.project,
            "group": args.group,
            "env": args.env,
            "shared_group": args.shared_group,
            "gcp_project": args.gcp_project,
            "service_account_path": args.service_account,
        },
        config_path=args.config,
    )
    return ConfigVault.from_settings(settings)


def _read_json(path):
    with open(path, 'r') as f:
        return json.load(f)


def _write_json(path, data) -> None:
    with open(path, 'w') as f:
        json.dump(data, f, indent=4)
        f.write("\n")


def _summarize(results, action: str) -> None:
    from config_vault.vault.domains.models import OperationFailure

    failures = [r for r in results if isinstance(r, OperationFailure)]
    print(f"{action} {len(results) - len(failures)} secret(s)")
    for failure in failures:
        print(f"  skipped '{failure.key}': {failure.message}", file=sys.stderr)


async def cmd_getfor(vault, args):
    """Resolve the secrets named in a defaults file and write them out."""
    secrets = await vault.get_for(_read_json(args.file), override=args.override)
    _write_json(args.output, secrets)
    print(f"Secrets written to: {args.output}")


async def cmd_getall(vault, args):
    """Dump every secret of the namespace."""
    secrets = await vault.get_all()
    _write_json(args.output, secrets)
    print(f"Secrets written to: {args.output}")


async def cmd_publish(vault, args):
    """Publish every value of a definition file."""
    results = await vault.set_all(_read_json(args.file))
    print(f"Published {len(results)} secret(s)")


async def cmd_clear(vault, args):
    """Soft-delete the namespace secrets."""
    _summarize(await vault.delete_all(skip_shared=not args.include_shared), "Deleted")


async def cmd_restore(vault, args):
    """Restore the namespace deleted secrets."""
    _summarize(await vault.restore_all(skip_shared=not args.include_shared), "Restored")


async def cmd_purge(vault, args):
    """Purge the namespace deleted secrets."""
    _summarize(await vault.purge_all(skip_shared=not args.include_shared), "Purged")


COMMANDS = {
    "getfor": cmd_getfor,
    "getall": cmd_getall,
    "publish": cmd_publish,
    "clear": cmd_clear,
    "restore": cmd_restore,
    "purge": cmd_purge,
}


def _add_namespace_arguments(parser):
    group = parser.add_argument_group("namespace and credentials")
    group.add_argument("--project", help="Project the secrets belong to (env: VAULT_PROJECT)")
    group.add_argument("--group", help="Variables group, needs an env (env: VAULT_GROUP)")
    group.add_argument("--env", help="Environment, e.g. dev, qa, prod (env: VAULT_ENV)")
    group.add_argument(
        "--shared-group",
        help="Group label of shared ($) variables, default SHARED (env: VAULT_SHARED_GROUP)"
    )
    group.add_argument("--gcp-project", help="GCP project holding the secrets (env: GCP_PROJECT)")
    group.add_argument(
        "--service-account",
        help="Service account JSON key (env: GOOGLE_APPLICATION_CREDENTIALS)"
    )
    group.add_argument("--config", help="Config file (env: CONFIG_VAULT_CONFIG)")
    group.add_argument("-v", "--verbose", action="store_true", help="Log backend calls to stderr")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="cvault",
        description="config-vault CLI - sync JSON configuration with GCP Secret Manager",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Exit codes:
  0 - Success
  1 - Runtime error (authentication, network, malformed file, etc.)
  2 - Usage error (missing flag, unknown command, invalid namespace, missing file)

Keys:
  Nested values are stored one secret per leaf. Prefix a key with $ to share
  it with every group of the same project and environment.

Configuration:
  Default location: ~/.config/config-vault/config.yml
  Flags override environment variables, which override the config file.
        """
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    subparsers.add_parser(
        "version",
        help="Show version information",
        description="Display the current version of config-vault"
    )

    getfor_parser = subparsers.add_parser(
        "getfor",
        help="Resolve secrets named in a JSON file",
        description="""
Read a JSON file of keys with default values and fill it from Secret Manager.

Without --override, only empty defaults (null, "", 0, false, []) are fetched.
Use [] as default for list values.
        """,
        formatter_class=argparse.RawDescriptionHelpFormatter
    )
    getfor_parser.add_argument("--file", required=True, help="JSON file with keys and defaults")
    getfor_parser.add_argument("--output", required=True, help="JSON file to write")
    getfor_parser.add_argument(
        "--override",
        action="store_true",
        help="Remote values replace non-empty defaults"
    )
    _add_namespace_arguments(getfor_parser)

    getall_parser = subparsers.add_parser(
        "getall",
        help="Dump every secret of the namespace",
        description="Write every secret of the namespace, shared ones included. Slow on large stores."
    )
    getall_parser.add_argument("--output", required=True, help="JSON file to write")
    _add_namespace_arguments(getall_parser)

    publish_parser = subparsers.add_parser(
        "publish",
        help="Publish a JSON file as secrets",
        description="Store every leaf of a JSON file as a secret, in file order."
    )
    publish_parser.add_argument("--file", required=True, help="JSON file to publish")
    _add_namespace_arguments(publish_parser)

    for name, help_text in (
        ("clear", "Delete the namespace secrets (recoverable)"),
        ("restore", "Restore the namespace deleted secrets"),
        ("purge", "Permanently remove the namespace deleted secrets"),
    ):
        bulk_parser = subparsers.add_parser(name, help=help_text, description=help_text)
        bulk_parser.add_argument(
            "--include-shared",
            action="store_true",
            help="Also act on shared ($) secrets, which other groups may rely on"
        )
        _add_namespace_arguments(bulk_parser)

    return parser


def main(argv=None):
    """Main CLI entrypoint.

    Exit codes:
        0 - Success
        1 - Runtime errors (authentication, network, malformed file, etc.)
        2 - Usage errors (missing flag, unknown command, invalid name, etc.)
    """
    from config_vault.vault.domains.config_loader import (
        ConfigError,
        InvalidSettingError,
        MissingSettingError,
    )

    parser = build_parser()
    args = parser.parse_args(argv)

    # If no command provided, show help and exit with usage error code
    if not args.command:
        parser.print_help()
        sys.exit(2)

    if args.command == "version":
        print(f"config-vault {VERSION}")
        sys.exit(0)

    _configure_logging(args.verbose)

    for label in ("project", "group", "env", "shared_group"):
        validate_namespace_part(label.replace("_", " "), getattr(args, label))

    if getattr(args, "file", None):
        args.file = validate_input_file(args.file)
    if getattr(args, "output", None):
        args.output = validate_output_file(args.output)

    try:
        vault = _build_vault(args)
        asyncio.run(COMMANDS[args.command](vault, args))
    except (MissingSettingError, InvalidSettingError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(2)
    except ConfigError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(1)
    except KeyboardInterrupt:
        print("\nInterrupted", file=sys.stderr)
        sys.exit(1)
    except Exception as e:
        logger.debug("Command failed", exc_info=True)
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    sys.exit(0)


if __name__ == "__main__":
    main()
