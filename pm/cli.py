"""
pm CLI - Nara Plugin Manager.

Pacman-style interface for managing Nara plugins.

Usage:
    pm -S <plugin>[@version]     Install plugin (npm name or local path)
    pm -R <plugin>               Remove plugin
    pm -U [plugin]               Upgrade plugin(s)
    pm -Q                        List installed plugins
    pm -Qi <plugin>              Show installed plugin info
    pm -Ss <query>               Search registry
    pm -Si <plugin>              Show registry plugin info
    pm --enable <plugin>         Enable plugin
    pm --disable <plugin>        Disable plugin
    pm --create <name>           Create plugin from template
    pm --package <path>          Package plugin directory
    pm --publish <path>          Publish plugin directory
"""

import argparse
import logging
import sys

from nara.config import SchemaError, TOMLError
from nara.plugin.types import PluginError
from pm.context import PMError, configure_logging

logger = logging.getLogger(__name__)


def create_parser() -> argparse.ArgumentParser:
    """Create argument parser with pacman-style flags."""
    parser = argparse.ArgumentParser(
        prog="pm",
        description="Nara Plugin Manager - Pacman-style plugin manager",
        add_help=False,
    )

    # Operation flags (mutually exclusive)
    ops = parser.add_mutually_exclusive_group()
    ops.add_argument("-S", "--sync", action="store_true", help="Install plugin")
    ops.add_argument("-R", "--remove", action="store_true", help="Remove plugin")
    ops.add_argument("-U", "--upgrade", action="store_true", help="Upgrade plugin(s)")
    ops.add_argument("-Q", "--query", action="store_true", help="Query installed")
    ops.add_argument("--enable", action="store_true", help="Enable plugin")
    ops.add_argument("--disable", action="store_true", help="Disable plugin")
    ops.add_argument("--create", action="store_true", help="Create plugin from template")
    ops.add_argument("--package", action="store_true", help="Package plugin directory")
    ops.add_argument("--publish", action="store_true", help="Publish plugin directory")
    ops.add_argument("-h", "--help", action="store_true", help="Show help")

    # Query sub-flags
    parser.add_argument("-s", "--search", action="store_true", help="Search (-Ss)")
    parser.add_argument("-i", "--info", action="store_true", help="Show info (-Qi, -Si)")

    # Common options
    parser.add_argument("--force", action="store_true", help="Reinstall over another version")
    parser.add_argument("--config", help="Settings file (default: config/nara.toml)")
    parser.add_argument("--registry", help="Registry URL")
    parser.add_argument("--token", help="Registry token for --publish")
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose output")

    # Positional arguments
    parser.add_argument("targets", nargs="*", help="Plugin names, paths or queries")

    return parser


def print_help():
    """Print help message."""
    help_text = """
pm - Nara Plugin Manager

Usage:
    pm -S <plugin>[@version]     Install plugin (npm name or local path)
    pm -R <plugin>               Remove plugin
    pm -U [plugin]               Upgrade plugin(s)
    pm -Q                        List installed plugins
    pm -Qi <plugin>              Show installed plugin info
    pm -Ss <query>               Search registry
    pm -Si <plugin>              Show registry plugin info
    pm --enable <plugin>         Enable plugin
    pm --disable <plugin>        Disable plugin
    pm --create <name>           Create plugin from template
    pm --package <path>          Package plugin directory
    pm --publish <path>          Publish plugin directory

Options:
    --force                      Reinstall over another version
    --config <file>              Settings file (default: config/nara.toml)
    --registry <url>             Registry URL
    --token <token>              Registry token for --publish
    -v, --verbose                Verbose output
    -h, --help                   Show this help
"""
    print(help_text.strip())


def dispatch(args: argparse.Namespace) -> int:
    """Route parsed arguments to a command."""
    if args.sync:
        if args.search:
            from pm.commands.search import search_command

            return search_command(args)
        if args.info:
            from pm.commands.search import info_command

            return info_command(args)

        from pm.commands.install import install_command

        return install_command(args)

    if args.remove:
        from pm.commands.remove import remove_command

        return remove_command(args)

    if args.upgrade:
        from pm.commands.upgrade import upgrade_command

        return upgrade_command(args)

    if args.query:
        from pm.commands.query import query_command

        return query_command(args)

    if args.enable or args.disable:
        from pm.commands.toggle import toggle_command

        return toggle_command(args)

    if args.create:
        from pm.commands.create import create_command

        return create_command(args)

    if args.package or args.publish:
        from pm.commands.publish import publish_command

        return publish_command(args)

    print_help()
    return 0


def main(argv: list[str] | None = None) -> int:
    """Main entry point for pm CLI."""
    parser = create_parser()
    args = parser.parse_args(argv)
    configure_logging(args.verbose)

    if args.help:
        print_help()
        return 0

    try:
        return dispatch(args)
    except (PMError, PluginError, SchemaError, TOMLError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("\nInterrupted", file=sys.stderr)
        return 130
    except Exception as e:
        print(f"Unexpected error: {e}", file=sys.stderr)
        if args.verbose:
            logger.exception("Unhandled error")
        return 1


if __name__ == "__main__":
    sys.exit(main())
