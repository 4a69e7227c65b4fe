"""
pm install command (-S).

Install plugins from a registry or a local path.
"""

import asyncio
import sys
from typing import Any

from nara.plugin.types import InstallOptions
from pm.context import PMContext, build_context


def install_command(args: Any) -> int:
    """
    Execute install command.

    Args:
        args: Parsed command-line arguments

    Returns:
        Exit code (0 for success, non-zero for error)
    """
    if not args.targets:
        print("Error: No targets specified", file=sys.stderr)
        print("Usage: pm -S <plugin>[@version]", file=sys.stderr)
        return 1

    return asyncio.run(install_async(args))


async def install_async(args: Any) -> int:
    """Async install implementation."""
    ctx = build_context(args)
    try:
        success_count = 0
        fail_count = 0

        for target in args.targets:
            if await install_plugin(ctx, target, args):
                success_count += 1
            else:
                fail_count += 1

        if args.verbose:
            print(f"\nInstalled: {success_count}, Failed: {fail_count}")

        return 0 if fail_count == 0 else 1
    finally:
        await ctx.aclose()


async def install_plugin(ctx: PMContext, target: str, args: Any) -> bool:
    """
    Install a single plugin.

    Args:
        ctx: pm runtime context
        target: Plugin name, name@version or path
        args: Command arguments

    Returns:
        True if the plugin is installed
    """
    if args.verbose:
        print(f"Installing {target}")

    options = InstallOptions(force=args.force, registry_url=args.registry)
    record = await ctx.manager.install(target, options)

    if not record.installed:
        print(f"Failed to install {target}: {record.error}", file=sys.stderr)
        return False

    print(f"installed {record.id} {record.version}")
    return True
