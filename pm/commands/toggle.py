"""
pm enable/disable commands (--enable, --disable).
"""

import sys
from typing import Any

from nara.plugin.registry import RegistryError
from pm.context import build_context


def toggle_command(args: Any) -> int:
    """
    Enable or disable plugins in the order given.

    Returns:
        Exit code (0 if every transition succeeded)
    """
    if not args.targets:
        flag = "--enable" if args.enable else "--disable"
        print("Error: No targets specified", file=sys.stderr)
        print(f"Usage: pm {flag} <plugin>", file=sys.stderr)
        return 1

    ctx = build_context(args)
    action = ctx.manager.enable if args.enable else ctx.manager.disable
    verb = "enabled" if args.enable else "disabled"

    failed = 0
    for plugin_id in args.targets:
        try:
            action(plugin_id)
        except RegistryError as e:
            print(f"Error: {e}", file=sys.stderr)
            failed += 1
            continue
        print(f"{verb} {plugin_id}")

    return 0 if failed == 0 else 1
