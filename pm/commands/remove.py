"""
pm remove command (-R).
"""

import sys
from typing import Any

from pm.context import build_context


def remove_command(args: Any) -> int:
    """
    Uninstall plugins.

    Returns:
        Exit code (0 if every target was removed)
    """
    if not args.targets:
        print("Error: No targets specified", file=sys.stderr)
        print("Usage: pm -R <plugin>", file=sys.stderr)
        return 1

    ctx = build_context(args)
    failed = 0
    for plugin_id in args.targets:
        if ctx.manager.uninstall(plugin_id):
            print(f"removed {plugin_id}")
        else:
            print(f"Failed to remove {plugin_id}", file=sys.stderr)
            failed += 1

    return 0 if failed == 0 else 1
