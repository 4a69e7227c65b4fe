"""
pm create command (--create).
"""

import sys
from typing import Any

from pm.context import build_context


def create_command(args: Any) -> int:
    if len(args.targets) != 1:
        print("Usage: pm --create <name>", file=sys.stderr)
        return 1

    ctx = build_context(args, discover=False)
    plugin_dir = ctx.manager.create(args.targets[0])
    print(f"created {plugin_dir}")
    return 0
