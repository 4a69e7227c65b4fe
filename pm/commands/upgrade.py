"""
pm upgrade command (-U).

Upgrades the named plugins, or every installed plugin when none is named.
"""

import asyncio
import sys
from typing import Any

from pm.context import build_context


def upgrade_command(args: Any) -> int:
    return asyncio.run(upgrade_async(args))


async def upgrade_async(args: Any) -> int:
    ctx = build_context(args)
    try:
        targets = args.targets or [r.id for r in ctx.manager.list_installed() if r.installed]
        if not targets:
            print("No plugins installed")
            return 0

        failed = 0
        for plugin_id in targets:
            previous = ctx.manager.get_status(plugin_id)
            record = await ctx.manager.update(plugin_id)

            if record.error:
                print(f"Failed to upgrade {plugin_id}: {record.error}", file=sys.stderr)
                failed += 1
            elif previous is not None and previous.version == record.version:
                print(f"{plugin_id} {record.version} is up to date")
            else:
                old = previous.version if previous else "?"
                print(f"upgraded {plugin_id} {old} -> {record.version}")

        return 0 if failed == 0 else 1
    finally:
        await ctx.aclose()
