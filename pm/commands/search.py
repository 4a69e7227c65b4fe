"""
pm search commands (-Ss, -Si).
"""

import asyncio
import sys
from typing import Any

from nara.plugin.registry_client import RegistryClientError
from nara.plugin.types import RemotePluginInfo, SearchOptions
from pm.context import build_context


def search_command(args: Any) -> int:
    return asyncio.run(search_async(args))


async def search_async(args: Any) -> int:
    ctx = build_context(args, discover=False)
    try:
        results = await ctx.manager.search(SearchOptions(query=" ".join(args.targets)))
        for info in results:
            record = ctx.manager.get_status(info.id)
            installed = " [installed]" if record and record.installed else ""
            print(f"{info.id} {info.version}{installed}")
            if info.description:
                print(f"    {info.description}")
        if not results:
            print("No plugins found")
        return 0
    finally:
        await ctx.aclose()


def info_command(args: Any) -> int:
    if not args.targets:
        print("Error: No targets specified", file=sys.stderr)
        print("Usage: pm -Si <plugin>", file=sys.stderr)
        return 1
    return asyncio.run(info_async(args))


async def info_async(args: Any) -> int:
    ctx = build_context(args, discover=False)
    try:
        missing = 0
        for target in args.targets:
            locator = ctx.manager.parse_source(target)
            try:
                info = await ctx.manager.client.get_plugin(locator.url, locator.version)
            except RegistryClientError as e:
                print(f"Error: {e}", file=sys.stderr)
                missing += 1
                continue
            if info is None:
                print(f"Error: plugin '{target}' was not found", file=sys.stderr)
                missing += 1
                continue
            print_info(info)
        return 0 if missing == 0 else 1
    finally:
        await ctx.aclose()


def print_info(info: RemotePluginInfo) -> None:
    rows = [
        ("Name", info.id),
        ("Version", info.version),
        ("Description", info.description or "-"),
        ("Author", info.author),
        ("License", info.license or "-"),
        ("Keywords", ", ".join(info.keywords) or "None"),
        ("Depends On", ", ".join(d.id for d in info.dependencies) or "None"),
        ("Homepage", info.homepage or "-"),
        ("Repository", info.repository or "-"),
        ("Registry", info.registry or "-"),
    ]
    if info.last_updated is not None:
        rows.append(("Last Updated", info.last_updated.isoformat()))

    for label, value in rows:
        print(f"{label:<15}: {value}")
    print()
