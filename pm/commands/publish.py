"""
pm package/publish commands (--package, --publish).
"""

import asyncio
import sys
from typing import Any

from nara.plugin.types import RegistryAuth
from pm.context import build_context


def publish_command(args: Any) -> int:
    if len(args.targets) != 1:
        flag = "--publish" if args.publish else "--package"
        print(f"Usage: pm {flag} <path>", file=sys.stderr)
        return 1
    return asyncio.run(publish_async(args))


async def publish_async(args: Any) -> int:
    ctx = build_context(args, discover=False)
    try:
        path = args.targets[0]
        package = ctx.manager.package(path)
        print(
            f"packaged {package.descriptor.id} {package.descriptor.version} "
            f"({len(package.files)} files, checksum {package.manifest.checksum})"
        )
        if args.verbose:
            for name in package.manifest.files:
                print(f"    {name}")

        if not args.publish:
            return 0

        auth = RegistryAuth(token=args.token) if args.token else None
        if not await ctx.manager.publish(path, registry_url=args.registry, auth=auth):
            print(f"Failed to publish {package.descriptor.id}", file=sys.stderr)
            return 1

        print(f"published {package.descriptor.id} {package.descriptor.version}")
        return 0
    finally:
        await ctx.aclose()
