"""
pm runtime context.

Builds the registry, registry client and plugin manager from the settings
file for a single pm invocation.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from nara.config import PluginSettings, load_settings
from nara.plugin.manager import PluginManager
from nara.plugin.platform import LocalPlatform
from nara.plugin.registry import Registry
from nara.plugin.registry_client import create_registry_client

logger = logging.getLogger(__name__)


class PMError(Exception):
    """Base exception for pm errors."""

    pass


@dataclass
class PMContext:
    """Objects shared by the commands of one pm invocation."""

    settings: PluginSettings
    registry: Registry
    manager: PluginManager
    platform: LocalPlatform

    async def aclose(self) -> None:
        await self.platform.aclose()


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


def build_context(args: Any, discover: bool = True) -> PMContext:
    """
    Create the plugin system for a pm command.

    Args:
        args: Parsed command-line arguments (config, registry)
        discover: Register the plugins found in the plugin store

    Returns:
        PMContext
    """
    config_file = Path(args.config) if getattr(args, "config", None) else None
    settings = load_settings(config_file)

    registry_url = getattr(args, "registry", None) or settings.registry_url or None
    platform = LocalPlatform(timeout=settings.timeout)
    client = create_registry_client(
        settings.registry_type,
        registry_url,
        platform=platform,
        timeout=settings.timeout,
        scope=settings.scope,
    )

    registry = Registry()
    manager = PluginManager(
        registry,
        settings.plugins_path,
        client=client,
        platform=platform,
        status_file=settings.status_path,
        registry_type=settings.registry_type,
        registry_url=registry_url,
        timeout=settings.timeout,
        scope=settings.scope,
    )

    if discover:
        manager.discover()

    logger.debug(f"Plugin store: {settings.plugins_path}, registry: {client.base_url}")
    return PMContext(settings=settings, registry=registry, manager=manager, platform=platform)
