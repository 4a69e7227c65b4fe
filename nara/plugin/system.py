"""
Plugin System Bootstrap.

Startup and shutdown entry points for a host process.
"""

import logging

from nara.plugin.capabilities import plugin_summaries, validate_apis, validate_routes
from nara.plugin.manager import PluginManager
from nara.plugin.registry import Registry
from nara.plugin.types import PluginContext

logger = logging.getLogger(__name__)


async def initialize_plugin_system(
    manager: PluginManager, context: PluginContext | None = None
) -> None:
    """
    Discover plugins, report capability conflicts and initialize enabled plugins.

    Args:
        manager: Plugin manager bound to the host registry
        context: Host context for init hooks (hooks are not run if None)

    Raises:
        CircularDependencyError: If enabled plugins form a cycle
        Exception: Whatever a failing init hook raised
    """
    logger.info("Initializing plugin system...")
    registry = manager.registry

    manager.discover()

    routes = validate_routes(registry)
    if not routes.valid:
        logger.warning(f"Plugin route conflicts detected: {routes.conflicts}")

    apis = validate_apis(registry)
    if not apis.valid:
        logger.warning(f"Plugin API conflicts detected: {apis.conflicts}")

    if context is not None:
        await registry.initialize_plugins(context)

    summaries = plugin_summaries(registry)
    enabled = sum(1 for summary in summaries if summary.enabled)
    logger.info(f"Plugin system initialized with {len(summaries)} plugins ({enabled} enabled)")


async def cleanup_plugin_system(registry: Registry) -> None:
    """Destroy enabled plugins; failures are logged, never raised."""
    logger.info("Cleaning up plugin system...")
    try:
        await registry.destroy_plugins()
    except Exception:
        logger.exception("Failed to clean up plugin system")
        return
    logger.info("Plugin system cleanup complete")
