"""
Nara - Plugin system for the Nara boilerplate.

Plugins are installed, enabled and disabled at runtime and contribute routes,
API handlers, schema fragments and components to the host.
"""

__version__ = "0.1.0"

__all__ = ["__version__"]
