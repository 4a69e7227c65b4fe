"""
Nara Plugin System - Plugin registration, installation and lifecycle.

This module handles:
- Plugin descriptor parsing and bundle loading
- Dependency-aware registration and enable/disable
- Installation from npm-style registries and local paths
- Lifecycle hook execution in dependency order
- Capability aggregation for the host
"""

__all__ = []
