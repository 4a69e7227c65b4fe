"""
Tests for Plugin Registry.

This test suite covers:
1. Registration (duplicates, unresolved dependencies)
2. Enable/disable gated by dependency state
3. Unregistration guarded by dependents
4. Topological ordering and cycle detection
5. Lifecycle hook execution (fail-fast init, best-effort destroy)
"""

import pytest

from nara.plugin.registry import (
    CircularDependencyError,
    DependencyNotEnabledError,
    DependentsExistError,
    DuplicateIdError,
    EnabledDependentsExistError,
    PluginNotFoundError,
    Registry,
    UnresolvedDependencyError,
)
from nara.plugin.types import PluginBundle, PluginContext, PluginDescriptor


def make_bundle(plugin_id, deps=None, enabled=False, version="1.0.0", **hooks):
    descriptor = PluginDescriptor(
        id=plugin_id,
        name=plugin_id.title(),
        version=version,
        enabled=enabled,
        dependencies=list(deps or []),
    )
    return PluginBundle(descriptor=descriptor, **hooks)


class TestRegistration:
    """Test register/unregister."""

    def test_register_and_lookup(self):
        """Lookup should return exactly the registered bundle."""
        registry = Registry()
        bundles = [make_bundle("core"), make_bundle("blog", ["core"]), make_bundle("shop")]
        for bundle in bundles:
            registry.register(bundle)

        for bundle in bundles:
            assert registry.get_plugin(bundle.id) is bundle
        assert registry.get_plugins() == bundles
        assert len(registry) == 3
        assert "blog" in registry

    def test_lookup_unknown(self):
        """Lookup of an unknown id should return None."""
        assert Registry().get_plugin("missing") is None

    def test_register_duplicate(self):
        """Registering an existing id should fail."""
        registry = Registry()
        registry.register(make_bundle("core"))

        with pytest.raises(DuplicateIdError) as exc_info:
            registry.register(make_bundle("core", version="2.0.0"))

        assert exc_info.value.plugin_id == "core"
        assert registry.get_plugin("core").descriptor.version == "1.0.0"

    def test_register_unresolved_dependency(self):
        """Registering before a dependency should fail."""
        registry = Registry()

        with pytest.raises(UnresolvedDependencyError) as exc_info:
            registry.register(make_bundle("blog", ["core"]))

        assert exc_info.value.plugin_id == "blog"
        assert exc_info.value.dependency_id == "core"
        assert "blog" not in registry

    def test_register_any_order_with_missing_dependency(self):
        """Any plugin naming an unregistered id should fail, whatever came before."""
        registry = Registry()
        registry.register(make_bundle("a"))
        registry.register(make_bundle("b", ["a"]))

        with pytest.raises(UnresolvedDependencyError):
            registry.register(make_bundle("c", ["a", "b", "ghost"]))

    def test_register_enabled_descriptor(self):
        """An enabled descriptor should join the enabled set."""
        registry = Registry()
        registry.register(make_bundle("core", enabled=True))
        registry.register(make_bundle("blog", ["core"]))

        assert registry.is_enabled("core")
        assert not registry.is_enabled("blog")
        assert [b.id for b in registry.get_enabled_plugins()] == ["core"]

    def test_unregister(self):
        """Unregistering should remove the plugin and its enabled state."""
        registry = Registry()
        registry.register(make_bundle("core", enabled=True))

        registry.unregister("core")

        assert "core" not in registry
        assert not registry.is_enabled("core")

    def test_unregister_unknown(self):
        """Unregistering an unknown id should fail."""
        with pytest.raises(PluginNotFoundError):
            Registry().unregister("missing")

    def test_unregister_with_disabled_dependent(self):
        """Unregistering should fail while any registered plugin depends on it."""
        registry = Registry()
        registry.register(make_bundle("core"))
        registry.register(make_bundle("blog", ["core"]))

        with pytest.raises(DependentsExistError) as exc_info:
            registry.unregister("core")

        assert exc_info.value.dependent_id == "blog"
        assert "core" in registry

    def test_unregister_after_dependent_removed(self):
        """Unregistering should succeed once dependents are gone."""
        registry = Registry()
        registry.register(make_bundle("core"))
        registry.register(make_bundle("blog", ["core"]))

        registry.unregister("blog")
        registry.unregister("core")

        assert len(registry) == 0


class TestEnableDisable:
    """Test enable/disable transitions."""

    def test_core_blog_scenario(self):
        """Enable/disable should follow the dependency rules step by step."""
        registry = Registry()
        registry.register(make_bundle("core"))
        registry.register(make_bundle("blog", ["core"]))

        with pytest.raises(DependencyNotEnabledError) as exc_info:
            registry.enable("blog")
        assert exc_info.value.dependency_id == "core"

        registry.enable("core")
        registry.enable("blog")
        assert registry.is_enabled("core")
        assert registry.is_enabled("blog")

        with pytest.raises(EnabledDependentsExistError) as exc_info:
            registry.disable("core")
        assert exc_info.value.dependent_id == "blog"

        registry.disable("blog")
        registry.disable("core")
        assert registry.get_enabled_plugins() == []

    def test_enable_chain_depth_three(self):
        """Enabling a chain should only succeed from the root outward."""
        registry = Registry()
        registry.register(make_bundle("a"))
        registry.register(make_bundle("b", ["a"]))
        registry.register(make_bundle("c", ["b"]))
        registry.register(make_bundle("d", ["c"]))

        for plugin_id in ("b", "c", "d"):
            with pytest.raises(DependencyNotEnabledError):
                registry.enable(plugin_id)

        registry.enable("a")
        with pytest.raises(DependencyNotEnabledError):
            registry.enable("c")

        registry.enable("b")
        registry.enable("c")
        registry.enable("d")
        assert all(registry.is_enabled(p) for p in "abcd")

    def test_disable_chain_depth_three(self):
        """Disabling a chain should only succeed from the leaf inward."""
        registry = Registry()
        registry.register(make_bundle("a", enabled=True))
        registry.register(make_bundle("b", ["a"], enabled=True))
        registry.register(make_bundle("c", ["b"], enabled=True))

        for plugin_id in ("a", "b"):
            with pytest.raises(EnabledDependentsExistError):
                registry.disable(plugin_id)

        registry.disable("c")
        registry.disable("b")
        registry.disable("a")
        assert registry.get_enabled_plugins() == []

    def test_disable_with_disabled_dependent(self):
        """A disabled dependent should not block disabling."""
        registry = Registry()
        registry.register(make_bundle("core", enabled=True))
        registry.register(make_bundle("blog", ["core"]))

        registry.disable("core")

        assert not registry.is_enabled("core")

    def test_enable_unknown(self):
        """Enabling or disabling an unknown id should fail."""
        registry = Registry()
        with pytest.raises(PluginNotFoundError):
            registry.enable("missing")
        with pytest.raises(PluginNotFoundError):
            registry.disable("missing")

    def test_enable_mirrors_descriptor_flag(self):
        """The descriptor flag should follow the enabled set."""
        registry = Registry()
        bundle = make_bundle("core")
        registry.register(bundle)

        registry.enable("core")
        assert bundle.descriptor.enabled is True

        registry.disable("core")
        assert bundle.descriptor.enabled is False

    def test_enable_idempotent(self):
        """Enabling twice should keep a single entry."""
        registry = Registry()
        registry.register(make_bundle("core"))

        registry.enable("core")
        registry.enable("core")

        assert len(registry.get_enabled_plugins()) == 1


class TestReplace:
    """Test swapping the bundle of a registered id."""

    def test_replace_keeps_enabled_state(self):
        """Replacing should keep the enabled state of the id."""
        registry = Registry()
        registry.register(make_bundle("core", enabled=True))
        new_bundle = make_bundle("core", version="2.0.0")

        registry.replace(new_bundle)

        assert registry.get_plugin("core") is new_bundle
        assert registry.is_enabled("core")
        assert new_bundle.descriptor.enabled is True

    def test_replace_unknown(self):
        """Replacing an unregistered id should fail."""
        with pytest.raises(PluginNotFoundError):
            Registry().replace(make_bundle("core"))

    def test_replace_with_new_unregistered_dependency(self):
        """A replacement naming an unregistered dependency should fail."""
        registry = Registry()
        registry.register(make_bundle("core"))

        with pytest.raises(UnresolvedDependencyError):
            registry.replace(make_bundle("core", ["ghost"]))

    def test_replace_enabled_with_disabled_dependency(self):
        """An enabled replacement needs its dependencies enabled."""
        registry = Registry()
        registry.register(make_bundle("base"))
        registry.register(make_bundle("core", enabled=True))

        with pytest.raises(DependencyNotEnabledError):
            registry.replace(make_bundle("core", ["base"]))


class TestDependencyOrdering:
    """Test topological ordering."""

    def test_dependencies_precede_dependents(self):
        """Every dependency should come before its dependents."""
        registry = Registry()
        bundles = [
            make_bundle("e", ["c", "d"]),
            make_bundle("d", ["a"]),
            make_bundle("c", ["b"]),
            make_bundle("b", ["a"]),
            make_bundle("a"),
        ]

        ordered = registry.sort_by_dependencies(bundles)

        positions = {bundle.id: i for i, bundle in enumerate(ordered)}
        assert len(ordered) == len(bundles)
        for bundle in bundles:
            for dep in bundle.descriptor.dependencies:
                assert positions[dep] < positions[bundle.id]

    def test_dependencies_outside_set_ignored(self):
        """Dependencies not in the sorted set should be ignored."""
        registry = Registry()
        ordered = registry.sort_by_dependencies([make_bundle("blog", ["core"])])
        assert [b.id for b in ordered] == ["blog"]

    def test_cycle_detected(self):
        """A cycle should fail naming an implicated plugin."""
        registry = Registry()
        bundles = [make_bundle("a", ["c"]), make_bundle("b", ["a"]), make_bundle("c", ["b"])]

        with pytest.raises(CircularDependencyError) as exc_info:
            registry.sort_by_dependencies(bundles)

        assert exc_info.value.plugin_id in {"a", "b", "c"}

    def test_self_cycle_detected(self):
        """A plugin depending on itself should be a cycle."""
        with pytest.raises(CircularDependencyError):
            Registry().sort_by_dependencies([make_bundle("a", ["a"])])

    def test_deep_chain(self):
        """Long chains should sort without recursion limits."""
        bundles = [make_bundle("p0")]
        bundles += [make_bundle(f"p{i}", [f"p{i - 1}"]) for i in range(1, 2000)]

        ordered = Registry().sort_by_dependencies(reversed(bundles))

        assert [b.id for b in ordered] == [b.id for b in bundles]


class TestLifecycle:
    """Test init/destroy hook execution."""

    @pytest.mark.asyncio
    async def test_initialize_in_dependency_order(self):
        """Init hooks should run dependencies first, with the context passed through."""
        calls = []
        context = PluginContext(env={"mode": "test"})

        def hook(name):
            async def init(ctx):
                assert ctx is context
                calls.append(name)

            return init

        registry = Registry()
        registry.register(make_bundle("core", enabled=True, init=hook("core")))
        registry.register(make_bundle("blog", ["core"], enabled=True, init=hook("blog")))
        registry.register(make_bundle("idle", init=hook("idle")))
        registry.register(make_bundle("plain", enabled=True))

        await registry.initialize_plugins(context)

        assert calls == ["core", "blog"]

    @pytest.mark.asyncio
    async def test_sync_hooks(self):
        """Plain functions should work as hooks."""
        calls = []
        registry = Registry()
        registry.register(
            make_bundle(
                "core",
                enabled=True,
                init=lambda ctx: calls.append("init"),
                destroy=lambda: calls.append("destroy"),
            )
        )

        await registry.initialize_plugins(PluginContext())
        await registry.destroy_plugins()

        assert calls == ["init", "destroy"]

    @pytest.mark.asyncio
    async def test_initialize_fail_fast(self):
        """A failing init hook should stop remaining initializations."""
        calls = []

        async def ok(ctx):
            calls.append("core")

        async def boom(ctx):
            raise RuntimeError("init failed")

        async def never(ctx):
            calls.append("shop")

        registry = Registry()
        registry.register(make_bundle("core", enabled=True, init=ok))
        registry.register(make_bundle("blog", ["core"], enabled=True, init=boom))
        registry.register(make_bundle("shop", ["blog"], enabled=True, init=never))

        with pytest.raises(RuntimeError, match="init failed"):
            await registry.initialize_plugins(PluginContext())

        assert calls == ["core"]

    @pytest.mark.asyncio
    async def test_cycle_fails_before_hooks(self):
        """A cycle among enabled plugins should fail before any hook runs."""
        calls = []

        async def init(ctx):
            calls.append("init")

        registry = Registry()
        registry.register(make_bundle("solo", enabled=True, init=init))
        registry.register(make_bundle("a", enabled=True, init=init))
        # Bypass register() to build a cycle the registry cannot otherwise express
        registry.get_plugin("a").descriptor.dependencies.append("b")
        registry.register(make_bundle("b", ["a"], enabled=True, init=init))

        with pytest.raises(CircularDependencyError):
            await registry.initialize_plugins(PluginContext())

        assert calls == []

    @pytest.mark.asyncio
    async def test_destroy_reverse_order_best_effort(self):
        """Destroy hooks should run dependents first and continue past failures."""
        calls = []

        def hook(name, fail=False):
            async def destroy():
                calls.append(name)
                if fail:
                    raise RuntimeError(f"{name} failed")

            return destroy

        registry = Registry()
        registry.register(make_bundle("core", enabled=True, destroy=hook("core")))
        registry.register(
            make_bundle("blog", ["core"], enabled=True, destroy=hook("blog", fail=True))
        )
        registry.register(make_bundle("shop", ["blog"], enabled=True, destroy=hook("shop")))

        await registry.destroy_plugins()

        assert calls == ["shop", "blog", "core"]
