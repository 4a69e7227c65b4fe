"""Shared fixtures: an in-memory npm catalog and plugin directory builders."""

import hashlib
import io
import json
import tarfile
from pathlib import Path

import httpx
import pytest

from nara.plugin.platform import LocalPlatform
from nara.plugin.registry_client import NpmRegistryClient

REGISTRY = "https://registry.test"

PLUGIN_ENTRY = """
from nara.plugin.types import PluginApi, PluginBundle


def create_plugin(descriptor):
    return PluginBundle(
        descriptor=descriptor,
        api=PluginApi(handler=descriptor.id, base_path="/api/" + descriptor.id),
    )
"""


def descriptor_json(plugin_id, version="1.0.0", deps=None, enabled=False):
    return json.dumps(
        {
            "id": plugin_id,
            "name": plugin_id.title(),
            "version": version,
            "author": "Nara Team",
            "description": f"{plugin_id} plugin",
            "type": "feature",
            "enabled": enabled,
            "dependencies": list(deps or []),
        },
        indent=2,
    )


def plugin_files(plugin_id, version="1.0.0", deps=None, enabled=False):
    return {
        "plugin.json": descriptor_json(plugin_id, version, deps, enabled),
        "plugin.py": PLUGIN_ENTRY,
    }


def write_plugin_dir(root, plugin_id, version="1.0.0", deps=None, enabled=False, extra=None):
    """Write a loadable plugin directory under root and return its path."""
    plugin_dir = Path(root) / plugin_id
    files = plugin_files(plugin_id, version, deps, enabled)
    files.update(extra or {})
    for name, content in files.items():
        path = plugin_dir / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content)
    return plugin_dir


def make_tarball(files, prefix="package/"):
    buffer = io.BytesIO()
    with tarfile.open(fileobj=buffer, mode="w:gz") as tf:
        for name, content in files.items():
            data = content.encode("utf-8")
            info = tarfile.TarInfo(prefix + name)
            info.size = len(data)
            tf.addfile(info, io.BytesIO(data))
    return buffer.getvalue()


class FakeCatalog:
    """npm-shaped catalog served through httpx.MockTransport."""

    def __init__(self):
        self.packuments: dict[str, dict] = {}
        self.tarballs: dict[str, bytes] = {}
        self.requests: list[httpx.Request] = []

    def publish(self, plugin_id, version="1.0.0", deps=None, files=None, shasum=None):
        files = files or plugin_files(plugin_id, version, deps)
        payload = make_tarball(files)
        tarball_name = f"{plugin_id}-{version}.tgz"
        self.tarballs[tarball_name] = payload

        name = f"@nara-plugin/{plugin_id}"
        packument = self.packuments.setdefault(
            name, {"name": name, "dist-tags": {}, "versions": {}, "time": {}}
        )
        packument["dist-tags"]["latest"] = version
        packument["versions"][version] = {
            "name": name,
            "version": version,
            "description": f"{plugin_id} plugin",
            "author": "Nara Team",
            "keywords": ["nara-plugin"],
            "dist": {
                "tarball": f"{REGISTRY}/tarballs/{tarball_name}",
                "shasum": shasum or hashlib.sha1(payload).hexdigest(),
            },
        }
        packument["time"][version] = "2024-05-01T12:00:00.000Z"

    def tarball_requests(self):
        return [r for r in self.requests if r.url.path.startswith("/tarballs/")]

    def handler(self, request):
        self.requests.append(request)
        path = request.url.path

        if path == "/-/v1/search":
            text = request.url.params.get("text", "")
            objects = [
                {"package": {"name": name, "version": p["dist-tags"]["latest"],
                             "description": p["versions"][p["dist-tags"]["latest"]]["description"]}}
                for name, p in self.packuments.items()
                if text in name
            ]
            return httpx.Response(200, json={"objects": objects})

        if path.startswith("/tarballs/"):
            payload = self.tarballs.get(path.rsplit("/", 1)[-1])
            if payload is None:
                return httpx.Response(404)
            return httpx.Response(200, content=payload)

        packument = self.packuments.get(path.lstrip("/"))
        if packument is None:
            return httpx.Response(404, json={"error": "Not found"})
        return httpx.Response(200, json=packument)

    def platform(self):
        return LocalPlatform(client=httpx.AsyncClient(transport=httpx.MockTransport(self.handler)))

    def client(self, platform=None):
        return NpmRegistryClient(REGISTRY, platform=platform or self.platform())


@pytest.fixture
def catalog():
    return FakeCatalog()
