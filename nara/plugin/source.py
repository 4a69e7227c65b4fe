"""
Installation Source Classification.

Turns a user-supplied source string into a SourceLocator by ordered rules:

1. npm package name (scoped or unscoped, optional @version) -> npm
2. git+ prefix, known git host, or .git suffix -> git
3. http:// or https:// -> url
4. ./, / or ~/ prefix -> local
5. anything else -> npm

npm names are tested first so that scoped names are never mistaken for paths.
"""

import re

from nara.plugin.types import SourceLocator, SourceType

_NPM_NAME = re.compile(
    r"^(?P<name>(?:@[a-z0-9-~][a-z0-9-._~]*/)?[a-z0-9-~][a-z0-9-._~]*)"
    r"(?:@(?P<version>[0-9A-Za-z.+\-^~<>=*]+))?$"
)

GIT_HOSTS = ("github.com", "gitlab.com", "bitbucket.org")


def parse_source(raw: str) -> SourceLocator:
    """
    Classify an installation source.

    Args:
        raw: Package name, repository URL, download URL or path

    Returns:
        SourceLocator for the source
    """
    source = raw.strip()

    match = _NPM_NAME.match(source)
    if match:
        return SourceLocator(SourceType.NPM, match.group("name"), match.group("version"))

    if (
        source.startswith("git+")
        or any(host in source for host in GIT_HOSTS)
        or source.endswith(".git")
    ):
        return SourceLocator(SourceType.GIT, source)

    if source.startswith(("http://", "https://")):
        return SourceLocator(SourceType.URL, source)

    if source.startswith(("./", "/", "~/")):
        return SourceLocator(SourceType.LOCAL, source)

    return SourceLocator(SourceType.NPM, source)


def extract_id_from_source(raw: str) -> str:
    """
    Derive a plugin id from a source string.

    Examples:
        "@nara-plugin/blog" -> "blog"
        "https://github.com/user/my-plugin.git" -> "my-plugin"
        "./local/awesome-plugin" -> "awesome-plugin"
    """
    source = raw.strip().rstrip("/")
    locator = parse_source(source)

    if locator.type is SourceType.NPM:
        return locator.url.rsplit("/", 1)[-1]

    name = source.split("?", 1)[0].rsplit("/", 1)[-1]
    for suffix in (".git", ".tgz", ".tar.gz", ".tar", ".zip"):
        if name.endswith(suffix):
            name = name[: -len(suffix)]
            break
    return name
