"""
pm query command (-Q, -Qi).
"""

import sys
from typing import Any

from nara.plugin.capabilities import plugin_summaries
from nara.plugin.types import InstallationRecord
from pm.context import build_context


def query_command(args: Any) -> int:
    """
    List installed plugins, or show details with -i.

    Returns:
        Exit code (1 if a named plugin is not installed)
    """
    ctx = build_context(args)

    if args.info:
        if not args.targets:
            print("Error: No targets specified", file=sys.stderr)
            print("Usage: pm -Qi <plugin>", file=sys.stderr)
            return 1
        summaries = {s.id: s for s in plugin_summaries(ctx.registry)}
        missing = 0
        for plugin_id in args.targets:
            record = ctx.manager.get_status(plugin_id)
            if record is None:
                print(f"Error: plugin '{plugin_id}' was not found", file=sys.stderr)
                missing += 1
                continue
            print_record(record, summaries.get(plugin_id))
        return 0 if missing == 0 else 1

    records = ctx.manager.list_installed()
    if args.targets:
        records = [r for r in records if r.id in args.targets]

    for record in sorted(records, key=lambda r: r.id):
        flags = []
        if record.enabled:
            flags.append("enabled")
        if record.error:
            flags.append("error")
        suffix = f" [{', '.join(flags)}]" if flags else ""
        print(f"{record.id} {record.version or '-'}{suffix}")

    return 0


def print_record(record: InstallationRecord, summary: Any = None) -> None:
    rows = [
        ("Name", record.id),
        ("Version", record.version or "-"),
        ("Installed", "Yes" if record.installed else "No"),
        ("Enabled", "Yes" if record.enabled else "No"),
    ]
    if record.source is not None:
        rows.append(("Source", f"{record.source.type.value}: {record.source.url}"))
    if record.installed_at is not None:
        rows.append(("Install Date", record.installed_at.isoformat()))
    if summary is not None:
        capabilities = [
            name
            for name, present in (
                ("routes", summary.has_routes),
                ("api", summary.has_api),
                ("database", summary.has_database),
                ("components", summary.has_components),
            )
            if present
        ]
        rows.append(("Type", summary.type))
        rows.append(("Provides", ", ".join(capabilities) or "None"))
    if record.error:
        rows.append(("Error", record.error))

    for label, value in rows:
        print(f"{label:<15}: {value}")
    print()
