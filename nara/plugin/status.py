"""
Installation Status Store.

Persists one InstallationRecord per plugin id in a JSON document colocated
with the plugin store. The document is read once at construction and
rewritten on every mutation.
"""

import json
import logging
import os
import tempfile
from pathlib import Path

from nara.plugin.types import InstallationRecord

logger = logging.getLogger(__name__)

STATUS_FILE = ".plugin-status.json"


class InstallationStore:
    """JSON-backed map of plugin id -> InstallationRecord."""

    def __init__(self, status_file: Path):
        self.status_file = status_file
        self._records: dict[str, InstallationRecord] = {}
        self._load()

    def _load(self) -> None:
        if not self.status_file.exists():
            return

        try:
            data = json.loads(self.status_file.read_text(encoding="utf-8"))
            for plugin_id, raw in data.items():
                raw.setdefault("id", plugin_id)
                self._records[plugin_id] = InstallationRecord.from_dict(raw)
        except (OSError, ValueError, KeyError, TypeError) as e:
            logger.warning(f"Failed to load plugin status from {self.status_file}: {e}")

    def save(self) -> None:
        """Write all records, replacing the document atomically."""
        data = {plugin_id: record.to_dict() for plugin_id, record in self._records.items()}
        self.status_file.parent.mkdir(parents=True, exist_ok=True)

        fd, tmp_path = tempfile.mkstemp(
            dir=self.status_file.parent, prefix=".plugin-status-", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2)
            os.replace(tmp_path, self.status_file)
        except OSError:
            Path(tmp_path).unlink(missing_ok=True)
            raise

    def get(self, plugin_id: str) -> InstallationRecord | None:
        return self._records.get(plugin_id)

    def put(self, record: InstallationRecord) -> InstallationRecord:
        self._records[record.id] = record
        self.save()
        return record

    def update(self, plugin_id: str, **changes) -> InstallationRecord:
        """Merge changes into the record for plugin_id, creating it if needed."""
        record = self._records.get(plugin_id) or InstallationRecord(id=plugin_id)
        for key, value in changes.items():
            setattr(record, key, value)
        return self.put(record)

    def remove(self, plugin_id: str) -> bool:
        if plugin_id not in self._records:
            return False
        del self._records[plugin_id]
        self.save()
        return True

    def all(self) -> list[InstallationRecord]:
        return list(self._records.values())

    def __contains__(self, plugin_id: str) -> bool:
        return plugin_id in self._records
