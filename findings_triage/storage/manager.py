"""Storage of per-issue metadata records as JSON files."""

import json
import os
import tempfile
from pathlib import Path
from typing import Any

from ..errors import RemoteEffectFailed
from ..github_client.models import IssueRef

LINKS_NAMESPACE = "links"
UNDO_NAMESPACE = "undo"


class MetadataStore:
    """Key-value store of flat string maps keyed by issue id.

    One JSON file per key. Writes replace the file atomically, so a reader
    sees either the old record or the new one.
    """

    def __init__(self, base_path: str | Path):
        """Initialize metadata store.

        Args:
            base_path: Directory holding the record files
        """
        self.base_path = Path(base_path)
        self.base_path.mkdir(parents=True, exist_ok=True)

    def _generate_filename(self, issue_id: str) -> str:
        """Generate filename for an issue id such as ``org/repo#12``."""
        ref = IssueRef.parse(issue_id)
        return f"{ref.owner}_{ref.repo}_issue_{ref.number}.json"

    def _get_file_path(self, issue_id: str) -> Path:
        return self.base_path / self._generate_filename(issue_id)

    def get(self, issue_id: str) -> dict[str, str] | None:
        """Load the record for an issue.

        Returns:
            The stored map, or None if no record exists
        """
        file_path = self._get_file_path(issue_id)
        if not file_path.exists():
            return None

        try:
            with open(file_path, encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            raise RemoteEffectFailed(f"read metadata for {issue_id}", str(e)) from e
        return {str(key): str(value) for key, value in data["record"].items()}

    def put(self, issue_id: str, record: dict[str, str]) -> Path:
        """Write the record for an issue, replacing any previous one.

        Raises:
            ValueError: If the record is not a flat string-to-string map
            RemoteEffectFailed: If the file cannot be written
        """
        for key, value in record.items():
            if not isinstance(key, str) or not isinstance(value, str):
                raise ValueError(
                    f"Metadata for {issue_id} must map strings to strings, "
                    f"got {key!r}: {type(value).__name__}"
                )

        file_path = self._get_file_path(issue_id)
        payload = {"issue_id": issue_id, "record": record}
        try:
            fd, tmp_name = tempfile.mkstemp(
                dir=self.base_path, prefix=".tmp-", suffix=".json"
            )
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(payload, f, indent=2, ensure_ascii=False)
            os.replace(tmp_name, file_path)
        except OSError as e:
            raise RemoteEffectFailed(f"write metadata for {issue_id}", str(e)) from e
        return file_path

    def delete(self, issue_id: str) -> bool:
        """Delete the record for an issue.

        Returns:
            True if a record was removed, False if none existed
        """
        file_path = self._get_file_path(issue_id)
        try:
            file_path.unlink()
        except FileNotFoundError:
            return False
        except OSError as e:
            raise RemoteEffectFailed(f"delete metadata for {issue_id}", str(e)) from e
        return True

    def list_ids(self) -> list[str]:
        """List the issue ids that have a record, sorted."""
        ids = []
        for file_path in self.base_path.glob("*_issue_*.json"):
            try:
                with open(file_path, encoding="utf-8") as f:
                    ids.append(json.load(f)["issue_id"])
            except (OSError, ValueError, KeyError):
                continue
        return sorted(ids)


class StorageManager:
    """Groups the metadata namespaces kept under one data directory."""

    def __init__(self, base_path: str | Path = "data/metadata"):
        self.base_path = Path(base_path)
        self.links = MetadataStore(self.base_path / LINKS_NAMESPACE)
        self.undo = MetadataStore(self.base_path / UNDO_NAMESPACE)

    def get_storage_stats(self) -> dict[str, Any]:
        """Get statistics about stored records.

        Returns:
            Dictionary with storage statistics
        """
        stats: dict[str, Any] = {"storage_path": str(self.base_path.absolute())}
        total_size = 0
        for name, store in ((LINKS_NAMESPACE, self.links), (UNDO_NAMESPACE, self.undo)):
            files = list(store.base_path.glob("*_issue_*.json"))
            stats[f"{name}_records"] = len(files)
            total_size += sum(f.stat().st_size for f in files)
        stats["total_size_bytes"] = total_size
        return stats
