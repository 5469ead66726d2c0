"""Structured report of merge decisions, conflicts and resolutions."""

import csv
import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from .diff import Conflicts, ItemChange, KeyPath, Patch, format_path

MERGED = "MERGED"
AGREED = "AGREED"
CONFLICT = "CONFLICT"
RESOLVED = "RESOLVED"
BINARY_CHOICE = "BINARY_CHOICE"
BASE_CHOICE = "BASE_CHOICE"
ERROR = "ERROR"

FIELDNAMES = [
    "timestamp", "file", "path", "action_type", "sources", "value", "reason", "manual_review"
]


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


class BundleReport:
    """Collects every decision taken while bundling mods."""

    def __init__(self) -> None:
        self.log_entries: List[Dict[str, Any]] = []

    def add_log_entry(
        self,
        file: str,
        path: str,
        action_type: str,
        sources: Iterable[str],
        value: Any,
        reason: str,
        manual_review: bool = False
    ) -> None:
        """Add a new entry to the report.

        Args:
            file: Relative path of the game file.
            path: Formatted key path inside the file, empty for whole-file decisions.
            action_type: One of MERGED, AGREED, CONFLICT, RESOLVED, BINARY_CHOICE,
                BASE_CHOICE or ERROR.
            sources: Names of the sources involved.
            value: Resulting value (or per-source values for conflicts).
            reason: Human-readable explanation.
            manual_review: Whether the decision needed a resolver.
        """
        self.log_entries.append(
            self.create_log_entry(file, path, action_type, sources, value, reason, manual_review)
        )

    def create_log_entry(
        self,
        file: str,
        path: str,
        action_type: str,
        sources: Iterable[str],
        value: Any,
        reason: str,
        manual_review: bool = False
    ) -> Dict[str, Any]:
        """Create a standardized report entry."""
        return {
            "timestamp": _timestamp(),
            "file": file,
            "path": path,
            "action_type": action_type,
            "sources": list(sources),
            "value": self._serialize_value(value),
            "reason": reason,
            "manual_review": manual_review
        }

    def record_merge(self, file: str, contributions: Dict[KeyPath, List[str]], merged: Patch) -> None:
        """Record automatically merged paths.

        Args:
            file: Relative path of the game file.
            contributions: Sources touching each path.
            merged: Merged patch.
        """
        for path, change in merged.items():
            sources = contributions.get(path, [])
            if len(sources) > 1:
                self.add_log_entry(
                    file, format_path(path), AGREED, sources, change,
                    f"{len(sources)} sources made the same change"
                )
            else:
                self.add_log_entry(file, format_path(path), MERGED, sources, change, "single source")

    def record_conflicts(self, file: str, conflicts: Conflicts) -> None:
        for path, changes in conflicts.items():
            self.add_log_entry(
                file, format_path(path), CONFLICT,
                [source for source, _ in changes],
                {source: str(change) for source, change in changes},
                "sources disagree", manual_review=True
            )

    def record_resolution(self, file: str, resolved: Patch) -> None:
        for path, change in resolved.items():
            self.add_log_entry(
                file, format_path(path), RESOLVED, [], change, "decided by resolver", manual_review=True
            )

    def record_choice(self, file: str, action_type: str, sources: List[str], chosen: str) -> None:
        self.add_log_entry(
            file, "", action_type, sources, chosen,
            f"{len(sources)} sources provide different versions", manual_review=True
        )

    def record_error(self, file: str, error: Exception) -> None:
        self.add_log_entry(file, "", ERROR, [], None, str(error))

    def export_to_json(self, output_path: str, log_entries: Optional[List[Dict[str, Any]]] = None) -> None:
        """Export the report to JSON format.

        Args:
            output_path: Path for the output JSON file.
            log_entries: Optional list of entries (uses instance entries if None).

        Raises:
            OSError: If file cannot be written.
            ValueError: If entries cannot be serialized.
        """
        entries_to_export = log_entries if log_entries is not None else self.log_entries

        output_data = {
            "bundle_summary": {
                "timestamp": _timestamp(),
                "total_entries": len(entries_to_export),
                "manual_review_required": sum(1 for entry in entries_to_export if entry.get("manual_review", False)),
                "statistics": self._generate_statistics(entries_to_export)
            },
            "entries": entries_to_export
        }

        path = Path(output_path)
        path.parent.mkdir(parents=True, exist_ok=True)

        try:
            with open(path, 'w', encoding='utf-8') as file:
                json.dump(output_data, file, indent=2, ensure_ascii=False)
        except OSError as e:
            raise OSError(f"Cannot write JSON file {output_path}: {e}") from e
        except (TypeError, ValueError) as e:
            raise ValueError(f"Cannot serialize report entries to JSON: {e}") from e

    def export_to_csv(self, output_path: str, log_entries: Optional[List[Dict[str, Any]]] = None) -> None:
        """Export the report to CSV format.

        Raises:
            OSError: If file cannot be written.
        """
        entries_to_export = log_entries if log_entries is not None else self.log_entries

        path = Path(output_path)
        path.parent.mkdir(parents=True, exist_ok=True)

        try:
            with open(path, 'w', newline='', encoding='utf-8') as file:
                writer = csv.DictWriter(file, fieldnames=FIELDNAMES)
                writer.writeheader()
                for entry in entries_to_export:
                    writer.writerow({key: self._format_value_for_csv(entry.get(key)) for key in FIELDNAMES})
        except OSError as e:
            raise OSError(f"Cannot write CSV file {output_path}: {e}") from e

    def export(self, output_path: str) -> None:
        """Export by file extension: ``.csv`` writes CSV, anything else JSON."""
        if str(output_path).lower().endswith(".csv"):
            self.export_to_csv(output_path)
        else:
            self.export_to_json(output_path)

    def filter_entries(
        self,
        action_type: Optional[str] = None,
        manual_review_only: bool = False,
        file_pattern: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        """Filter entries by action type, review flag or file substring."""
        filtered = self.log_entries

        if action_type:
            filtered = [entry for entry in filtered if entry.get("action_type") == action_type]

        if manual_review_only:
            filtered = [entry for entry in filtered if entry.get("manual_review", False)]

        if file_pattern:
            filtered = [entry for entry in filtered if file_pattern in entry.get("file", "")]

        return filtered

    def get_summary_report(self) -> Dict[str, Any]:
        statistics = self._generate_statistics(self.log_entries)
        return {
            "total_entries": len(self.log_entries),
            "statistics": statistics,
            "files_with_conflicts": sorted({
                entry["file"] for entry in self.log_entries if entry["action_type"] == CONFLICT
            }),
            "files_with_errors": sorted({
                entry["file"] for entry in self.log_entries if entry["action_type"] == ERROR
            }),
        }

    def _serialize_value(self, value: Any) -> Any:
        """Serialize a value for JSON compatibility."""
        if value is None:
            return None
        elif isinstance(value, ItemChange):
            return None if value.is_removed else self._serialize_value(value.value.raw)
        elif isinstance(value, (str, int, float, bool)):
            return value
        elif isinstance(value, (dict, list)):
            return value
        else:
            return str(value)

    def _format_value_for_csv(self, value: Any) -> str:
        if value is None:
            return ""
        elif isinstance(value, bool):
            return "true" if value else "false"
        elif isinstance(value, (dict, list)):
            return json.dumps(value, ensure_ascii=False)
        else:
            return str(value)

    def _generate_statistics(self, entries: List[Dict[str, Any]]) -> Dict[str, Any]:
        by_action_type: Dict[str, int] = {}
        for entry in entries:
            action_type = entry.get("action_type", "UNKNOWN")
            by_action_type[action_type] = by_action_type.get(action_type, 0) + 1

        return {
            "by_action_type": by_action_type,
            "manual_review_count": sum(1 for entry in entries if entry.get("manual_review", False)),
            "error_count": by_action_type.get(ERROR, 0),
            "files": len({entry.get("file") for entry in entries}),
        }

    def clear_log(self) -> None:
        self.log_entries.clear()
