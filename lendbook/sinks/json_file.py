"""JSON file sink for exporting records and events to files."""

import json
from pathlib import Path
from typing import Any

from lendbook.sinks.serialization import to_dict


class JsonFileSink:
    """Output records to JSON Lines files, one file per topic.

    Batches for the same topic are appended, so events published one at
    a time accumulate in a single file.
    """

    def __init__(self, output_dir: str | Path, pretty: bool = False) -> None:
        """Initialize JSON file sink.

        Parameters
        ----------
        output_dir : str | Path
            Directory to write files.
        pretty : bool
            Write ``<topic>.json`` snapshots with indentation via
            ``write_snapshot`` instead of compact lines.
        """
        self.output_dir = Path(output_dir)
        self.output_dir.mkdir(parents=True, exist_ok=True)
        self.pretty = pretty
        self._counts: dict[str, int] = {}

    def _path_for(self, topic: str, suffix: str) -> Path:
        # lendbook.transaction.created -> lendbook_transaction_created.jsonl
        return self.output_dir / (topic.replace(".", "_") + suffix)

    def write_batch(self, topic: str, records: list[Any]) -> None:
        """Append a batch of records to the topic's JSON Lines file."""
        file_path = self._path_for(topic, ".jsonl")

        with open(file_path, "a", encoding="utf-8") as f:
            for record in records:
                f.write(json.dumps(to_dict(record), ensure_ascii=False, default=str) + "\n")

        self._counts[topic] = self._counts.get(topic, 0) + len(records)

    def write_snapshot(self, entity_type: str, records: list[Any]) -> Path:
        """Overwrite ``<entity_type>.json`` with the full record list."""
        file_path = self._path_for(entity_type, ".json")
        data = [to_dict(record) for record in records]

        with open(file_path, "w", encoding="utf-8") as f:
            if self.pretty:
                json.dump(data, f, indent=2, ensure_ascii=False, default=str)
            else:
                json.dump(data, f, ensure_ascii=False, default=str)

        self._counts[entity_type] = len(records)
        return file_path

    def close(self) -> None:
        """Print summary."""
        print(f"JSON files written to: {self.output_dir}")
        for topic, count in self._counts.items():
            print(f"  {topic}: {count} records")
