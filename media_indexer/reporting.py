"""
Renders a ScanResult for stdout or an output file.

Formats:
  text    - human-readable summary
  json    - one pretty document: summary, files grouped by directory, deletions
  ndjson  - summary line, one line per file, one line per deleted path
  compact - abbreviated keys, one line per directory
"""
import json
from pathlib import Path
from typing import Any, Dict, List, TextIO

from .models import CompactFile, ScannedDirectory, ScanResult

FORMATS = ('text', 'json', 'ndjson', 'compact')


def _line(data: Dict[str, Any]) -> str:
    return json.dumps(data, separators=(',', ':'), ensure_ascii=False)


class ReportGenerator:
    def __init__(self, result: ScanResult):
        self.result = result

    def write(self, stream: TextIO, fmt: str = 'text'):
        if fmt not in FORMATS:
            raise ValueError(f"Unknown output format: {fmt}")
        getattr(self, f"_write_{fmt}")(stream)
        stream.flush()

    def summary(self) -> Dict[str, int]:
        r = self.result
        return {
            'total_files': r.total_files,
            'total_dirs': r.total_dirs,
            'new_files': r.new_files,
            'modified_files': r.modified_files,
            'unchanged_files': r.unchanged_files,
            'deleted_files': r.deleted_files,
            'error_count': r.error_count,
            'duration_ms': r.duration_ms,
        }

    def directories(self) -> List[ScannedDirectory]:
        """Result files grouped by parent directory, in path order."""
        grouped: Dict[str, ScannedDirectory] = {}
        for f in self.result.files:
            parent = str(Path(f.path).parent)
            if parent not in grouped:
                grouped[parent] = ScannedDirectory(parent)
            grouped[parent].files.append(CompactFile.from_scanned(f))
        return list(grouped.values())

    # --- Formats ---

    def _write_text(self, stream: TextIO):
        s = self.summary()
        stream.write("Scan complete:\n")
        stream.write(f"  Media files:  {s['total_files']}\n")
        stream.write(f"  Directories:  {s['total_dirs']}\n")
        stream.write(f"  New:          {s['new_files']}\n")
        stream.write(f"  Modified:     {s['modified_files']}\n")
        stream.write(f"  Unchanged:    {s['unchanged_files']}\n")
        stream.write(f"  Deleted:      {s['deleted_files']}\n")
        stream.write(f"  Errors:       {s['error_count']}\n")
        stream.write(f"  Duration:     {s['duration_ms']}ms\n")

        for error in self.result.errors:
            stream.write(f"  ! {error}\n")

    def _write_json(self, stream: TextIO):
        payload = {
            'summary': self.summary(),
            'directories': [d.to_dict() for d in self.directories()],
            'deleted': list(self.result.deleted_paths),
        }
        stream.write(json.dumps(payload, indent=2, ensure_ascii=False))
        stream.write("\n")

    def _write_ndjson(self, stream: TextIO):
        stream.write(_line({'_type': 'summary', **self.summary()}) + "\n")
        for f in self.result.files:
            stream.write(_line(f.to_dict()) + "\n")
        for path in self.result.deleted_paths:
            stream.write(_line({'_type': 'deleted', 'path': path}) + "\n")

    def _write_compact(self, stream: TextIO):
        r = self.result
        stats = {
            '_t': 's',
            'tf': r.total_files,
            'td': r.total_dirs,
            'nf': r.new_files,
            'mf': r.modified_files,
            'uf': r.unchanged_files,
            'df': r.deleted_files,
            'ec': r.error_count,
            'ms': r.duration_ms,
        }
        stream.write(_line(stats) + "\n")
        for d in self.directories():
            stream.write(_line(d.to_dict()) + "\n")
        if r.deleted_paths:
            stream.write(_line({'_t': 'd', 'paths': list(r.deleted_paths)}) + "\n")
