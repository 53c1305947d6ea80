"""Collection and saving of object-association logs and latency measurements."""

from __future__ import annotations

import threading
from collections import defaultdict
from pathlib import Path

ASSOCIATION_FILE = "res.csv"
LATENCY_KEYWORDS = ("assoseg", "assosam")


def _format_number(value) -> str:
    if isinstance(value, float):
        return format(value, "g")
    return str(value)


class ObjectRecorder:
    """Thread-safe store of association log lines, IoU values and latencies."""

    def __init__(self, result_dir, latency_dir):
        self.result_dir = Path(result_dir)
        self.latency_dir = Path(latency_dir)
        self.lines: list[str] = []
        self.ious: list[float] = []
        self.object_counts: dict[int, object] = {}
        self.latencies: defaultdict[str, list[float]] = defaultdict(list)
        self._lock = threading.Lock()

    def log(self, line: str) -> None:
        """Append one line to the association log."""
        with self._lock:
            self.lines.append(str(line))

    def add_iou(self, value: float) -> None:
        """Record one IoU measurement."""
        with self._lock:
            self.ious.append(float(value))

    def add_latency(self, keyword: str, value: float) -> None:
        """Record one latency measurement under ``keyword``."""
        with self._lock:
            self.latencies[keyword].append(value)

    def save_association(self) -> Path:
        """Write object counts and the log to the result file, then save the latencies.

        The result file is overwritten. Returns its path.
        """
        with self._lock:
            rows = [str(data) for _, data in sorted(self.object_counts.items())]
            rows.extend(self.lines)
        self.result_dir.mkdir(parents=True, exist_ok=True)
        path = self.result_dir / ASSOCIATION_FILE
        path.write_text("".join(f"{row}\n" for row in rows), encoding="utf-8")
        for keyword in LATENCY_KEYWORDS:
            self.save_latency(keyword)
        return path

    def save_latency(self, keyword: str) -> Path:
        """Append the latencies of ``keyword`` to its file and clear them. Returns the path."""
        with self._lock:
            values = self.latencies.pop(keyword, [])
        self.latency_dir.mkdir(parents=True, exist_ok=True)
        path = self.latency_dir / f"{keyword}.csv"
        with path.open("a", encoding="utf-8") as handle:
            handle.write("".join(f"{_format_number(v)}\n" for v in values))
        return path