from __future__ import annotations

import json
import time
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any


@dataclass(slots=True)
class StageTimings:
    validate_ms: float = 0.0
    detect_ms: float = 0.0
    resolve_ms: float = 0.0
    render_ms: float = 0.0


@dataclass(slots=True)
class ConversionLogEntry:
    job_id: str
    slot: str
    status: str
    error_kind: str | None
    error_message: str | None
    timings: StageTimings
    fonts_required: int
    fonts_embedded: int
    fonts_missing: list[str]
    size_bytes: int
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> dict[str, Any]:
        payload = asdict(self)
        payload["timings"] = asdict(self.timings)
        return payload


class RunLogger:
    def __init__(self, log_file: Path) -> None:
        self._log_file = log_file

    @property
    def log_file(self) -> Path:
        return self._log_file

    def append(self, entry: ConversionLogEntry) -> None:
        self._log_file.parent.mkdir(parents=True, exist_ok=True)
        line = json.dumps(entry.to_dict(), ensure_ascii=False)
        with self._log_file.open("a", encoding="utf-8") as handle:
            handle.write(line + "\n")

    def read(self, limit: int | None = None) -> list[dict[str, Any]]:
        if not self._log_file.exists():
            return []
        lines = [line for line in self._log_file.read_text(encoding="utf-8").splitlines() if line.strip()]
        if limit is not None:
            lines = lines[-limit:]
        return [json.loads(line) for line in lines]


__all__ = ["ConversionLogEntry", "RunLogger", "StageTimings"]
