"""Event log capturing invalid-sequence reports from a decoding session."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional, Tuple


@dataclass(frozen=True)
class DecodeEvent:
    """One decoder occurrence: an invalid sequence, a finalize or a reset."""

    kind: str
    start: Optional[int] = None
    end: Optional[int] = None
    sequence: bytes = b""

    def describe(self) -> str:
        if self.kind == "invalid-sequence":
            return (
                f"invalid-sequence span=[{self.start},{self.end}) "
                f"bytes={self.sequence.hex(' ').upper()}"
            )
        if self.kind == "finalize":
            return f"finalize pending={len(self.sequence)}"
        return self.kind


@dataclass
class DecodeEventLog:
    """Keep decoder events, optionally appending timestamped lines to a file.

    ``records`` holds the structured events, ``events`` their rendered lines.
    """

    path: Optional[Path] = None
    events: List[str] = field(default_factory=list)
    records: List[DecodeEvent] = field(default_factory=list)

    def record(self, event: DecodeEvent) -> None:
        self.records.append(event)
        self.log(event.describe())

    def invalid_spans(self) -> List[Tuple[Optional[int], Optional[int]]]:
        return [(event.start, event.end) for event in self.records if event.kind == "invalid-sequence"]

    def log(self, message: str) -> None:
        timestamp = datetime.now(timezone.utc).isoformat()
        entry = f"{timestamp} | {message}"
        self.events.append(entry)
        if self.path is None:
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with self.path.open("a", encoding="utf-8") as handle:
            handle.write(entry + "\n")
