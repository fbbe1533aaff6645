"""
Marker Extractor — canonical text → ordered (field, value) records.

Line heuristic, not semantic parsing: trim every line, keep those longer than
``min_length`` characters (drops table dividers, headers, page noise), take the
first ``max_fields`` in original order and number them Field_1..Field_n.

Deterministic by construction, so a marker artifact can always be rebuilt from
canonical text alone. No qualifying lines yields an empty list.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass

DEFAULT_MIN_LINE_LENGTH = 20
DEFAULT_MAX_FIELDS      = 10


@dataclass(frozen=True)
class MarkerRecord:
    field: str
    value: str

    def to_dict(self) -> dict:
        return asdict(self)


def derive_markers(
    text:       str,
    min_length: int = DEFAULT_MIN_LINE_LENGTH,
    max_fields: int = DEFAULT_MAX_FIELDS,
) -> list[MarkerRecord]:
    lines = (line.strip() for line in text.split("\n"))
    kept = [line for line in lines if len(line) > min_length][:max_fields]
    return [MarkerRecord(field=f"Field_{i}", value=line) for i, line in enumerate(kept, start=1)]
