"""Utilities for deterministic reconciliation identifiers (RID)."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import date

RID_PATTERN = re.compile(r"^RID-(?P<jurisdiction>[A-Z0-9]+)-(?P<ymd>\d{8})-(?P<seq>\d{6})$")

_MAX_SEQUENCE: int = 999_999


@dataclass(frozen=True, slots=True)
class ReconciliationId:
    """Reconciliation identifier linking a receipt to its settlement record.

    The RID is defined by (jurisdiction, value_date, sequence).
    """

    jurisdiction: str
    value_date: date
    sequence: int

    def __post_init__(self) -> None:
        if not re.fullmatch(r"[A-Z0-9]+", self.jurisdiction):
            raise ValueError(f"jurisdiction must be an upper-case code, got {self.jurisdiction!r}")
        if not 0 <= self.sequence <= _MAX_SEQUENCE:
            raise ValueError(f"sequence out of range: {self.sequence}")

    def __str__(self) -> str:
        return f"RID-{self.jurisdiction}-{self.value_date:%Y%m%d}-{self.sequence:06d}"

    @property
    def receipt_id(self) -> str:
        return f"rcp_{self.value_date.isoformat()}_{self.sequence:05d}"

    @classmethod
    def parse(cls, raw: str) -> ReconciliationId:
        m = RID_PATTERN.match(raw)
        if m is None:
            raise ValueError(f"not a reconciliation id: {raw!r}")
        ymd = m.group("ymd")
        return cls(
            jurisdiction=m.group("jurisdiction"),
            value_date=date(int(ymd[:4]), int(ymd[4:6]), int(ymd[6:])),
            sequence=int(m.group("seq")),
        )


@dataclass(slots=True)
class RidSequencer:
    """Monotonic RID allocator, owned by the caller.

    Sequence numbers are tracked per (jurisdiction, date); every call hands
    out a number strictly greater than the previous one for that key, so two
    evaluations never share a RID.
    """

    start: int = 1
    _next: dict[tuple[str, date], int] = field(default_factory=dict)

    def next_rid(self, jurisdiction: str, value_date: date) -> ReconciliationId:
        key = (jurisdiction, value_date)
        seq = self._next.get(key, self.start)
        self._next[key] = seq + 1
        return ReconciliationId(jurisdiction=jurisdiction, value_date=value_date, sequence=seq)
