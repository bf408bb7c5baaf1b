"""Read-only policy table.

The store is built once at process start from a JSON-compatible object and
never mutated afterwards. Rows keep their load order, which is the stable
order the resolver relies on for first-match decisions.
"""

from __future__ import annotations

import json
from datetime import date
from pathlib import Path
from typing import Any, Iterable, Iterator

from checkout_gate.core.domain.types import PolicyRow


class PolicyStore:
    """Immutable collection of policy rows."""

    def __init__(self, rows: Iterable[PolicyRow]) -> None:
        self._rows: tuple[PolicyRow, ...] = tuple(rows)

        seen: set[tuple[str, str, str]] = set()
        for row in self._rows:
            if row.key in seen:
                raise ValueError(f"duplicate policy row {row.key}")
            seen.add(row.key)

    @classmethod
    def from_json_obj(cls, obj: dict[str, Any] | list[Any]) -> PolicyStore:
        """Create a store from ``{"rows": [...]}`` or a bare list of rows."""
        raw_rows = obj.get("rows", []) if isinstance(obj, dict) else obj
        return cls(PolicyRow.model_validate(r) for r in raw_rows)

    @classmethod
    def from_json_path(cls, path: str | Path) -> PolicyStore:
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(path)
        return cls.from_json_obj(json.loads(path.read_text(encoding="utf-8")))

    @property
    def rows(self) -> tuple[PolicyRow, ...]:
        return self._rows

    def __iter__(self) -> Iterator[PolicyRow]:
        return iter(self._rows)

    def __len__(self) -> int:
        return len(self._rows)

    def jurisdictions(self) -> frozenset[str]:
        return frozenset(r.jurisdiction for r in self._rows)

    def match(
        self,
        jurisdiction: str,
        instruments: Iterable[str],
        *,
        as_of: date | None = None,
    ) -> list[PolicyRow]:
        """Return rows for the jurisdiction whose instrument is requested.

        When ``as_of`` is given, rows outside their effective period are
        skipped. Result order follows the table order.
        """
        wanted = frozenset(instruments)
        return [
            r
            for r in self._rows
            if r.jurisdiction == jurisdiction
            and r.instrument in wanted
            and (as_of is None or r.is_effective(as_of))
        ]
