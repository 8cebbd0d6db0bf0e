"""Typed grouping results and the additive merge used across rollups and live reads."""

from collections.abc import Hashable, Iterable, Sequence
from typing import Any, NamedTuple

from sqlalchemy import Select, case, func, literal_column, select
from sqlalchemy.engine import Row

from clickstats.models.visit import Visit

# Counts a visit towards uniques when it was classified unique at write time
UNIQUE_VISITS = func.coalesce(func.sum(case((Visit.is_unique_visitor, 1), else_=0)), 0)
VISITS = func.count(Visit.id)


class GroupCount(NamedTuple):
    """One row of a ``GROUP BY`` over visits, or one stored breakdown entry."""

    key: Any
    visits: int
    unique_visits: int


def grouped_visits(key_expr: Any, *conditions: Any, by_key: bool = False) -> Select:
    """``SELECT key, visits, unique_visits FROM visits WHERE ... GROUP BY key``.

    Grouping refers to the ``bucket`` output column by name so expressions
    carrying bound parameters (``coalesce(country, 'Unknown')``) group on the
    selected value rather than on a second copy of the parameter.
    Ordered by visits descending unless ``by_key`` asks for key order.
    """
    bucket = key_expr.label("bucket")
    stmt = (
        select(bucket, VISITS.label("visits"), UNIQUE_VISITS.label("unique_visits"))
        .where(*conditions)
        .group_by(literal_column("bucket"))
    )
    if by_key:
        return stmt.order_by(bucket)
    return stmt.order_by(VISITS.desc(), bucket)


def to_group_counts(rows: Iterable[Row], default_key: Any = None) -> list[GroupCount]:
    """Turn ``(key, visits, unique_visits)`` result rows into typed tuples."""
    return [
        GroupCount(
            key=row[0] if row[0] is not None else default_key,
            visits=int(row[1] or 0),
            unique_visits=int(row[2] or 0),
        )
        for row in rows
    ]


def from_breakdown(entries: Iterable[dict[str, Any]], key_field: str) -> list[GroupCount]:
    """Read a breakdown list stored on a rollup row."""
    return [
        GroupCount(
            key=entry[key_field],
            visits=int(entry.get("visits", 0)),
            unique_visits=int(entry.get("unique_visits", 0)),
        )
        for entry in entries
    ]


class BucketMap:
    """Additive union of ``key -> (visits, unique_visits)`` partials."""

    def __init__(self) -> None:
        self._buckets: dict[Hashable, list[int]] = {}

    def add(self, key: Hashable, visits: int, unique_visits: int) -> None:
        bucket = self._buckets.setdefault(key, [0, 0])
        bucket[0] += visits
        bucket[1] += unique_visits

    def add_all(self, counts: Iterable[GroupCount]) -> None:
        for count in counts:
            self.add(count.key, count.visits, count.unique_visits)

    def get(self, key: Hashable) -> GroupCount:
        visits, unique_visits = self._buckets.get(key, (0, 0))
        return GroupCount(key, visits, unique_visits)

    def total_visits(self) -> int:
        return sum(bucket[0] for bucket in self._buckets.values())

    def ranked(self, limit: int | None = None) -> list[GroupCount]:
        """Entries sorted by visits, highest first (ties keep insertion order)."""
        ordered = sorted(
            (GroupCount(key, v, u) for key, (v, u) in self._buckets.items()),
            key=lambda c: c.visits,
            reverse=True,
        )
        return ordered[:limit] if limit is not None else ordered

    def chronological(self) -> list[GroupCount]:
        return sorted(
            (GroupCount(key, v, u) for key, (v, u) in self._buckets.items()),
            key=lambda c: c.key,
        )

    def __len__(self) -> int:
        return len(self._buckets)


def percentage(visits: int, total: int) -> float:
    return round(visits / total * 100, 2) if total > 0 else 0.0


def with_percentages(counts: Sequence[GroupCount]) -> list[tuple[GroupCount, float]]:
    """Pair each entry with its share of the combined total."""
    total = sum(c.visits for c in counts)
    return [(c, percentage(c.visits, total)) for c in counts]
