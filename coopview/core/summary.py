"""Summary card aggregates over filtered records."""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from decimal import Decimal, InvalidOperation
from typing import Any

from .keys import read_field
from .listing import MetricKind, SummaryMetric


def _as_number(value: Any) -> float:
    if value is None or isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        return float(value)
    text = str(value).strip().replace(",", ".")
    if not text:
        return 0.0
    try:
        number = Decimal(text)
    except InvalidOperation:
        return 0.0
    return float(number) if number.is_finite() else 0.0


def compute_metric(metric: SummaryMetric, records: Sequence[Any]) -> float:
    """Return the value of *metric* across *records*."""
    if metric.kind is MetricKind.COUNT:
        return len(records)
    field = metric.field
    if field is None:
        raise ValueError(f"Summary metric {metric.id} needs a field")
    values = [read_field(record, field) for record in records]
    if metric.kind is MetricKind.SUM:
        total = sum(_as_number(value) for value in values)
        return int(total) if float(total).is_integer() else total
    if metric.kind is MetricKind.NON_BLANK:
        return sum(1 for value in values if value is not None and str(value).strip())
    return len({value for value in values if value is not None})


def summarize(
    metrics: Iterable[SummaryMetric], records: Iterable[Any]
) -> Mapping[str, float]:
    """Return ``metric id -> value`` for every metric in *metrics*."""
    rows = list(records)
    return {metric.id: compute_metric(metric, rows) for metric in metrics}
