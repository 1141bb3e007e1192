"""Metrics aggregation over the admission audit log.

Computes decision throughput, verdict counts, storage class usage and
reject / mutate rates.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from pathlib import Path
from typing import Any

from contracts.audit import ADMISSION_EVENTS, AuditEntry, AuditEvent
from engine.audit.query import AuditQuery, select


def compute_metrics(
    log_path: str | Path,
    *,
    since: datetime | None = None,
    window_seconds: int = 60,
) -> dict[str, Any]:
    """Compute aggregated metrics from the audit log."""
    entries = select(log_path, AuditQuery(since=since))

    return {
        "throughput": _throughput_buckets(entries, window_seconds),
        "verdicts": _verdict_counts(entries),
        "storage_classes": _storage_class_usage(entries),
        "rates": _rates(entries),
        "summary": _summary(entries),
    }


def _throughput_buckets(
    entries: list[AuditEntry], window_seconds: int
) -> list[dict[str, Any]]:
    """Bucket admission decisions into time windows."""
    decisions = [e for e in entries if e.event in ADMISSION_EVENTS]
    if not decisions:
        return []

    decisions.sort(key=lambda e: e.ts)
    bucket_start = decisions[0].ts
    last_ts = decisions[-1].ts
    buckets: list[dict[str, Any]] = []

    while bucket_start <= last_ts:
        bucket_end = bucket_start + timedelta(seconds=window_seconds)
        count = sum(1 for e in decisions if bucket_start <= e.ts < bucket_end)
        buckets.append({
            "time": bucket_start.isoformat(),
            "count": count,
        })
        bucket_start = bucket_end

    return buckets


def _verdict_counts(entries: list[AuditEntry]) -> dict[str, int]:
    counts = {
        "accept": 0,
        "reject": 0,
        "mutate": 0,
        "skip": 0,
    }
    for e in entries:
        if e.event in ADMISSION_EVENTS:
            counts[e.event.value.split(".", 1)[1]] += 1
    return counts


def _storage_class_usage(entries: list[AuditEntry]) -> list[dict[str, Any]]:
    """Count evaluated claims by requested storage class, with their outcomes."""
    usage: dict[str, dict[str, int]] = {}
    for e in entries:
        if e.event not in ADMISSION_EVENTS or "storage_class" not in e.detail:
            continue
        name = e.detail["storage_class"]
        row = usage.setdefault(name, {"count": 0, "reject": 0, "mutate": 0})
        row["count"] += 1
        if e.event == AuditEvent.ADMISSION_REJECT:
            row["reject"] += 1
        elif e.event == AuditEvent.ADMISSION_MUTATE:
            row["mutate"] += 1

    return [
        {"storage_class": name, **row}
        for name, row in sorted(usage.items(), key=lambda x: -x[1]["count"])
    ]


def _rates(entries: list[AuditEntry]) -> dict[str, Any]:
    """Reject and mutate rates over evaluated claims (pass-through excluded)."""
    evaluated = sum(
        1
        for e in entries
        if e.event in ADMISSION_EVENTS and e.event != AuditEvent.ADMISSION_SKIP
    )
    rejects = sum(1 for e in entries if e.event == AuditEvent.ADMISSION_REJECT)
    mutations = sum(1 for e in entries if e.event == AuditEvent.ADMISSION_MUTATE)
    invalid_settings = sum(1 for e in entries if e.event == AuditEvent.SETTINGS_INVALID)

    return {
        "evaluated_claims": evaluated,
        "rejects": rejects,
        "mutations": mutations,
        "invalid_settings": invalid_settings,
        "reject_rate": round(rejects / max(evaluated, 1), 4),
        "mutate_rate": round(mutations / max(evaluated, 1), 4),
    }


def _summary(entries: list[AuditEntry]) -> dict[str, Any]:
    """High-level summary stats."""
    if not entries:
        return {"total_entries": 0, "first_entry": None, "last_entry": None}

    sorted_entries = sorted(entries, key=lambda e: e.ts)
    event_counts: dict[str, int] = {}
    for e in entries:
        event_counts[e.event.value] = event_counts.get(e.event.value, 0) + 1

    return {
        "total_entries": len(entries),
        "first_entry": sorted_entries[0].ts.isoformat(),
        "last_entry": sorted_entries[-1].ts.isoformat(),
        "event_counts": event_counts,
    }
