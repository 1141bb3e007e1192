"""Reading and filtering the admission audit log.

Works on the JSONL file directly so the CLI, the HTTP endpoints and the
metrics module can read decisions without holding a logger.
"""

from __future__ import annotations

import asyncio
from datetime import datetime
from pathlib import Path
from typing import AsyncIterator, Iterable, Iterator, Literal

from pydantic import BaseModel

from contracts.audit import VERDICT_EVENTS, AuditEntry, AuditEvent
from contracts.policy import PolicyVerdict

PolicyMode = Literal["deny_list", "allow_list"]


class AuditQuery(BaseModel):
    """Filter over audit entries. Unset fields match everything.

    ``verdict`` matches on the response the cluster saw, so ``accept`` also
    covers pass-through objects that were never evaluated as claims. Use
    ``event`` to tell the two apart. ``storage_class`` and ``namespace``
    only match admission entries, since settings checks carry neither.
    """

    request_id: str | None = None
    event: AuditEvent | None = None
    verdict: PolicyVerdict | None = None
    policy_mode: PolicyMode | None = None
    storage_class: str | None = None
    namespace: str | None = None
    since: datetime | None = None
    until: datetime | None = None

    def matches(self, entry: AuditEntry) -> bool:
        if self.request_id is not None and entry.request_id != self.request_id:
            return False
        if self.event is not None and entry.event != self.event:
            return False
        if self.verdict is not None and entry.event not in VERDICT_EVENTS[self.verdict]:
            return False
        if self.policy_mode is not None and entry.policy_mode != self.policy_mode:
            return False
        if self.storage_class is not None:
            if entry.detail.get("storage_class") != self.storage_class:
                return False
        if self.namespace is not None and entry.detail.get("namespace") != self.namespace:
            return False
        if self.since is not None and entry.ts < self.since:
            return False
        if self.until is not None and entry.ts > self.until:
            return False
        return True


def iter_entries(log_path: str | Path) -> Iterator[AuditEntry]:
    """Yield every entry in file order; a missing log yields nothing."""
    p = Path(log_path)
    if not p.exists():
        return
    with p.open("r", encoding="utf-8") as f:
        yield from _parse(f)


def select(log_path: str | Path, query: AuditQuery | None = None) -> list[AuditEntry]:
    """All matching entries, oldest first."""
    entries = iter_entries(log_path)
    if query is None:
        return list(entries)
    return [e for e in entries if query.matches(e)]


def tail(
    log_path: str | Path, n: int = 20, query: AuditQuery | None = None
) -> list[AuditEntry]:
    """The last ``n`` matching entries, oldest first."""
    if n <= 0:
        return []
    return select(log_path, query)[-n:]


def search(
    log_path: str | Path,
    query: AuditQuery | None = None,
    *,
    limit: int = 100,
    offset: int = 0,
) -> tuple[list[AuditEntry], int]:
    """One page of matching entries, most recent first.

    Returns (entries, total_matching_count).
    """
    matches = select(log_path, query)
    matches.sort(key=lambda e: e.ts, reverse=True)
    return matches[offset : offset + limit], len(matches)


async def stream_tail(
    log_path: str | Path,
    query: AuditQuery | None = None,
    *,
    replay: bool = False,
    limit: int | None = None,
    poll_interval: float = 0.5,
) -> AsyncIterator[AuditEntry]:
    """Yield matching entries as they are appended to the log.

    Starts at the current end of the file unless ``replay`` is set. Stops
    after ``limit`` entries when one is given, otherwise runs until the
    consumer goes away.
    """
    if limit is not None and limit <= 0:
        return
    p = Path(log_path)
    pos = p.stat().st_size if p.exists() and not replay else 0
    sent = 0

    while True:
        if p.exists() and p.stat().st_size > pos:
            with p.open("rb") as f:
                f.seek(pos)
                chunk = f.read()
            # A line still being written is picked up on the next poll.
            complete = chunk[: chunk.rfind(b"\n") + 1]
            pos += len(complete)
            for entry in _parse(complete.decode("utf-8").splitlines()):
                if query is not None and not query.matches(entry):
                    continue
                yield entry
                sent += 1
                if limit is not None and sent >= limit:
                    return
        await asyncio.sleep(poll_interval)


def _parse(lines: Iterable[str]) -> Iterator[AuditEntry]:
    for line in lines:
        line = line.strip()
        if line:
            yield AuditEntry.model_validate_json(line)
