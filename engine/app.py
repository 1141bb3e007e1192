"""Storage class policy FastAPI server."""

from __future__ import annotations

import os
import time
from contextlib import asynccontextmanager
from datetime import datetime
from pathlib import Path
from typing import Any, AsyncIterator

from fastapi import FastAPI, HTTPException, Query
from fastapi.responses import StreamingResponse

from contracts.admission import ValidationRequest
from contracts.audit import AuditEntry, AuditEvent
from contracts.manifest import Manifest
from contracts.policy import PolicyVerdict
from contracts.settings import SettingsError, SettingsPayload

from engine.audit.logger import JsonlAuditLogger
from engine.audit.query import AuditQuery, PolicyMode, search, select, stream_tail
from engine.host import AdmissionHost
from engine.manifest_loader import load_manifest
from engine.metrics import compute_metrics

VERSION = "0.1.0"

# ── Module-level state (set during lifespan) ─────────────────────────

_host: AdmissionHost | None = None
_logger: JsonlAuditLogger | None = None
_manifest: Manifest | None = None
_start_time: float = 0.0


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Load the manifest and validate its settings before serving.

    An invalid configuration raises here and the server never starts.
    """
    global _host, _logger, _manifest, _start_time  # noqa: PLW0603

    _start_time = time.time()

    manifest_path = os.environ.get("SCPOLICY_MANIFEST", "./scpolicy.yaml")
    _manifest = load_manifest(manifest_path)
    _logger = JsonlAuditLogger(_manifest.audit.path, app=_manifest.app.name)
    _host = AdmissionHost.from_manifest(_manifest, _logger)

    yield

    _host = None


app = FastAPI(title="Storage Class Policy", version=VERSION, lifespan=lifespan)


# ── Endpoints ────────────────────────────────────────────────────────


@app.post("/validate")
async def validate(request: ValidationRequest) -> dict[str, Any]:
    """Accept, reject or mutate one admission request."""
    if _host is None:
        raise HTTPException(status_code=503, detail="Policy not initialised")
    try:
        response = _host.validate(request)
    except SettingsError as exc:
        raise HTTPException(status_code=400, detail=exc.message) from exc
    return response.to_wire()


@app.post("/validate_settings")
async def validate_settings(payload: SettingsPayload) -> dict[str, Any]:
    """Check a settings record without activating it."""
    if _host is None:
        raise HTTPException(status_code=503, detail="Policy not initialised")
    return _host.validate_settings(payload).to_wire()


@app.get("/health")
async def health() -> dict[str, Any]:
    result: dict[str, Any] = {"status": "ok", "version": VERSION}
    result["uptime_seconds"] = round(time.time() - _start_time, 1) if _start_time else 0

    if _manifest and _host and _host.settings:
        settings = _host.settings
        result["policy"] = {
            "app": _manifest.app.name,
            "app_version": _manifest.app.version,
            "mode": settings.mode_name,
            "storage_classes": sorted(settings.mode.names),
            "fallback": settings.fallback,
        }

        log_path = Path(_manifest.audit.path)
        if log_path.exists():
            result["audit_log_size_bytes"] = log_path.stat().st_size
            result["audit_log_entries"] = len(select(log_path))

    return result


@app.get("/audit/logs")
async def audit_logs(
    event: AuditEvent | None = Query(None),
    verdict: PolicyVerdict | None = Query(None),
    policy_mode: PolicyMode | None = Query(None),
    storage_class: str | None = Query(None),
    namespace: str | None = Query(None),
    since: datetime | None = Query(None),
    until: datetime | None = Query(None),
    request_id: str | None = Query(None),
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
) -> dict[str, Any]:
    """Filtered, paginated audit log query."""
    if _manifest is None:
        raise HTTPException(status_code=503, detail="Policy not initialised")

    query = AuditQuery(
        request_id=request_id,
        event=event,
        verdict=verdict,
        policy_mode=policy_mode,
        storage_class=storage_class,
        namespace=namespace,
        since=since,
        until=until,
    )
    entries, total = search(_manifest.audit.path, query, limit=limit, offset=offset)
    return {"entries": [e.model_dump(mode="json") for e in entries], "total": total}


@app.get("/audit/stream")
async def audit_stream(
    verdict: PolicyVerdict | None = Query(None),
    storage_class: str | None = Query(None),
    namespace: str | None = Query(None),
    replay: bool = Query(False, description="Start from the beginning of the log"),
    limit: int | None = Query(None, ge=1, description="Close after this many events"),
):
    """SSE endpoint for real-time log tailing."""
    if _manifest is None:
        raise HTTPException(status_code=503, detail="Policy not initialised")

    query = AuditQuery(verdict=verdict, storage_class=storage_class, namespace=namespace)

    async def event_generator():
        async for entry in stream_tail(
            _manifest.audit.path, query, replay=replay, limit=limit
        ):
            yield f"data: {entry.model_dump_json()}\n\n"

    return StreamingResponse(event_generator(), media_type="text/event-stream")


@app.get("/audit/{request_id}")
async def audit_query(request_id: str) -> list[AuditEntry]:
    """Return audit entries for a given admission request uid."""
    if _logger is None:
        raise HTTPException(status_code=503, detail="Policy not initialised")
    return _logger.query_by_request(request_id)


@app.get("/metrics")
async def metrics(
    since: datetime | None = Query(None),
    window: int = Query(60, ge=1, le=3600, description="Bucket window in seconds"),
) -> dict[str, Any]:
    """Aggregated decision metrics."""
    if _manifest is None:
        raise HTTPException(status_code=503, detail="Policy not initialised")

    return compute_metrics(_manifest.audit.path, since=since, window_seconds=window)
