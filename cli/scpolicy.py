"""scpolicy CLI: validate settings, evaluate requests, run the server, query audit logs."""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

# Ensure project root is importable when running as script
PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))


def _load_host(manifest_path: str):
    """Load a manifest and build a host, exiting on any configuration error."""
    from contracts.settings import SettingsError
    from engine.host import AdmissionHost
    from engine.manifest_loader import load_manifest

    try:
        manifest = load_manifest(manifest_path)
    except FileNotFoundError:
        print(f"Error: manifest not found: {manifest_path}", file=sys.stderr)
        sys.exit(1)
    except Exception as exc:
        print(f"Error: invalid manifest: {exc}", file=sys.stderr)
        sys.exit(1)

    try:
        host = AdmissionHost.from_manifest(manifest)
    except SettingsError as exc:
        print(f"Error: invalid settings: {exc.message}", file=sys.stderr)
        sys.exit(1)
    return manifest, host


def _read_envelope(path: str) -> dict:
    """Read a request file; a bare object is wrapped into an envelope."""
    p = Path(path)
    if not p.exists():
        print(f"Error: request file not found: {path}", file=sys.stderr)
        sys.exit(1)
    try:
        data = json.loads(p.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        print(f"Error: request file is not valid JSON: {path}: {exc}", file=sys.stderr)
        sys.exit(1)
    if isinstance(data, dict) and "request" not in data:
        data = {"request": {"object": data, "kind": {"kind": data.get("kind", "")}}}
    return data


def cmd_validate(args: argparse.Namespace) -> None:
    """Validate a scpolicy.yaml manifest and its settings."""
    manifest, host = _load_host(args.manifest)
    settings = host.settings

    print(f"Manifest OK: {manifest.app.name} v{manifest.app.version}")
    print(f"  Mode:            {settings.mode_name}")
    print(f"  Storage classes: {', '.join(sorted(settings.mode.names))}")
    print(f"  Fallback:        {settings.fallback or '(none)'}")
    print(f"  Audit path:      {manifest.audit.path}")


def cmd_evaluate(args: argparse.Namespace) -> None:
    """Run one request through the policy locally."""
    from pydantic import ValidationError

    from contracts.admission import ValidationRequest
    from contracts.settings import SettingsError

    _, host = _load_host(args.manifest)
    try:
        envelope = ValidationRequest.model_validate(_read_envelope(args.request))
    except ValidationError as exc:
        print(f"Error: invalid request: {exc}", file=sys.stderr)
        sys.exit(1)

    try:
        response = host.validate(envelope)
    except SettingsError as exc:
        print(f"Error: invalid settings: {exc.message}", file=sys.stderr)
        sys.exit(1)

    print(json.dumps(response.to_wire(), indent=2 if args.pretty else None))


def cmd_submit(args: argparse.Namespace) -> None:
    """POST a request to a running policy server."""
    import httpx

    envelope = _read_envelope(args.request)
    url = args.url.rstrip("/") + "/validate"
    try:
        resp = httpx.post(url, json=envelope, timeout=args.timeout)
    except httpx.HTTPError as exc:
        print(f"Error connecting to policy server at {url}", file=sys.stderr)
        print("Is the server running? (scpolicy run scpolicy.yaml)", file=sys.stderr)
        print(f"Details: {exc}", file=sys.stderr)
        sys.exit(1)

    if resp.status_code != 200:
        print(f"Error: server returned {resp.status_code}: {resp.text}", file=sys.stderr)
        sys.exit(1)
    print(json.dumps(resp.json(), indent=2 if args.pretty else None))


def cmd_run(args: argparse.Namespace) -> None:
    """Start the policy server."""
    import os

    os.environ["SCPOLICY_MANIFEST"] = args.manifest

    # Validate first
    manifest, host = _load_host(args.manifest)

    print(f"Starting storage class policy '{manifest.app.name}'...")
    print(f"  Manifest: {args.manifest}")
    print(f"  Host:     {args.host}")
    print(f"  Port:     {args.port}")
    print(f"  Mode:     {host.settings.mode_name}")
    print()

    import uvicorn

    uvicorn.run(
        "engine.app:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
        log_level="info",
    )


def cmd_logs(args: argparse.Namespace) -> None:
    """Query audit logs."""
    from contracts.audit import AuditEvent
    from engine.audit.query import AuditQuery, tail

    log_path = args.log_path

    if not Path(log_path).exists():
        print(f"No audit log found at {log_path}", file=sys.stderr)
        sys.exit(1)

    event = None
    if args.event:
        try:
            event = AuditEvent(args.event)
        except ValueError:
            valid = ", ".join(e.value for e in AuditEvent)
            print(f"Unknown event type: {args.event}", file=sys.stderr)
            print(f"Valid events: {valid}", file=sys.stderr)
            sys.exit(1)

    query = AuditQuery(
        request_id=args.request_id,
        event=event,
        verdict=args.verdict,
        policy_mode=args.mode,
        storage_class=args.storage_class,
        namespace=args.namespace,
    )
    entries = tail(log_path, n=args.limit, query=query)

    if not entries:
        print("No matching audit entries.")
        return

    for entry in entries:
        record = json.loads(entry.model_dump_json())
        if args.json:
            print(json.dumps(record))
        else:
            ts = record["ts"][:19]
            event_name = record["event"]
            mode = record["policy_mode"] or "-"
            rid = record["request_id"][:8]
            detail = json.dumps(record.get("detail", {}))
            print(f"{ts}  [{event_name:18s}]  {mode:10s}  {rid}  {detail}")


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(
        prog="scpolicy",
        description="PersistentVolumeClaim storage class admission policy",
    )
    sub = parser.add_subparsers(dest="command")

    # validate
    p_val = sub.add_parser("validate", help="Validate a scpolicy.yaml manifest")
    p_val.add_argument(
        "manifest", nargs="?", default="scpolicy.yaml", help="Path to manifest"
    )
    p_val.set_defaults(func=cmd_validate)

    # evaluate
    p_eval = sub.add_parser("evaluate", help="Evaluate a request file locally")
    p_eval.add_argument("manifest", help="Path to manifest")
    p_eval.add_argument("request", help="JSON admission envelope or bare object")
    p_eval.add_argument("--pretty", action="store_true", help="Indent JSON output")
    p_eval.set_defaults(func=cmd_evaluate)

    # submit
    p_sub = sub.add_parser("submit", help="Send a request file to a running server")
    p_sub.add_argument("request", help="JSON admission envelope or bare object")
    p_sub.add_argument("--url", default="http://127.0.0.1:8080", help="Server base URL")
    p_sub.add_argument("--timeout", type=float, default=5.0, help="Request timeout (s)")
    p_sub.add_argument("--pretty", action="store_true", help="Indent JSON output")
    p_sub.set_defaults(func=cmd_submit)

    # run
    p_run = sub.add_parser("run", help="Start the policy server")
    p_run.add_argument(
        "manifest", nargs="?", default="scpolicy.yaml", help="Path to manifest"
    )
    p_run.add_argument("--host", default="127.0.0.1", help="Bind address")
    p_run.add_argument("--port", type=int, default=8080, help="Port")
    p_run.add_argument("--reload", action="store_true", help="Enable auto-reload")
    p_run.set_defaults(func=cmd_run)

    # logs
    p_logs = sub.add_parser("logs", help="Query audit logs")
    p_logs.add_argument("log_path", help="Path to audit JSONL file")
    p_logs.add_argument("--request-id", "-r", help="Filter by request ID")
    p_logs.add_argument("--event", "-e", help="Filter by event type")
    p_logs.add_argument(
        "--verdict", choices=["accept", "reject", "mutate"], help="Filter by admission verdict"
    )
    p_logs.add_argument(
        "--mode", choices=["deny_list", "allow_list"], help="Filter by policy mode"
    )
    p_logs.add_argument("--storage-class", "-s", help="Filter by requested storage class")
    p_logs.add_argument("--namespace", help="Filter by claim namespace")
    p_logs.add_argument("--limit", "-n", type=int, default=20, help="Max entries")
    p_logs.add_argument("--json", action="store_true", help="Output raw JSON")
    p_logs.set_defaults(func=cmd_logs)

    args = parser.parse_args(argv)
    if not args.command:
        parser.print_help()
        sys.exit(1)

    args.func(args)


if __name__ == "__main__":
    main()
