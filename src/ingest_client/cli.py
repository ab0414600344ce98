from __future__ import annotations

import asyncio
import json
from typing import Optional

import typer
from loguru import logger

from ingest_tracker import Tracker, TrackerSettings, configure_logging

from . import IngestClient, AsyncIngestClient, ClientSettings
from .config import DEFAULT_ENDPOINT
from .errors import IngestError
from .utils import iter_ndjson

app = typer.Typer(help="ingest_client operational CLI")

# ---------------------------
# Common options
# ---------------------------


def endpoint_opt() -> str:
    return typer.Option(
        DEFAULT_ENDPOINT, "--endpoint", envvar="INGEST_ENDPOINT", help="Ingestion API url"
    )


def auth_opt() -> str:
    return typer.Option("", "--auth", envvar="INGEST_AUTH", help="HMAC key (empty: unsigned)")


def stream_opt() -> str:
    return typer.Option(..., "--stream", help="Target stream name")


def _client(endpoint: str, auth: str) -> IngestClient:
    return IngestClient(ClientSettings(ENDPOINT=endpoint, AUTH=auth))


def _fail(e: IngestError) -> None:
    typer.echo(json.dumps({"ok": False, "status": e.status, "message": e.message}), err=True)
    raise typer.Exit(code=1)


# ---------------------------
# Health / one-shot writes
# ---------------------------


@app.command("health")
def health(endpoint: str = endpoint_opt()):
    try:
        with _client(endpoint, "") as client:
            ok = client.health()
    except IngestError as e:
        _fail(e)
    typer.echo(json.dumps({"ok": ok}, indent=2))


@app.command("put-event")
def put_event(
    data: str = typer.Argument(..., help="JSON (or raw string) payload"),
    stream: str = stream_opt(),
    method: str = typer.Option("POST", "--method", help="POST or GET"),
    endpoint: str = endpoint_opt(),
    auth: str = auth_opt(),
):
    try:
        with _client(endpoint, auth) as client:
            res = client.put_event(stream, _maybe_json(data), method=method)
    except IngestError as e:
        _fail(e)
    typer.echo(json.dumps(res.model_dump(), indent=2))


@app.command("put-events")
def put_events(
    path: str = typer.Argument(..., help="NDJSON file (.ndjson / .ndjson.gz) or '-' for stdin"),
    stream: str = stream_opt(),
    endpoint: str = endpoint_opt(),
    auth: str = auth_opt(),
):
    """Send every line of ``path`` as one bulk request."""
    rows = list(iter_ndjson(path))
    try:
        with _client(endpoint, auth) as client:
            res = client.put_events(stream, rows)
    except IngestError as e:
        _fail(e)
    typer.echo(json.dumps({"sent": len(rows), **res.model_dump()}, indent=2))


# ---------------------------
# Buffered tracking
# ---------------------------


@app.command("track")
def track(
    path: str = typer.Argument(..., help="NDJSON file (.ndjson / .ndjson.gz) or '-' for stdin"),
    stream: str = stream_opt(),
    bulk_len: Optional[int] = typer.Option(None, "--bulk-len", help="Events per bulk request"),
    flush_interval: Optional[float] = typer.Option(
        None, "--flush-interval", help="Seconds between time-based flushes"
    ),
    endpoint: str = endpoint_opt(),
    auth: str = auth_opt(),
    debug: bool = typer.Option(False, "--debug", help="Verbose logging"),
):
    """Feed ``path`` through a Tracker; drains gracefully at end of input."""
    configure_logging(debug=debug)
    overrides = {
        k: v for k, v in {"bulk_len": bulk_len, "flush_interval": flush_interval}.items() if v
    }
    failures: list[dict] = []

    def on_error(err, batch):
        failures.append({"stream": batch.stream, "events": len(batch), "status": err.status})

    async def _run() -> int:
        n = 0
        async with AsyncIngestClient(ClientSettings(ENDPOINT=endpoint, AUTH=auth)) as client:
            async with Tracker(client, TrackerSettings(**overrides), on_error=on_error) as tracker:
                for obj in iter_ndjson(path):
                    await tracker.track(stream, obj)
                    n += 1
        return n

    n = asyncio.run(_run())
    logger.info(f"Tracked {n} events ({len(failures)} failed batches)")
    typer.echo(json.dumps({"tracked": n, "failed_batches": failures}, indent=2))
    if failures:
        raise typer.Exit(code=1)


def _maybe_json(raw: str):
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        return raw


if __name__ == "__main__":
    app()
