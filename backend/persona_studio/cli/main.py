"""CLI entrypoint for Persona Studio."""

from __future__ import annotations

import json
import mimetypes
import os
import time
from pathlib import Path
from typing import List, Optional

import requests
import typer

app = typer.Typer(name="pstu", help="Persona Studio command-line interface")
personas_app = typer.Typer(name="personas")
app.add_typer(personas_app, name="personas")

DEFAULT_HOST = "http://127.0.0.1:5180"


def _resolve_host(override: Optional[str]) -> str:
    if override:
        return override.rstrip('/')
    env_host = os.environ.get("PSTU_HOST")
    if env_host:
        return env_host.rstrip('/')
    return DEFAULT_HOST


def _request(method: str, path: str, host: Optional[str] = None, **kwargs) -> requests.Response:
    base = _resolve_host(host)
    url = f"{base}{path}"
    resp = requests.request(method, url, timeout=300, **kwargs)
    if not resp.ok:
        try:
            detail = resp.json()
        except ValueError:
            detail = resp.text
        typer.echo(f"Request failed ({resp.status_code}): {detail}", err=True)
        raise typer.Exit(code=1)
    return resp


@personas_app.command("create")
def create_persona(
    name: str = typer.Argument(..., help="Display name"),
    description: Optional[str] = typer.Option(None, "--description", help="Short description"),
    host: Optional[str] = typer.Option(None, "--host", help="Override backend host"),
) -> None:
    """Create a persona and print its identifier."""
    resp = _request("POST", "/personas", host=host, json={"name": name, "description": description})
    typer.echo(json.dumps(resp.json(), indent=2))


@personas_app.command("show")
def show_persona(
    persona_id: str = typer.Argument(..., help="Persona identifier"),
    host: Optional[str] = typer.Option(None, "--host", help="Override backend host"),
) -> None:
    """Show a persona and its training state."""
    resp = _request("GET", f"/personas/{persona_id}", host=host)
    typer.echo(json.dumps(resp.json(), indent=2))


@app.command()
def upload(
    paths: List[Path] = typer.Argument(..., help="Files to upload", exists=True, dir_okay=False),
    persona: str = typer.Option(..., "--persona", help="Destination persona identifier"),
    host: Optional[str] = typer.Option(None, "--host", help="Override backend host"),
) -> None:
    """Upload one batch of files for a persona."""
    handles = []
    try:
        files = []
        for path in paths:
            handle = path.expanduser().open("rb")
            handles.append(handle)
            mime_type = mimetypes.guess_type(path.name)[0] or "application/octet-stream"
            files.append(("files", (path.name, handle, mime_type)))
        resp = _request("POST", f"/personas/{persona}/uploads", host=host, files=files)
    finally:
        for handle in handles:
            handle.close()
    payload = resp.json()
    for notice in payload["notices"]:
        typer.echo(f"[{notice['level']}] {notice['message']}", err=notice["level"] != "success")
    typer.echo(json.dumps(payload["files"], indent=2))


@app.command()
def train(
    persona: str = typer.Option(..., "--persona", help="Persona identifier"),
    wait: bool = typer.Option(True, "--wait/--no-wait", help="Poll until training finishes"),
    interval: float = typer.Option(2.0, "--interval", help="Polling interval in seconds"),
    host: Optional[str] = typer.Option(None, "--host", help="Override backend host"),
) -> None:
    """Start training and optionally follow its progress."""
    resp = _request("POST", f"/personas/{persona}/training", host=host)
    status = resp.json()
    while wait and status["is_training"]:
        time.sleep(interval)
        status = _request("GET", f"/personas/{persona}/training", host=host).json()
        typer.echo(f"{status['overall_progress']:.0f}% " + " ".join(
            f"{step['id']}={step['progress']}" for step in status["steps"]
        ))
    if status.get("error"):
        typer.echo(f"Training failed: {status['error']}", err=True)
        raise typer.Exit(code=1)
    typer.echo(json.dumps(status, indent=2))


@app.command()
def status(
    persona: str = typer.Option(..., "--persona", help="Persona identifier"),
    host: Optional[str] = typer.Option(None, "--host", help="Override backend host"),
) -> None:
    """Show training progress."""
    resp = _request("GET", f"/personas/{persona}/training", host=host)
    typer.echo(json.dumps(resp.json(), indent=2))


@app.command()
def chat(
    persona: str = typer.Option(..., "--persona", help="Persona identifier"),
    conversation_type: str = typer.Option("chat", "--type", help="chat, video_call or voice_call"),
    host: Optional[str] = typer.Option(None, "--host", help="Override backend host"),
) -> None:
    """Interactive chat session; an empty line ends it."""
    resp = _request(
        "POST",
        "/conversations",
        host=host,
        json={"persona_id": persona, "conversation_type": conversation_type},
    )
    conversation = resp.json()
    for message in conversation["messages"]:
        typer.echo(f"{message['sender_type']}> {message['content']}")
    while True:
        text = typer.prompt("you", default="", show_default=False)
        if not text.strip():
            break
        result = _request(
            "POST", f"/conversations/{conversation['id']}/messages", host=host, json={"content": text}
        ).json()
        if result["reply"]:
            typer.echo(f"persona> {result['reply']['content']}")
        if result["error"]:
            typer.echo(f"error: {result['error']}", err=True)
    ended = _request("POST", f"/conversations/{conversation['id']}/end", host=host).json()
    typer.echo(f"Conversation lasted {ended['duration_seconds']}s")


if __name__ == "__main__":
    app()
