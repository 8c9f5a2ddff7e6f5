import json
import socket
from typing import Optional

import httpx
import typer
import uvicorn

from pwalker.supervisor.logging_setup import configure_logging
from pwalker.supervisor.runtime_config import load_config
from pwalker.supervisor.tools import TOOL_SPECS

app = typer.Typer(help="Worker control: task queue and background process supervisor.")


def _server_url(host: Optional[str], port: Optional[int]) -> str:
    if host is None or port is None:
        settings = load_config()
        host = host or settings["host"]
        port = port or settings["port"]
    return f"http://{host}:{port}"


def is_port_in_use(host: str, port: int) -> bool:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        return s.connect_ex((host, port)) == 0


@app.command()
def serve(
    host: Optional[str] = typer.Option(None, help="Bind address (default from config)."),
    port: Optional[int] = typer.Option(None, help="Bind port (default from config)."),
):
    """Run the worker-control server in the foreground."""
    settings = load_config()
    bind_host = host or settings["host"]
    bind_port = port or settings["port"]

    if is_port_in_use(bind_host, bind_port):
        typer.echo(f"Error: Port {bind_port} is already in use by another process.")
        raise typer.Exit(code=1)

    configure_logging(settings["log_level"], settings["log_file"])
    uvicorn.run(
        "pwalker.supervisor.app:build_default_app",
        factory=True,
        host=bind_host,
        port=bind_port,
        log_config=None,
    )


@app.command()
def status(
    host: Optional[str] = typer.Option(None),
    port: Optional[int] = typer.Option(None),
):
    """Check server status."""
    url = _server_url(host, port)
    try:
        response = httpx.get(f"{url}/health", timeout=5.0)
    except httpx.ConnectError:
        typer.echo("Server: NOT RESPONDING (Connection refused)")
        raise typer.Exit(code=1)
    if response.status_code != 200:
        typer.echo("Server: UNHEALTHY (API not responding correctly)")
        raise typer.Exit(code=1)
    data = response.json()
    typer.echo("Server: RUNNING")
    typer.echo(f"Live processes: {data['live_processes']}")
    typer.echo(f"Queued tasks: {data['queued_tasks']}")


@app.command()
def tools():
    """List the available operations."""
    for spec in TOOL_SPECS.values():
        typer.echo(f"{spec.name}: {spec.description}")


@app.command()
def call(
    name: str,
    arguments: str = typer.Argument("{}", help="Operation arguments as a JSON object."),
    host: Optional[str] = typer.Option(None),
    port: Optional[int] = typer.Option(None),
):
    """Invoke an operation on a running server and print its text result."""
    try:
        payload = json.loads(arguments)
    except json.JSONDecodeError as exc:
        typer.echo(f"Invalid JSON arguments: {exc}")
        raise typer.Exit(code=2)
    if not isinstance(payload, dict):
        typer.echo("Arguments must be a JSON object.")
        raise typer.Exit(code=2)

    url = _server_url(host, port)
    try:
        response = httpx.post(f"{url}/tools/{name}", json=payload, timeout=None)
    except httpx.ConnectError:
        typer.echo("Server is not running.")
        raise typer.Exit(code=1)
    if response.status_code != 200:
        typer.echo(f"Call failed ({response.status_code}): {response.text}")
        raise typer.Exit(code=1)
    for item in response.json()["content"]:
        typer.echo(item["text"])


if __name__ == "__main__":
    app()
