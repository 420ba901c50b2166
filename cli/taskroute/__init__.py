#!/usr/bin/env python3
"""Task Router CLI.

Usage:
    taskroute health           - Show service status
    taskroute init BX_LINK     - Store the incoming webhook URL (encrypted)
    taskroute route TASK_ID    - Run routing for one task, as a webhook would
"""

import os
import sys
from typing import Optional

import click
import httpx
from rich.console import Console
from rich.panel import Panel
from rich.text import Text

# API base URL
API_BASE = os.getenv("TASKROUTE_API_URL", "http://localhost:3678")
WEBHOOK_BASE = "/task_manager_webhook"

console = Console()


def _handle_api_error(error: Exception, endpoint: str) -> None:
    """Handle API errors with user-friendly messages."""
    if isinstance(error, httpx.ConnectError):
        console.print()
        console.print("[red]⚠️  Cannot connect to Task Router API[/red]")
        console.print()
        console.print(f"[dim]Tried: {API_BASE}{endpoint}[/dim]")
        console.print()
        console.print("[dim]Possible causes:[/dim]")
        console.print("[dim]  • API server is not running[/dim]")
        console.print("[dim]  • TASKROUTE_API_URL environment variable is incorrect[/dim]")
    elif isinstance(error, httpx.TimeoutException):
        console.print()
        console.print("[red]⚠️  Request timed out[/red]")
    elif isinstance(error, httpx.HTTPStatusError):
        status = error.response.status_code
        console.print()
        try:
            message = error.response.json().get("message")
        except ValueError:
            message = None
        if status == 400:
            console.print(f"[red]⚠️  {message or 'Bad request'}[/red]")
        elif status >= 500:
            console.print("[red]⚠️  Request failed - check the service log for the cause[/red]")
        else:
            console.print(f"[red]⚠️  API Error: HTTP {status}[/red]")
    else:
        console.print()
        console.print(f"[red]⚠️  Unexpected error: {error}[/red]")
    sys.exit(1)


def api_get(endpoint: str) -> dict:
    """Make GET request to API."""
    try:
        response = httpx.get(f"{API_BASE}{endpoint}", timeout=30)
        response.raise_for_status()
        return response.json()
    except Exception as e:
        _handle_api_error(e, endpoint)


def api_post(endpoint: str, data: Optional[dict] = None) -> Optional[dict]:
    """Make POST request to API. Returns None for an empty response body."""
    try:
        response = httpx.post(f"{API_BASE}{endpoint}", json=data or {}, timeout=60)
        response.raise_for_status()
        if not response.content:
            return None
        return response.json()
    except Exception as e:
        _handle_api_error(e, endpoint)


@click.group()
def cli():
    """Task Router - files tasks into project groups by department."""
    pass


@cli.command()
def health():
    """Show service status."""
    data = api_get("/health")

    content = Text()
    content.append(f"Status: {data.get('status', 'unknown')}\n", style="bold")
    if data.get("credentials_configured"):
        content.append("Credentials: configured", style="green")
    else:
        content.append("Credentials: missing (run taskroute init)", style="yellow")

    console.print()
    console.print(Panel(content, title="[bold]Task Router[/bold]", border_style="blue"))
    console.print()


@cli.command()
@click.argument("bx_link")
def init(bx_link: str):
    """Store the incoming webhook URL, encrypted with fresh key material."""
    with console.status("[bold blue]Storing credentials...", spinner="dots"):
        data = api_post(f"{WEBHOOK_BASE}/init/", {"bx_link": bx_link})

    console.print()
    console.print(f"[green]✓[/green] {data.get('message', 'Credentials stored')}")
    console.print()


@cli.command()
@click.argument("task_id", type=int)
def route(task_id: int):
    """Route one task into its department's project group."""
    with console.status(f"[bold blue]Routing task {task_id}...", spinner="dots"):
        data = api_post(f"{WEBHOOK_BASE}/move_task_in_project/", {"ID": task_id})

    console.print()
    if data is None:
        console.print(f"[dim]Task {task_id} already in place - nothing to update.[/dim]")
    else:
        console.print(f"[green]✓[/green] Task {task_id} updated")
        task = (data.get("result") or {}).get("task") or {}
        if task.get("groupId"):
            console.print(f"[dim]Group: {task['groupId']}[/dim]")
    console.print()


if __name__ == "__main__":
    cli()
