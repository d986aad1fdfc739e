"""Hivemind CLI — dispatch prompts, follow tasks, vote on answers.

Usage:
    hivemind dispatch "Is BONK a good buy?"      # Dispatch and follow to completion
    hivemind status <task-id>                    # One task with its message log
    hivemind tasks                               # Your recent tasks
    hivemind vote <task-id> magos up             # Rate a specialist's answer
    hivemind reputation [magos]                  # Scores for all / one specialist
    hivemind specialists                         # Catalog with fees and success rates
    hivemind token <user-id>                     # Mint a JWT (needs the server secret)
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import json
import os
import sys
import time
from typing import Optional

import click
import httpx

# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------

DEFAULT_API_URL = "http://localhost:3000"
TERMINAL_STATUSES = ("completed", "failed")


def _api_url() -> str:
    return os.environ.get("HIVEMIND_API_URL", DEFAULT_API_URL).rstrip("/")


def _headers() -> dict[str, str]:
    key = os.environ.get("HIVEMIND_API_KEY")
    if key:
        return {"x-api-key": key}
    token = os.environ.get("HIVEMIND_TOKEN")
    if token:
        return {"Authorization": f"Bearer {token}"}
    return {}


def _client() -> httpx.AsyncClient:
    """Build an async HTTP client pointed at the Hivemind API."""
    return httpx.AsyncClient(
        base_url=f"{_api_url()}/api/v1", headers=_headers(), timeout=30.0
    )


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _run(coro):
    """Run an async coroutine from a synchronous Click handler.

    Offloads to a thread when a loop is already running (e.g. CliRunner
    invoked from inside an async test).
    """
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return asyncio.run(coro)
    with concurrent.futures.ThreadPoolExecutor(max_workers=1) as pool:
        return pool.submit(asyncio.run, coro).result()


def _check(r: httpx.Response) -> dict:
    """Return the JSON body, or print the API's error and exit."""
    if r.status_code >= 400:
        try:
            detail = r.json().get("detail", r.text)
        except ValueError:
            detail = r.text
        click.secho(f"Error {r.status_code}: {detail}", fg="red", err=True)
        sys.exit(1)
    return r.json()


def _pretty_json(data: dict | list) -> str:
    return json.dumps(data, indent=2, default=str)


def _status_color(status: str) -> str:
    colors = {
        "pending": "white",
        "routing": "cyan",
        "awaiting_payment": "magenta",
        "processing": "yellow",
        "completed": "green",
        "failed": "red",
    }
    return colors.get(status, "white")


def _print_task(task: dict, verbose: bool = False) -> None:
    status = task["status"]
    click.secho(f"Task {task['id']}", bold=True)
    click.echo(f"  Prompt:     {task['prompt'][:80]}")
    click.echo(f"  Specialist: {task['specialist']}")
    click.echo(f"  Status:     {click.style(status, fg=_status_color(status))}")

    result = task.get("result")
    if result:
        summary = (result.get("data") or {}).get("summary")
        if summary:
            click.echo()
            click.echo(summary)

    payments = task.get("payments") or []
    if payments:
        click.echo()
        click.secho("Payments:", bold=True)
        for p in payments:
            line = f"  {p['amount']} {p['currency']} → {p['recipient']} ({p['status']})"
            click.echo(line)

    if verbose:
        click.echo()
        click.secho("Messages:", bold=True)
        for m in task.get("messages", []):
            click.echo(f"  [{m['from']} → {m['to']}] {m['content']}")


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(prog_name="hivemind")
def main():
    """Hivemind — route prompts to paid AI specialists."""


# ---------------------------------------------------------------------------
# hivemind dispatch
# ---------------------------------------------------------------------------


@main.command()
@click.argument("prompt")
@click.option("--specialist", "-s", help="Skip routing and use this specialist")
@click.option("--dry-run", is_flag=True, help="Route only; don't call anyone")
@click.option("--callback-url", help="POST the final result here")
@click.option("--hire", multiple=True, help="Restrict routing to these specialists")
@click.option("--no-wait", is_flag=True, help="Return right after dispatch")
@click.option("--timeout", default=60.0, show_default=True, help="Seconds to wait")
def dispatch(prompt: str, specialist: Optional[str], dry_run: bool,
             callback_url: Optional[str], hire: tuple[str, ...], no_wait: bool,
             timeout: float):
    """Dispatch PROMPT and follow the task until it finishes."""
    _run(_dispatch_impl(prompt, specialist, dry_run, callback_url, hire, no_wait, timeout))


async def _dispatch_impl(prompt, specialist, dry_run, callback_url, hire, no_wait, timeout):
    body: dict = {"prompt": prompt, "dryRun": dry_run}
    if specialist:
        body["preferredSpecialist"] = specialist
    if callback_url:
        body["callbackUrl"] = callback_url
    if hire:
        body["hiredAgents"] = list(hire)

    async with _client() as c:
        accepted = _check(await c.post("/dispatch", json=body))
        task_id = accepted["taskId"]
        click.echo(f"Task {task_id} → {accepted['specialist']} ({accepted['status']})")
        if no_wait:
            return

        start = time.time()
        last_status = accepted["status"]
        while True:
            await asyncio.sleep(0.5)
            task = _check(await c.get(f"/tasks/{task_id}"))
            if task["status"] != last_status:
                last_status = task["status"]
                click.echo(f"  {click.style(last_status, fg=_status_color(last_status))}")
            if last_status in TERMINAL_STATUSES:
                break
            if time.time() - start > timeout:
                click.secho("Timed out waiting; the task is still running.", fg="yellow")
                return

        click.echo()
        _print_task(task)


# ---------------------------------------------------------------------------
# hivemind status / tasks
# ---------------------------------------------------------------------------


@main.command()
@click.argument("task_id")
@click.option("--json", "as_json", is_flag=True, help="Print the raw task")
def status(task_id: str, as_json: bool):
    """Show one task and its message log."""
    _run(_status_impl(task_id, as_json))


async def _status_impl(task_id: str, as_json: bool):
    async with _client() as c:
        task = _check(await c.get(f"/tasks/{task_id}"))
    if as_json:
        click.echo(_pretty_json(task))
    else:
        _print_task(task, verbose=True)


@main.command()
@click.option("--limit", "-n", default=10, show_default=True)
def tasks(limit: int):
    """List your most recent tasks."""
    _run(_tasks_impl(limit))


async def _tasks_impl(limit: int):
    async with _client() as c:
        data = _check(await c.get("/tasks", params={"limit": limit}))

    if not data["tasks"]:
        click.echo("No tasks yet.")
        return
    for t in data["tasks"]:
        status_str = click.style(f"{t['status']:16s}", fg=_status_color(t["status"]))
        click.echo(f"{t['id'][:8]}  {status_str}  {t['specialist']:10s}  {t['prompt'][:50]}")


# ---------------------------------------------------------------------------
# hivemind vote / reputation / specialists
# ---------------------------------------------------------------------------


@main.command()
@click.argument("task_id")
@click.argument("specialist")
@click.argument("direction", type=click.Choice(["up", "down"]))
def vote(task_id: str, specialist: str, direction: str):
    """Up- or downvote SPECIALIST's answer to TASK_ID."""
    _run(_vote_impl(task_id, specialist, direction))


async def _vote_impl(task_id: str, specialist: str, direction: str):
    async with _client() as c:
        result = _check(await c.post("/votes", json={
            "taskId": task_id, "specialist": specialist, "vote": direction,
        }))
    color = "green" if result["success"] else "yellow"
    click.secho(result["message"], fg=color)
    click.echo(
        f"{specialist}: {result['newRate']}% "
        f"(+{result['upvotes']} / -{result['downvotes']})"
    )


@main.command()
@click.argument("specialist", required=False)
def reputation(specialist: Optional[str]):
    """Show reputation for every specialist, or details for one."""
    _run(_reputation_impl(specialist))


async def _reputation_impl(specialist: Optional[str]):
    async with _client() as c:
        if specialist:
            click.echo(_pretty_json(_check(await c.get(f"/reputation/{specialist}"))))
            return
        scores = _check(await c.get("/reputation"))

    if not scores:
        click.echo("No votes or outcomes recorded yet.")
        return
    for name, s in sorted(scores.items()):
        click.echo(f"{name:10s}  {s['successRate']:3d}%  +{s['upvotes']} / -{s['downvotes']}")


@main.command()
def specialists():
    """List specialists with their fees and success rates."""
    _run(_specialists_impl())


async def _specialists_impl():
    async with _client() as c:
        data = _check(await c.get("/specialists"))
    for s in data["specialists"]:
        click.echo(
            f"{s['id']:10s}  {s['fee']:>8s} USDC  {s['successRate']:3d}%  {s['description']}"
        )


# ---------------------------------------------------------------------------
# hivemind token
# ---------------------------------------------------------------------------


@main.command()
@click.argument("user_id")
@click.option("--minutes", type=int, help="Lifetime (default from settings)")
def token(user_id: str, minutes: Optional[int]):
    """Mint an access token for USER_ID with the local HIVEMIND_JWT_SECRET."""
    from hivemind.auth.jwt import create_access_token
    from hivemind.config import settings

    click.echo(create_access_token(user_id, settings, expires_minutes=minutes))


if __name__ == "__main__":
    main()
