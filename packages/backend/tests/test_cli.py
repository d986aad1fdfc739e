"""CLI tests — click commands against an in-process app.

Learn: The CLI builds its HTTP client through `_client()`. Patching that
to an httpx client on ASGITransport sends every command straight into
a test app, no server or network involved.
"""

import httpx
import pytest
from click.testing import CliRunner

from hivemind.auth.jwt import verify_token
from hivemind.cli import main as cli
from hivemind.config import settings as global_settings
from hivemind.main import create_app
from hivemind.runtime import build_runtime
from hivemind.services.webhook_service import CallbackNotifier

from conftest import API_KEY, CallbackRecorder, FakeSettlement, make_settings


@pytest.fixture()
def cli_app():
    runtime = build_runtime(
        make_settings(),
        settlement=FakeSettlement(),
        callbacks=CallbackNotifier(transport=httpx.MockTransport(CallbackRecorder())),
    )
    return create_app(runtime)


@pytest.fixture()
def runner(cli_app, monkeypatch):
    def client():
        return httpx.AsyncClient(
            transport=httpx.ASGITransport(app=cli_app),
            base_url="http://test/api/v1",
            headers={"x-api-key": API_KEY},
        )

    monkeypatch.setattr(cli, "_client", client)
    return CliRunner()


def test_specialists(runner):
    result = runner.invoke(cli.main, ["specialists"])
    assert result.exit_code == 0, result.output
    assert "magos" in result.output
    assert "0.001 USDC" in result.output


def test_no_tasks_yet(runner):
    result = runner.invoke(cli.main, ["tasks"])
    assert result.exit_code == 0
    assert "No tasks yet." in result.output


def test_dispatch_no_wait(runner):
    result = runner.invoke(cli.main, ["dispatch", "Is BONK a good buy?", "--no-wait"])
    assert result.exit_code == 0, result.output
    assert "→ magos (pending)" in result.output


def test_dispatch_unknown_specialist(runner):
    result = runner.invoke(cli.main, ["dispatch", "hi", "-s", "oracle", "--no-wait"])
    assert result.exit_code == 1
    assert "Error 400" in result.output


def test_status_of_missing_task(runner):
    result = runner.invoke(cli.main, ["status", "nope"])
    assert result.exit_code == 1
    assert "Error 404" in result.output


def test_vote_and_reputation(runner):
    result = runner.invoke(cli.main, ["vote", "task-1", "magos", "up"])
    assert result.exit_code == 0, result.output
    assert "Upvote recorded" in result.output
    assert "magos: 100%" in result.output

    result = runner.invoke(cli.main, ["reputation"])
    assert "magos" in result.output
    assert "+1 / -0" in result.output


def test_vote_direction_is_validated(runner):
    result = runner.invoke(cli.main, ["vote", "task-1", "magos", "sideways"])
    assert result.exit_code == 2


def test_token(runner):
    result = runner.invoke(cli.main, ["token", "alice", "--minutes", "5"])
    assert result.exit_code == 0
    payload = verify_token(result.output.strip(), global_settings)
    assert payload["sub"] == "alice"
