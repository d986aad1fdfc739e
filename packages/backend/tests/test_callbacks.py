"""Callback tests — SSRF guard, payload shape, best-effort delivery."""

import httpx
import pytest

from hivemind.models import AgentMessage, SpecialistResult, Task, TaskStatus
from hivemind.services.webhook_service import (
    CallbackNotifier,
    CallbackUrlError,
    build_callback_payload,
    is_safe_callback_url,
    validate_callback_url,
)


# ═══════════════════════════════════════════════════════════
# SSRF guard
# ═══════════════════════════════════════════════════════════


@pytest.mark.parametrize(
    "url",
    [
        "https://hooks.example.com/done",
        "http://api.partner.io:8080/callback?x=1",
        "https://8.8.8.8/hook",
    ],
)
def test_public_urls_allowed(url):
    assert validate_callback_url(url) == url


@pytest.mark.parametrize(
    "url",
    [
        "ftp://example.com/file",
        "file:///etc/passwd",
        "http://localhost:3000/internal",
        "http://api.localhost/x",
        "http://127.0.0.1/",
        "http://10.0.0.5/hook",
        "http://192.168.1.1/hook",
        "http://172.16.3.4/hook",
        "http://169.254.169.254/latest/meta-data",
        "http://metadata.google.internal/computeMetadata",
        "http://[::1]/hook",
        "http://[::ffff:127.0.0.1]/hook",
        "http://0.0.0.0/",
        "https:///no-host",
        # shorthand IPv4 that resolvers expand to 127.0.0.1 / 10.0.0.1
        "http://2130706433/hook",
        "http://127.1/hook",
        "http://0x7f000001/hook",
        "http://0177.0.0.1/hook",
        "http://10.1/hook",
    ],
)
def test_internal_urls_blocked(url):
    with pytest.raises(CallbackUrlError):
        validate_callback_url(url)
    assert not is_safe_callback_url(url)


# ═══════════════════════════════════════════════════════════
# Payload
# ═══════════════════════════════════════════════════════════


def test_payload_shape():
    task = Task(
        prompt="Swap 1 SOL to USDC",
        specialist="bankr",
        status=TaskStatus.COMPLETED,
        messages=[AgentMessage(sender="dispatcher", recipient="bankr", content="hi")],
    )
    result = SpecialistResult(
        success=True,
        data={
            "type": "swap",
            "status": "simulated",
            "details": {"amount": "1", "from": "SOL", "to": "USDC"},
        },
    )

    payload = build_callback_payload(task, result)

    assert payload["taskId"] == task.id
    assert payload["status"] == "completed"
    assert payload["specialist"] == "bankr"
    assert payload["result"]["summary"] == "Swap simulated\n1 SOL → USDC"
    assert payload["messages"][0]["from"] == "dispatcher"


def test_payload_without_result():
    task = Task(prompt="x", specialist="magos", status=TaskStatus.FAILED)
    assert build_callback_payload(task, None)["result"] is None


# ═══════════════════════════════════════════════════════════
# Delivery
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_notify_reports_success():
    notifier = CallbackNotifier(transport=httpx.MockTransport(lambda r: httpx.Response(204)))
    assert await notifier.notify("https://hooks.example.com/done", {"taskId": "t"})
    await notifier.aclose()


@pytest.mark.asyncio
async def test_notify_swallows_errors():
    def unreachable(request):
        raise httpx.ConnectError("connection refused", request=request)

    notifier = CallbackNotifier(transport=httpx.MockTransport(unreachable))
    assert await notifier.notify("https://hooks.example.com/done", {}) is False

    notifier = CallbackNotifier(transport=httpx.MockTransport(lambda r: httpx.Response(503)))
    assert await notifier.notify("https://hooks.example.com/done", {}) is False
    await notifier.aclose()
