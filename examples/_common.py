"""
Shared helpers for Hivemind examples.

Handles the health check and API-key auth so each example can focus
on its specific workflow.
"""

import os
import sys
import time

import httpx

BASE = os.environ.get("HIVEMIND_API_URL", "http://localhost:3000").rstrip("/") + "/api/v1"


def check_backend() -> None:
    """Verify the backend is reachable and print what it runs on."""
    try:
        resp = httpx.get(f"{BASE}/health", timeout=5)
    except httpx.ConnectError:
        print(f"ERROR: Backend not reachable at {BASE}")
        print("Start it with:  HIVEMIND_API_KEYS='[\"demo-key\"]' uvicorn hivemind.main:app --port 3000")
        sys.exit(1)

    if resp.status_code != 200:
        print(f"ERROR: Health check returned {resp.status_code}")
        sys.exit(1)

    health = resp.json()
    print("Backend health:")
    print(f"  Version:  {health['version']}")
    print(f"  Storage:  {health['storage']}")
    print(f"  Redis:    {'✓' if health['redis'] == 'ok' else '✗ (mirror + rate limiting off)'}")


def create_client() -> httpx.Client:
    """Check backend and return an httpx Client carrying the API key."""
    check_backend()
    key = os.environ.get("HIVEMIND_API_KEY", "demo-key")
    print("  Auth:     x-api-key")
    return httpx.Client(base_url=BASE, timeout=10, headers={"x-api-key": key})


def wait_for_task(client: httpx.Client, task_id: str, timeout: float = 30.0) -> dict:
    """Poll a task until it completes or fails, printing status changes."""
    start = time.time()
    last = None
    while time.time() - start < timeout:
        resp = client.get(f"/tasks/{task_id}")
        assert resp.status_code == 200, f"Task lookup failed: {resp.text}"
        task = resp.json()
        if task["status"] != last:
            last = task["status"]
            print(f"   status → {last}")
        if last in ("completed", "failed"):
            return task
        time.sleep(0.3)
    print(f"ERROR: task {task_id} still {last} after {timeout:.0f}s")
    sys.exit(1)
