#!/usr/bin/env python3
"""
Hivemind Quickstart — dispatch, follow, vote.

Dispatches a single-hop prompt and a multi-hop prompt, prints the
results and fees, then upvotes the answer and shows the new score.
Run with: python examples/quickstart.py

Requires: pip install httpx
Backend must be running with HIVEMIND_API_KEYS containing HIVEMIND_API_KEY.
"""

from _common import create_client, wait_for_task


def main():
    client = create_client()

    # ── Single hop ────────────────────────────────────────────────
    print("\n1. Dispatching a market question...")
    resp = client.post("/dispatch", json={"prompt": "Is BONK a good buy right now?"})
    assert resp.status_code == 202, f"Failed: {resp.text}"
    accepted = resp.json()
    print(f"   Task {accepted['taskId'][:8]}... → {accepted['specialist']}")

    task = wait_for_task(client, accepted["taskId"])
    print(f"\n{task['result']['data'].get('summary', '(no summary)')}")
    for p in task["payments"]:
        print(f"   fee: {p['amount']} {p['currency']} → {p['recipient']} ({p['status']})")

    # ── Multi hop ─────────────────────────────────────────────────
    print("\n2. Dispatching a multi-hop workflow...")
    resp = client.post("/dispatch", json={"prompt": "Find trending tokens and buy the top one"})
    assert resp.status_code == 202, f"Failed: {resp.text}"
    multi = resp.json()
    print(f"   Task {multi['taskId'][:8]}... → {multi['specialist']}")

    task = wait_for_task(client, multi["taskId"])
    for step in task["result"]["data"].get("steps", []):
        print(f"   [{step['specialist']}] {step['summary'].splitlines()[0]}")

    # ── Vote ──────────────────────────────────────────────────────
    print("\n3. Upvoting the first answer...")
    resp = client.post("/votes", json={
        "taskId": accepted["taskId"],
        "specialist": accepted["specialist"],
        "vote": "up",
    })
    vote = resp.json()
    print(f"   {vote['message']} — {accepted['specialist']} now at {vote['newRate']}%")

    print("\nDone.")


if __name__ == "__main__":
    main()
