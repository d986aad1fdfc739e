#!/usr/bin/env python3
"""
Hivemind x402 — call a specialist directly and pay per request.

Shows the 402 handshake: the first call returns the payment
requirements, the second carries a payment signature, and replaying
the same signature is rejected.
Run with: python examples/x402_invoke.py

Requires: pip install httpx
"""

import base64
import json
import uuid

import httpx

from _common import BASE, check_backend


def main():
    check_backend()
    client = httpx.Client(base_url=BASE, timeout=10)
    body = {"prompt": "What is the sentiment on SOL?"}

    print("\n1. Calling aura without paying...")
    resp = client.post("/specialists/aura/invoke", json=body)
    print(f"   → {resp.status_code}")
    requirements = json.loads(base64.b64decode(resp.headers["payment-required"]))
    for option in requirements["accepts"]:
        print(f"   accepts {option['amount']} ({option['network']}) → {option['payTo'] or '(unset)'}")

    # A real client signs a transfer matching one of the options above
    signature = f"demo-{uuid.uuid4().hex}"

    print("\n2. Calling again with a payment signature...")
    resp = client.post("/specialists/aura/invoke", json=body, headers={"payment-signature": signature})
    print(f"   → {resp.status_code}: {resp.json()['data'].get('summary', '')[:70]}")

    print("\n3. Replaying the same signature...")
    resp = client.post("/specialists/aura/invoke", json=body, headers={"payment-signature": signature})
    print(f"   → {resp.status_code}: {resp.json()['detail']}")


if __name__ == "__main__":
    main()
