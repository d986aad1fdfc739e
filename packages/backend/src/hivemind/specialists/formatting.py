"""Human-readable excerpts of specialist results.

Used for the task's audit messages, for multi-hop step summaries, and
for the callback payload.
"""

import json
from typing import Any

from hivemind.models import SpecialistResult
from hivemind.specialists.general import FALLBACK_TEXT


def extract_response_content(result: SpecialistResult) -> str:
    """Pick the most descriptive text field a specialist produced."""
    data = result.data or {}
    for key in ("combined", "insight", "summary", "reasoning"):
        if data.get(key):
            return str(data[key])

    details = data.get("details")
    if isinstance(details, dict):
        if details.get("summary"):
            return str(details["summary"])
        if details.get("response"):
            response = details["response"]
            if isinstance(response, str):
                return response
            return json.dumps(response)[:200]

    trending = data.get("trending")
    if isinstance(trending, list):
        names = [t.get("topic") or t.get("name") for t in trending[:3] if isinstance(t, dict)]
        return "Trending Topics:\n" + "\n".join(f"• {n}" for n in names)

    if data.get("type"):
        text = f"{data['type']} {data.get('status') or 'completed'}"
        if data.get("txSignature"):
            text += f" (tx: {str(data['txSignature'])[:16]}...)"
        return text

    return FALLBACK_TEXT if result.success else "Task failed"


def format_result_for_callback(result: SpecialistResult) -> dict[str, Any]:
    """`{summary, data}` block sent to callback URLs."""
    data = result.data or {}
    details = data.get("details") if isinstance(data.get("details"), dict) else {}
    kind = data.get("type")

    if kind == "balance" and details.get("summary"):
        summary = f"Balance\n{details['summary']}"
    elif kind == "transfer" and data.get("status") == "confirmed":
        summary = f"Transfer Confirmed\nSent {details.get('amount')} to {str(details.get('to', ''))[:8]}..."
    elif kind == "swap":
        summary = f"Swap {data.get('status')}\n{details.get('amount')} {details.get('from')} → {details.get('to')}"
    elif data.get("insight"):
        summary = f"Analysis\n{data['insight']}"
    else:
        summary = extract_response_content(result)

    return {"summary": summary, "data": data}
