"""Specialist catalog + the x402-gated direct invocation endpoint.

Learn: POST /specialists/{id}/invoke is the paid, open door to a
specialist. Without a payment signature on a priced specialist the
answer is 402 with the payment requirements both base64-encoded in the
`payment-required` header (what x402 clients read) and as JSON in the
body. A signature is accepted once; replaying it gets a 402 too.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException
from fastapi.responses import JSONResponse

from hivemind.auth.dependencies import get_runtime
from hivemind.runtime import Runtime
from hivemind.schemas.dispatch import SpecialistInvoke
from hivemind.services.payment_gateway import PaymentError, PaymentRequiredError

router = APIRouter()


@router.get("/specialists")
async def list_specialists(runtime: Runtime = Depends(get_runtime)):
    gateway, reputation = runtime.gateway, runtime.reputation
    specialists = []
    for specialist in runtime.registry:
        specialists.append(
            {
                **specialist.describe(),
                "fee": gateway.fee_for(specialist.id),
                "successRate": reputation.success_rate(specialist.id),
            }
        )
    return {"specialists": specialists, "count": len(specialists)}


@router.get("/pricing")
async def pricing(runtime: Runtime = Depends(get_runtime)):
    return {
        specialist: {
            "fee": fee,
            "currency": runtime.settings.fee_currency,
            "description": description,
            "successRate": runtime.reputation.success_rate(specialist),
        }
        for specialist, (fee, description) in runtime.gateway.pricing.items()
    }


@router.post("/specialists/{specialist_id}/invoke")
async def invoke_specialist(
    specialist_id: str,
    body: SpecialistInvoke,
    payment_signature: Optional[str] = Header(None),
    x_payment: Optional[str] = Header(None),
    runtime: Runtime = Depends(get_runtime),
):
    if specialist_id not in runtime.registry:
        raise HTTPException(status_code=400, detail="Invalid specialist ID")

    try:
        runtime.gateway.verify_inbound_payment(
            specialist_id, payment_signature or x_payment
        )
    except PaymentRequiredError as e:
        encoded = e.encoded
        return JSONResponse(
            status_code=402,
            content={
                "error": "Payment required",
                "fee": f"{e.fee} USDC",
                "network": "Base (EIP-155:8453)",
                "fallback": "Solana Devnet",
                "paymentRequired": e.requirements,
            },
            headers={"payment-required": encoded, "x-payment-required": encoded},
        )
    except PaymentError as e:
        raise HTTPException(status_code=402, detail=str(e))

    result = await runtime.registry.invoke(specialist_id, body.prompt)
    return result.to_wire()
