from __future__ import annotations

import json

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from providers.base import WebhookEvent

router = APIRouter(prefix="/telecom/webhook", tags=["webhooks"])


@router.post("/{provider}")
async def provider_webhook(provider: str, request: Request):
    raw_body = await request.body()
    try:
        payload = json.loads(raw_body or b"{}")
    except ValueError:
        return JSONResponse({"status": "error", "message": "webhook body must be JSON"}, status_code=400)
    if not isinstance(payload, dict):
        return JSONResponse({"status": "error", "message": "webhook body must be a JSON object"}, status_code=400)

    orchestrator = request.app.state.orchestrator
    event = WebhookEvent(payload=payload, raw_body=raw_body, headers=dict(request.headers))
    update = await orchestrator.apply_webhook(provider, event)
    if update is None:
        # Unknown provider keys are logged and audited by the aggregator.
        return {"status": "received"}
    return {"status": "success", "data": update}
