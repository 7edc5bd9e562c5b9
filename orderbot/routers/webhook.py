import json
import logging

from fastapi import APIRouter, BackgroundTasks, HTTPException, Request
from fastapi.responses import PlainTextResponse

from orderbot.core.config import FACEBOOK_VERIFY_TOKEN
from orderbot.messenger.base import parse_messenger_webhook, safe_json, sanitize_payload

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/webhook")
async def verify_webhook(request: Request):
    qp = request.query_params
    mode = qp.get("hub.mode")
    token = qp.get("hub.verify_token")
    challenge = qp.get("hub.challenge")

    if not mode or not token:
        raise HTTPException(status_code=400, detail="Missing hub.mode or hub.verify_token")

    if mode == "subscribe" and FACEBOOK_VERIFY_TOKEN and token == FACEBOOK_VERIFY_TOKEN:
        logger.info("messenger webhook verified")
        return PlainTextResponse(challenge or "")

    raise HTTPException(status_code=403, detail="Invalid verify token")


@router.post("/webhook")
async def messenger_webhook(request: Request, background_tasks: BackgroundTasks):
    try:
        payload = await request.json()
    except json.JSONDecodeError:
        raise HTTPException(status_code=400, detail="Invalid JSON body")

    if not isinstance(payload, dict) or payload.get("object") != "page":
        raise HTTPException(status_code=404, detail="Not a page subscription")

    events = parse_messenger_webhook(payload)
    logger.debug("messenger webhook payload %s", safe_json(sanitize_payload(payload)))
    logger.info("messenger webhook received events=%s", len(events))

    if events:
        # Meta expects a 200 quickly, the actual work runs after the response
        background_tasks.add_task(request.app.state.processor.handle_events, events)
    return PlainTextResponse("EVENT_RECEIVED")
