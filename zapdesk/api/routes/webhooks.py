"""Webhook endpoints for the WhatsApp gateway."""

from typing import Any

import structlog
from fastapi import APIRouter, BackgroundTasks, Body

from zapdesk.api.dependencies import GatewayDep, PipelineDep
from zapdesk.core.exceptions import DispatchError

logger = structlog.get_logger()

router = APIRouter(prefix="/webhooks", tags=["Webhooks"])


@router.post("/evolution")
async def evolution_webhook(
    background_tasks: BackgroundTasks,
    gateway: GatewayDep,
    pipeline: PipelineDep,
    payload: dict[str, Any] = Body(...),
) -> dict[str, Any]:
    """Handle Evolution API webhook events.

    The fragment is persisted and buffered before the response goes out; the
    debounce wait and the reply run as a background task afterwards. Events
    that are not direct new messages are acknowledged and ignored.
    """
    event = gateway.parse_webhook(payload)
    if event is None:
        return {"status": "ignored"}

    try:
        result = await pipeline.receive(event)
    except DispatchError as e:
        # The inbound fragment stays stored and unanswered
        logger.error(
            "Failed to send synchronous reply",
            instance=event.channel_name,
            message_id=event.message_id,
            error=e.message,
        )
        return {"status": "dispatch_failed"}

    if result.pending is not None:
        background_tasks.add_task(pipeline.run_in_background, result.pending)

    logger.info(
        "Processed webhook",
        instance=event.channel_name,
        message_id=event.message_id,
        outcome=result.outcome.value,
    )

    return {
        "status": result.outcome.value,
        "conversation_id": result.conversation_id,
    }
