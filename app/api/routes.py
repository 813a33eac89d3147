"""
FastAPI routes for activating the drive robot and receiving Graph notifications.
"""

from __future__ import annotations

import logging
from http import HTTPStatus
from typing import Annotated, Any

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse, PlainTextResponse

from app.dependencies import (
    get_app_settings,
    get_lifecycle_manager,
    get_subscription_record_store,
)
from app.schemas import (
    ActivateResult,
    ChangeNotificationBatch,
    DeactivateResult,
    NotificationReceipt,
)

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/health", status_code=HTTPStatus.OK)
async def healthcheck() -> dict:
    """Simple health endpoint for monitoring."""
    return {"status": "ok"}


@router.post("/robot/activate", response_model=ActivateResult)
async def activate_robot(
    manager: Annotated[Any, Depends(get_lifecycle_manager)],
    user_id: str = Query(..., description="Identifier of the signed-in user."),
) -> ActivateResult:
    """Create or renew the user's drive subscription."""
    return await manager.activate(user_id)


@router.post("/robot/deactivate", response_model=DeactivateResult)
async def deactivate_robot(
    manager: Annotated[Any, Depends(get_lifecycle_manager)],
    user_id: str = Query(..., description="Identifier of the signed-in user."),
) -> DeactivateResult:
    """Stop watching the user's drive."""
    return await manager.deactivate(user_id)


@router.post("/notifications", response_model=None)
async def receive_notifications(
    record_store: Annotated[Any, Depends(get_subscription_record_store)],
    settings: Annotated[Any, Depends(get_app_settings)],
    batch: ChangeNotificationBatch | None = None,
    validation_token: str | None = Query(default=None, alias="validationToken"),
) -> Any:
    """
    Graph webhook endpoint.

    Graph validates a new notification URL by posting a ``validationToken``
    that must be echoed back as plain text within a few seconds.
    """
    if validation_token is not None:
        return PlainTextResponse(content=validation_token, status_code=HTTPStatus.OK)

    receipt = NotificationReceipt()
    for notification in (batch.value if batch else []):
        if notification.client_state != settings.subscription.client_state:
            logger.warning(
                "Notification for subscription %s carried an unexpected clientState",
                notification.subscription_id,
            )
            receipt.rejected += 1
            continue
        record = await record_store.find_by_subscription_id(notification.subscription_id)
        if record is None:
            logger.warning(
                "Notification for unknown subscription %s", notification.subscription_id
            )
            receipt.rejected += 1
            continue
        logger.info(
            "Change notification for user %s on %s",
            record.user_id,
            notification.resource,
        )
        receipt.accepted += 1

    return JSONResponse(content=receipt.model_dump(), status_code=HTTPStatus.ACCEPTED)
