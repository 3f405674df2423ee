"""Authentication state endpoints and the identity provider user webhook."""

from fastapi import APIRouter, Depends, HTTPException, Request, status
from loguru import logger
from svix.webhooks import Webhook, WebhookVerificationError

from src.adspace.api.http.deps import (
    get_optional_principal,
    get_user_repository,
    get_user_webhook,
)
from src.adspace.api.http.schemas import AuthMeResponse, WebhookAck
from src.adspace.core.errors import UserStoreError
from src.adspace.core.models import Principal
from src.adspace.core.services import UserSyncService
from src.adspace.entities.core.user import UserRepository

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/webhook", response_model=WebhookAck)
async def user_webhook(
    request: Request,
    webhook: Webhook | None = Depends(get_user_webhook),
    users: UserRepository = Depends(get_user_repository),
) -> WebhookAck:
    """Apply a signed ``user.created``/``user.updated``/``user.deleted`` event."""
    if webhook is None:
        logger.error("User webhook called but no signing secret is configured")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Webhook secret not configured",
        )

    payload = await request.body()
    try:
        event = webhook.verify(payload, dict(request.headers))
    except WebhookVerificationError as exc:
        logger.warning("Error verifying webhook: {}", exc)
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="Error verifying webhook"
        ) from exc

    try:
        if not isinstance(event, dict):
            raise ValueError("Event is not an object")
        event_type = str(event.get("type"))
        action = UserSyncService(users).apply(event_type, event.get("data") or {})
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid webhook payload"
        ) from exc
    except UserStoreError as exc:
        logger.error("Webhook {} could not be applied: {}", event_type, exc)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Internal server error"
        ) from exc

    logger.info("Webhook {} processed: {}", event_type, action.value)
    return WebhookAck(action=action.value)


@router.get("/me", response_model=AuthMeResponse)
async def get_me(
    principal: Principal | None = Depends(get_optional_principal),
) -> AuthMeResponse:
    """Mirror the caller's authentication state; anonymous callers get ``user: null``."""
    return AuthMeResponse(message="Auth routes working", user=principal)
