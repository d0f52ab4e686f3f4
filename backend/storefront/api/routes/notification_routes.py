from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from storefront.api.deps import get_notification_service
from storefront.services.notification_service import NotificationService

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("")
def list_notifications(
    limit: int = Query(default=20, ge=1, le=50),
    notifications: NotificationService = Depends(get_notification_service),
) -> dict[str, object]:
    return {"notifications": notifications.recent(limit=limit)}
