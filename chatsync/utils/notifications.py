import asyncio
import logging
from typing import List, Optional

from pyfcm import FCMNotification
from pyfcm.errors import FCMError

from chatsync.models.notification import Notification

logger = logging.getLogger(__name__)


class NoopPush:

    enabled = False

    async def deliver(self, notification: Notification, tokens: List[str]) -> int:
        return 0


class FcmPush:

    enabled = True

    def __init__(self, service_account_file: str, project_id: str) -> None:
        self._client = FCMNotification(service_account_file=service_account_file, project_id=project_id)

    async def deliver(self, notification: Notification, tokens: List[str]) -> int:
        data = {k: str(v) for k, v in notification.data.items()}
        data.update({"notificationId": notification.id, "type": notification.type})
        sent = 0
        for token in tokens:
            # pyfcm is blocking
            try:
                await asyncio.to_thread(
                    self._client.notify,
                    fcm_token=token,
                    notification_title=notification.title,
                    notification_body=notification.message,
                    data_payload=data,
                )
                sent += 1
            except (FCMError, OSError) as exc:
                logger.warning("FCM delivery of %s failed: %s", notification.id, exc)
        return sent


def create_push(service_account_file: Optional[str], project_id: Optional[str]):
    if not service_account_file or not project_id:
        return NoopPush()
    return FcmPush(service_account_file, project_id)
