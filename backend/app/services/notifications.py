from __future__ import annotations

from collections.abc import Callable, Iterable
from datetime import datetime, timezone
import logging

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.config import Settings, get_settings
from app.models.notification import DeliveryStatus, Notification, NotificationType
from app.models.user import User
from app.services.email import EmailDeliveryError, send_email
from app.services.roles import ADMIN_ROLES

logger = logging.getLogger(__name__)

Mailer = Callable[..., None]


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class NotificationDispatcher:
    """Fire-and-forget notices to users.

    ``send`` stores the notice as an outbox row inside the caller's
    transaction. After the caller commits, ``flush`` delivers the rows queued
    by this dispatcher. Delivery failures are logged and recorded on the row;
    they never surface to the workflow that emitted the notice.
    """

    def __init__(
        self,
        db: Session,
        *,
        settings: Settings | None = None,
        mailer: Mailer | None = None,
    ) -> None:
        self.db = db
        self.settings = settings or get_settings()
        self._mailer = mailer or send_email
        self._queued: list[str] = []

    @property
    def queued_ids(self) -> list[str]:
        return list(self._queued)

    def send(
        self,
        from_user_id: str | None,
        to_user_id: str | None,
        title: str,
        body: str,
        *,
        notification_type: NotificationType = NotificationType.system,
        subject_id: str | None = None,
    ) -> Notification | None:
        if not to_user_id:
            return None
        record = Notification(
            sender_id=from_user_id,
            user_id=to_user_id,
            title=title,
            message=body,
            notification_type=notification_type,
            subject_id=subject_id,
            delivery_status=DeliveryStatus.pending,
        )
        try:
            with self.db.begin_nested():
                self.db.add(record)
        except SQLAlchemyError:
            logger.warning("Unable to queue notification %r for user %s", title, to_user_id, exc_info=True)
            return None
        self._queued.append(record.id)
        return record

    def send_many(
        self,
        from_user_id: str | None,
        to_user_ids: Iterable[str | None],
        title: str,
        body: str,
        **kwargs,
    ) -> list[Notification]:
        results: list[Notification] = []
        for user_id in dict.fromkeys(item for item in to_user_ids if item):
            record = self.send(from_user_id, user_id, title, body, **kwargs)
            if record is not None:
                results.append(record)
        return results

    def notify_admins(self, from_user_id: str | None, title: str, body: str, **kwargs) -> list[Notification]:
        users = self.db.execute(select(User).where(User.is_active.is_(True))).scalars()
        admin_values = {role.value for role in ADMIN_ROLES}
        admin_ids = [user.id for user in users if admin_values.intersection(user.roles or [])]
        return self.send_many(from_user_id, admin_ids, title, body, **kwargs)

    def discard(self) -> None:
        self._queued.clear()

    def flush(self) -> int:
        """Deliver notices queued since the last flush. Call only after commit."""
        queued, self._queued = self._queued, []
        if not queued:
            return 0
        records = list(self.db.execute(select(Notification).where(Notification.id.in_(queued))).scalars())
        delivered = sum(1 for record in records if self._deliver(record))
        self._commit_delivery_state()
        return delivered

    def redeliver_pending(self, *, limit: int = 100, max_attempts: int = 5) -> int:
        """Retry undelivered notices out-of-band."""
        records = list(
            self.db.execute(
                select(Notification)
                .where(
                    Notification.delivery_status.in_([DeliveryStatus.pending, DeliveryStatus.failed]),
                    Notification.delivery_attempts < max_attempts,
                )
                .order_by(Notification.created_at.asc())
                .limit(limit)
            ).scalars()
        )
        delivered = sum(1 for record in records if self._deliver(record))
        self._commit_delivery_state()
        return delivered

    def _deliver(self, record: Notification) -> bool:
        record.delivery_attempts = (record.delivery_attempts or 0) + 1
        try:
            if self.settings.notification_deliver_email:
                self._send_email(record)
        except EmailDeliveryError as exc:
            logger.warning("Notification %s delivery to user %s failed", record.id, record.user_id, exc_info=True)
            record.delivery_status = DeliveryStatus.failed
            record.last_error = str(exc)
            return False
        record.delivery_status = DeliveryStatus.delivered
        record.delivered_at = _utc_now()
        record.last_error = None
        return True

    def _send_email(self, record: Notification) -> None:
        recipient = self.db.get(User, record.user_id)
        if recipient is None or not recipient.email:
            return
        self._mailer(
            to_email=recipient.email,
            subject=f"{self.settings.notification_email_subject_prefix}: {record.title}",
            text_content=f"{record.title}\n\n{record.message}",
        )

    def _commit_delivery_state(self) -> None:
        try:
            self.db.commit()
        except SQLAlchemyError:  # pragma: no cover - database dependent
            self.db.rollback()
            logger.warning("Unable to record notification delivery state", exc_info=True)
