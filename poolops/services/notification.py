"""
Notification Service: anomaly trigger and administration desk.

Central service for raising, listing and resolving notifications.

Trigger path (automatic, after parameter writes):
    evaluate_measurement() compares the stored value with the parameter's
    alert threshold and raises a deduplicated alert. It runs after the
    parent write has committed and never propagates its own failures.

Desk path (administration):
    list / update (assign, progress, resolve) / delete, plus free-form
    anomaly reports filed by technicians.

Dedup rule: at most one open (status != resolved) notification per
(client_id, topic). Backed by a partial unique index so two concurrent
triggers cannot both insert.
"""

import logging
import uuid
from datetime import datetime, timedelta, timezone
from decimal import Decimal

from flask import current_app
from sqlalchemy.exc import IntegrityError

from poolops.core.exceptions import InvalidStateTransition, ValidationError
from poolops.models import db
from poolops.models.audit import write_audit
from poolops.models.company import Client
from poolops.models.notification import Notification, validate_notification_transition
from poolops.services.dosing import to_decimal
from poolops.services.helpers.scoped_queries import get_scoped

logger = logging.getLogger(__name__)


def slugify(name: str) -> str:
    return "-".join((name or "").strip().lower().replace("_", " ").split())


def threshold_for(definition, parameter_name: str) -> tuple[Decimal, str] | None:
    """Return (limit, topic) for a parameter, or None when it has no alert.

    A definition's own ``alert_above`` wins over the app-wide table.
    """
    slug = slugify(parameter_name)
    table = current_app.config.get("ANOMALY_THRESHOLDS") or {}
    default = table.get(slug)

    limit = getattr(definition, "alert_above", None) if definition is not None else None
    topic = getattr(definition, "alert_topic", None) if definition is not None else None
    if limit is None and default is not None:
        limit = default.get("above")
    if limit is None:
        return None
    topic = topic or (default or {}).get("topic") or f"{slug}-high"
    return to_decimal(limit), topic


def _as_utc(value: datetime | None) -> datetime | None:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class NotificationService:
    """Stateless service class for notification operations."""

    # ── Raise ─────────────────────────────────────────────────────────────

    @staticmethod
    def find_open(company_id, client_id, topic):
        return (
            Notification.query_for_company(company_id)
            .filter(
                Notification.client_id == client_id,
                Notification.topic == topic,
                Notification.status != "resolved",
            )
            .first()
        )

    @staticmethod
    def _in_cooldown(company_id, client_id, topic) -> bool:
        hours = current_app.config.get("NOTIFICATION_COOLDOWN_HOURS", 0) or 0
        if hours <= 0:
            return False
        last = (
            Notification.query_for_company(company_id)
            .filter_by(client_id=client_id, topic=topic, status="resolved")
            .order_by(Notification.resolved_at.desc())
            .first()
        )
        resolved_at = _as_utc(last.resolved_at) if last else None
        if resolved_at is None:
            return False
        return datetime.now(timezone.utc) - resolved_at < timedelta(hours=hours)

    @staticmethod
    def raise_alert(*, company_id, client_id, topic, subject, message="", source="threshold",
                    maintenance_record_id=None, parameter_name=None):
        """
        Insert a pending notification unless one is already open for the topic.

        Returns:
            The created Notification (committed), or None when deduplicated.
        """
        if NotificationService.find_open(company_id, client_id, topic) is not None:
            logger.debug("Notification deduplicated client=%s topic=%s", client_id, topic)
            return None
        if NotificationService._in_cooldown(company_id, client_id, topic):
            logger.debug("Notification suppressed by cooldown client=%s topic=%s", client_id, topic)
            return None

        notif = Notification(
            company_id=company_id,
            client_id=client_id,
            topic=topic,
            subject=subject,
            message=message,
            source=source,
            status="pending",
            maintenance_record_id=maintenance_record_id,
            parameter_name=parameter_name,
        )
        try:
            with db.session.begin_nested():
                db.session.add(notif)
                db.session.flush()
        except IntegrityError:
            # A concurrent request opened the same topic first
            logger.debug("Notification insert lost race client=%s topic=%s", client_id, topic)
            return None
        db.session.commit()
        logger.info(
            "Notification raised id=%s client=%s topic=%s",
            notif.id, client_id, topic,
            extra={"company_id": company_id, "event_type": "notification"},
        )
        return notif

    # ── Trigger ───────────────────────────────────────────────────────────

    @staticmethod
    def evaluate_measurement(record, instance, definition=None):
        """
        Raise a threshold alert for a freshly written instance.

        Never raises: any failure is logged and the session rolled back, so
        the already-committed parent write stays intact.
        """
        try:
            if instance.current_value is None:
                return None
            rule = threshold_for(definition, instance.parameter_name)
            if rule is None:
                return None
            limit, topic = rule
            value = to_decimal(instance.current_value)
            if value <= limit:
                return None
            return NotificationService.raise_alert(
                company_id=record.company_id,
                client_id=record.client_id,
                topic=topic,
                subject=f"{instance.parameter_name} above {limit}",
                message=(
                    f"{instance.parameter_name} measured {value} "
                    f"(limit {limit}) on the {record.weekday} visit."
                ),
                source="threshold",
                maintenance_record_id=record.id,
                parameter_name=instance.parameter_name,
            )
        except Exception:
            db.session.rollback()
            logger.exception(
                "Notification trigger failed for record=%s parameter=%s",
                getattr(record, "id", None), getattr(instance, "parameter_name", None),
            )
            return None

    @staticmethod
    def request_assistance(record, parameter_name, message=""):
        """Open an 'assistance' notification for the administration. Never raises."""
        try:
            return NotificationService.raise_alert(
                company_id=record.company_id,
                client_id=record.client_id,
                topic=f"{slugify(parameter_name)}-assistance",
                subject=f"Assistance requested: {parameter_name}",
                message=message or f"{parameter_name} cannot be adjusted on site. Action required.",
                source="assistance",
                maintenance_record_id=record.id,
                parameter_name=parameter_name,
            )
        except Exception:
            db.session.rollback()
            logger.exception("Assistance notification failed for record=%s", getattr(record, "id", None))
            return None

    # ── Reports ───────────────────────────────────────────────────────────

    @staticmethod
    def create_report(company_id, cmd):
        """File a free-form anomaly report. Reports are never deduplicated."""
        client = get_scoped(Client, cmd.client_id, company_id=company_id)
        notif = Notification(
            company_id=company_id,
            client_id=client.id,
            topic=f"report-{uuid.uuid4().hex[:12]}",
            subject=cmd.subject,
            message=cmd.message,
            source="report",
            status="pending",
            attachments=list(cmd.attachments),
            extra_service_value=cmd.extra_service_value,
        )
        db.session.add(notif)
        db.session.commit()
        logger.info("Anomaly report filed id=%s client=%s", notif.id, client.id,
                    extra={"company_id": company_id})
        return notif

    # ── Query ─────────────────────────────────────────────────────────────

    @staticmethod
    def query_for(company_id, status=None, client_id=None):
        """Notifications for a company, newest first."""
        q = Notification.query_for_company(company_id)
        if status:
            q = q.filter_by(status=status)
        if client_id:
            q = q.filter_by(client_id=client_id)
        return q.order_by(Notification.created_at.desc(), Notification.id.desc())

    @staticmethod
    def get(company_id, notification_id):
        return get_scoped(Notification, notification_id, company_id=company_id)

    # ── Actions ───────────────────────────────────────────────────────────

    @staticmethod
    def update(company_id, notification_id, cmd, actor="administration"):
        """Assign and/or move a notification along its lifecycle."""
        notif = get_scoped(Notification, notification_id, company_id=company_id)
        diff = {}

        if cmd.assignee:
            diff["assignee"] = {"old": notif.assignee, "new": cmd.assignee}
            notif.assignee = cmd.assignee

        if cmd.status and cmd.status != notif.status:
            if not validate_notification_transition(notif.status, cmd.status):
                raise InvalidStateTransition("Notification", notif.status, cmd.status)
            if cmd.status == "in_progress" and not notif.assignee:
                raise ValidationError(
                    "An assignee is required to start working on a notification",
                    details={"assignee": "is required"},
                )
            diff["status"] = {"old": notif.status, "new": cmd.status}
            notif.status = cmd.status
            if cmd.status == "resolved":
                notif.resolved_at = datetime.now(timezone.utc)

        write_audit(
            company_id=company_id,
            entity_type="notification",
            entity_id=notif.id,
            action="notification.update",
            actor=actor,
            diff=diff,
        )
        db.session.commit()
        return notif

    @staticmethod
    def delete(company_id, notification_id, actor="administration"):
        notif = get_scoped(Notification, notification_id, company_id=company_id)
        nid = notif.id
        db.session.delete(notif)
        write_audit(
            company_id=company_id,
            entity_type="notification",
            entity_id=nid,
            action="notification.delete",
            actor=actor,
        )
        db.session.commit()
        logger.info("Notification deleted id=%s", nid, extra={"company_id": company_id})
