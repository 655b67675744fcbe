"""In-app notifications for Proof-of-Play imports.

Each template is looked up by id and filled from a typed context object in a
single ``string.Template`` pass, so values containing ``$`` or text that
resembles another placeholder are inserted literally.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from enum import Enum
from string import Template
from typing import Any, Dict, Optional, Union

from sqlalchemy.orm import Session

from kiosk_pop.db.models import Notification
from kiosk_pop.db.repositories.notifications import NotificationsRepository

logger = logging.getLogger(__name__)


class NotificationTemplate(str, Enum):
    import_completed = "pop_import_completed"
    import_failed = "pop_import_failed"


@dataclass(frozen=True)
class ImportCompletedContext:
    format: str
    inserted: int
    dropped: int
    last_played_at: str = ""


@dataclass(frozen=True)
class ImportFailedContext:
    error: str


NotificationContext = Union[ImportCompletedContext, ImportFailedContext]


@dataclass(frozen=True)
class _TemplateSpec:
    context_type: type
    title: Template
    message: Template


@dataclass(frozen=True)
class RenderedNotification:
    type: str
    title: str
    message: str
    data: Dict[str, Any]


TEMPLATES: Dict[NotificationTemplate, _TemplateSpec] = {
    NotificationTemplate.import_completed: _TemplateSpec(
        context_type=ImportCompletedContext,
        title=Template("Proof-of-Play import complete"),
        message=Template("Imported $inserted plays from a $format report ($dropped rows dropped)."),
    ),
    NotificationTemplate.import_failed: _TemplateSpec(
        context_type=ImportFailedContext,
        title=Template("Proof-of-Play import failed"),
        message=Template("The report could not be read: $error"),
    ),
}


def render_notification(template_id: NotificationTemplate, context: NotificationContext) -> RenderedNotification:
    spec = TEMPLATES.get(template_id)
    if spec is None:
        raise KeyError(f"Unknown notification template: {template_id}")
    if not isinstance(context, spec.context_type):
        raise TypeError(
            f"Template {template_id.value} expects {spec.context_type.__name__}, got {type(context).__name__}"
        )
    values = asdict(context)
    return RenderedNotification(
        type=template_id.value,
        title=spec.title.substitute(values),
        message=spec.message.substitute(values),
        data=values,
    )


def notify(
    session: Session,
    *,
    org_id: str,
    user_id: str,
    template_id: NotificationTemplate,
    context: NotificationContext,
) -> Optional[Notification]:
    """Store a rendered notification; failures are logged and return None."""
    try:
        rendered = render_notification(template_id, context)
        return NotificationsRepository(session).create(
            org_id=org_id,
            user_id=user_id,
            type=rendered.type,
            title=rendered.title,
            message=rendered.message,
            data=rendered.data,
        )
    except Exception:  # noqa: BLE001
        session.rollback()
        logger.exception(
            "Failed to store notification",
            extra={"org_id": org_id, "user_id": user_id, "template": template_id.value},
        )
        return None
