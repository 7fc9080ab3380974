"""Execution of notification action batches.

The rule evaluator returns a list of actions per evaluation pass. Each
action corresponds to an independent risk condition, so one failing action
is logged and skipped without stopping the rest of the batch. Actions run
sequentially, in the order given, because they share the dedupe key space.
"""

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Iterable, Optional, assert_never

from budgetwatch.domain.entities import (
    Action,
    ArchiveAction,
    CreateAction,
    NotificationPayload,
    Severity,
    SkipAction,
    TimeWindow,
    UpdateAction,
)
from budgetwatch.domain.errors import DomainError, ValidationError, unknown_action_type
from budgetwatch.domain.notification import DecisionKind, NotificationService

logger = logging.getLogger(__name__)

ARCHIVED = "archived"
FAILED = "failed"

# JSON payload keys accepted in camelCase as well as snake_case
_PAYLOAD_ALIASES = {
    "eventType": "event_type",
    "messageKey": "message_key",
    "entityType": "entity_type",
    "entityId": "entity_id",
    "referenceId": "reference_id",
    "ctaLabelKey": "cta_label_key",
    "ctaTarget": "cta_target",
    "timeWindow": "time_window",
}


def _normalise_keys(data: dict[str, Any]) -> dict[str, Any]:
    return {_PAYLOAD_ALIASES.get(key, key): value for key, value in data.items()}


def _require(data: dict[str, Any], name: str, context: str) -> Any:
    value = data.get(name)
    if value in (None, ""):
        raise ValidationError(f"{context} is missing required field '{name}'")
    return value


def _optional_str(value: Any) -> Optional[str]:
    return None if value is None else str(value)


def payload_from_dict(data: dict[str, Any]) -> NotificationPayload:
    """Build a NotificationPayload from a JSON-style dict.

    Raises:
        ValidationError: If required fields are missing or enum values are invalid
    """
    if not isinstance(data, dict):
        raise ValidationError("Action payload must be an object")
    data = _normalise_keys(data)

    try:
        severity = Severity(_require(data, "severity", "Payload"))
        time_window = TimeWindow(data.get("time_window") or TimeWindow.MONTH)
    except ValueError as e:
        raise ValidationError(f"Invalid payload: {e}") from e

    params = data.get("params") or {}
    if not isinstance(params, dict):
        raise ValidationError("Payload params must be an object")

    return NotificationPayload(
        event_type=str(_require(data, "event_type", "Payload")),
        message_key=str(_require(data, "message_key", "Payload")),
        severity=severity,
        entity_type=data.get("entity_type"),
        entity_id=_optional_str(data.get("entity_id")),
        reference_id=_optional_str(data.get("reference_id")),
        params=params,
        cta_label_key=data.get("cta_label_key"),
        cta_target=data.get("cta_target"),
        time_window=time_window,
    )


def action_from_dict(data: dict[str, Any]) -> Action:
    """Parse a JSON-style action.

    Accepted shapes::

        {"type": "CREATE", "payload": {...}}
        {"type": "UPDATE", "payload": {...}}
        {"type": "ARCHIVE", "eventType": "...", "referenceId": "..."}
        {"type": "SKIP"}

    Raises:
        ValidationError: If the action cannot be parsed
    """
    if not isinstance(data, dict):
        raise ValidationError("Action must be an object")

    action_type = str(data.get("type", "")).upper()
    if action_type == "CREATE":
        return CreateAction(payload_from_dict(data.get("payload")))
    if action_type == "UPDATE":
        return UpdateAction(payload_from_dict(data.get("payload")))
    if action_type == "ARCHIVE":
        fields = _normalise_keys(data)
        return ArchiveAction(
            event_type=str(_require(fields, "event_type", "Archive action")),
            reference_id=str(_require(fields, "reference_id", "Archive action")),
        )
    if action_type == "SKIP":
        return SkipAction()
    raise ValidationError(unknown_action_type(data.get("type")))


@dataclass(frozen=True)
class ActionResult:
    """What happened to one action of a batch."""

    action: Action
    kind: str
    notification_id: Optional[int] = None
    error: Optional[str] = None


@dataclass
class BatchResult:
    """Per-action results of one executed batch."""

    results: list[ActionResult] = field(default_factory=list)

    def _count(self, *kinds: str) -> int:
        return sum(1 for result in self.results if result.kind in kinds)

    @property
    def created(self) -> int:
        return self._count(DecisionKind.CREATE, DecisionKind.ESCALATE_CREATE)

    @property
    def updated(self) -> int:
        return self._count(DecisionKind.UPDATE_EXISTING)

    @property
    def skipped(self) -> int:
        return self._count(DecisionKind.SKIP)

    @property
    def archived(self) -> int:
        return self._count(ARCHIVED)

    @property
    def failed(self) -> int:
        return self._count(FAILED)


class ActionExecutor:
    """Runs rule evaluator actions against the notification service."""

    def __init__(self, service: NotificationService):
        """Initialize action executor.

        Args:
            service: Notification service used for every write
        """
        self.service = service

    def execute(
        self,
        tenant_id: str,
        actions: Iterable[Action],
        reference_date: Optional[date] = None,
    ) -> BatchResult:
        """Execute a batch of actions for one tenant.

        Args:
            tenant_id: Owning tenant
            actions: Actions in the order they should run
            reference_date: Date used for dedupe time buckets (defaults to today)

        Returns:
            BatchResult with one entry per action
        """
        batch = BatchResult()
        for action in actions:
            try:
                batch.results.append(self._execute_one(tenant_id, action, reference_date))
            except DomainError as e:
                logger.exception("Failed to execute notification action %r", action)
                batch.results.append(ActionResult(action, FAILED, error=str(e)))

        logger.info(
            "Executed %d notification action(s) for tenant %s: "
            "%d created, %d updated, %d skipped, %d archived, %d failed",
            len(batch.results),
            tenant_id,
            batch.created,
            batch.updated,
            batch.skipped,
            batch.archived,
            batch.failed,
        )
        return batch

    def _execute_one(
        self, tenant_id: str, action: Action, reference_date: Optional[date]
    ) -> ActionResult:
        match action:
            case CreateAction(payload=payload):
                outcome = self.service.apply(tenant_id, payload, reference_date)
                return self._from_outcome(action, outcome)
            case UpdateAction(payload=payload):
                outcome = self.service.apply(
                    tenant_id, payload, reference_date, allow_create=False
                )
                return self._from_outcome(action, outcome)
            case ArchiveAction(event_type=event_type, reference_id=reference_id):
                self.service.archive_by_reference(tenant_id, event_type, reference_id)
                return ActionResult(action, ARCHIVED)
            case SkipAction():
                return ActionResult(action, DecisionKind.SKIP)
            case _:
                assert_never(action)

    @staticmethod
    def _from_outcome(action: Action, outcome) -> ActionResult:
        notification_id = outcome.notification.id if outcome.notification else None
        return ActionResult(action, outcome.kind, notification_id=notification_id)
