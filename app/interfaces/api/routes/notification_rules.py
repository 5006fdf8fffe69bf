"""Routes to inspect and tune the notification rule catalog."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status

from app.application.use_cases.notifications import RuleCatalog
from app.domain.exceptions import InvalidRuleError, RuleNotFoundError
from app.interfaces.api.dependencies import get_rule_catalog
from app.interfaces.api.schemas import NotificationRuleRead, NotificationRuleUpdate

router = APIRouter(prefix="/notification-rules", tags=["notification-rules"])


@router.get("", response_model=list[NotificationRuleRead])
def list_notification_rules(
    catalog: RuleCatalog = Depends(get_rule_catalog),
) -> list[NotificationRuleRead]:
    return [NotificationRuleRead.from_entity(rule) for rule in catalog.list_rules()]


@router.get("/{rule_id}", response_model=NotificationRuleRead)
def get_notification_rule(
    rule_id: str,
    catalog: RuleCatalog = Depends(get_rule_catalog),
) -> NotificationRuleRead:
    try:
        rule = catalog.get_rule(rule_id)
    except RuleNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    return NotificationRuleRead.from_entity(rule)


@router.patch("/{rule_id}", response_model=NotificationRuleRead)
def update_notification_rule(
    rule_id: str,
    payload: NotificationRuleUpdate,
    catalog: RuleCatalog = Depends(get_rule_catalog),
) -> NotificationRuleRead:
    """Apply a partial update to a rule and persist it as an override."""

    changes = payload.to_changes()
    if not changes:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No fields provided for update",
        )
    return NotificationRuleRead.from_entity(_apply(catalog.update, rule_id, changes))


@router.post("/{rule_id}/enable", response_model=NotificationRuleRead)
def enable_notification_rule(
    rule_id: str,
    catalog: RuleCatalog = Depends(get_rule_catalog),
) -> NotificationRuleRead:
    return NotificationRuleRead.from_entity(_apply(catalog.enable, rule_id))


@router.post("/{rule_id}/disable", response_model=NotificationRuleRead)
def disable_notification_rule(
    rule_id: str,
    catalog: RuleCatalog = Depends(get_rule_catalog),
) -> NotificationRuleRead:
    return NotificationRuleRead.from_entity(_apply(catalog.disable, rule_id))


def _apply(operation, rule_id: str, *args):
    try:
        return operation(rule_id, *args)
    except RuleNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except InvalidRuleError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
