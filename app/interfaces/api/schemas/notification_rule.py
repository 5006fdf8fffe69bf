"""Schemas for notification rule endpoints."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict

from app.domain.entities import NotificationRule

FrequencyValue = Literal["daily", "weekly", "monthly"]
PriorityValue = Literal["low", "medium", "high", "critical"]
OperatorValue = Literal["greater_than", "less_than", "equal_to"]


class RuleTimingSchema(BaseModel):
    before_due: int | None = None
    recurring: bool = False
    frequency: FrequencyValue | None = None
    time: str | None = None


class RuleConditionSchema(BaseModel):
    field: str | None = None
    operator: OperatorValue | None = None
    threshold: Any = None


class RuleRecipientsSchema(BaseModel):
    roles: list[str] = []
    user_ids: list[str] = []


class RuleTemplateSchema(BaseModel):
    title: str
    message: str
    priority: PriorityValue
    action_required: bool = False
    action_text: str | None = None
    action_url: str | None = None


class NotificationRuleRead(BaseModel):
    """Representation of a catalog rule."""

    id: str
    category: str
    type: str
    enabled: bool
    timing: RuleTimingSchema
    condition: RuleConditionSchema
    recipients: RuleRecipientsSchema
    template: RuleTemplateSchema

    @classmethod
    def from_entity(cls, rule: NotificationRule) -> "NotificationRuleRead":
        return cls(
            id=rule.id,
            category=rule.category,
            type=rule.type,
            enabled=rule.enabled,
            timing=RuleTimingSchema(
                before_due=rule.timing.before_due,
                recurring=rule.timing.recurring,
                frequency=rule.timing.frequency.value if rule.timing.frequency else None,
                time=rule.timing.time,
            ),
            condition=RuleConditionSchema(
                field=rule.condition.field,
                operator=rule.condition.operator.value if rule.condition.operator else None,
                threshold=rule.condition.threshold,
            ),
            recipients=RuleRecipientsSchema(
                roles=list(rule.recipients.roles),
                user_ids=list(rule.recipients.user_ids),
            ),
            template=RuleTemplateSchema(
                title=rule.template.title,
                message=rule.template.message,
                priority=rule.template.priority.value,
                action_required=rule.template.action_required,
                action_text=rule.template.action_text,
                action_url=rule.template.action_url,
            ),
        )


class RuleTimingUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    before_due: int | None = None
    recurring: bool | None = None
    frequency: FrequencyValue | None = None
    time: str | None = None


class RuleConditionUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    field: str | None = None
    operator: OperatorValue | None = None
    threshold: Any = None


class RuleRecipientsUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    roles: list[str] | None = None
    user_ids: list[str] | None = None


class RuleTemplateUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    title: str | None = None
    message: str | None = None
    priority: PriorityValue | None = None
    action_required: bool | None = None
    action_text: str | None = None
    action_url: str | None = None


class NotificationRuleUpdate(BaseModel):
    """Partial update of a rule; only the provided fields change."""

    model_config = ConfigDict(extra="forbid")

    enabled: bool | None = None
    timing: RuleTimingUpdate | None = None
    condition: RuleConditionUpdate | None = None
    recipients: RuleRecipientsUpdate | None = None
    template: RuleTemplateUpdate | None = None

    def to_changes(self) -> dict[str, Any]:
        return self.model_dump(exclude_unset=True)


__all__ = ["NotificationRuleRead", "NotificationRuleUpdate"]
