from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from app.qdms.constants import DocumentCategory, Roles, WorkflowStepType
from app.qdms.errors import ValidationError
from app.qdms.validation import (
    bool_field,
    choice_field,
    int_field,
    raise_if_errors,
    require_mapping,
    text_field,
)

MAX_SLA_HOURS = 720


@dataclass(frozen=True)
class TemplateStepInput:
    step_order: int
    role: str
    step_type: str
    require_signature: bool = True
    sla_hours: int | None = None


@dataclass(frozen=True)
class CreateTemplateInput:
    name: str
    steps: tuple[TemplateStepInput, ...]
    description: str | None = None
    category: str | None = None
    is_default: bool = False


def parse_create_template(payload: Any) -> CreateTemplateInput:
    data = require_mapping(payload)
    errors: dict[str, str] = {}
    name = text_field(data, "name", errors, required=True, min_len=3, max_len=255)
    description = text_field(data, "description", errors)
    category = choice_field(data, "category", DocumentCategory.ALL, errors)
    is_default = bool_field(data, "isDefault", errors, default=False)

    raw_steps = data.get("steps")
    steps: list[TemplateStepInput] = []
    if not isinstance(raw_steps, list) or not raw_steps:
        errors["steps"] = "at least one step is required"
    else:
        for i, raw in enumerate(raw_steps):
            if not isinstance(raw, dict):
                errors[f"steps[{i}]"] = "must be an object"
                continue
            step_errors: dict[str, str] = {}
            order = int_field(raw, "stepOrder", step_errors, required=True, min_value=1)
            role = choice_field(raw, "role", Roles.ALL, step_errors, required=True)
            step_type = choice_field(raw, "stepType", WorkflowStepType.ALL, step_errors, required=True)
            require_signature = bool_field(raw, "requireSignature", step_errors, default=True)
            sla_hours = int_field(raw, "slaHours", step_errors, min_value=1, max_value=MAX_SLA_HOURS)
            for k, v in step_errors.items():
                errors[f"steps[{i}].{k}"] = v
            if not step_errors:
                steps.append(
                    TemplateStepInput(
                        step_order=order,  # type: ignore[arg-type]
                        role=role,  # type: ignore[arg-type]
                        step_type=step_type,  # type: ignore[arg-type]
                        require_signature=bool(require_signature),
                        sla_hours=sla_hours,
                    )
                )
    raise_if_errors(errors)

    # Runs copy these orders verbatim, so they must be 1..N with no gaps.
    orders = sorted(st.step_order for st in steps)
    if orders != list(range(1, len(steps) + 1)):
        raise ValidationError(
            "Step orders must be unique and contiguous starting at 1.",
            details={"steps": f"got orders {orders}"},
        )

    return CreateTemplateInput(
        name=name,  # type: ignore[arg-type]
        description=description,
        category=category,
        is_default=bool(is_default),
        steps=tuple(sorted(steps, key=lambda st: st.step_order)),
    )
