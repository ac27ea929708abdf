"""Pydantic schema for audit events. Metadata carries ids, counts and scores only."""
import re
from datetime import datetime
from typing import Literal, Union

from pydantic import BaseModel, field_validator

AuditEventType = Literal[
    "training-session-started",
    "training-module-completed",
    "training-quiz-submitted",
    "training-evaluation-completed",
    "training-remediation-initiated",
    "training-session-abandoned",
    "training-session-exhausted",
]

# identifiers: no whitespace, bounded length; anything looking like prose is rejected
_IDENTIFIER_RE = re.compile(r"^[\w.:@-]{1,128}$")

Scalar = Union[bool, int, float, str, None]


def _check_scalar(key: str, value) -> None:
    if value is None or isinstance(value, (bool, int, float)):
        return
    if isinstance(value, str) and _IDENTIFIER_RE.match(value):
        return
    raise ValueError(f"audit metadata '{key}' must be numeric or an identifier")


class AuditEventSchema(BaseModel):
    event_type: AuditEventType
    employee_id: str
    timestamp: datetime
    metadata: dict[str, Union[Scalar, list[Scalar]]] = {}

    @field_validator("metadata")
    @classmethod
    def _metadata_is_identifiers_only(cls, value: dict) -> dict:
        for key, item in value.items():
            if isinstance(item, list):
                for entry in item:
                    _check_scalar(key, entry)
            else:
                _check_scalar(key, item)
        return value
