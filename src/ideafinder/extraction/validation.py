"""Minimum-quality checks applied to parsed records before persistence."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from jsonschema import ValidationError, validate

from ideafinder.core.config import ValidationConfig
from ideafinder.core.models import ExtractedRecord, RecordStatus

logger = logging.getLogger(__name__)


def build_record_schema(config: ValidationConfig) -> Dict[str, Any]:
    return {
        "type": "object",
        "properties": {
            "name": {"type": "string", "minLength": config.min_name_length},
            "full_analysis": {"type": "string", "minLength": config.min_analysis_length},
        },
        "required": ["name", "full_analysis"],
    }


@dataclass(slots=True, frozen=True)
class ValidationOutcome:
    record: ExtractedRecord
    reason: Optional[str] = None

    @property
    def accepted(self) -> bool:
        return self.record.status is RecordStatus.COMPLETED


def validate_record(record: ExtractedRecord, config: Optional[ValidationConfig] = None) -> ValidationOutcome:
    """Return the record unchanged if it passes, otherwise a ``failed`` copy and the reason."""

    config = config or ValidationConfig()
    payload = {"name": record.name.strip(), "full_analysis": record.full_analysis.strip()}
    try:
        validate(payload, build_record_schema(config))
    except ValidationError as exc:
        field = ".".join(str(part) for part in exc.path) or "record"
        reason = f"{field}: {exc.message}"
        logger.debug("Rejected %s record from %s (%s)", record.kind, record.source_external_id, reason)
        return ValidationOutcome(record=record.with_status(RecordStatus.FAILED), reason=reason)
    return ValidationOutcome(record=record)


__all__ = ["ValidationOutcome", "build_record_schema", "validate_record"]
