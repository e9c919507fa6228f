# ops_core/workflows/action_config.py

"""
Typed views over StageAction.config.

The config column is free JSON; every read goes through
parse_action_config(), which returns one dataclass per action type.
Keys use the camelCase names the floor devices already send.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

from ops_core.exceptions import ValidationError


@dataclass(frozen=True)
class ScanConfig:
    scan_type: str = "qr"
    # Compared to scannedValue by type and value
    expected_value: Optional[Any] = None


@dataclass(frozen=True)
class PhotoConfig:
    min_photos: int = 1


@dataclass(frozen=True)
class NoteConfig:
    min_length: int = 0


@dataclass(frozen=True)
class ApprovalConfig:
    approver_role: Optional[str] = None
    auto_approve: bool = False


@dataclass(frozen=True)
class MeasurementConfig:
    measurement_unit: str = ""
    min_value: Optional[float] = None
    max_value: Optional[float] = None


@dataclass(frozen=True)
class InspectionConfig:
    checklist: List[str] = field(default_factory=list)


ActionConfig = Union[
    ScanConfig,
    PhotoConfig,
    NoteConfig,
    ApprovalConfig,
    MeasurementConfig,
    InspectionConfig,
]


def _number(raw: Dict[str, Any], key: str, action_type: str) -> Optional[float]:
    value = raw.get(key)
    if value is None or value == "":
        return None
    try:
        number = None if isinstance(value, bool) else float(value)
    except (TypeError, ValueError):
        number = None
    if number is None or not math.isfinite(number):
        raise ValidationError(
            f"{action_type}.{key} must be a finite number",
            [{"field": key, "code": "invalid_config", "message": f"{key} must be a finite number"}],
        )
    return number


def _scan(raw: Dict[str, Any]) -> ScanConfig:
    expected = raw.get("expectedValue")
    return ScanConfig(
        scan_type=str(raw.get("scanType") or "qr"),
        expected_value=None if expected in (None, "") else expected,
    )


def _photo(raw: Dict[str, Any]) -> PhotoConfig:
    return PhotoConfig(min_photos=int(raw.get("minPhotos") or 1))


def _note(raw: Dict[str, Any]) -> NoteConfig:
    return NoteConfig(min_length=int(raw.get("minLength") or 0))


def _approval(raw: Dict[str, Any]) -> ApprovalConfig:
    return ApprovalConfig(
        approver_role=raw.get("approverRole") or None,
        auto_approve=bool(raw.get("autoApprove", False)),
    )


def _measurement(raw: Dict[str, Any]) -> MeasurementConfig:
    cfg = MeasurementConfig(
        measurement_unit=str(raw.get("measurementUnit") or ""),
        min_value=_number(raw, "minValue", "measurement"),
        max_value=_number(raw, "maxValue", "measurement"),
    )
    if cfg.min_value is not None and cfg.max_value is not None and cfg.min_value > cfg.max_value:
        raise ValidationError(
            "measurement.minValue is greater than maxValue",
            [{"field": "minValue", "code": "invalid_config", "message": "minValue must not exceed maxValue"}],
        )
    return cfg


def _inspection(raw: Dict[str, Any]) -> InspectionConfig:
    checklist = raw.get("checklist") or []
    return InspectionConfig(checklist=[str(c) for c in checklist])


_PARSERS = {
    "scan": _scan,
    "photo": _photo,
    "note": _note,
    "approval": _approval,
    "measurement": _measurement,
    "inspection": _inspection,
}

ACTION_TYPES = tuple(_PARSERS)


def parse_action_config(action_type: str, raw: Optional[Dict[str, Any]]) -> ActionConfig:
    parser = _PARSERS.get((action_type or "").strip().lower())
    if parser is None:
        raise ValidationError(
            f"Unknown action type: {action_type}",
            [{"field": "type", "code": "unknown_action_type", "message": f"Unknown action type: {action_type}"}],
        )
    if raw is not None and not isinstance(raw, dict):
        raise ValidationError(
            "Action config must be an object",
            [{"field": "config", "code": "invalid_config", "message": "Action config must be an object"}],
        )
    return parser(raw or {})
