# ops_core/workflows/runtime.py

"""
Stage action enforcement layer.

Responsibilities:
- Check submitted actions against the current stage's action list
- Collect every violation before failing, so operators see a full checklist
- Raise a single structured ValidationError on hard blocks

This module MUST remain free of persistence writes.
"""

import math
from typing import Any, Dict, Iterable, List, Optional

from ops_core.exceptions import ValidationError
from ops_core.workflows.action_config import (
    ApprovalConfig,
    MeasurementConfig,
    ScanConfig,
    parse_action_config,
)


def _violation(action, code: str, message: str) -> Dict[str, Any]:
    return {
        "action_id": action.action_id,
        "label": action.label,
        "code": code,
        "message": message,
    }


def _as_number(value) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def _fmt(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else str(value)


def check_action(action, submitted: Dict[str, Any]) -> List[Dict[str, Any]]:
    """
    Type-specific checks for one submitted action. Photo, note and
    inspection only need to be present.
    """
    cfg = parse_action_config(action.action_type, action.config)
    data = submitted.get("data") or {}
    if not isinstance(data, dict):
        data = {}

    if isinstance(cfg, ScanConfig):
        if cfg.expected_value is not None:
            scanned = data.get("scannedValue")
            if type(scanned) is not type(cfg.expected_value) or scanned != cfg.expected_value:
                return [
                    _violation(
                        action,
                        "scan_mismatch",
                        f"Invalid scan value. Expected: {cfg.expected_value}",
                    )
                ]
        return []

    if isinstance(cfg, ApprovalConfig):
        if not data.get("approved"):
            return [_violation(action, "approval_required", "Approval required to advance")]
        return []

    if isinstance(cfg, MeasurementConfig):
        if cfg.min_value is None and cfg.max_value is None:
            return []
        value = _as_number(data.get("value"))
        if value is None:
            return [_violation(action, "measurement_missing", "Measurement value is required")]
        if cfg.min_value is not None and value < cfg.min_value:
            return [
                _violation(
                    action,
                    "measurement_too_low",
                    f"Measurement too low. Minimum: {_fmt(cfg.min_value)}",
                )
            ]
        if cfg.max_value is not None and value > cfg.max_value:
            return [
                _violation(
                    action,
                    "measurement_too_high",
                    f"Measurement too high. Maximum: {_fmt(cfg.max_value)}",
                )
            ]
        return []

    return []


def collect_action_violations(stage, completed_actions: Iterable[Dict[str, Any]]) -> List[Dict[str, Any]]:
    submitted_by_id: Dict[str, Dict[str, Any]] = {}
    for entry in completed_actions or []:
        if isinstance(entry, dict) and entry.get("id"):
            submitted_by_id.setdefault(str(entry["id"]), entry)

    violations: List[Dict[str, Any]] = []

    # Optional actions are recorded with the history row but never gate advancement
    for action in stage.actions.filter(required=True).order_by("id"):
        submitted = submitted_by_id.get(action.action_id)
        if submitted is None:
            violations.append(
                _violation(action, "missing", f"Missing required action: {action.label}")
            )
            continue
        violations.extend(check_action(action, submitted))

    return violations


def enforce_stage_actions(stage, completed_actions: Iterable[Dict[str, Any]]) -> None:
    """
    Raise ValidationError listing every missing or invalid action.
    """
    violations = collect_action_violations(stage, completed_actions)
    if not violations:
        return

    missing = [v["label"] for v in violations if v["code"] == "missing"]
    if missing and len(missing) == len(violations):
        message = f"Missing required actions: {', '.join(missing)}"
    else:
        message = "Stage actions incomplete or invalid"

    raise ValidationError(message, violations)
