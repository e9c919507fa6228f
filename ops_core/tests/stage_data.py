# ops_core/tests/stage_data.py

from typing import Any, Dict, List


# Three-stage garment line used across the suite.
CUT_SEW_PACK: List[Dict[str, Any]] = [
    {
        "id": "cut",
        "name": "Cut",
        "actions": [
            {
                "id": "scan-fabric",
                "type": "scan",
                "label": "Scan fabric roll",
                "required": True,
                "config": {"scanType": "barcode", "expectedValue": "FAB-001"},
            }
        ],
    },
    {
        "id": "sew",
        "name": "Sew",
        "actions": [
            {
                "id": "measure-seam",
                "type": "measurement",
                "label": "Seam allowance",
                "required": True,
                "config": {"measurementUnit": "mm", "minValue": 10, "maxValue": 20},
            },
            {
                "id": "sew-note",
                "type": "note",
                "label": "Operator note",
                "required": False,
            },
        ],
    },
    {
        "id": "pack",
        "name": "Pack",
        "actions": [
            {
                "id": "final-approval",
                "type": "approval",
                "label": "Final approval",
                "required": True,
                "config": {"approverRole": "supervisor"},
            }
        ],
    },
]


def plain_stages(count: int) -> List[Dict[str, Any]]:
    return [{"name": f"Stage {i}"} for i in range(count)]


