"""Shared flowchart specs for the test suite."""
from __future__ import annotations

import copy
import sys
from pathlib import Path

TESTS_DIR = Path(__file__).resolve().parent
PROJECT_ROOT = TESTS_DIR.parent
if str(PROJECT_ROOT / "src") not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT / "src"))


def fixed_width(text: str) -> float:
    """Deterministic metric: every character is 6 units wide."""
    return 6.0 * len(text)


TWO_NODES = {
    "title": "Two nodes",
    "direction": "TB",
    "nodes": [
        {"id": "A", "label": "Start", "category": "title", "shape": "ellipse", "order": 0},
        {"id": "B", "label": "Finish", "category": "end", "shape": "doubleoctagon", "order": 1},
    ],
    "edges": [{"from": "A", "to": "B", "style": "solid", "priority": 1}],
}

APPROVAL = {
    "title": "Device approval",
    "direction": "TB",
    "nodes": [
        {"id": "start", "label": "Submit application", "category": "title", "shape": "ellipse", "group": "Intake", "order": 0},
        {"id": "triage", "label": "Triage documents", "category": "phase", "shape": "box", "group": "Intake", "order": 1},
        {"id": "review", "label": "Technical review of the device file", "category": "step", "shape": "box", "group": "Review", "order": 2},
        {"id": "ok", "label": "Meets requirements?", "category": "decision", "shape": "diamond", "group": "Review", "order": 3},
        {"id": "fix", "label": "Request changes", "category": "input", "shape": "parallelogram", "group": "Review", "order": 3},
        {"id": "memo", "label": "Record rationale", "category": "note", "shape": "note", "group": "Review", "order": 4},
        {"id": "done", "label": "Approved", "category": "end", "shape": "doubleoctagon", "group": "Outcome", "order": 5},
    ],
    "edges": [
        {"from": "start", "to": "triage", "style": "solid", "priority": 1},
        {"from": "triage", "to": "review", "style": "solid", "priority": 1},
        {"from": "review", "to": "ok", "style": "solid", "priority": 1},
        {"from": "ok", "to": "done", "label": "yes", "style": "solid", "priority": 1},
        {"from": "ok", "to": "fix", "label": "no", "style": "dashed", "priority": 2},
        {"from": "fix", "to": "review", "style": "dotted", "priority": 3},
        {"from": "ok", "to": "memo", "style": "dotted"},
    ],
}


def chain(length: int, direction: str = "TB") -> dict:
    nodes = [
        {"id": f"n{i}", "label": f"Step {i}", "category": "step", "shape": "box", "order": i}
        for i in range(length)
    ]
    edges = [{"from": f"n{i}", "to": f"n{i + 1}", "style": "solid"} for i in range(length - 1)]
    return {"title": "Chain", "direction": direction, "nodes": nodes, "edges": edges}


def spec(data: dict) -> dict:
    return copy.deepcopy(data)
