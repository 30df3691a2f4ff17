"""PRD source and task store.

Task files are JSON by default; a ``.yaml``/``.yml`` suffix switches to YAML.
"""

import json
import logging
from datetime import date
from pathlib import Path
from typing import Any, Dict, List

import yaml

from .errors import TaskStoreError

log = logging.getLogger(__name__)

YAML_SUFFIXES = (".yaml", ".yml")


def read_prd(path: Path) -> str:
    try:
        with open(path, "r") as f:
            return f.read()
    except OSError as e:
        raise TaskStoreError(f"Could not read PRD at {path}: {e.strerror or e}") from e


def load_tasks(path: Path) -> Dict[str, Any]:
    """Load a task collection written by ``save_tasks``."""
    try:
        with open(path, "r") as f:
            if path.suffix in YAML_SUFFIXES:
                data = yaml.safe_load(f)
            else:
                data = json.load(f)
    except FileNotFoundError:
        raise TaskStoreError(f"Tasks file not found at {path}. Run parse-prd first.") from None
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise TaskStoreError(f"Error parsing tasks file {path}: {e}") from e

    if not isinstance(data, dict) or not isinstance(data.get("tasks"), list):
        raise TaskStoreError(f"{path} does not contain a tasks array")
    return data


def _write(data: Dict[str, Any], path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w") as f:
        if path.suffix in YAML_SUFFIXES:
            yaml.safe_dump(data, f, default_flow_style=False, sort_keys=False, allow_unicode=True)
        else:
            json.dump(data, f, indent=2)
            f.write("\n")


def save_tasks(collection: Dict[str, Any], path: Path) -> None:
    _write(collection, path)
    log.info("Saved %d tasks to %s", len(collection["tasks"]), path)


def find_task(collection: Dict[str, Any], task_id: int) -> Dict[str, Any]:
    for task in collection["tasks"]:
        if task.get("id") == task_id:
            return task
    raise TaskStoreError(f"Task {task_id} not found")


def next_subtask_id(task: Dict[str, Any]) -> int:
    ids = [s.get("id") for s in task.get("subtasks") or [] if isinstance(s.get("id"), int)]
    return max(ids) + 1 if ids else 1


def merge_subtasks(task: Dict[str, Any], subtasks: List[Dict[str, Any]], force: bool = False) -> None:
    """Append subtasks to a task, replacing existing ones when ``force`` is set."""
    existing = [] if force else list(task.get("subtasks") or [])
    task["subtasks"] = existing + subtasks


def save_complexity_report(
    entries: List[Any],
    path: Path,
    threshold: int,
    project_name: str = "",
    today=None,
) -> Dict[str, Any]:
    report = {
        "meta": {
            "generatedAt": (today or date.today()).isoformat(),
            "tasksAnalyzed": len(entries),
            "thresholdScore": threshold,
            "projectName": project_name,
        },
        "complexityAnalysis": entries,
    }
    _write(report, path)
    log.info("Saved complexity report to %s", path)
    return report
