"""Locate, parse and normalize JSON payloads embedded in model responses.

Models wrap JSON in prose or code fences, so extraction slices from the
first opening bracket to the last matching closing bracket and parses
that. Every failure raises ExtractionFailed; nothing here retries.
"""

import json
import logging
from datetime import date
from typing import Any, Dict, List, Optional

from .errors import ExtractionFailed

log = logging.getLogger(__name__)

OBJECT = "object"
ARRAY = "array"

PRIORITIES = ("high", "medium", "low")
DEFAULT_PRIORITY = "medium"
PENDING = "pending"
DEFAULT_PROJECT_NAME = "PRD Implementation"


def extract_json(text: str, mode: str, what: str = "items") -> Any:
    """Return the parsed object (``mode="object"``) or array (``mode="array"``)."""
    if mode == OBJECT:
        opening, closing = "{", "}"
    elif mode == ARRAY:
        opening, closing = "[", "]"
    else:
        raise ValueError(f"Unknown extraction mode: {mode}")

    start = text.find(opening)
    end = text.rfind(closing)
    if start == -1 or end == -1 or end < start:
        raise ExtractionFailed(f"Could not find a valid JSON {mode} in the response")

    try:
        data = json.loads(text[start : end + 1])
    except json.JSONDecodeError as e:
        raise ExtractionFailed(f"Response contains invalid JSON: {e}") from e

    if mode == OBJECT:
        if not isinstance(data, dict) or not isinstance(data.get("tasks"), list):
            raise ExtractionFailed("Response does not contain a valid tasks array")
    else:
        if not isinstance(data, list):
            raise ExtractionFailed("Parsed content is not an array")
        if not data:
            raise ExtractionFailed(f"No {what} were generated")
    return data


def coerce_id(value: Any) -> Optional[int]:
    """Integer form of an id reference, or None if it is not one."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str):
        try:
            return int(value.strip(), 10)
        except ValueError:
            return None
    return None


# =============================================================================
# Task collections (object mode)
# =============================================================================


def _renumber_map(raw_ids: List[Optional[int]], first_id: int = 1) -> Dict[int, int]:
    mapping: Dict[int, int] = {}
    for index, old_id in enumerate(raw_ids):
        if old_id is not None and old_id not in mapping:
            mapping[old_id] = first_id + index
    return mapping


def _normalize_tasks(raw_tasks: List[Any]) -> List[Dict[str, Any]]:
    for position, raw in enumerate(raw_tasks, 1):
        if not isinstance(raw, dict):
            raise ExtractionFailed(f"Task entry {position} is not an object")

    raw_ids = [coerce_id(raw.get("id")) for raw in raw_tasks]
    expected_ids = list(range(1, len(raw_tasks) + 1))
    mapping = {task_id: task_id for task_id in expected_ids}
    if raw_ids != expected_ids:
        log.warning("Task ids %s are not sequential from 1; renumbering", raw_ids)
        mapping = _renumber_map(raw_ids)

    tasks = []
    for index, raw in enumerate(raw_tasks):
        task = dict(raw)
        task_id = index + 1
        task["id"] = task_id

        dependencies = []
        raw_deps = raw.get("dependencies")
        for dep in raw_deps if isinstance(raw_deps, list) else []:
            dep_id = mapping.get(coerce_id(dep))
            if dep_id is None or dep_id >= task_id:
                log.warning("Dropping invalid dependency %r from task %d", dep, task_id)
                continue
            if dep_id not in dependencies:
                dependencies.append(dep_id)
        task["dependencies"] = dependencies

        priority = str(raw.get("priority") or "").lower()
        task["priority"] = priority if priority in PRIORITIES else DEFAULT_PRIORITY
        task["status"] = PENDING
        for field in ("title", "description", "details", "testStrategy"):
            task.setdefault(field, "")
        tasks.append(task)

    return tasks


def extract_task_collection(
    text: str,
    num_tasks: int,
    prd_path: str,
    today: Optional[date] = None,
) -> Dict[str, Any]:
    """Extract a TaskCollection, synthesizing metadata when it is missing."""
    data = extract_json(text, OBJECT)
    tasks = _normalize_tasks(data["tasks"])

    if len(tasks) != num_tasks:
        log.warning("Expected %d tasks, but received %d", num_tasks, len(tasks))

    metadata = data.get("metadata")
    if isinstance(metadata, dict):
        metadata = dict(metadata)
        total = coerce_id(metadata.get("totalTasks"))
        if total is not None:
            metadata["totalTasks"] = total
    else:
        metadata = {
            "projectName": DEFAULT_PROJECT_NAME,
            "totalTasks": len(tasks),
            "sourceFile": prd_path,
            "generatedAt": (today or date.today()).isoformat(),
        }

    collection = dict(data)
    collection["tasks"] = tasks
    collection["metadata"] = metadata
    return collection


# =============================================================================
# Subtasks and complexity reports (array mode)
# =============================================================================


def extract_subtasks(
    text: str,
    start_id: int,
    parent_task_id: int,
    expected_count: Optional[int] = None,
) -> List[Dict[str, Any]]:
    """Extract subtasks with ids forced to ``start_id + index``."""
    data = extract_json(text, ARRAY, what="subtasks")

    if expected_count is not None and len(data) != expected_count:
        log.warning("Expected %d subtasks, but parsed %d", expected_count, len(data))

    for index, raw in enumerate(data):
        if not isinstance(raw, dict):
            raise ExtractionFailed(f"Subtask entry {index + 1} is not an object")

    # Sibling references follow the model's ids to the forced ones.
    raw_ids = [coerce_id(raw.get("id")) for raw in data]
    forced_ids = list(range(start_id, start_id + len(data)))
    mapping = {} if raw_ids == forced_ids else _renumber_map(raw_ids, start_id)

    subtasks = []
    for index, raw in enumerate(data):
        subtask = dict(raw)
        subtask_id = start_id + index
        if raw.get("id") != subtask_id:
            log.warning("Correcting subtask ID from %s to %d", raw.get("id"), subtask_id)
        subtask["id"] = subtask_id

        dependencies = []
        raw_deps = raw.get("dependencies")
        if isinstance(raw_deps, list):
            for dep in raw_deps:
                dep_id = coerce_id(dep)
                dep_id = mapping.get(dep_id, dep_id)
                if dep_id is None or dep_id < 1 or dep_id >= subtask_id:
                    log.warning("Dropping invalid dependency %r from subtask %d", dep, subtask_id)
                    continue
                if dep_id not in dependencies:
                    dependencies.append(dep_id)
        subtask["dependencies"] = dependencies

        for field in ("title", "description", "details"):
            subtask.setdefault(field, "")
        subtask["status"] = PENDING
        subtask["parentTaskId"] = parent_task_id
        subtasks.append(subtask)

    return subtasks


def extract_complexity_report(text: str, tasks: List[Dict[str, Any]]) -> List[Any]:
    """Extract complexity entries as returned; mismatches are only logged."""
    entries = extract_json(text, ARRAY, what="complexity entries")

    if len(entries) != len(tasks):
        log.warning("Expected analysis for %d tasks, but received %d", len(tasks), len(entries))

    analyzed = {coerce_id(e.get("taskId")) for e in entries if isinstance(e, dict)}
    missing = [t.get("id") for t in tasks if t.get("id") not in analyzed]
    if missing:
        log.warning("No complexity analysis returned for tasks: %s", missing)

    return entries
