"""Response extraction and normalization."""
import json
import logging
from datetime import date

import pytest

from taskmaster.errors import ExtractionFailed
from taskmaster.extract import (
    ARRAY,
    OBJECT,
    coerce_id,
    extract_complexity_report,
    extract_json,
    extract_subtasks,
    extract_task_collection,
)

from .conftest import tasks_response


def test_extract_json_tolerates_prose_and_fences():
    text = 'Sure!\n```json\n{"tasks": [{"id": 1}]}\n```\nHope that helps.'
    assert extract_json(text, OBJECT) == {"tasks": [{"id": 1}]}


@pytest.mark.parametrize(
    "text,mode,message",
    [
        ("no json here", OBJECT, "Could not find"),
        ("] backwards [", ARRAY, "Could not find"),
        ('{"tasks": [1, 2,]}', OBJECT, "invalid JSON"),
        ('{"items": []}', OBJECT, "tasks array"),
        ('{"tasks": "nope"}', OBJECT, "tasks array"),
        ("[]", ARRAY, "No subtasks were generated"),
    ],
)
def test_extract_json_failures(text, mode, message):
    with pytest.raises(ExtractionFailed, match=message):
        extract_json(text, mode, what="subtasks")


def test_extract_json_rejects_unknown_mode():
    with pytest.raises(ValueError):
        extract_json("[]", "table")


def test_coerce_id():
    assert coerce_id("2") == 2
    assert coerce_id(" 7 ") == 7
    assert coerce_id(3.0) == 3
    assert coerce_id(True) is None
    assert coerce_id("two") is None
    assert coerce_id(None) is None


# Task collections


def test_task_ids_sequential_from_one():
    collection = extract_task_collection(tasks_response(4), 4, "prd.txt")
    assert [t["id"] for t in collection["tasks"]] == [1, 2, 3, 4]
    assert all(t["status"] == "pending" for t in collection["tasks"])


def test_metadata_synthesized_when_missing():
    collection = extract_task_collection(tasks_response(3), 3, "docs/prd.txt", today=date(2025, 3, 1))
    assert collection["metadata"] == {
        "projectName": "PRD Implementation",
        "totalTasks": 3,
        "sourceFile": "docs/prd.txt",
        "generatedAt": "2025-03-01",
    }


def test_backend_metadata_passes_through_with_coercion():
    metadata = {
        "projectName": "Shop",
        "totalTasks": "2",
        "sourceFile": "prd.md",
        "generatedAt": "2025-01-01",
    }
    collection = extract_task_collection(tasks_response(2, metadata=metadata), 2, "other.md")
    assert collection["metadata"] == dict(metadata, totalTasks=2)


def test_task_count_mismatch_warns_but_keeps_everything(caplog):
    with caplog.at_level(logging.WARNING, logger="taskmaster"):
        collection = extract_task_collection(tasks_response(3), 5, "prd.txt")
    assert len(collection["tasks"]) == 3
    assert "Expected 5 tasks, but received 3" in caplog.text


def test_priority_defaults_to_medium_and_dependencies_coerced():
    payload = {
        "tasks": [
            {"id": 1, "title": "A"},
            {"id": 2, "title": "B", "priority": "URGENT", "dependencies": ["1", "2", 9, "x"]},
        ]
    }
    tasks = extract_task_collection(json.dumps(payload), 2, "prd.txt")["tasks"]
    assert tasks[0]["priority"] == "medium"
    assert tasks[0]["dependencies"] == []
    assert tasks[0]["testStrategy"] == ""
    assert tasks[1]["priority"] == "medium"
    assert tasks[1]["dependencies"] == [1]


def test_non_sequential_task_ids_are_renumbered_with_dependencies():
    payload = {
        "tasks": [
            {"id": 10, "title": "A", "dependencies": []},
            {"id": 20, "title": "B", "dependencies": [10]},
            {"id": 30, "title": "C", "dependencies": [10, 20]},
        ]
    }
    tasks = extract_task_collection(json.dumps(payload), 3, "prd.txt")["tasks"]
    assert [t["id"] for t in tasks] == [1, 2, 3]
    assert tasks[1]["dependencies"] == [1]
    assert tasks[2]["dependencies"] == [1, 2]


def test_task_entry_must_be_object():
    with pytest.raises(ExtractionFailed, match="not an object"):
        extract_task_collection('{"tasks": ["just text"]}', 1, "prd.txt")


def test_extraction_is_idempotent():
    text = tasks_response(3)
    first = extract_task_collection(text, 3, "prd.txt", today=date(2025, 1, 1))
    second = extract_task_collection(text, 3, "prd.txt", today=date(2025, 1, 1))
    assert json.dumps(first) == json.dumps(second)


# Subtasks


def test_subtask_scenario_from_prose():
    text = 'Here you go:\n[{"id":99,"title":"X","description":"Y"}]\nThanks!'
    subtasks = extract_subtasks(text, 5, parent_task_id=2, expected_count=1)
    assert len(subtasks) == 1
    assert subtasks[0]["id"] == 5
    assert subtasks[0]["dependencies"] == []
    assert subtasks[0]["status"] == "pending"
    assert subtasks[0]["parentTaskId"] == 2
    assert subtasks[0]["details"] == ""


def test_subtask_ids_contiguous_regardless_of_model(caplog):
    text = json.dumps([{"id": 7}, {"id": 7}, {"title": "no id"}])
    with caplog.at_level(logging.WARNING, logger="taskmaster"):
        subtasks = extract_subtasks(text, 1, parent_task_id=4)
    assert [s["id"] for s in subtasks] == [1, 2, 3]
    assert "Correcting subtask ID from 7 to 1" in caplog.text


def test_subtask_dependency_strings_become_integers():
    text = json.dumps([{"id": 3, "dependencies": ["1", "2"]}, {"id": 4}])
    subtasks = extract_subtasks(text, 3, parent_task_id=1)
    assert subtasks[0]["dependencies"] == [1, 2]
    assert subtasks[1]["dependencies"] == []


def test_subtask_invalid_dependencies_dropped():
    text = json.dumps([{"dependencies": "1"}, {"dependencies": [2, "abc", None, 1]}])
    subtasks = extract_subtasks(text, 1, parent_task_id=1)
    assert subtasks[0]["dependencies"] == []
    assert subtasks[1]["dependencies"] == [1]


def test_subtask_status_and_parent_are_forced():
    text = json.dumps([{"id": 1, "status": "done", "parentTaskId": 42}])
    subtask = extract_subtasks(text, 1, parent_task_id=8)[0]
    assert subtask["status"] == "pending"
    assert subtask["parentTaskId"] == 8


def test_subtask_array_must_hold_objects():
    with pytest.raises(ExtractionFailed):
        extract_subtasks("[1, 2, 3]", 1, parent_task_id=1)


def test_subtask_object_response_is_structural_failure():
    with pytest.raises(ExtractionFailed):
        extract_subtasks('{"subtasks": {"id": 1}}', 1, parent_task_id=1)


# Complexity


def test_complexity_short_response_returned_unmodified(caplog):
    tasks = [{"id": i} for i in range(1, 6)]
    entries = [{"taskId": i, "complexityScore": i} for i in range(1, 5)]
    with caplog.at_level(logging.WARNING, logger="taskmaster"):
        result = extract_complexity_report(json.dumps(entries), tasks)
    assert result == entries
    assert "Expected analysis for 5 tasks, but received 4" in caplog.text
    assert "[5]" in caplog.text


def test_subtask_sibling_dependencies_follow_corrected_ids():
    text = json.dumps(
        [
            {"id": 1, "title": "A"},
            {"id": 2, "title": "B", "dependencies": [1]},
            {"id": 3, "title": "C", "dependencies": [1, 2, "2"]},
        ]
    )
    subtasks = extract_subtasks(text, 4, parent_task_id=1)
    assert [s["id"] for s in subtasks] == [4, 5, 6]
    assert subtasks[1]["dependencies"] == [4]
    assert subtasks[2]["dependencies"] == [4, 5]


def test_subtask_forward_dependencies_dropped(caplog):
    text = json.dumps([{"id": 1, "dependencies": [2]}, {"id": 2, "dependencies": [1, 3, 0]}])
    with caplog.at_level(logging.WARNING, logger="taskmaster"):
        subtasks = extract_subtasks(text, 1, parent_task_id=1)
    assert subtasks[0]["dependencies"] == []
    assert subtasks[1]["dependencies"] == [1]
    assert "Dropping invalid dependency 3 from subtask 2" in caplog.text
