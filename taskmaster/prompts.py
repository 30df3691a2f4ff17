"""Prompt templates for PRD breakdown, subtask expansion and complexity analysis.

All builders are pure: they take structured inputs and return a Prompt.
"""

import json
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple


@dataclass(frozen=True)
class Prompt:
    system: str
    user: str


TASK_SCHEMA = """{
  "tasks": [
    {
      "id": number,
      "title": string,
      "description": string,
      "status": "pending",
      "priority": "high" | "medium" | "low",
      "dependencies": number[],
      "details": string,
      "testStrategy": string
    }
  ],
  "metadata": {
    "projectName": string,
    "totalTasks": number,
    "sourceFile": string,
    "generatedAt": string
  }
}"""


def build_prd_prompt(prd_text: str, num_tasks: int) -> Prompt:
    """Prompt asking for exactly ``num_tasks`` tasks as a JSON object."""
    system_prompt = f"""You are an expert software architect and project manager.
Your task is to break down a Product Requirements Document (PRD) into exactly {num_tasks} well-defined tasks.
Each task should be specific, actionable, and include clear implementation details.

Key instructions:
- Assign sequential task IDs starting from 1
- A task may only depend on tasks whose IDs are lower than or equal to tasks already defined
- Never list a task as its own dependency
- Every task starts with status "pending"
- Priority is one of "high", "medium" or "low"

Return the response as a JSON object with the following structure:
{TASK_SCHEMA}

Output only the JSON object, no markdown code blocks or extra commentary."""

    user_prompt = (
        f"Here's the Product Requirements Document (PRD) to break down into {num_tasks} tasks:\n\n"
        f"{prd_text}"
    )
    return Prompt(system=system_prompt, user=user_prompt)


SUBTASK_GUIDELINES = """Subtasks should:
1. Be specific and actionable implementation steps
2. Follow a logical sequence
3. Each handle a distinct part of the parent task
4. Include clear guidance on implementation approach
5. Have appropriate dependency chains between subtasks
6. Collectively cover all aspects of the parent task"""


def build_subtask_prompt(
    task: Dict[str, Any],
    num_subtasks: int,
    next_subtask_id: int,
    additional_context: str = "",
    research: Optional[str] = None,
) -> Prompt:
    """Prompt asking for a bare JSON array of ``num_subtasks`` subtasks.

    When ``research`` is given it is embedded together with the user's
    additional context and the model is told to build on it.
    """
    research_intro = ""
    detail_hint = "Detailed implementation steps"
    if research is not None:
        research_intro = (
            "\nYou have been provided with research on current best practices and implementation approaches.\n"
            "Use this research to inform and enhance your subtask breakdown.\n"
        )
        detail_hint = "Detailed implementation steps that incorporate best practices from the research"

    system_prompt = f"""You are an AI assistant helping with task breakdown for software development.
You need to break down a high-level task into {num_subtasks} specific subtasks that can be implemented one by one.
{research_intro}
{SUBTASK_GUIDELINES}

For each subtask, provide:
- A clear, specific title
- {detail_hint}
- Dependencies on previous subtasks
- Testing approach

Each subtask should be implementable in a focused coding session."""

    if research is not None:
        context_block = (
            f"\nRESEARCH FINDINGS:\n{research}\n\n"
            f"ADDITIONAL CONTEXT PROVIDED BY USER:\n"
            f"{additional_context or 'No additional context provided.'}\n"
        )
    elif additional_context:
        context_block = f"\nAdditional context to consider: {additional_context}\n"
    else:
        context_block = ""

    example = json.dumps(
        [
            {
                "id": next_subtask_id,
                "title": "First subtask title",
                "description": "Detailed description",
                "dependencies": [],
                "details": "Implementation details",
            }
        ],
        indent=2,
    )

    user_prompt = f"""Please break down this task into {num_subtasks} specific, actionable subtasks:

Task ID: {task.get("id")}
Title: {task.get("title", "")}
Description: {task.get("description", "")}
Current details: {task.get("details") or "None provided"}
{context_block}
Return exactly {num_subtasks} subtasks as a JSON array, with IDs starting at {next_subtask_id}, using this structure:
{example}

Note on dependencies: Subtasks can depend on other subtasks with lower IDs. Use an empty array if there are no dependencies.
Output only the JSON array."""

    return Prompt(system=system_prompt, user=user_prompt)


def _task_summary(task: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "id": task.get("id"),
        "title": task.get("title", ""),
        "description": task.get("description", ""),
        "details": task.get("details", ""),
        "dependencies": task.get("dependencies") or [],
        "priority": task.get("priority") or "medium",
    }


def build_complexity_prompt(tasks: List[Dict[str, Any]], subtask_range: Tuple[int, int]) -> Prompt:
    """Prompt asking for one complexity entry per task, none omitted."""
    low, high = subtask_range
    system_prompt = """You are a technical project manager analyzing software development tasks.
Please analyze each task and provide a complexity assessment.

For each task, consider:
1. Technical complexity
2. Dependencies and integration points
3. Potential risks and challenges
4. Required expertise level
5. Testing requirements"""

    tasks_json = json.dumps([_task_summary(t) for t in tasks], indent=2)

    user_prompt = f"""Tasks to analyze:
{tasks_json}

Provide your analysis in this exact JSON format:
[
  {{
    "taskId": number,
    "taskTitle": "string",
    "complexityScore": number (1-10),
    "recommendedSubtasks": number ({low}-{high}),
    "expansionPrompt": "string - a specific prompt for generating good subtasks",
    "reasoning": "string - explanation of complexity assessment"
  }}
]

IMPORTANT:
- Respond ONLY with the JSON array
- complexityScore should be 1-10 (1=simplest, 10=most complex)
- Include an analysis for EVERY one of the {len(tasks)} tasks, with the taskId matching each task's ID
- Keep reasoning concise but informative
- Format must be valid JSON"""

    return Prompt(system=system_prompt, user=user_prompt)
