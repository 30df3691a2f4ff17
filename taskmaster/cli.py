"""task-master command line."""

import argparse
import asyncio
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from . import __version__
from .config import load_config
from .errors import TaskMasterError
from .orchestrator import Orchestrator
from .store import (
    find_task,
    load_tasks,
    merge_subtasks,
    next_subtask_id,
    read_prd,
    save_complexity_report,
    save_tasks,
)
from .ui import (
    ConsoleProgress,
    NullProgress,
    console,
    err_console,
    print_error,
    print_success,
    setup_logging,
)

DEFAULT_TASKS_FILE = Path("tasks") / "tasks.json"
DEFAULT_REPORT_FILE = Path("scripts") / "task-complexity-report.json"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="task-master",
        description="Turn a PRD into a task backlog and expand tasks into subtasks",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--config", type=Path, help="YAML file overriding environment configuration")
    parser.add_argument("--debug", action="store_true", default=None, help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command", required=True)

    parse_prd = subparsers.add_parser("parse-prd", help="Generate tasks from a PRD")
    parse_prd.add_argument("--input", "-i", type=Path, required=True, help="Path to the PRD file")
    parse_prd.add_argument("--num-tasks", "-n", type=int, default=10, help="Number of tasks to generate")
    parse_prd.add_argument("--output", "-o", type=Path, default=DEFAULT_TASKS_FILE, help="Tasks file to write")

    expand = subparsers.add_parser("expand", help="Expand a task into subtasks")
    expand.add_argument("--id", type=int, required=True, help="Task id to expand")
    expand.add_argument("--num", type=int, help="Number of subtasks (default: defaultSubtasks)")
    expand.add_argument("--research", action="store_true", help="Use research-backed generation")
    expand.add_argument("--prompt", "-p", default="", help="Additional context for subtask generation")
    expand.add_argument("--force", action="store_true", help="Replace existing subtasks")
    expand.add_argument("--file", "-f", type=Path, default=DEFAULT_TASKS_FILE, help="Tasks file")

    analyze = subparsers.add_parser("analyze-complexity", help="Score task complexity")
    analyze.add_argument("--file", "-f", type=Path, default=DEFAULT_TASKS_FILE, help="Tasks file")
    analyze.add_argument("--output", "-o", type=Path, default=DEFAULT_REPORT_FILE, help="Report file")
    analyze.add_argument("--threshold", "-t", type=int, default=5, help="Complexity score that warrants expansion")

    return parser


def _positive(value: int, name: str) -> int:
    if value <= 0:
        raise TaskMasterError(f"{name} must be a positive integer, got {value}")
    return value


def render_tasks(tasks: List[Dict[str, Any]]) -> Table:
    table = Table(title="Generated Tasks", show_lines=False)
    table.add_column("ID", justify="right", style="cyan")
    table.add_column("Title")
    table.add_column("Priority")
    table.add_column("Dependencies", style="dim")
    for task in tasks:
        deps = ", ".join(str(d) for d in task.get("dependencies", [])) or "None"
        table.add_row(str(task["id"]), escape(task.get("title", "")), task.get("priority", ""), deps)
    return table


def render_complexity(entries: List[Any], threshold: int) -> Table:
    table = Table(title="Task Complexity")
    table.add_column("Task", justify="right", style="cyan")
    table.add_column("Title")
    table.add_column("Score", justify="right")
    table.add_column("Subtasks", justify="right")
    for entry in entries:
        if not isinstance(entry, dict):
            continue
        score = entry.get("complexityScore")
        style = "red" if isinstance(score, (int, float)) and score >= threshold else "green"
        table.add_row(
            str(entry.get("taskId", "?")),
            escape(str(entry.get("taskTitle", ""))),
            f"[{style}]{score}[/{style}]",
            str(entry.get("recommendedSubtasks", "")),
        )
    return table


async def cmd_parse_prd(orchestrator: Orchestrator, args: argparse.Namespace) -> None:
    num_tasks = _positive(args.num_tasks, "--num-tasks")
    prd_text = read_prd(args.input)
    collection = await orchestrator.breakdown_prd(prd_text, str(args.input), num_tasks)
    save_tasks(collection, args.output)
    console.print(render_tasks(collection["tasks"]))
    print_success(f"Saved {len(collection['tasks'])} tasks to {args.output}")


async def cmd_expand(orchestrator: Orchestrator, args: argparse.Namespace) -> None:
    collection = load_tasks(args.file)
    task = find_task(collection, args.id)
    num = _positive(args.num if args.num is not None else orchestrator.config.default_subtasks, "--num")
    start_id = 1 if args.force else next_subtask_id(task)

    if args.research:
        subtasks = await orchestrator.expand_task_with_research(task, num, start_id, args.prompt)
    else:
        subtasks = await orchestrator.expand_task(task, num, start_id, args.prompt)

    merge_subtasks(task, subtasks, force=args.force)
    save_tasks(collection, args.file)

    lines = "\n".join(f"[cyan]{task['id']}.{s['id']}[/cyan] {escape(s['title'])}" for s in subtasks)
    console.print(Panel(lines, title=f"Subtasks for task {task['id']}", border_style="green"))


async def cmd_analyze(orchestrator: Orchestrator, args: argparse.Namespace) -> None:
    collection = load_tasks(args.file)
    entries = await orchestrator.analyze_complexity(collection["tasks"])
    project_name = (collection.get("metadata") or {}).get("projectName", "")
    save_complexity_report(entries, args.output, args.threshold, project_name)
    console.print(render_complexity(entries, args.threshold))
    print_success(f"Complexity report saved to {args.output}")


COMMANDS = {
    "parse-prd": cmd_parse_prd,
    "expand": cmd_expand,
    "analyze-complexity": cmd_analyze,
}


async def main(argv: Optional[List[str]] = None, orchestrator: Optional[Orchestrator] = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        config = load_config(args.config, debug=args.debug)
        setup_logging(config.log_level)
        if orchestrator is None:
            reporter = ConsoleProgress() if err_console.is_terminal else NullProgress()
            orchestrator = Orchestrator.from_environment(config, reporter=reporter)
        await COMMANDS[args.command](orchestrator, args)
    except TaskMasterError as e:
        print_error(str(e))
        return 1
    return 0


def run() -> None:
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    run()
