#!/usr/bin/env python3
"""Command-line interface for TaskSync.

Local commands run through the same mutation engine as the web API, against
the store named in the config. update-task talks to a running server.

Commands:
    list-tasks [--user] [--since]     List tasks (optionally changed since)
    show-task <id>                    Show details of a specific task
    new-task <title> [...]            Create a new task
    edit-task <id> --version N [...]  Update a task with a version check
    delete-task <id> [--version N]    Delete a task
    update-task [--api URL] [...]     Update a task on a remote server
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

import requests

from tasksync.core.config import Config
from tasksync.core.database import open_store
from tasksync.core.errors import ConflictError, NotFoundError, StoreError
from tasksync.core.models import Task
from tasksync.core.mutations import MutationEngine
from tasksync.core.query import list_tasks
from tasksync.core.timestamp_utils import format_timestamp
from tasksync.core.validation import ValidationError, parse_boolean

EDITED_SUFFIX = " (edited on server)"
REQUEST_TIMEOUT = 10


def format_task(task: Dict[str, Any], format_type: str = "text") -> str:
    """Format a single task for display.

    Args:
        task: Task in wire form
        format_type: Output format (text, json)

    Returns:
        Formatted task string
    """
    if format_type == "json":
        return json.dumps(task, indent=2, ensure_ascii=False)

    status = "x" if task.get("completed") else " "
    lines = [
        f"[{status}] {task['title']}",
        f"ID: {task['id']}",
        f"Version: {task['version']} | Priority: {task['priority']} | User: {task['userId']}",
        f"Created: {format_timestamp(task.get('createdAt'))}",
        f"Updated: {format_timestamp(task.get('updatedAt'))}",
    ]
    if task.get("description"):
        lines.append(f"\n{task['description']}")
    return "\n".join(lines)


def _print_tasks(tasks: List[Task], format_type: str) -> None:
    if format_type == "json":
        print(json.dumps([t.to_dict() for t in tasks], indent=2, ensure_ascii=False))
        return
    if not tasks:
        print("No tasks found.")
        return
    for task in tasks:
        status = "x" if task.completed else " "
        print(f"[{status}] {task.id} v{task.version} {task.priority:<6} {task.title}")


def cmd_list_tasks(engine: MutationEngine, args: argparse.Namespace) -> int:
    """List tasks for a user, optionally only those changed since a checkpoint.

    Args:
        engine: Mutation engine bound to the local store
        args: Parsed command-line arguments

    Returns:
        Exit code (0 for success)
    """
    listing = list_tasks(engine.store, args.user or engine.default_user_id, args.since)
    if args.format == "json":
        print(json.dumps(listing.to_dict(), indent=2, ensure_ascii=False))
    else:
        _print_tasks(listing.tasks, args.format)
        print(f"\nLast sync marker: {listing.last_sync}")
    return 0


def cmd_show_task(engine: MutationEngine, args: argparse.Namespace) -> int:
    """Show details of a specific task."""
    task = engine.get(args.task_id)
    print(format_task(task.to_dict(), args.format))
    return 0


def cmd_new_task(engine: MutationEngine, args: argparse.Namespace) -> int:
    """Create a new task."""
    payload: Dict[str, Any] = {"title": args.title}
    if args.description is not None:
        payload["description"] = args.description
    if args.priority is not None:
        payload["priority"] = args.priority
    if args.user is not None:
        payload["userId"] = args.user

    task = engine.create(payload)
    if args.format == "json":
        print(json.dumps(task.to_dict(), ensure_ascii=False))
    else:
        print(f"Created task {task.id} (version {task.version})")
    return 0


def cmd_edit_task(engine: MutationEngine, args: argparse.Namespace) -> int:
    """Update a task, enforcing the version check."""
    patch: Dict[str, Any] = {}
    if args.title is not None:
        patch["title"] = args.title
    if args.description is not None:
        patch["description"] = args.description
    if args.priority is not None:
        patch["priority"] = args.priority
    if args.completed is not None:
        patch["completed"] = args.completed

    task = engine.update(args.task_id, args.version, patch)
    if args.format == "json":
        print(json.dumps(task.to_dict(), ensure_ascii=False))
    else:
        print(f"Updated task {task.id} to version {task.version}")
    return 0


def cmd_delete_task(engine: MutationEngine, args: argparse.Namespace) -> int:
    """Delete a task."""
    removed = engine.delete(args.task_id, args.version)
    if removed:
        print(f"Deleted task {args.task_id}")
    else:
        print(f"Task {args.task_id} does not exist (nothing to delete)")
    return 0


def cmd_update_task(config: Config, args: argparse.Namespace) -> int:
    """Update a task on a remote TaskSync server.

    Lists the user's tasks, picks the requested one (or the first), and sends
    an update carrying the version the server reported. With no field given,
    the title gets EDITED_SUFFIX appended.

    Args:
        config: Config instance (for api_url and default_user_id)
        args: Parsed command-line arguments

    Returns:
        Exit code (0 for success, 1 for error)
    """
    api_url = (args.api or config.get_api_url()).rstrip("/")
    user_id = args.user or config.get_default_user_id()

    try:
        response = requests.get(
            f"{api_url}/tasks", params={"userId": user_id}, timeout=REQUEST_TIMEOUT
        )
        response.raise_for_status()
        tasks = response.json().get("tasks") or []
        if not tasks:
            print("Error: No tasks found on the server.", file=sys.stderr)
            return 1

        task = next((t for t in tasks if t["id"] == args.id), None)
        if task is None:
            task = tasks[0]
            if args.id:
                print(f"Warning: Task {args.id} not found, using {task['id']}", file=sys.stderr)
            else:
                print(f"No task ID given, using {task['id']}", file=sys.stderr)

        payload: Dict[str, Any] = {"version": task["version"]}
        if args.title:
            payload["title"] = args.title
        if args.description:
            payload["description"] = args.description
        if args.priority:
            payload["priority"] = args.priority
        completed = parse_boolean(args.completed, fallback=None)
        if completed is not None:
            payload["completed"] = completed
        if len(payload) == 1:
            payload["title"] = f"{task['title']}{EDITED_SUFFIX}"

        response = requests.put(
            f"{api_url}/tasks/{task['id']}", json=payload, timeout=REQUEST_TIMEOUT
        )
        if response.status_code == 409:
            server_task = response.json().get("serverTask", {})
            print(
                f"Error: Conflict - server has version {server_task.get('version')}",
                file=sys.stderr,
            )
            return 1
        response.raise_for_status()
        updated = response.json()["task"]
    except requests.exceptions.RequestException as e:
        print(f"Error updating task: {e}", file=sys.stderr)
        return 1

    print("Task updated on server:")
    print(format_task(updated, args.format))
    return 0


def add_cli_subparser(subparsers: argparse._SubParsersAction[argparse.ArgumentParser]) -> None:
    """Add CLI subparser and its nested subcommands.

    Args:
        subparsers: Parent subparsers object to add CLI parser to
    """
    cli_parser = subparsers.add_parser(
        "cli",
        help="Command-line interface",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    cli_parser.add_argument(
        "--format",
        choices=["text", "json"],
        default="text",
        help="Output format (default: text)"
    )

    cli_subparsers = cli_parser.add_subparsers(dest="cli_command", help="CLI commands")

    # list-tasks command
    list_parser = cli_subparsers.add_parser("list-tasks", help="List tasks")
    list_parser.add_argument("--user", type=str, default=None, help="Owner (default: from config)")
    list_parser.add_argument(
        "--since",
        type=int,
        default=None,
        help="Only tasks updated after this epoch-ms checkpoint"
    )

    # show-task command
    show_parser = cli_subparsers.add_parser("show-task", help="Show details of a specific task")
    show_parser.add_argument("task_id", type=str, help="ID of the task to show")

    # new-task command
    new_parser = cli_subparsers.add_parser("new-task", help="Create a new task")
    new_parser.add_argument("title", type=str, help="Task title")
    new_parser.add_argument("--description", type=str, default=None, help="Task description")
    new_parser.add_argument("--priority", type=str, default=None, help="Priority label")
    new_parser.add_argument("--user", type=str, default=None, help="Owner (default: from config)")

    # edit-task command
    edit_parser = cli_subparsers.add_parser("edit-task", help="Update a task")
    edit_parser.add_argument("task_id", type=str, help="ID of the task to update")
    edit_parser.add_argument(
        "--version",
        type=int,
        required=True,
        help="Version you last saw (stale versions are rejected)"
    )
    edit_parser.add_argument("--title", type=str, default=None, help="New title")
    edit_parser.add_argument("--description", type=str, default=None, help="New description")
    edit_parser.add_argument("--priority", type=str, default=None, help="New priority")
    edit_parser.add_argument("--completed", type=str, default=None, help="true/false/1/0")

    # delete-task command
    delete_parser = cli_subparsers.add_parser("delete-task", help="Delete a task")
    delete_parser.add_argument("task_id", type=str, help="ID of the task to delete")
    delete_parser.add_argument("--version", type=int, default=None, help="Version you last saw")

    # update-task command (remote)
    update_parser = cli_subparsers.add_parser(
        "update-task",
        help="Update a task on a running TaskSync server"
    )
    update_parser.add_argument("--api", type=str, default=None, help="API base URL (default: from config)")
    update_parser.add_argument("--user", type=str, default=None, help="Owner (default: from config)")
    update_parser.add_argument("--id", type=str, default=None, help="Task ID (default: first task)")
    update_parser.add_argument("--title", type=str, default=None, help="New title")
    update_parser.add_argument("--description", type=str, default=None, help="New description")
    update_parser.add_argument("--priority", type=str, default=None, help="New priority")
    update_parser.add_argument("--completed", type=str, default=None, help="true/false/1/0")


def run(config_dir: Optional[Path], args: argparse.Namespace) -> int:
    """Run CLI with given arguments.

    Args:
        config_dir: Custom configuration directory or None for default
        args: Parsed command-line arguments (should have cli_command attribute)

    Returns:
        Exit code (0 for success, 1 for error)
    """
    if not hasattr(args, 'cli_command') or not args.cli_command:
        print("Error: No CLI command specified. Use --help for available commands.", file=sys.stderr)
        return 1

    try:
        config = Config(config_dir=config_dir)
        if args.cli_command == "update-task":
            return cmd_update_task(config, args)
        store = open_store(config)
    except (ValidationError, StoreError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    engine = MutationEngine(store, default_user_id=config.get_default_user_id())

    try:
        if args.cli_command == "list-tasks":
            return cmd_list_tasks(engine, args)
        elif args.cli_command == "show-task":
            return cmd_show_task(engine, args)
        elif args.cli_command == "new-task":
            return cmd_new_task(engine, args)
        elif args.cli_command == "edit-task":
            return cmd_edit_task(engine, args)
        elif args.cli_command == "delete-task":
            return cmd_delete_task(engine, args)
        else:
            print(f"Error: Unknown command '{args.cli_command}'", file=sys.stderr)
            return 1
    except ValidationError as e:
        print(f"Error: Invalid {e.field} - {e.message}", file=sys.stderr)
        return 1
    except NotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except ConflictError as e:
        print(
            f"Error: Conflict - task {e.server_task.id} is at version {e.server_task.version}",
            file=sys.stderr,
        )
        return 1
    except StoreError as e:
        print(f"Error: Task store failure - {e}", file=sys.stderr)
        return 1
    finally:
        store.close()
