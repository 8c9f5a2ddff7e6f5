"""Named worker-control operations returning text results."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Type

from pwalker.contracts import (
    EMPTY_QUEUE_TEXT,
    PROCESS_NOT_FOUND_TEXT,
    TOOL_GET_PROCESS_OUTPUT,
    TOOL_KILL_PROCESS,
    TOOL_LAUNCH_PROCESS,
    TOOL_POP_TASK,
    TOOL_PUSH_TASKS,
    TOOL_WAIT,
)
from pwalker.errors import TaskSourceError, UnknownToolError
from pwalker.queue.task_queue import TaskQueue, read_task_file

from .models import (
    GetProcessOutputArgs,
    KillProcessArgs,
    LaunchProcessArgs,
    PopTaskArgs,
    PushTasksArgs,
    ToolArguments,
    ToolInfo,
    WaitArgs,
)
from .output_store import ProcessOutput, ProcessStatus
from .process_manager import ProcessSupervisor

logger = logging.getLogger("pwalker.supervisor.tools")


@dataclass(frozen=True)
class ToolSpec:
    name: str
    description: str
    args_model: Type[ToolArguments]
    handler: str


TOOL_SPECS: Dict[str, ToolSpec] = {
    spec.name: spec
    for spec in (
        ToolSpec(
            TOOL_PUSH_TASKS,
            "Push a list of tasks, or the lines of a task file, to the task queue. "
            "Can be retrieved using the 'pop-task' tool.",
            PushTasksArgs,
            "push_tasks",
        ),
        ToolSpec(
            TOOL_POP_TASK,
            "Pop a task from the task queue. Returns 'No tasks in the queue.' if the queue is empty.",
            PopTaskArgs,
            "pop_task",
        ),
        ToolSpec(
            TOOL_LAUNCH_PROCESS,
            "Launch a process in the background and return its ID. "
            "Use 'get-process-output' to read its output and 'kill-process' to stop it.",
            LaunchProcessArgs,
            "launch_background_process",
        ),
        ToolSpec(
            TOOL_GET_PROCESS_OUTPUT,
            "Get the buffered stdout/stderr and status of a background process.",
            GetProcessOutputArgs,
            "get_process_output",
        ),
        ToolSpec(
            TOOL_KILL_PROCESS,
            "Kill a background process. Its output is discarded unless keepOutput is set.",
            KillProcessArgs,
            "kill_process",
        ),
        ToolSpec(
            TOOL_WAIT,
            "Wait for the given number of seconds.",
            WaitArgs,
            "wait",
        ),
    )
}


def format_seconds(seconds: float) -> str:
    if float(seconds).is_integer():
        return str(int(seconds))
    return str(seconds)


def format_status(output: ProcessOutput) -> str:
    if output.status is ProcessStatus.FAILED_TO_SPAWN:
        return f"Failed to start: {output.spawn_error}"
    if output.status is ProcessStatus.EXITED:
        return f"Exited with code {output.exit_code}"
    return "Running"


def format_process_output(process_id: str, output: ProcessOutput | None) -> str:
    if output is None:
        return f"Process ID: {process_id}\nStatus: {PROCESS_NOT_FOUND_TEXT}\nSTDOUT:\n\nSTDERR:\n"
    return (
        f"Process ID: {process_id}\n"
        f"Status: {format_status(output)}\n"
        f"STDOUT:\n{output.stdout}\n"
        f"STDERR:\n{output.stderr}"
    )


class WorkerTools:
    """Operation table over one task queue and one process supervisor."""

    def __init__(self, supervisor: ProcessSupervisor | None = None, queue: TaskQueue | None = None) -> None:
        self.supervisor = supervisor if supervisor is not None else ProcessSupervisor()
        self.queue = queue if queue is not None else TaskQueue()

    def list_tools(self) -> list[ToolInfo]:
        return [
            ToolInfo(
                name=spec.name,
                description=spec.description,
                input_schema=spec.args_model.model_json_schema(by_alias=True),
            )
            for spec in TOOL_SPECS.values()
        ]

    async def call(self, name: str, arguments: Dict[str, Any] | None = None) -> str:
        """Validate ``arguments`` against the tool's model and run it.

        Raises UnknownToolError and pydantic.ValidationError; anything else
        escaping a handler is a fault in the supervisor itself.
        """
        spec = TOOL_SPECS.get(name)
        if spec is None:
            raise UnknownToolError(name)
        args = spec.args_model.model_validate(arguments or {})
        handler: Callable[[Any], Awaitable[str]] = getattr(self, spec.handler)
        logger.debug("Dispatching %s", name)
        return await handler(args)

    async def push_tasks(self, args: PushTasksArgs) -> str:
        tasks = list(args.tasklist or [])
        if args.taskfile:
            try:
                tasks.extend(read_task_file(args.taskfile))
            except TaskSourceError as exc:
                return str(exc)
        pushed = self.queue.enqueue(tasks)
        return f"Pushed {pushed} tasks to the task queue. There are now {len(self.queue)} tasks in the queue."

    async def pop_task(self, args: PopTaskArgs) -> str:
        task = self.queue.dequeue()
        if task is None:
            return EMPTY_QUEUE_TEXT
        return task

    async def launch_background_process(self, args: LaunchProcessArgs) -> str:
        process_id = await self.supervisor.launch(args.command, args.args, cwd=args.cwd)
        return f"Process launched successfully. ID: {process_id}"

    async def get_process_output(self, args: GetProcessOutputArgs) -> str:
        output = self.supervisor.read_output(args.process_id, clear=args.clear)
        return format_process_output(args.process_id, output)

    async def kill_process(self, args: KillProcessArgs) -> str:
        if not self.supervisor.kill(args.process_id, keep_output=args.keep_output):
            return PROCESS_NOT_FOUND_TEXT
        return f"Process killed successfully. ID: {args.process_id}"

    async def wait(self, args: WaitArgs) -> str:
        await self.supervisor.wait(args.seconds)
        return f"Waited for {format_seconds(args.seconds)} seconds."
