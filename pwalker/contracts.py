"""Operation names and fixed result texts exposed to the transport."""

TOOL_PUSH_TASKS = "push-tasks"
TOOL_POP_TASK = "pop-task"
TOOL_LAUNCH_PROCESS = "launch-background-process"
TOOL_GET_PROCESS_OUTPUT = "get-process-output"
TOOL_KILL_PROCESS = "kill-process"
TOOL_WAIT = "wait"

SUPPORTED_TOOLS = (
    TOOL_PUSH_TASKS,
    TOOL_POP_TASK,
    TOOL_LAUNCH_PROCESS,
    TOOL_GET_PROCESS_OUTPUT,
    TOOL_KILL_PROCESS,
    TOOL_WAIT,
)

EMPTY_QUEUE_TEXT = "No tasks in the queue."
PROCESS_NOT_FOUND_TEXT = "Process not found."

SERVER_NAME = "pwalker"
SERVER_VERSION = "0.1.0"
