from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, List


class ToolArguments(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class PushTasksArgs(ToolArguments):
    tasklist: Optional[List[str]] = Field(
        default=None,
        description="A list of tasks to push to the task queue. Can be retrieved using the 'pop-task' tool.",
    )
    taskfile: Optional[str] = Field(
        default=None,
        description="Path to a text file with one task per line. Empty lines are skipped.",
    )


class PopTaskArgs(ToolArguments):
    pass


class LaunchProcessArgs(ToolArguments):
    command: str = Field(description="Executable to run.")
    args: List[str] = Field(default_factory=list, description="Arguments passed to the executable.")
    cwd: Optional[str] = Field(default=None, description="Working directory for the process.")


class GetProcessOutputArgs(ToolArguments):
    process_id: str = Field(alias="processId", description="ID returned by 'launch-background-process'.")
    clear: bool = Field(default=False, description="Clear buffered output after reading it.")


class KillProcessArgs(ToolArguments):
    process_id: str = Field(alias="processId", description="ID returned by 'launch-background-process'.")
    keep_output: bool = Field(
        default=False,
        alias="keepOutput",
        description="Keep the buffered output readable after the kill.",
    )


class WaitArgs(ToolArguments):
    seconds: float = Field(ge=0, description="Number of seconds to wait.")


class TextContent(BaseModel):
    type: str = "text"
    text: str


class ToolResult(BaseModel):
    content: List[TextContent]


class ToolInfo(BaseModel):
    name: str
    description: str
    input_schema: dict
