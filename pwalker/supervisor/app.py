from fastapi import Body, FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from typing import Any, Dict, Optional
import logging

from pwalker.contracts import SERVER_NAME, SERVER_VERSION
from pwalker.errors import UnknownToolError
from .lifecycle import LifecycleGuard
from .logging_setup import configure_logging
from .models import TextContent, ToolResult
from .process_manager import ProcessSupervisor
from .runtime_config import load_config
from .tools import WorkerTools

logger = logging.getLogger("pwalker.supervisor.app")


def create_app(
    tools: Optional[WorkerTools] = None,
    guard: Optional[LifecycleGuard] = None,
    config: Optional[Dict[str, Any]] = None,
) -> FastAPI:
    """Bind the operation table to HTTP.

    One supervisor and one queue live for the lifetime of the app; the
    lifecycle guard is installed on startup and swept on shutdown.
    """
    settings = config or load_config()
    if tools is None:
        tools = WorkerTools(ProcessSupervisor(read_chunk_size=settings["read_chunk_size"]))
    if guard is None:
        guard = LifecycleGuard(tools.supervisor)
    if tools.supervisor.on_fault is None:
        tools.supervisor.on_fault = guard.handle_fault

    app = FastAPI(title="pwalker worker control")
    app.state.tools = tools
    app.state.guard = guard

    @app.on_event("startup")
    async def startup_event():
        guard.install()
        logger.info("%s %s ready; lifecycle guard installed.", SERVER_NAME, SERVER_VERSION)

    @app.on_event("shutdown")
    async def shutdown_event():
        logger.info("Shutting down processes...")
        await tools.supervisor.shutdown()
        guard.uninstall()
        logger.info("Processes stopped.")

    @app.exception_handler(Exception)
    async def fault_handler(request: Request, exc: Exception):
        # Supervisor state cannot be trusted after an unexpected fault.
        guard.handle_fault(exc)
        return JSONResponse(status_code=500, content={"detail": str(exc)})

    @app.get("/health")
    async def health_check():
        return {
            "status": "ok",
            "name": SERVER_NAME,
            "version": SERVER_VERSION,
            "live_processes": len(tools.supervisor.live_ids()),
            "queued_tasks": len(tools.queue),
        }

    @app.get("/tools")
    async def list_tools():
        return [info.model_dump() for info in tools.list_tools()]

    @app.post("/tools/{name}", response_model=ToolResult)
    async def call_tool(name: str, arguments: Optional[Dict[str, Any]] = Body(default=None)):
        try:
            text = await tools.call(name, arguments)
        except UnknownToolError as exc:
            raise HTTPException(status_code=404, detail=str(exc))
        except ValidationError as exc:
            raise HTTPException(status_code=422, detail=exc.errors(include_url=False, include_context=False))
        return ToolResult(content=[TextContent(text=text)])

    return app


def build_default_app() -> FastAPI:
    settings = load_config()
    configure_logging(settings["log_level"], settings["log_file"])
    return create_app(config=settings)
