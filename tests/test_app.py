"""Tests for the HTTP binding of the operation table."""

from __future__ import annotations

import sys
import time
import unittest
from unittest import mock

from fastapi.testclient import TestClient

from pwalker.contracts import SUPPORTED_TOOLS
from pwalker.supervisor.app import create_app
from pwalker.supervisor.lifecycle import LifecycleGuard
from pwalker.supervisor.runtime_config import default_config
from pwalker.supervisor.tools import WorkerTools

PYTHON = sys.executable


class AppTests(unittest.TestCase):
    """Validate request routing, result envelope and fault escalation."""

    def setUp(self) -> None:
        self.exit_codes: list[int] = []
        self.tools = WorkerTools()
        self.guard = LifecycleGuard(self.tools.supervisor, exit_fn=self.exit_codes.append, signals=())
        self.app = create_app(tools=self.tools, guard=self.guard, config=default_config())

    def _text(self, response) -> str:
        self.assertEqual(response.status_code, 200, response.text)
        content = response.json()["content"]
        self.assertEqual(content[0]["type"], "text")
        return content[0]["text"]

    def test_health_and_tool_listing(self) -> None:
        with TestClient(self.app) as client:
            health = client.get("/health").json()
            self.assertEqual(health["status"], "ok")
            self.assertEqual(health["live_processes"], 0)
            names = [tool["name"] for tool in client.get("/tools").json()]
            self.assertEqual(names, list(SUPPORTED_TOOLS))

    def test_push_and_pop_over_http(self) -> None:
        with TestClient(self.app) as client:
            text = self._text(client.post("/tools/push-tasks", json={"tasklist": ["a", "b"]}))
            self.assertEqual(text, "Pushed 2 tasks to the task queue. There are now 2 tasks in the queue.")
            self.assertEqual(client.get("/health").json()["queued_tasks"], 2)
            self.assertEqual(self._text(client.post("/tools/pop-task", json={})), "a")
            self.assertEqual(self._text(client.post("/tools/pop-task")), "b")
            self.assertEqual(self._text(client.post("/tools/pop-task")), "No tasks in the queue.")

    def test_launch_and_read_output_over_http(self) -> None:
        with TestClient(self.app) as client:
            text = self._text(
                client.post(
                    "/tools/launch-background-process",
                    json={"command": PYTHON, "args": ["-c", "print('hello')"]},
                )
            )
            process_id = text.rsplit(" ", 1)[-1]
            deadline = time.monotonic() + 10
            while True:
                output = self._text(client.post("/tools/get-process-output", json={"processId": process_id}))
                if "Exited with code 0" in output or time.monotonic() > deadline:
                    break
                time.sleep(0.05)
            self.assertIn("Status: Exited with code 0", output)
            self.assertIn("STDOUT:\nhello", output)

    def test_startup_and_shutdown_install_and_remove_guard(self) -> None:
        with TestClient(self.app):
            self.assertTrue(self.guard.installed)
        self.assertFalse(self.guard.installed)

    def test_unknown_tool_is_404(self) -> None:
        with TestClient(self.app) as client:
            self.assertEqual(client.post("/tools/reboot", json={}).status_code, 404)

    def test_invalid_arguments_are_422(self) -> None:
        with TestClient(self.app) as client:
            self.assertEqual(client.post("/tools/wait", json={"seconds": -1}).status_code, 422)
            self.assertEqual(client.post("/tools/kill-process", json={}).status_code, 422)

    def test_unexpected_fault_escalates_to_guard(self) -> None:
        failing = mock.AsyncMock(side_effect=RuntimeError("boom"))
        with mock.patch.object(self.tools, "pop_task", new=failing):
            with TestClient(self.app, raise_server_exceptions=False) as client:
                with self.assertLogs("pwalker.supervisor.lifecycle", level="CRITICAL"):
                    response = client.post("/tools/pop-task", json={})
        self.assertEqual(response.status_code, 500)
        self.assertEqual(self.exit_codes, [1])


if __name__ == "__main__":
    unittest.main()
