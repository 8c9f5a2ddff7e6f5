"""Tests for launching, observing and terminating child processes."""

from __future__ import annotations

import asyncio
import os
import shutil
import signal
import sys
import tempfile
import unittest
from unittest import mock

from pwalker.supervisor.output_store import ProcessStatus
from pwalker.supervisor.process_manager import ProcessSupervisor

PYTHON = sys.executable
SLEEPER = ["-c", "import time; time.sleep(30)"]


async def wait_until(predicate, timeout: float = 10.0) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met before timeout")
        await asyncio.sleep(0.02)


class ProcessSupervisorTests(unittest.IsolatedAsyncioTestCase):
    """Validate output buffering, status reporting and kill semantics."""

    async def asyncSetUp(self) -> None:
        self.supervisor = ProcessSupervisor()

    async def asyncTearDown(self) -> None:
        await self.supervisor.shutdown(grace_seconds=2.0)

    async def _wait_for_exit(self, process_id: str) -> None:
        await wait_until(lambda: process_id not in self.supervisor.handles)

    @unittest.skipUnless(shutil.which("echo"), "echo not available")
    async def test_echo_hello_exits_zero(self) -> None:
        process_id = await self.supervisor.launch("echo", ["hello"])
        await self._wait_for_exit(process_id)
        output = self.supervisor.read_output(process_id)
        assert output is not None
        self.assertEqual(output.status, ProcessStatus.EXITED)
        self.assertEqual(output.exit_code, 0)
        self.assertEqual(output.stdout, "hello\n")
        self.assertEqual(output.stderr, "")

    async def test_stdout_chunks_read_in_order_before_exit(self) -> None:
        code = (
            "import sys, time\n"
            "for c in 'abc':\n"
            "    sys.stdout.write(c); sys.stdout.flush(); time.sleep(0.05)\n"
            "time.sleep(30)\n"
        )
        process_id = await self.supervisor.launch(PYTHON, ["-c", code])
        await wait_until(lambda: self.supervisor.read_output(process_id).stdout == "abc")
        output = self.supervisor.read_output(process_id)
        self.assertEqual(output.status, ProcessStatus.RUNNING)
        self.assertIsNone(output.exit_code)

    async def test_stderr_and_exit_code_are_recorded(self) -> None:
        code = "import sys; sys.stderr.write('oops'); sys.exit(3)"
        process_id = await self.supervisor.launch(PYTHON, ["-c", code])
        await self._wait_for_exit(process_id)
        output = self.supervisor.read_output(process_id)
        self.assertEqual(output.status, ProcessStatus.EXITED)
        self.assertEqual(output.exit_code, 3)
        self.assertEqual(output.stdout, "")
        self.assertEqual(output.stderr, "oops")

    async def test_clear_after_exit_keeps_exit_code(self) -> None:
        process_id = await self.supervisor.launch(PYTHON, ["-c", "print('done')"])
        await self._wait_for_exit(process_id)
        first = self.supervisor.read_output(process_id, clear=True)
        second = self.supervisor.read_output(process_id)
        self.assertEqual(first.stdout.strip(), "done")
        self.assertEqual(second.stdout, "")
        self.assertEqual(second.stderr, "")
        self.assertEqual(second.status, ProcessStatus.EXITED)
        self.assertEqual(second.exit_code, 0)

    async def test_clear_while_running_returns_only_new_output(self) -> None:
        code = (
            "import sys\n"
            "sys.stdout.write('one'); sys.stdout.flush()\n"
            "import time; time.sleep(0.5)\n"
            "sys.stdout.write('two'); sys.stdout.flush()\n"
        )
        process_id = await self.supervisor.launch(PYTHON, ["-c", code])
        await wait_until(lambda: self.supervisor.read_output(process_id).stdout == "one")
        self.supervisor.read_output(process_id, clear=True)
        await self._wait_for_exit(process_id)
        output = self.supervisor.read_output(process_id)
        self.assertEqual(output.stdout, "two")
        self.assertEqual(output.exit_code, 0)

    async def test_working_directory_is_applied(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            process_id = await self.supervisor.launch(
                PYTHON, ["-c", "import os; print(os.getcwd())"], cwd=tmpdir
            )
            await self._wait_for_exit(process_id)
            output = self.supervisor.read_output(process_id)
            self.assertEqual(os.path.realpath(output.stdout.strip()), os.path.realpath(tmpdir))

    async def test_spawn_failure_still_returns_id(self) -> None:
        process_id = await self.supervisor.launch("/nonexistent/pwalker-missing-binary", ["x"])
        self.assertNotIn(process_id, self.supervisor.handles)
        output = self.supervisor.read_output(process_id)
        assert output is not None
        self.assertEqual(output.status, ProcessStatus.FAILED_TO_SPAWN)
        self.assertTrue(output.spawn_error)
        self.assertFalse(self.supervisor.kill(process_id))

    async def test_bad_working_directory_is_spawn_failure(self) -> None:
        process_id = await self.supervisor.launch(PYTHON, ["-c", "pass"], cwd="/nonexistent/pwalker-dir")
        output = self.supervisor.read_output(process_id)
        self.assertEqual(output.status, ProcessStatus.FAILED_TO_SPAWN)

    async def test_ids_are_unique(self) -> None:
        ids = {await self.supervisor.launch("/nonexistent/pwalker-missing-binary") for _ in range(5)}
        self.assertEqual(len(ids), 5)

    async def test_kill_discards_record(self) -> None:
        process_id = await self.supervisor.launch(PYTHON, SLEEPER)
        self.assertTrue(self.supervisor.kill(process_id))
        self.assertIsNone(self.supervisor.read_output(process_id))
        await self._wait_for_exit(process_id)
        self.assertIsNone(self.supervisor.read_output(process_id))
        self.assertNotIn(process_id, self.supervisor.records)

    async def test_kill_keep_output_leaves_record_readable(self) -> None:
        code = "import sys, time; sys.stdout.write('x'); sys.stdout.flush(); time.sleep(30)"
        process_id = await self.supervisor.launch(PYTHON, ["-c", code])
        await wait_until(lambda: self.supervisor.read_output(process_id).stdout == "x")
        self.assertTrue(self.supervisor.kill(process_id, keep_output=True))
        await self._wait_for_exit(process_id)
        output = self.supervisor.read_output(process_id)
        self.assertEqual(output.status, ProcessStatus.EXITED)
        self.assertNotEqual(output.exit_code, 0)
        self.assertEqual(output.stdout, "x")

    async def test_kill_unknown_or_exited_returns_false(self) -> None:
        self.assertFalse(self.supervisor.kill("not-a-process"))
        process_id = await self.supervisor.launch(PYTHON, ["-c", "pass"])
        await self._wait_for_exit(process_id)
        self.assertFalse(self.supervisor.kill(process_id))
        self.assertIsNotNone(self.supervisor.read_output(process_id))

    async def test_kill_after_exit_with_inherited_pipe_returns_false(self) -> None:
        # The grandchild keeps stdout open, so the handle outlives the child.
        code = (
            "import subprocess, sys\n"
            "child = subprocess.Popen([sys.executable, '-c', 'import time; time.sleep(30)'])\n"
            "print(child.pid, flush=True)\n"
        )
        process_id = await self.supervisor.launch(PYTHON, ["-c", code])

        def exited_with_handle() -> bool:
            process = self.supervisor.handles.get(process_id)
            return process is not None and process.returncode is not None

        await wait_until(exited_with_handle)
        await wait_until(lambda: self.supervisor.read_output(process_id).stdout.strip() != "")
        grandchild_pid = int(self.supervisor.read_output(process_id).stdout.strip())
        try:
            self.assertFalse(self.supervisor.kill(process_id))
            output = self.supervisor.read_output(process_id)
            self.assertIsNotNone(output)
            self.assertEqual(output.stdout.strip(), str(grandchild_pid))
        finally:
            os.kill(grandchild_pid, signal.SIGTERM)
        await self._wait_for_exit(process_id)
        output = self.supervisor.read_output(process_id)
        self.assertEqual(output.status, ProcessStatus.EXITED)
        self.assertEqual(output.exit_code, 0)

    async def test_read_unknown_returns_none(self) -> None:
        self.assertIsNone(self.supervisor.read_output("not-a-process"))

    async def test_terminate_all_signals_every_live_process(self) -> None:
        first = await self.supervisor.launch(PYTHON, SLEEPER)
        second = await self.supervisor.launch(PYTHON, SLEEPER)
        self.assertEqual(sorted(self.supervisor.live_ids()), sorted([first, second]))
        self.assertEqual(self.supervisor.terminate_all(), 2)
        await self._wait_for_exit(first)
        await self._wait_for_exit(second)
        self.assertEqual(self.supervisor.terminate_all(), 0)
        self.assertEqual(self.supervisor.read_output(first).status, ProcessStatus.EXITED)

    async def test_wait_leaves_event_loop_running(self) -> None:
        ticks: list[int] = []

        async def ticker() -> None:
            for i in range(3):
                ticks.append(i)
                await asyncio.sleep(0.01)

        await asyncio.gather(self.supervisor.wait(0.2), ticker())
        self.assertEqual(ticks, [0, 1, 2])

    async def test_monitor_crash_is_reported_as_fault(self) -> None:
        faults: list[BaseException] = []
        self.supervisor.on_fault = faults.append
        with mock.patch.object(self.supervisor.records, "mark_exited", side_effect=RuntimeError("boom")):
            with self.assertLogs("pwalker.supervisor.process_manager", level="ERROR"):
                await self.supervisor.launch(PYTHON, ["-c", "pass"])
                await wait_until(lambda: bool(faults))
        self.assertIsInstance(faults[0], RuntimeError)


if __name__ == "__main__":
    unittest.main()
