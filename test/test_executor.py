# ==================================================
# test_executor.py – bash command execution
# ==================================================

import contextlib
import io
import os
import shutil
import tempfile
import unittest

from ros2_ci import executor
from ros2_ci.errors import CommandError, ManifestError


class ScriptTests(unittest.TestCase):
    def test_arguments_are_quoted(self):
        runner = executor.CommandExecutor()
        self.assertEqual(
            runner.script(["colcon", "mixin", "add", "default", "https://x/a b.yaml"]),
            "colcon mixin add default 'https://x/a b.yaml'",
        )

    def test_prefix_is_prepended(self):
        runner = executor.CommandExecutor("source /opt/ros/jazzy/setup.sh && ")
        self.assertEqual(
            runner.script(["colcon", "list"]),
            "source /opt/ros/jazzy/setup.sh && colcon list",
        )


@unittest.skipIf(shutil.which("bash") is None, "bash is required")
class ExecuteTests(unittest.TestCase):
    def setUp(self):
        self.runner = executor.CommandExecutor()

    def _execute(self, *args, **kwargs):
        buf = io.StringIO()
        with contextlib.redirect_stdout(buf):
            result = self.runner.execute(*args, **kwargs)
        return result, buf.getvalue()

    def test_output_is_captured_and_echoed(self):
        result, out = self._execute(["echo", "hello"])
        self.assertEqual(result.returncode, 0)
        self.assertEqual(result.output, "hello\n")
        self.assertIn("+ echo hello", out)
        self.assertIn("hello\n", out)

    def test_stderr_is_combined(self):
        result, _ = self._execute(["bash", "-c", "echo oops >&2"])
        self.assertEqual(result.output, "oops\n")

    def test_failure_raises(self):
        with self.assertRaises(CommandError) as cm:
            self._execute(["bash", "-c", "echo broken; exit 3"])
        self.assertEqual(cm.exception.returncode, 3)
        self.assertEqual(cm.exception.output, "broken\n")
        self.assertIn("failed with exit code 3", str(cm.exception))

    def test_failure_tolerated_without_check(self):
        result, _ = self._execute(["false"], check=False)
        self.assertEqual(result.returncode, 1)

    def test_stdin_cwd_and_env(self):
        test_dir = tempfile.mkdtemp()
        self.addCleanup(shutil.rmtree, test_dir)
        result, _ = self._execute(["cat"], stdin="repositories: {}\n")
        self.assertEqual(result.output, "repositories: {}\n")
        result, _ = self._execute(["pwd"], cwd=test_dir)
        self.assertEqual(result.output.strip(), os.path.realpath(test_dir))
        result, _ = self._execute(
            ["printenv", "DEBIAN_FRONTEND"], env={"DEBIAN_FRONTEND": "noninteractive"}
        )
        self.assertEqual(result.output, "noninteractive\n")

    def test_prefix_runs_first(self):
        self.runner = executor.CommandExecutor("export GREETING=hi && ")
        result, _ = self._execute(["printenv", "GREETING"])
        self.assertEqual(result.output, "hi\n")

    def test_output_streams_before_exit(self):
        test_dir = tempfile.mkdtemp()
        self.addCleanup(shutil.rmtree, test_dir)
        marker = os.path.join(test_dir, "seen")
        written = []

        class Writer:
            def write(self, text):
                written.append(text)
                if text == "first\n":
                    open(marker, "w", encoding="utf-8").close()

            def flush(self):
                pass

        # "second" is only printed if "first" reached stdout while bash was still running
        script = (
            "echo first; for i in $(seq 100); do [ -f seen ] && break; sleep 0.05; done; "
            "[ -f seen ] && echo second"
        )
        with contextlib.redirect_stdout(Writer()):
            result = self.runner.execute(["bash", "-c", script], cwd=test_dir)
        self.assertEqual(result.output, "first\nsecond\n")
        self.assertIn("second\n", written)

    def test_multiline_output_is_kept_in_order(self):
        result, out = self._execute(["printf", "a\\nb\\nc"])
        self.assertEqual(result.output, "a\nb\nc")
        self.assertTrue(out.endswith("a\nb\nc"))

    def test_group_markers(self):
        self.runner = executor.CommandExecutor(group_output=True)
        _, out = self._execute(["true"])
        lines = out.splitlines()
        self.assertTrue(lines[0].startswith("::group::Invoking"))
        self.assertEqual(lines[-1], "::endgroup::")


class LogGroupTests(unittest.TestCase):
    def test_disabled_prints_nothing(self):
        buf = io.StringIO()
        with contextlib.redirect_stdout(buf):
            with executor.log_group("title", enabled=False):
                print("body")
        self.assertEqual(buf.getvalue(), "body\n")

    def test_group_is_closed_on_error(self):
        buf = io.StringIO()
        with contextlib.redirect_stdout(buf):
            with self.assertRaises(ValueError):
                with executor.log_group("title"):
                    raise ValueError("boom")
        self.assertEqual(buf.getvalue(), "::group::title\n::endgroup::\n")


@unittest.skipIf(shutil.which("curl") is None, "curl is required")
class FetchTests(unittest.TestCase):
    def test_fetch_file_url(self):
        test_dir = tempfile.mkdtemp()
        self.addCleanup(shutil.rmtree, test_dir)
        path = os.path.join(test_dir, "ros2.repos")
        with open(path, "w", encoding="utf-8") as f:
            f.write("repositories: {}\n")
        self.assertEqual(
            executor.CommandExecutor().fetch("file://" + path), "repositories: {}\n"
        )

    def test_fetch_missing_file(self):
        with self.assertRaises(ManifestError):
            executor.CommandExecutor().fetch("file:///nonexistent/ros2.repos")


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
