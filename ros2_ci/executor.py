"""Shell command execution for the pipeline stages."""

import contextlib
import logging
import os
import shlex
import subprocess
import sys
import tempfile
from dataclasses import dataclass
from typing import Iterator, Mapping, Optional, Sequence

from ros2_ci.errors import CommandError, ManifestError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CommandResult:
    returncode: int
    output: str = ""

    def check(self, argv: Sequence[str]) -> "CommandResult":
        if self.returncode != 0:
            raise CommandError(argv, self.returncode, self.output)
        return self


@contextlib.contextmanager
def log_group(title: str, enabled: bool = True) -> Iterator[None]:
    """Fold everything printed inside the block into a workflow log group."""
    if not enabled:
        yield
        return
    print(f"::group::{title}", flush=True)
    try:
        yield
    finally:
        print("::endgroup::", flush=True)


class CommandExecutor:
    """Run commands through ``bash -c`` behind an optional shell prefix.

    The prefix is prepended verbatim to every script, which is how ROS binary
    installations get sourced before each tool invocation.
    """

    def __init__(self, prefix: str = "", group_output: bool = False):
        self.prefix = prefix
        self.group_output = group_output

    def script(self, argv: Sequence[str]) -> str:
        return self.prefix + shlex.join(str(a) for a in argv)

    def execute(
        self,
        argv: Sequence[str],
        cwd: Optional[str] = None,
        env: Optional[Mapping[str, str]] = None,
        stdin: Optional[str] = None,
        check: bool = True,
    ) -> CommandResult:
        script = self.script(argv)
        full_env = None
        if env:
            full_env = os.environ.copy()
            full_env.update(env)

        with log_group(f"Invoking \"bash -c '{script}'\"", self.group_output):
            print("+ " + script, flush=True)
            if cwd:
                logger.debug("working directory: %s", cwd)
            lines = []
            with contextlib.ExitStack() as stack:
                stdin_file = None
                if stdin is not None:
                    stdin_file = stack.enter_context(
                        tempfile.TemporaryFile("w+", encoding="utf-8")
                    )
                    stdin_file.write(stdin)
                    stdin_file.seek(0)
                proc = stack.enter_context(
                    subprocess.Popen(
                        ["bash", "-c", script],
                        cwd=cwd,
                        env=full_env,
                        stdin=stdin_file,
                        stdout=subprocess.PIPE,
                        stderr=subprocess.STDOUT,
                        text=True,
                    )
                )
                # stream while the command runs
                for line in proc.stdout:
                    sys.stdout.write(line)
                    sys.stdout.flush()
                    lines.append(line)
                returncode = proc.wait()

        result = CommandResult(returncode, "".join(lines))
        if check:
            result.check(argv)
        return result

    def fetch(self, url: str) -> str:
        """Return the body at *url* (``file://`` or remote) using curl."""
        argv = ["curl", "--silent", "--show-error", "--fail", "--location", url]
        logger.info("Fetching %s", url)
        proc = subprocess.run(argv, capture_output=True, text=True, check=False)
        if proc.returncode != 0:
            raise ManifestError(
                f"could not fetch '{url}' (curl exit code {proc.returncode}): "
                f"{proc.stderr.strip()}"
            )
        return proc.stdout
