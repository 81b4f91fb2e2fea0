"""Runtime context and invocation inputs for a ros2-ci run."""

import json
import os
import sys
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple

from ros2_ci.errors import CiError, PlatformError

WORKSPACE_DIRNAME = "ros2_ws"


def split_words(value: Optional[str]) -> List[str]:
    """Split a whitespace-separated input, dropping empty entries."""
    return (value or "").split()


def _load_event(path: Optional[str]) -> Dict[str, Any]:
    if not path or not os.path.isfile(path):
        return {}
    try:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)
    except (OSError, ValueError) as exc:
        raise CiError(f"could not read event payload {path}: {exc}") from exc


@dataclass(frozen=True)
class EnvironmentContext:
    """Everything the pipeline reads from the CI environment.

    Built once at start-up and passed explicitly to every stage, so no stage
    reads ``os.environ`` on its own.
    """

    workspace: str
    home: str
    platform: str = "linux"
    repository: str = ""
    head_ref: str = ""
    sha: str = ""
    event: Dict[str, Any] = field(default_factory=dict)
    path: str = ""
    github_actions: bool = False
    github_path: Optional[str] = None

    @classmethod
    def from_environ(
        cls, environ: Optional[Mapping[str, str]] = None, platform: Optional[str] = None
    ) -> "EnvironmentContext":
        if environ is None:
            environ = os.environ
        return cls(
            workspace=environ.get("GITHUB_WORKSPACE") or os.getcwd(),
            home=environ.get("HOME") or os.path.expanduser("~"),
            platform=platform or sys.platform,
            repository=environ.get("GITHUB_REPOSITORY", ""),
            head_ref=environ.get("GITHUB_HEAD_REF", ""),
            sha=environ.get("GITHUB_SHA", ""),
            event=_load_event(environ.get("GITHUB_EVENT_PATH")),
            path=environ.get("PATH", ""),
            github_actions=environ.get("GITHUB_ACTIONS") == "true",
            github_path=environ.get("GITHUB_PATH") or None,
        )

    @property
    def ros2_ws(self) -> str:
        return os.path.join(self.workspace, WORKSPACE_DIRNAME)

    @property
    def repo_name(self) -> str:
        return self.repository.rsplit("/", 1)[-1]

    @property
    def head_repository(self) -> str:
        """Full name of the repository holding the code under test.

        Pull requests opened from a fork are built from the fork, not from the
        base repository.
        """
        pull_request = self.event.get("pull_request") or {}
        head_repo = (pull_request.get("head") or {}).get("repo") or {}
        return head_repo.get("full_name") or self.repository

    @property
    def ref(self) -> str:
        return self.head_ref or self.sha


@dataclass(frozen=True)
class TargetSpec:
    """The package(s) under test and the exact ref to check them out at."""

    packages: Tuple[str, ...]
    repo_name: str
    full_name: str
    ref: str

    @classmethod
    def from_context(cls, packages: List[str], context: EnvironmentContext) -> "TargetSpec":
        if not context.repository:
            raise CiError(
                "no repository under test: pass --repository or set GITHUB_REPOSITORY"
            )
        if not context.ref:
            raise CiError(
                "no ref to build: pass --ref or set GITHUB_HEAD_REF or GITHUB_SHA"
            )
        return cls(
            packages=tuple(packages),
            repo_name=context.repo_name,
            full_name=context.head_repository,
            ref=context.ref,
        )

    @property
    def url(self) -> str:
        return f"https://github.com/{self.full_name}.git"


@dataclass(frozen=True)
class MixinConfig:
    name: str = ""
    repository: str = ""

    @property
    def enabled(self) -> bool:
        # both-or-neither: a lone name or repository means no mixin
        return bool(self.name and self.repository)


@dataclass(frozen=True)
class ActionInputs:
    """Parsed invocation inputs."""

    packages: List[str]
    vcs_repo_file_url: str
    mixin: MixinConfig = field(default_factory=MixinConfig)
    ros_binary_installations: List[str] = field(default_factory=list)
    rosdistro: Optional[str] = None


def binary_installation_prefix(distributions: List[str], platform: str) -> str:
    """Return the shell prefix sourcing each ROS binary installation."""
    if not distributions:
        return ""
    if platform != "linux":
        raise PlatformError("sourcing binary installation is only available on Linux")
    return "".join(f"source /opt/ros/{distro}/setup.sh && " for distro in distributions)
