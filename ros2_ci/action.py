#!/usr/bin/env python3
"""
ROS2-CI(1)                    User Commands                    ROS2-CI(1)

NAME
    ros2-ci - build and test a ROS 2 package from a clean source workspace.

SYNOPSIS
    ros2-ci --package-name PKG... --vcs-repo-file-url URL [OPTIONS]

DESCRIPTION
    Assembles <workspace>/ros2_ws from a vcs repository manifest, replaces
    the repository under test with the commit being validated, removes every
    package the target does not depend on, then installs system
    dependencies, builds, tests and exports coverage.

STAGES
    1   reset       rosdep update, remove ~/.colcon and ros2_ws, recreate src/
    2   import      vcs import every repository of the manifest
    3   inject      re-import the target repository at the PR ref
    4   prune       delete packages outside --packages-up-to PKG
    5   verify      rosdep install, colcon build, colcon test, lcov-result

OPTIONS
    --package-name PKGS
        Whitespace-separated packages to build and test. (required)

    --vcs-repo-file-url URL
        Path or URL of a .repos manifest. (required)

    --colcon-mixin-name NAME, --colcon-mixin-repository URL
        Build with a colcon mixin. Both must be set, otherwise no mixin is
        used.

    --source-ros-binary-installation DISTROS
        Source /opt/ros/<distro>/setup.sh before every command. Linux only.

    --rosdistro DISTRO
        ROS distribution passed to rosdep install (default: $ROS_DISTRO).

    --repository OWNER/NAME
        Repository under test (default: $GITHUB_REPOSITORY).

    --ref REF
        Branch or commit to build (default: $GITHUB_HEAD_REF, then $GITHUB_SHA).

ENVIRONMENT
    Every option falls back to the matching GitHub Action input, e.g.
    INPUT_PACKAGE-NAME. GITHUB_WORKSPACE, GITHUB_REPOSITORY, GITHUB_HEAD_REF,
    GITHUB_SHA and GITHUB_EVENT_PATH describe the code under test.

EXIT STATUS
    0 when build and test succeed, 1 otherwise. rosdep install and
    lcov-result failures are reported but do not change the exit status.

SEE ALSO
    colcon(1), rosdep(1), vcs(1)
"""

import argparse
import dataclasses
import logging
import os
import sys
from typing import List, Mapping, Optional

from ros2_ci.context import (
    ActionInputs,
    EnvironmentContext,
    MixinConfig,
    binary_installation_prefix,
    split_words,
)
from ros2_ci.errors import CiError
from ros2_ci.executor import CommandExecutor
from ros2_ci.pipeline import Pipeline

logger = logging.getLogger("ros2_ci")


def get_input(name: str, environ: Optional[Mapping[str, str]] = None) -> str:
    """Read a GitHub Action input the way the actions toolkit does."""
    if environ is None:
        environ = os.environ
    key = "INPUT_" + name.replace(" ", "_").upper()
    return environ.get(key, "").strip()


def build_parser(environ: Optional[Mapping[str, str]] = None) -> argparse.ArgumentParser:
    if environ is None:
        environ = os.environ
    parser = argparse.ArgumentParser(
        prog="ros2-ci",
        description=__doc__,
        formatter_class=argparse.RawDescriptionHelpFormatter,
        add_help=False,
    )
    parser.add_argument("-h", "--help", action="help", help="Show this page and exit")
    for name in (
        "package-name",
        "vcs-repo-file-url",
        "colcon-mixin-name",
        "colcon-mixin-repository",
        "source-ros-binary-installation",
    ):
        parser.add_argument(f"--{name}", default=get_input(name, environ))
    parser.add_argument("--rosdistro", default=environ.get("ROS_DISTRO") or None)
    parser.add_argument("--repository", default="")
    parser.add_argument("--ref", default="")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    return parser


def inputs_from_args(args: argparse.Namespace) -> ActionInputs:
    return ActionInputs(
        packages=split_words(args.package_name),
        vcs_repo_file_url=args.vcs_repo_file_url,
        mixin=MixinConfig(args.colcon_mixin_name, args.colcon_mixin_repository),
        ros_binary_installations=split_words(args.source_ros_binary_installation),
        rosdistro=args.rosdistro,
    )


def report_failure(msg: str, github_actions: bool) -> None:
    if github_actions:
        print(f"::error::{msg}", flush=True)
    else:
        print(f"Error: {msg}", file=sys.stderr)


def main(
    argv: Optional[List[str]] = None,
    context: Optional[EnvironmentContext] = None,
    executor=None,
) -> int:
    if argv is None:
        argv = sys.argv[1:]

    parser = build_parser()
    args = parser.parse_args(argv)
    for option in ("package_name", "vcs_repo_file_url"):
        if not getattr(args, option):
            parser.error(f"--{option.replace('_', '-')} is required")

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s: %(message)s",
    )

    inputs = inputs_from_args(args)
    github_actions = os.environ.get("GITHUB_ACTIONS") == "true"

    try:
        if context is None:
            context = EnvironmentContext.from_environ()
        github_actions = context.github_actions
        if args.repository or args.ref:
            context = dataclasses.replace(
                context,
                repository=args.repository or context.repository,
                head_ref=args.ref or context.head_ref,
            )
        prefix = binary_installation_prefix(inputs.ros_binary_installations, context.platform)
        if executor is None:
            executor = CommandExecutor(prefix, group_output=context.github_actions)
        Pipeline(inputs, context, executor).run()
    except (CiError, OSError) as exc:
        logger.debug("pipeline aborted", exc_info=True)
        report_failure(str(exc), github_actions)
        return 1

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
