"""Workspace assembly: reset, import, target injection and pruning."""

import logging
import os
import re
import shutil
from typing import Dict, List, Optional, Sequence

from ros2_ci.context import EnvironmentContext, TargetSpec
from ros2_ci.errors import CiError
from ros2_ci.manifest import RepoManifest, target_manifest

logger = logging.getLogger(__name__)

# `colcon list` prints one "<name>\t<path>\t(<type>)" line per package
_PACKAGE_LINE = re.compile(r"^(?P<name>\S+)\t(?P<path>[^\t]+)\t\((?P<type>[^)]*)\)\s*$")


def remove_path(path: str) -> None:
    """Delete *path* if it exists; failing to delete an existing path is fatal."""
    if not os.path.lexists(path):
        return
    try:
        if os.path.isdir(path) and not os.path.islink(path):
            shutil.rmtree(path)
        else:
            os.remove(path)
    except OSError as exc:
        raise CiError(f"could not remove {path}: {exc}") from exc


def reset_workspace(context: EnvironmentContext) -> None:
    """Remove colcon state and the previous workspace, then recreate ``src``."""
    colcon_home = os.path.join(context.home, ".colcon")
    for path in (colcon_home, context.ros2_ws):
        if os.path.lexists(path):
            logger.info("Removing %s", path)
        remove_path(path)

    src = os.path.join(context.ros2_ws, "src")
    try:
        os.makedirs(src)
    except OSError as exc:
        raise CiError(f"could not create {src}: {exc}") from exc


def import_repositories(executor, manifest_text: str, context: EnvironmentContext) -> None:
    executor.execute(["vcs", "import", "src/"], cwd=context.ros2_ws, stdin=manifest_text)


def import_manifest(executor, manifest_url: str, context: EnvironmentContext) -> RepoManifest:
    """Fetch the manifest at *manifest_url* and check out every repository in it."""
    text = executor.fetch(manifest_url)
    manifest = RepoManifest.from_text(text, source=manifest_url)
    logger.info("Importing %d repositories from %s", len(manifest), manifest_url)
    import_repositories(executor, text, context)
    return manifest


def remove_directories_named(root: str, name: str) -> List[str]:
    """Recursively delete every directory called *name* below *root*."""
    removed = []
    for dirpath, dirnames, _ in os.walk(root):
        for dirname in list(dirnames):
            if dirname == name:
                path = os.path.join(dirpath, dirname)
                remove_path(path)
                removed.append(path)
                dirnames.remove(dirname)
    return removed


def inject_target(executor, target: TargetSpec, context: EnvironmentContext) -> None:
    """Replace any imported copy of the target repository with the ref under test.

    ``vcs import`` treats the repository name as its identity, so an entry
    already pulled in from the manifest at its default branch has to be
    deleted before the target can be re-imported at ``target.ref``. Leaving
    both would also make colcon find the same package twice.
    """
    for path in remove_directories_named(context.ros2_ws, target.repo_name):
        logger.info("Removed existing checkout %s", path)

    manifest = target_manifest(target)
    logger.info("Importing %s at %s", target.full_name, target.ref)
    import_repositories(executor, manifest.to_yaml(), context)


def parse_package_list(output: str) -> Dict[str, str]:
    """Map package name to path from ``colcon list`` output.

    Lines that are not package entries (warnings, sourcing noise) are ignored.
    """
    packages = {}
    for line in output.splitlines():
        match = _PACKAGE_LINE.match(line)
        if match:
            packages[match.group("name")] = match.group("path")
    return packages


def list_packages(
    executor, context: EnvironmentContext, up_to: Optional[Sequence[str]] = None
) -> Dict[str, str]:
    argv = ["colcon", "list"]
    if up_to:
        argv += ["--packages-up-to", *up_to]
    result = executor.execute(argv, cwd=context.ros2_ws)
    return parse_package_list(result.output)


def _contains(parent: str, child: str) -> bool:
    parent = os.path.normpath(parent)
    child = os.path.normpath(child)
    return child == parent or child.startswith(parent + os.sep)


def prune_dependencies(executor, target: TargetSpec, context: EnvironmentContext) -> List[str]:
    """Delete every package the target packages do not depend on.

    Returns the names of the removed packages.
    """
    all_packages = list_packages(executor, context)
    needed = list_packages(executor, context, up_to=target.packages)

    removed = []
    for name in sorted(set(all_packages) - set(needed)):
        path = os.path.join(context.ros2_ws, all_packages[name])
        # a package directory can also hold packages that are still needed
        if any(_contains(path, os.path.join(context.ros2_ws, p)) for p in needed.values()):
            logger.debug("Keeping %s, it contains a required package", path)
            continue
        logger.info("Removing unneeded package %s (%s)", name, all_packages[name])
        remove_path(path)
        removed.append(name)
    return removed
