"""Repository manifests in the ``vcs import`` (``.repos``) format."""

import os
from dataclasses import dataclass
from typing import Dict, List, Optional

import yaml

from ros2_ci.context import TargetSpec
from ros2_ci.errors import ManifestError


def resolve_manifest_url(locator: str) -> str:
    """Convert a manifest locator into a URL.

    The manifest can be passed either as a URL or as a path. An existing local
    file becomes an absolute ``file://`` URL; anything else is assumed to
    already be a URL and is returned unchanged.
    """
    if os.path.isfile(locator):
        return "file://" + os.path.abspath(locator)
    return locator


@dataclass(frozen=True)
class Repository:
    type: str
    url: str
    version: Optional[str] = None

    def to_dict(self) -> Dict[str, str]:
        entry = {"type": self.type, "url": self.url}
        if self.version:
            entry["version"] = self.version
        return entry


class RepoManifest:
    """Ordered mapping of repository name to :class:`Repository`."""

    def __init__(self, repositories: Dict[str, Repository]):
        self._repositories = dict(repositories)

    def __getitem__(self, name: str) -> Repository:
        return self._repositories[name]

    def __contains__(self, name: str) -> bool:
        return name in self._repositories

    def __len__(self) -> int:
        return len(self._repositories)

    @property
    def names(self) -> List[str]:
        return list(self._repositories)

    @classmethod
    def from_text(cls, text: str, source: str = "<manifest>") -> "RepoManifest":
        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as exc:
            raise ManifestError(f"{source} is not valid YAML: {exc}") from exc

        if not isinstance(data, dict) or not isinstance(data.get("repositories"), dict):
            raise ManifestError(f"{source} has no 'repositories' mapping")

        repositories = {}
        for name, entry in data["repositories"].items():
            if not isinstance(entry, dict) or "type" not in entry or "url" not in entry:
                raise ManifestError(
                    f"{source}: repository '{name}' needs at least 'type' and 'url'"
                )
            version = entry.get("version")
            repositories[str(name)] = Repository(
                type=str(entry["type"]),
                url=str(entry["url"]),
                version=None if version is None else str(version),
            )
        return cls(repositories)

    def to_yaml(self) -> str:
        data = {
            "repositories": {
                name: repo.to_dict() for name, repo in self._repositories.items()
            }
        }
        return yaml.safe_dump(data, sort_keys=False, default_flow_style=False)


def target_manifest(target: TargetSpec) -> RepoManifest:
    """Single-entry manifest pinning the target repository to the ref under test."""
    return RepoManifest(
        {target.repo_name: Repository(type="git", url=target.url, version=target.ref)}
    )
