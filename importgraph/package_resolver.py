"""Package metadata resolution for loaded modules.

A module belongs to the nearest enclosing ``pyproject.toml`` that declares a
project name. Installed distributions have no such file, so modules under a
site-packages directory are attributed to the distribution that ships their
top-level import package.
"""

import logging
import site
import tomllib
from importlib.metadata import packages_distributions
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Sequence

from importgraph.base_classes import BasePackageResolver
from importgraph.types import PackageRef

logger = logging.getLogger(__name__)

PROJECT_DESCRIPTOR = "pyproject.toml"


def read_project_name(descriptor: Path) -> Optional[str]:
    """Return the project name declared in a ``pyproject.toml``, if any."""
    try:
        with open(descriptor, "rb") as f:
            data = tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError) as e:
        logger.warning(f"Could not read {descriptor}: {e}")
        return None

    name = data.get("project", {}).get("name")
    if not name:
        name = data.get("tool", {}).get("poetry", {}).get("name")
    return name or None


def default_site_dirs() -> List[Path]:
    dirs = list(site.getsitepackages())
    user_site = site.getusersitepackages()
    if isinstance(user_site, str):
        dirs.append(user_site)
    return [Path(d) for d in dirs]


class ProjectPackageResolver(BasePackageResolver):
    """Resolve packages from project descriptors and installed distributions.

    Example:
        >>> resolver = ProjectPackageResolver()
        >>> resolver.resolve("/work/team-a/src/team_a/core.py")
        PackageRef(name='team-a', path='/work/team-a/pyproject.toml')
    """

    def __init__(
        self,
        site_dirs: Optional[Sequence[Path]] = None,
        distributions: Optional[Mapping[str, List[str]]] = None,
    ):
        """
        Args:
            site_dirs: Directories holding installed distributions
                (default: the interpreter's site-packages)
            distributions: Top-level import name to distribution names
                (default: ``importlib.metadata.packages_distributions()``)
        """
        super().__init__()
        self.site_dirs = [Path(d) for d in (site_dirs if site_dirs is not None else default_site_dirs())]
        self._distributions = distributions
        self._descriptor_cache: Dict[Path, Optional[str]] = {}

    @property
    def distributions(self) -> Mapping[str, List[str]]:
        # Scanning installed metadata is slow, so it only happens on first use.
        if self._distributions is None:
            self._distributions = packages_distributions()
        return self._distributions

    def resolve_directory(self, directory: Path) -> Optional[PackageRef]:
        installed = self._resolve_installed(directory)
        if installed is not None:
            return installed

        for candidate in (directory, *directory.parents):
            if candidate in self.site_dirs:
                # Never climb out of site-packages into an unrelated project.
                return None
            descriptor = candidate / PROJECT_DESCRIPTOR
            if not descriptor.is_file():
                continue
            if descriptor not in self._descriptor_cache:
                self._descriptor_cache[descriptor] = read_project_name(descriptor)
            name = self._descriptor_cache[descriptor]
            if name:
                return PackageRef(name=name, path=str(descriptor))
            logger.debug(f"{descriptor} declares no project name, looking further up")
        return None

    def _resolve_installed(self, directory: Path) -> Optional[PackageRef]:
        for site_dir in self.site_dirs:
            try:
                relative = directory.relative_to(site_dir)
            except ValueError:
                continue
            if not relative.parts:
                # Single-file distributions live directly in site-packages.
                return None
            top_level = relative.parts[0]
            names = self.distributions.get(top_level)
            if not names:
                return None
            return PackageRef(name=names[0], path=str(site_dir / top_level))
        return None
