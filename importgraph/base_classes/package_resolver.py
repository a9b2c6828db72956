from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Optional

from importgraph.types import PackageRef


class BasePackageResolver(ABC):
    """Maps a module's file location to the package that owns it.

    Implementations only answer for a single directory; the base class
    caches those answers so modules sharing a directory resolve once.
    """

    def __init__(self):
        self._cache: Dict[Path, Optional[PackageRef]] = {}

    def resolve(self, location: str) -> Optional[PackageRef]:
        """Return the owning package of ``location``, or None when there is none.

        Args:
            location: Absolute path of a loaded module's source file

        Returns:
            The package's declared name and descriptor path, or None for
            modules outside any package (stdlib, loose scripts)
        """
        directory = Path(location).parent
        if directory not in self._cache:
            self._cache[directory] = self.resolve_directory(directory)
        return self._cache[directory]

    @abstractmethod
    def resolve_directory(self, directory: Path) -> Optional[PackageRef]:
        """Find the package enclosing ``directory``."""
        pass
