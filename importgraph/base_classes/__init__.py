from .package_resolver import BasePackageResolver

__all__ = ["BasePackageResolver"]
