"""
Bazaar - plugin marketplace registry and installer.

Manages marketplaces of plugins that bundle agents, skills and slash
commands for AI coding assistants.
"""

import importlib.metadata as _metadata

# Version is defined in pyproject.toml - read it and parse into tuple (primary representation)
_raw_version = _metadata.version("bazaar")
__version_info__: tuple[int, int, int] = tuple(int(x) for x in _raw_version.split(".")[:3])  # type: ignore[assignment]
__version__: str = ".".join(str(x) for x in __version_info__)
__author__ = "Bazaar Contributors"

from bazaar.config import Settings  # noqa: E402

__all__ = ["__version__", "__version_info__", "Settings"]
