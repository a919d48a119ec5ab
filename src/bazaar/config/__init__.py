"""
Configuration module for Bazaar.

Uses pydantic-settings for environment variable and YAML loading.
"""

from bazaar.config.settings import (
    Scope,
    Settings,
    find_git_root,
    find_project_root,
)
from bazaar.config.sources import ConfigFileError

__all__ = ["ConfigFileError", "Scope", "Settings", "find_git_root", "find_project_root"]
