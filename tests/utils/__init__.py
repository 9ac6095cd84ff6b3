"""Test utilities."""

from tests.utils.files import InMemoryFileManager, png_upload
from tests.utils.scope import PROJECT, TENANT, scope

__all__ = ["PROJECT", "TENANT", "InMemoryFileManager", "png_upload", "scope"]
