# Copyright (c) 2026 Jeroen Visser. All rights reserved.
# Licensed under the MIT License — see LICENSE.
"""
Port interfaces for island and search configuration I/O.

Adapters implement these to handle different file formats.
"""
from typing import Protocol, runtime_checkable

from skydrift.domain.islands import Island
from skydrift.domain.config_search import ConfigSearchParams


@runtime_checkable
class IslandReader(Protocol):
    """Port for reading an island configuration."""

    def read_islands(self, path: str) -> list[Island]:
        """Read and validate a list of islands."""
        ...


@runtime_checkable
class IslandWriter(Protocol):
    """Port for writing an island configuration."""

    def write_islands(self, islands: list[Island], path: str) -> None:
        """Write islands in order to the output file."""
        ...


@runtime_checkable
class SearchConfigReader(Protocol):
    """Port for reading a configuration search definition."""

    def read_search_config(self, path: str) -> ConfigSearchParams:
        """Read and validate search parameters."""
        ...
