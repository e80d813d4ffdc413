# Copyright (c) 2026 Jeroen Visser. All rights reserved.
# Licensed under the MIT License — see LICENSE.
"""
JSON file I/O adapter.

Reads island lists and search configurations, writes island lists.
"""
import json
import logging

from skydrift.domain.islands import Island
from skydrift.domain.config_search import ConfigSearchParams
from skydrift.domain.serialization import (
    islands_from_list,
    islands_to_list,
    search_params_from_dict,
)
from skydrift.ports import IslandReader, IslandWriter, SearchConfigReader

logger = logging.getLogger(__name__)


class JsonIslandReader(IslandReader):
    """Reads an island list from a JSON file."""

    def read_islands(self, path: str) -> list[Island]:
        with open(path, encoding='utf-8') as f:
            return islands_from_list(json.load(f))


class JsonIslandWriter(IslandWriter):
    """Writes an island list to a JSON file."""

    def write_islands(self, islands: list[Island], path: str) -> None:
        with open(path, 'w', encoding='utf-8') as f:
            json.dump(islands_to_list(islands), f, indent=2, ensure_ascii=False)
        logger.info("Wrote %d islands to %s", len(islands), path)


class JsonSearchConfigReader(SearchConfigReader):
    """Reads a search configuration from a JSON file."""

    def read_search_config(self, path: str) -> ConfigSearchParams:
        with open(path, encoding='utf-8') as f:
            return search_params_from_dict(json.load(f))
