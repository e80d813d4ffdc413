# Copyright (c) 2026 Jeroen Visser. All rights reserved.
# Licensed under the MIT License — see LICENSE.
"""
Adapters for island file I/O, parallel search and console output.

External dependencies (json, file I/O, multiprocessing) are confined to this layer.
"""
from skydrift.adapters.json_io import (
    JsonIslandReader,
    JsonIslandWriter,
    JsonSearchConfigReader,
)
from skydrift.adapters.parallel_search import (
    ParallelSearchCoordinator,
    SearchFailedError,
    WorkerProgress,
)
