"""Concurrent executor for task contexts."""

from __future__ import annotations

import concurrent.futures as futures
import logging
import time
from collections.abc import Sequence
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from releasehub.job.context import JobContext, TaskContext
    from releasehub.job.task import Task

logger = logging.getLogger("releasehub.job.executor")


class TaskExecutor:
    """Run every task context of a step and wait for all of them.

    Project-scoped tasks expand to one context per project; all contexts of a
    step share one thread pool. The first failure is re-raised once every
    submitted context has finished.
    """

    def __init__(self, max_workers: int = 4) -> None:
        if max_workers < 1:
            raise ValueError("max_workers must be >= 1")
        self.max_workers = max_workers

    def execute(self, job_context: JobContext, tasks: Sequence[Task]) -> None:
        units = [unit for task in tasks for unit in job_context.task_contexts(task)]
        if not units:
            logger.warning("No task contexts to run for %s", [task.name for task in tasks])
            return

        if len(units) == 1:
            self._run(units[0])
            return

        workers = min(self.max_workers, len(units))
        with futures.ThreadPoolExecutor(max_workers=workers, thread_name_prefix="releasehub-task") as pool:
            submitted = [pool.submit(self._run, unit) for unit in units]
            futures.wait(submitted)

        for future in submitted:
            future.result()

    @staticmethod
    def _run(unit: TaskContext) -> None:
        label = unit.task.name if unit.project_name is None else f"{unit.task.name}[{unit.project_name}]"
        logger.info("Executing task %s", label)
        started = time.perf_counter()
        unit.task.execute(unit)
        logger.info("Finished task %s in %.2fs", label, time.perf_counter() - started)
