"""Duty cycle selection for soak jobs."""

from __future__ import annotations

from typing import Sequence

from common.models.job import DutyCycle

DEFAULT_DUTY_CYCLE = DutyCycle(think_time=1, think_time_blocks=1000)


def select_duty_cycle(job_id: int, table: Sequence[DutyCycle]) -> DutyCycle:
    """Select a job's duty cycle from the cyclic table.

    Jobs index the table by ``job_id % len(table)``, so a table shorter than
    the population repeats and different table lengths give different load
    shapes across the same population.
    """
    if not table:
        return DEFAULT_DUTY_CYCLE
    return table[job_id % len(table)]
