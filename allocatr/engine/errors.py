from datetime import date
from typing import List

from allocatr.models.entities import Assignment


class AllocationError(Exception):
    """Base class for allocation domain errors."""


class InvalidRange(AllocationError):
    def __init__(self, start_date: date, end_date: date):
        self.start_date = start_date
        self.end_date = end_date
        super().__init__("End date must be after start date")


class CapacityExceeded(AllocationError):
    def __init__(self, conflicts: List[Assignment], total_allocation: float, max_capacity: float):
        self.conflicts = conflicts
        self.total_allocation = total_allocation
        self.max_capacity = max_capacity
        super().__init__("Total allocation exceeds engineer's capacity during this period")


class EngineerNotFound(AllocationError):
    def __init__(self, engineer_id: str):
        self.engineer_id = engineer_id
        super().__init__("Engineer not found")


class ProjectNotFound(AllocationError):
    def __init__(self, project_id: str):
        self.project_id = project_id
        super().__init__("Project not found")


class AssignmentNotFound(AllocationError):
    def __init__(self, assignment_id: str):
        self.assignment_id = assignment_id
        super().__init__("Assignment not found")


class AllocationBusy(AllocationError):
    """The per-engineer lock could not be acquired in time."""

    def __init__(self, engineer_id: str):
        self.engineer_id = engineer_id
        super().__init__("Engineer allocation is being updated, retry shortly")
