"""
Shared enumerations used across the entire project.

Inheriting from str means they serialize to JSON as their value ("queued",
not "TaskStatus.QUEUED") and compare equal to the raw column strings.
"""

import enum


class Scope(str, enum.Enum):
    TEAM = "team"    # every agent of one team
    ORG = "org"      # every agent of every team in one organization


class JobStatus(str, enum.Enum):
    QUEUED = "queued"      # fanned out, no run invocation yet
    RUNNING = "running"    # at least one run happened, tasks still queued
    DONE = "done"          # drained: no task left in queued


class TaskStatus(str, enum.Enum):
    QUEUED = "queued"          # waiting to be claimed
    RUNNING = "running"        # claimed by exactly one run invocation
    DONE = "done"              # snapshot + history point written
    FAILED = "failed"          # error column says why
    CANCELLED = "cancelled"    # job was cancelled before this task finished
