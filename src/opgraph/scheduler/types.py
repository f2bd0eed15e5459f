"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Operation state variants and dependency status records.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, Union

NORMAL_PRIORITY = 0

StateName = Literal["pending", "executing", "completed"]


@dataclass(frozen=True, slots=True)
class Pending:
    """Registered (or retriggered) and waiting to be selected."""

    name: StateName = "pending"


@dataclass(frozen=True, slots=True)
class Executing:
    """Selected by the dispatch loop; completion not yet reported."""

    name: StateName = "executing"


@dataclass(frozen=True, slots=True)
class Completed:
    """Completion reported for the most recent activation."""

    success: bool
    name: StateName = "completed"


OperationState = Union[Pending, Executing, Completed]

PENDING = Pending()
EXECUTING = Executing()


@dataclass(frozen=True, slots=True)
class OperationStatus:
    """
    Completion status of one dependency, handed to ``on_ready``.

    Attributes:
        name: Dependency operation name.
        success: Success flag the dependency last reported.
    """

    name: str
    success: bool
