# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# vsbuild/multistep/state.py
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, Optional

if TYPE_CHECKING:  # pragma: no cover
    from ..driver.vm import VirtualMachine
    from .ui import Ui


class StepAction(str, Enum):
    CONTINUE = "continue"
    HALT = "halt"


@dataclass
class BuildState:
    """
    Context threaded through every step of one pipeline run.

    `vm` is borrowed by steps, never owned: whichever step put it there is the
    one that releases it in its cleanup.
    """

    ui: "Ui"
    vm: Optional["VirtualMachine"] = None
    error: Optional[BaseException] = None
    halted: bool = False
    cancelled: bool = False
    extras: Dict[str, Any] = field(default_factory=dict)

    def put_error(self, err: BaseException) -> None:
        """Record the halting error; the first one recorded wins."""
        if self.error is None:
            self.error = err

    def require_vm(self) -> "VirtualMachine":
        if self.vm is None:
            from ..core.exceptions import StepError

            raise StepError(msg="no VM handle in build state (was the connect step run?)")
        return self.vm
