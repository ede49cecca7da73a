# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# vsbuild/multistep/runner.py
from __future__ import annotations

import logging
import threading
from typing import List, Optional, Sequence

from ..core.exceptions import RunnerError, VsbuildError
from ..core.logger import Log
from .state import BuildState, StepAction
from .step import Step


class BasicRunner:
    """
    Runs steps in order on the calling thread.

    - stops after the first step that returns HALT (state.halted is set)
    - checks the cancel event before each step (state.cancelled is set)
    - calls cleanup() on every step that ran, newest first, even when a step
      raised; a failing cleanup is logged and the rest still run
    - project errors raised by a step are recorded and turned into a halt;
      anything else is recorded and re-raised once cleanup is done
    """

    def __init__(
        self,
        logger: logging.Logger,
        steps: Sequence[Step],
        *,
        cancel_event: Optional[threading.Event] = None,
    ) -> None:
        self.logger = logger
        self.steps: List[Step] = list(steps)
        self.cancel_event = cancel_event if cancel_event is not None else threading.Event()
        self._running = False

    def cancel(self) -> None:
        self.cancel_event.set()

    def run(self, state: BuildState) -> StepAction:
        if self._running:
            raise RunnerError(msg="runner is already running")
        self._running = True

        executed: List[Step] = []
        action = StepAction.CONTINUE
        try:
            for step in self.steps:
                if self.cancel_event.is_set():
                    Log.warn(self.logger, "Build cancelled", before=step.name)
                    state.cancelled = True
                    action = StepAction.HALT
                    break

                executed.append(step)
                Log.step(self.logger, f"Running step {step.name}")
                try:
                    action = step.run(state)
                except VsbuildError as e:
                    state.put_error(e)
                    action = StepAction.HALT
                except Exception as e:
                    state.put_error(e)
                    state.halted = True
                    raise

                if action is StepAction.HALT:
                    self.logger.debug("Step %s halted the build", step.name)
                    break

            if action is StepAction.HALT:
                state.halted = True
        finally:
            self._cleanup(executed, state)
            self._running = False
        return action

    def _cleanup(self, executed: Sequence[Step], state: BuildState) -> None:
        for step in reversed(executed):
            Log.trace(self.logger, "Cleaning up step %s", step.name)
            try:
                step.cleanup(state)
            except Exception as e:
                self.logger.error("Cleanup of %s failed: %s", step.name, e, exc_info=self.logger.isEnabledFor(logging.DEBUG))
