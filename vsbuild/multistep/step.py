# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# vsbuild/multistep/step.py
from __future__ import annotations

from abc import ABC, abstractmethod

from .state import BuildState, StepAction


class Step(ABC):
    """
    One unit of a build pipeline.

    `run` returns CONTINUE or HALT; before returning HALT a step records its
    error with `state.put_error`. `cleanup` is called by the runner for every
    step whose `run` was entered, whatever the outcome.
    """

    @property
    def name(self) -> str:
        return type(self).__name__

    @abstractmethod
    def run(self, state: BuildState) -> StepAction:
        ...

    def cleanup(self, state: BuildState) -> None:
        return None

    def halt(self, state: BuildState, err: BaseException) -> StepAction:
        """Record `err`, show it to the user and return HALT."""
        state.put_error(err)
        state.ui.error(str(err))
        return StepAction.HALT
