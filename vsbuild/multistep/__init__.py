# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# vsbuild/multistep/__init__.py
"""
Step-based build pipeline.

A pipeline is an ordered list of `Step` objects run by `BasicRunner` against
one shared `BuildState`. Each step may halt the pipeline; every step that ran
gets its `cleanup()` called in reverse order.
"""
from __future__ import annotations

from .runner import BasicRunner
from .state import BuildState, StepAction
from .step import Step
from .ui import ConsoleUi, Ui

__all__ = [
    "BasicRunner",
    "BuildState",
    "ConsoleUi",
    "Step",
    "StepAction",
    "Ui",
]
