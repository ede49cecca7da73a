# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# vsbuild/__init__.py
"""
vsbuild - vSphere build steps

A small step-based pipeline for finishing vSphere build VMs, and the steps
that run on it.

Usage as a library:

    from vsbuild import BasicRunner, BuildState, ConsoleUi
    from vsbuild.steps import CDRomConfig, ReattachCDRomConfig, StepConnect, StepReattachCDRom

    state = BuildState(ui=ConsoleUi(logger))
    steps = [
        StepConnect(client, "ubuntu-template"),
        StepReattachCDRom(ReattachCDRomConfig(reattach_cdroms=2), CDRomConfig(iso_paths=[iso])),
    ]
    action = BasicRunner(logger, steps).run(state)
"""

__version__ = "0.1.0"

from .multistep import BasicRunner, BuildState, ConsoleUi, Step, StepAction, Ui

__all__ = [
    "__version__",
    "BasicRunner",
    "BuildState",
    "ConsoleUi",
    "Step",
    "StepAction",
    "Ui",
]
