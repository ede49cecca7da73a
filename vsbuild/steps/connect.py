# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# vsbuild/steps/connect.py
from __future__ import annotations

from ..core.exceptions import wrap_step
from ..driver.client import VsphereClient
from ..multistep.state import BuildState, StepAction
from ..multistep.step import Step


class StepConnect(Step):
    """
    Open the vSphere session and put the build VM handle into the state.

    Cleanup closes the session, but only if this step opened it.
    """

    def __init__(self, client: VsphereClient, vm_name: str) -> None:
        self.client = client
        self.vm_name = vm_name
        self._opened = False

    def run(self, state: BuildState) -> StepAction:
        if not self.client.connected:
            state.ui.say(f"Connecting to vSphere at {self.client.host}...")
            try:
                self.client.connect()
            except Exception as e:
                return self.halt(state, wrap_step("error connecting to vSphere", e, host=self.client.host))
            self._opened = True

        try:
            state.vm = self.client.vm(self.vm_name)
        except Exception as e:
            return self.halt(state, wrap_step("error finding vm", e, vm=self.vm_name))
        state.ui.message(f"Using VM {self.vm_name!r}")
        return StepAction.CONTINUE

    def cleanup(self, state: BuildState) -> None:
        state.vm = None
        if self._opened:
            self.client.disconnect()
            self._opened = False
