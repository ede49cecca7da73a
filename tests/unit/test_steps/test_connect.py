# SPDX-License-Identifier: LGPL-3.0-or-later
from __future__ import annotations

import pytest

from fakes.fake_client import FakeClient
from fakes.fake_ui import FakeUi
from fakes.fake_vm import FakeVirtualMachine
from vsbuild.core.exceptions import StepError, VMwareError
from vsbuild.multistep.state import BuildState, StepAction
from vsbuild.steps.connect import StepConnect


@pytest.fixture
def state():
    return BuildState(ui=FakeUi())


@pytest.mark.unit
class TestStepConnect:
    def test_connects_and_puts_vm_into_state(self, state):
        vm = FakeVirtualMachine()
        client = FakeClient(vms={"build-01": vm})
        step = StepConnect(client, "build-01")

        assert step.run(state) is StepAction.CONTINUE
        assert state.vm is vm
        assert client.connects == 1
        assert state.ui.said == ["Connecting to vSphere at vc.example.com..."]

        step.cleanup(state)
        assert state.vm is None
        assert client.disconnects == 1

    def test_reuses_open_session_and_leaves_it_open(self, state):
        client = FakeClient(connected=True, vms={"build-01": FakeVirtualMachine()})
        step = StepConnect(client, "build-01")

        assert step.run(state) is StepAction.CONTINUE
        step.cleanup(state)

        assert client.connects == 0
        assert client.disconnects == 0

    def test_connect_failure_halts(self, state):
        client = FakeClient(connect_error=VMwareError(msg="connection refused"))
        step = StepConnect(client, "build-01")

        assert step.run(state) is StepAction.HALT
        assert isinstance(state.error, StepError)
        assert str(state.error) == "error connecting to vSphere: connection refused"
        assert state.ui.errors == [str(state.error)]
        assert state.vm is None

        step.cleanup(state)
        assert client.disconnects == 0

    def test_missing_vm_halts(self, state):
        client = FakeClient()
        step = StepConnect(client, "build-01")

        assert step.run(state) is StepAction.HALT
        assert str(state.error) == "error finding vm: VM not found: build-01"
        assert state.error.context == {"vm": "build-01"}

        step.cleanup(state)
        assert client.disconnects == 1
