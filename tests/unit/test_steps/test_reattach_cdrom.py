# SPDX-License-Identifier: LGPL-3.0-or-later
"""Tests for the CD-ROM reattach step."""
from __future__ import annotations

import pytest

from fakes.fake_ui import FakeUi
from fakes.fake_vm import FakeVirtualMachine, boom
from vsbuild.core.exceptions import ConfigError, StepError
from vsbuild.driver.vm import CdromType
from vsbuild.multistep.state import BuildState, StepAction
from vsbuild.steps.reattach_cdrom import (
    CDRomConfig,
    Phase,
    ReattachCDRomConfig,
    StepReattachCDRom,
)


def _run(desired, iso_paths=(), cdrom_type=CdromType.IDE, vm=None):
    vm = vm if vm is not None else FakeVirtualMachine()
    state = BuildState(ui=FakeUi(), vm=vm)
    step = StepReattachCDRom(
        ReattachCDRomConfig(reattach_cdroms=desired),
        CDRomConfig(cdrom_type=cdrom_type, iso_paths=list(iso_paths)),
    )
    action = step.run(state)
    return action, state, vm, step


@pytest.mark.unit
class TestSkipAndValidation:
    def test_zero_is_skipped_without_driver_calls(self):
        action, state, vm, step = _run(0, ["a.iso", "b.iso"])

        assert action is StepAction.CONTINUE
        assert vm.calls == []
        assert state.error is None
        assert state.ui.said == []
        assert step.phase is Phase.DONE

    def test_zero_needs_no_vm_handle(self):
        state = BuildState(ui=FakeUi())
        step = StepReattachCDRom(ReattachCDRomConfig(0), CDRomConfig())
        assert step.run(state) is StepAction.CONTINUE

    @pytest.mark.parametrize("desired", [-1, 5, 42])
    def test_out_of_range_halts_before_any_driver_call(self, desired):
        action, state, vm, step = _run(desired, ["a.iso"])

        assert action is StepAction.HALT
        assert vm.calls == []
        assert isinstance(state.error, ConfigError)
        assert "between 1 and 4" in str(state.error)
        assert str(state.error).startswith("error reattach cdrom: ")
        assert state.ui.errors == [str(state.error)]
        assert step.phase is Phase.HALTED

    def test_scenario_b_five_halts(self):
        action, state, vm, _ = _run(5)
        assert action is StepAction.HALT
        assert "between 1 and 4" in str(state.error)
        assert vm.calls == []


@pytest.mark.unit
class TestFewerConfiguredThanDesired:
    def test_scenario_c_ide_adds_missing_device(self):
        action, state, vm, step = _run(2, ["pathA"], CdromType.IDE)

        assert action is StepAction.CONTINUE
        assert vm.calls == [
            ("eject_cdroms",),
            ("remove_cdroms", 0),
            ("make_cdroms", CdromType.IDE, 1, True),
        ]
        assert state.error is None
        assert state.ui.said == ["Reattaching CD-ROM devices...", "Adding CD-ROM devices..."]
        assert step.phase is Phase.DONE

    def test_scenario_e_sata_without_controller(self):
        vm = FakeVirtualMachine(sata_controller=False)
        action, state, vm, _ = _run(3, [], CdromType.SATA, vm)

        assert action is StepAction.CONTINUE
        assert vm.calls == [
            ("eject_cdroms",),
            ("remove_cdroms", 0),
            ("find_sata_controller",),
            ("add_sata_controller",),
            ("make_cdroms", CdromType.SATA, 3, True),
        ]
        assert "Adding SATA controller..." in state.ui.said

    def test_sata_with_existing_controller_never_adds_one(self):
        vm = FakeVirtualMachine(sata_controller=True)
        action, _state, vm, _ = _run(2, [], CdromType.SATA, vm)

        assert action is StepAction.CONTINUE
        assert "add_sata_controller" not in vm.call_names()
        assert vm.calls[-1] == ("make_cdroms", CdromType.SATA, 2, True)

    def test_ide_never_looks_for_sata_controller(self):
        _action, _state, vm, _ = _run(4, [], CdromType.IDE)
        assert "find_sata_controller" not in vm.call_names()
        assert "add_sata_controller" not in vm.call_names()

    def test_equal_count_only_ejects_and_normalizes(self):
        action, state, vm, _ = _run(2, ["a.iso", "b.iso"])

        assert action is StepAction.CONTINUE
        assert vm.calls == [("eject_cdroms",), ("remove_cdroms", 0)]
        assert "Adding CD-ROM devices..." not in state.ui.said

    def test_equal_count_sata_still_ensures_controller(self):
        vm = FakeVirtualMachine(sata_controller=False)
        _action, _state, vm, _ = _run(1, ["a.iso"], CdromType.SATA, vm)
        assert vm.call_names() == ["eject_cdroms", "remove_cdroms", "find_sata_controller", "add_sata_controller"]


@pytest.mark.unit
class TestMoreConfiguredThanDesired:
    def test_scenario_d_removes_excess_then_ejects(self):
        action, state, vm, _ = _run(1, ["pathA", "pathB"], CdromType.IDE)

        assert action is StepAction.CONTINUE
        assert vm.calls == [("remove_cdroms", 1), ("eject_cdroms",)]
        assert state.ui.said == ["Reattaching CD-ROM devices...", "Ejecting CD-ROM media..."]

    def test_removal_count_is_the_excess(self):
        _action, _state, vm, _ = _run(1, ["a", "b", "c", "d"])
        assert vm.calls[0] == ("remove_cdroms", 3)
        assert isinstance(vm.calls[0][1], int)

    def test_sata_controller_untouched_when_removing(self):
        _action, _state, vm, _ = _run(1, ["a", "b"], CdromType.SATA)
        assert vm.call_names() == ["remove_cdroms", "eject_cdroms"]


@pytest.mark.unit
class TestDriverFailures:
    @pytest.mark.parametrize(
        "failing, expected_calls, prefix",
        [
            ("remove_cdroms", ["remove_cdroms"], "error removing cdrom prior to reattaching"),
            ("eject_cdroms", ["remove_cdroms", "eject_cdroms"], "error ejecting cdrom media"),
        ],
    )
    def test_removal_branch_halts_on_first_failure(self, failing, expected_calls, prefix):
        vm = FakeVirtualMachine(fail_on={failing: boom("device busy")})
        action, state, vm, step = _run(1, ["a", "b"], vm=vm)

        assert action is StepAction.HALT
        assert vm.call_names() == expected_calls
        assert isinstance(state.error, StepError)
        assert str(state.error) == f"{prefix}: device busy"
        assert step.phase is Phase.HALTED

    @pytest.mark.parametrize(
        "failing, expected_calls, prefix",
        [
            ("eject_cdroms", ["eject_cdroms"], "error ejecting cdrom media"),
            ("remove_cdroms", ["eject_cdroms", "remove_cdroms"], "error removing cdrom prior to reattaching"),
            (
                "find_sata_controller",
                ["eject_cdroms", "remove_cdroms", "find_sata_controller"],
                "error finding sata controller",
            ),
            (
                "add_sata_controller",
                ["eject_cdroms", "remove_cdroms", "find_sata_controller", "add_sata_controller"],
                "error adding sata controller",
            ),
            (
                "make_cdroms",
                ["eject_cdroms", "remove_cdroms", "find_sata_controller", "add_sata_controller", "make_cdroms"],
                "error adding cdrom devices",
            ),
        ],
    )
    def test_add_branch_halts_on_first_failure(self, failing, expected_calls, prefix):
        vm = FakeVirtualMachine(sata_controller=False, fail_on={failing: boom("task failed")})
        action, state, vm, _ = _run(3, ["a"], CdromType.SATA, vm)

        assert action is StepAction.HALT
        assert vm.call_names() == expected_calls
        assert str(state.error) == f"{prefix}: task failed"
        assert state.ui.errors == [str(state.error)]

    def test_wrapped_error_keeps_cause(self):
        cause = boom("no free slot")
        vm = FakeVirtualMachine(fail_on={"make_cdroms": cause})
        _action, state, _vm, _ = _run(2, [], vm=vm)
        assert state.error.cause is cause

    def test_earlier_error_is_not_overwritten(self):
        first = ConfigError(msg="earlier failure")
        vm = FakeVirtualMachine(fail_on={"eject_cdroms": boom()})
        state = BuildState(ui=FakeUi(), vm=vm, error=first)
        step = StepReattachCDRom(ReattachCDRomConfig(2), CDRomConfig(iso_paths=["a"]))

        assert step.run(state) is StepAction.HALT
        assert state.error is first

    def test_missing_vm_handle_halts(self):
        state = BuildState(ui=FakeUi())
        step = StepReattachCDRom(ReattachCDRomConfig(2), CDRomConfig())

        assert step.run(state) is StepAction.HALT
        assert isinstance(state.error, StepError)
        assert state.ui.errors == [str(state.error)]
        assert state.ui.said == []
        assert step.phase is Phase.HALTED


@pytest.mark.unit
class TestCleanupAndConfig:
    def test_cleanup_does_nothing(self):
        vm = FakeVirtualMachine()
        state = BuildState(ui=FakeUi(), vm=vm)
        step = StepReattachCDRom(ReattachCDRomConfig(2), CDRomConfig())
        step.run(state)
        calls_before = list(vm.calls)

        step.cleanup(state)

        assert vm.calls == calls_before
        assert state.vm is vm

    @pytest.mark.parametrize("value, ok", [(0, True), (1, True), (4, True), (5, False), (-3, False)])
    def test_reattach_config_prepare(self, value, ok):
        assert (ReattachCDRomConfig(value).prepare() == []) is ok

    def test_reattach_config_from_mapping_coerces_strings(self):
        assert ReattachCDRomConfig.from_mapping({"reattach_cdroms": "3"}).reattach_cdroms == 3
        assert ReattachCDRomConfig.from_mapping({}).reattach_cdroms == 0

    @pytest.mark.parametrize("raw", ["two", "2.5", 2.5, 4.9, True, False, [2]])
    def test_reattach_config_from_mapping_rejects_non_integers(self, raw):
        with pytest.raises(ConfigError) as ei:
            ReattachCDRomConfig.from_mapping({"reattach_cdroms": raw})
        assert ei.value.code == 2
        assert "'reattach_cdroms' must be an integer" in str(ei.value)

    def test_reattach_config_from_mapping_accepts_integral_float(self):
        assert ReattachCDRomConfig.from_mapping({"reattach_cdroms": 3.0}).reattach_cdroms == 3
        assert ReattachCDRomConfig.from_mapping({"reattach_cdroms": None}).reattach_cdroms == 0

    def test_cdrom_config_from_mapping(self):
        cfg = CDRomConfig.from_mapping({"cdrom_type": "SATA", "iso_paths": "[ds1] iso/a.iso"})
        assert cfg.cdrom_type is CdromType.SATA
        assert cfg.iso_paths == ["[ds1] iso/a.iso"]

    def test_cdrom_config_defaults_to_ide(self):
        assert CDRomConfig.from_mapping({}).cdrom_type is CdromType.IDE

    def test_cdrom_config_rejects_unknown_type(self):
        with pytest.raises(ConfigError, match="cdrom_type"):
            CDRomConfig.from_mapping({"cdrom_type": "scsi"})

    def test_cdrom_config_flags_empty_paths(self):
        assert CDRomConfig(iso_paths=["a.iso", "  "]).prepare() == ["'iso_paths' entry 1 is empty"]

    def test_describe_reports_phase(self):
        _action, _state, _vm, step = _run(2, ["a"])
        assert step.describe() == {
            "reattach_cdroms": 2,
            "cdrom_type": "ide",
            "iso_paths": ["a"],
            "phase": "done",
        }
