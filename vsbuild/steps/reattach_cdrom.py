# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# vsbuild/steps/reattach_cdrom.py
"""
Reattach CD-ROM devices to the build VM before it becomes the final artifact.

With `reattach_cdroms: N` (1-4) the VM ends the build with N CD-ROM devices,
all of them empty. Devices attached during the build for `iso_paths` are
reused; missing ones are created, extra ones removed.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping

from ..core.exceptions import ConfigError, StepError, wrap_step
from ..driver.vm import CdromType
from ..multistep.state import BuildState, StepAction
from ..multistep.step import Step

MAX_REATTACH_CDROMS = 4

_RANGE_MSG = (
    "'reattach_cdroms' should be between 1 and 4. "
    "if set to 0, `reattach_cdroms` is ignored and the step is skipped"
)


@dataclass
class ReattachCDRomConfig:
    # Number of CD-ROM devices to keep on the final artifact (1-4).
    # 0 disables the step. Kept devices end up without attached media.
    reattach_cdroms: int = 0

    @classmethod
    def from_mapping(cls, conf: Mapping[str, Any]) -> "ReattachCDRomConfig":
        raw = conf.get("reattach_cdroms", 0)
        bad = ConfigError(code=2, msg=f"'reattach_cdroms' must be an integer (got {raw!r})")
        if raw is None:
            return cls(reattach_cdroms=0)
        # YAML bools and floats arrive untyped: reject rather than truncate.
        if isinstance(raw, bool):
            raise bad
        if isinstance(raw, float):
            if not raw.is_integer():
                raise bad
            return cls(reattach_cdroms=int(raw))
        try:
            value = int(str(raw).strip()) if isinstance(raw, str) else int(raw)
        except (TypeError, ValueError) as e:
            bad.cause = e
            raise bad from e
        return cls(reattach_cdroms=value)

    def prepare(self) -> List[str]:
        if self.reattach_cdroms != 0 and not (1 <= self.reattach_cdroms <= MAX_REATTACH_CDROMS):
            return [_RANGE_MSG]
        return []


@dataclass
class CDRomConfig:
    # Controller family for CD-ROM devices: "ide" or "sata".
    cdrom_type: CdromType = CdromType.IDE
    # Media attached as CD-ROMs during the build, one device per path.
    iso_paths: List[str] = field(default_factory=list)

    @classmethod
    def from_mapping(cls, conf: Mapping[str, Any]) -> "CDRomConfig":
        iso_paths = conf.get("iso_paths") or []
        if isinstance(iso_paths, str):
            iso_paths = [iso_paths]
        return cls(
            cdrom_type=CdromType.parse(conf.get("cdrom_type") or CdromType.IDE.value),
            iso_paths=[str(p) for p in iso_paths],
        )

    def prepare(self) -> List[str]:
        return [f"'iso_paths' entry {i} is empty" for i, p in enumerate(self.iso_paths) if not p.strip()]


class Phase(str, Enum):
    NOT_STARTED = "not_started"
    VALIDATED = "validated"
    RECONCILING = "reconciling"
    DONE = "done"
    HALTED = "halted"


class StepReattachCDRom(Step):
    """
    Bring the VM to exactly `reattach_cdroms` empty CD-ROM devices.

    Driver calls are issued one at a time and the first failure halts; changes
    already applied stay applied.
    """

    def __init__(self, config: ReattachCDRomConfig, cdrom_config: CDRomConfig) -> None:
        self.config = config
        self.cdrom_config = cdrom_config
        self.phase = Phase.NOT_STARTED

    def _halt(self, state: BuildState, err: BaseException) -> StepAction:
        self.phase = Phase.HALTED
        return self.halt(state, err)

    def run(self, state: BuildState) -> StepAction:
        ui = state.ui
        desired = self.config.reattach_cdroms
        if desired == 0:
            self.phase = Phase.DONE
            return StepAction.CONTINUE

        problems = self.config.prepare()
        if problems:
            return self._halt(state, ConfigError(code=2, msg=f"error reattach cdrom: {problems[0]}"))
        self.phase = Phase.VALIDATED

        try:
            vm = state.require_vm()
        except StepError as e:
            return self._halt(state, e)
        cdrom_type = self.cdrom_config.cdrom_type
        delta = desired - len(self.cdrom_config.iso_paths)

        ui.say("Reattaching CD-ROM devices...")
        self.phase = Phase.RECONCILING

        if delta < 0:
            try:
                vm.remove_cdroms(abs(delta))
            except Exception as e:
                return self._halt(state, wrap_step("error removing cdrom prior to reattaching", e))

            ui.say("Ejecting CD-ROM media...")
            try:
                vm.eject_cdroms()
            except Exception as e:
                return self._halt(state, wrap_step("error ejecting cdrom media", e))
        else:
            try:
                vm.eject_cdroms()
            except Exception as e:
                return self._halt(state, wrap_step("error ejecting cdrom media", e))

            try:
                vm.remove_cdroms(0)
            except Exception as e:
                return self._halt(state, wrap_step("error removing cdrom prior to reattaching", e))

            if cdrom_type is CdromType.SATA:
                try:
                    lookup = vm.find_sata_controller()
                except Exception as e:
                    return self._halt(state, wrap_step("error finding sata controller", e))
                if not lookup.found:
                    ui.say("Adding SATA controller...")
                    try:
                        vm.add_sata_controller()
                    except Exception as e:
                        return self._halt(state, wrap_step("error adding sata controller", e))

            if delta > 0:
                ui.say("Adding CD-ROM devices...")
                try:
                    vm.make_cdroms(cdrom_type, delta, True)
                except Exception as e:
                    return self._halt(state, wrap_step("error adding cdrom devices", e))

        self.phase = Phase.DONE
        return StepAction.CONTINUE

    def cleanup(self, state: BuildState) -> None:
        # Reattached devices are the intended final state; nothing to undo.
        return None

    def describe(self) -> Dict[str, Any]:
        return {
            "reattach_cdroms": self.config.reattach_cdroms,
            "cdrom_type": self.cdrom_config.cdrom_type.value,
            "iso_paths": list(self.cdrom_config.iso_paths),
            "phase": self.phase.value,
        }
