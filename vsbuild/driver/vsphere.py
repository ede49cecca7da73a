# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# vsbuild/driver/vsphere.py
"""
pyVmomi implementation of the removable-media driver.

All changes go through ReconfigVM_Task with a single ConfigSpec per call, so a
call either applies completely or raises DriverError.
"""
from __future__ import annotations

import logging
import time
from typing import Any, Dict, List, Optional, Sequence, Set, Tuple

from pyVmomi import vim, vmodl

from ..core.exceptions import DriverError
from ..core.logger import Log
from .vm import CdromType, ControllerLookup, VirtualMachine

# Units per controller: IDE has master/slave, AHCI exposes 30 ports.
_MAX_UNITS = {
    CdromType.IDE: 2,
    CdromType.SATA: 30,
}

_DeviceSpec = vim.vm.device.VirtualDeviceSpec


def _fault_message(err: Any) -> str:
    return str(getattr(err, "msg", None) or err or "unknown error")


def wait_for_task(task: Any, what: str, *, poll_s: float = 1.0) -> Any:
    """Block until a vSphere task finishes; raise DriverError if it failed."""
    while task.info.state not in (vim.TaskInfo.State.success, vim.TaskInfo.State.error):
        time.sleep(poll_s)
    if task.info.state == vim.TaskInfo.State.error:
        raise DriverError(msg=f"{what}: {_fault_message(task.info.error)}").with_context(task=what)
    return task.info.result


def _empty_backing() -> Any:
    return vim.vm.device.VirtualCdrom.RemotePassthroughBackingInfo(deviceName="", exclusive=False)


class VsphereVirtualMachine(VirtualMachine):
    """
    Removable-media operations on a `vim.VirtualMachine` managed object.
    """

    def __init__(self, logger: logging.Logger, vm_obj: Any, *, poll_s: float = 1.0) -> None:
        self.vm_obj = vm_obj
        self.poll_s = poll_s
        self.logger = Log.bind(logger, vm=self.name)

    @property
    def name(self) -> str:
        return str(getattr(self.vm_obj, "name", "") or "vm")

    # Device inventory

    def _devices(self) -> List[Any]:
        config = getattr(self.vm_obj, "config", None)
        if config is None:
            raise DriverError(msg=f"VM {self.name!r} has no config (inaccessible or orphaned)")
        return list(config.hardware.device or [])

    def _cdroms(self) -> List[Any]:
        return [d for d in self._devices() if isinstance(d, vim.vm.device.VirtualCdrom)]

    def _controllers(self, cdrom_type: CdromType) -> List[Any]:
        kind = vim.vm.device.VirtualIDEController if cdrom_type is CdromType.IDE else vim.vm.device.VirtualSATAController
        return sorted((d for d in self._devices() if isinstance(d, kind)), key=lambda d: d.key)

    def _used_units(self, controllers: Sequence[Any]) -> Dict[int, Set[int]]:
        used: Dict[int, Set[int]] = {ctrl.key: set() for ctrl in controllers}
        for dev in self._devices():
            ckey = getattr(dev, "controllerKey", None)
            if ckey in used and dev.unitNumber is not None:
                used[ckey].add(dev.unitNumber)
        return used

    @staticmethod
    def _free_slot(controllers: Sequence[Any], used: Dict[int, Set[int]], max_units: int) -> Optional[Tuple[Any, int]]:
        for ctrl in controllers:
            for unit in range(max_units):
                if unit not in used[ctrl.key]:
                    return ctrl, unit
        return None

    def _reconfigure(self, changes: List[Any], what: str) -> None:
        if not changes:
            self.logger.debug("%s: nothing to change", what)
            return
        Log.trace(self.logger, "ReconfigVM_Task: %s (%d device change(s))", what, len(changes))
        spec = vim.vm.ConfigSpec(deviceChange=changes)
        try:
            task = self.vm_obj.ReconfigVM_Task(spec=spec)
        except vmodl.MethodFault as e:
            raise DriverError(msg=f"{what}: {_fault_message(e)}", cause=e) from e
        wait_for_task(task, what, poll_s=self.poll_s)

    # VirtualMachine

    def remove_cdroms(self, count: int) -> None:
        if count <= 0:
            self.logger.debug("remove_cdroms(0): no devices removed")
            return
        victims = sorted(self._cdroms(), key=lambda d: d.key, reverse=True)[:count]
        if len(victims) < count:
            self.logger.warning("Asked to remove %d CD-ROM(s) but only %d attached", count, len(victims))
        changes = [_DeviceSpec(operation=_DeviceSpec.Operation.remove, device=d) for d in victims]
        self._reconfigure(changes, f"remove {len(victims)} cdrom(s)")

    def eject_cdroms(self) -> None:
        changes = []
        for cdrom in self._cdroms():
            cdrom.backing = _empty_backing()
            cdrom.connectable = vim.vm.device.VirtualDevice.ConnectInfo(
                connected=False,
                startConnected=False,
                allowGuestControl=True,
            )
            changes.append(_DeviceSpec(operation=_DeviceSpec.Operation.edit, device=cdrom))
        self._reconfigure(changes, f"eject {len(changes)} cdrom(s)")

    def find_sata_controller(self) -> ControllerLookup:
        for dev in self._devices():
            if isinstance(dev, vim.vm.device.VirtualAHCIController):
                return ControllerLookup.of(dev)
        return ControllerLookup.not_found()

    def add_sata_controller(self) -> None:
        bus = len(self._controllers(CdromType.SATA))
        ctrl = vim.vm.device.VirtualAHCIController(key=-1, busNumber=bus)
        self._reconfigure([_DeviceSpec(operation=_DeviceSpec.Operation.add, device=ctrl)], "add sata controller")

    def make_cdroms(self, cdrom_type: CdromType, count: int, empty: bool = True) -> List[Any]:
        if count <= 0:
            return []
        controllers = self._controllers(cdrom_type)
        if not controllers:
            raise DriverError(msg=f"no {cdrom_type.value} controller found on VM {self.name!r}")

        used = self._used_units(controllers)
        created: List[Any] = []
        for i in range(count):
            slot = self._free_slot(controllers, used, _MAX_UNITS[cdrom_type])
            if slot is None:
                raise DriverError(
                    msg=f"no free {cdrom_type.value} slot for cdrom {i + 1} of {count} on VM {self.name!r}"
                )
            ctrl, unit = slot
            used[ctrl.key].add(unit)
            created.append(
                vim.vm.device.VirtualCdrom(
                    key=-100 - i,
                    controllerKey=ctrl.key,
                    unitNumber=unit,
                    backing=_empty_backing(),
                    connectable=vim.vm.device.VirtualDevice.ConnectInfo(
                        connected=False,
                        startConnected=not empty,
                        allowGuestControl=True,
                    ),
                )
            )

        changes = [_DeviceSpec(operation=_DeviceSpec.Operation.add, device=d) for d in created]
        self._reconfigure(changes, f"add {count} {cdrom_type.value} cdrom(s)")
        return created
