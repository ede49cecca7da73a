# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# vsbuild/driver/vm.py
"""
Device driver interface consumed by build steps.

Steps only ever talk to a `VirtualMachine`; the vSphere implementation lives in
`vsphere.py` and tests substitute in-memory fakes.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, List, Optional

from ..core.exceptions import ConfigError


class CdromType(str, Enum):
    """Controller family a CD-ROM device attaches to."""

    IDE = "ide"
    SATA = "sata"

    @classmethod
    def parse(cls, value: Any) -> "CdromType":
        if isinstance(value, cls):
            return value
        s = str(value or "").strip().lower()
        for member in cls:
            if member.value == s:
                return member
        allowed = ", ".join(m.value for m in cls)
        raise ConfigError(code=2, msg=f"'cdrom_type' must be one of: {allowed} (got {value!r})")


@dataclass(frozen=True)
class ControllerLookup:
    """
    Result of a controller discovery: Found(handle) or NotFound.

    A missing controller is an expected outcome, not an error.
    """

    controller: Optional[Any] = None

    @property
    def found(self) -> bool:
        return self.controller is not None

    @classmethod
    def of(cls, controller: Any) -> "ControllerLookup":
        return cls(controller=controller)

    @classmethod
    def not_found(cls) -> "ControllerLookup":
        return cls(controller=None)


class VirtualMachine(ABC):
    """
    Removable-media capabilities of a VM handle.

    Every method blocks until the hypervisor has applied the change and raises
    `DriverError` on failure.
    """

    @abstractmethod
    def remove_cdroms(self, count: int) -> None:
        """
        Remove `count` CD-ROM devices; the driver picks which ones.
        `count == 0` removes nothing.
        """

    @abstractmethod
    def eject_cdroms(self) -> None:
        """Eject media from every attached CD-ROM device."""

    @abstractmethod
    def find_sata_controller(self) -> ControllerLookup:
        ...

    @abstractmethod
    def add_sata_controller(self) -> None:
        ...

    @abstractmethod
    def make_cdroms(self, cdrom_type: CdromType, count: int, empty: bool = True) -> List[Any]:
        """
        Create `count` CD-ROM devices on a `cdrom_type` controller.
        With `empty=True` the new devices carry no media.
        """
