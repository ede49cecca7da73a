# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# vsbuild/steps/__init__.py
from __future__ import annotations

from .connect import StepConnect
from .reattach_cdrom import CDRomConfig, ReattachCDRomConfig, StepReattachCDRom

__all__ = [
    "CDRomConfig",
    "ReattachCDRomConfig",
    "StepConnect",
    "StepReattachCDRom",
]
