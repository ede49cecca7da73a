# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# vsbuild/driver/__init__.py
"""
Hypervisor device drivers used by build steps.
"""
from __future__ import annotations

from .vm import CdromType, ControllerLookup, VirtualMachine

__all__ = [
    "CdromType",
    "ControllerLookup",
    "VirtualMachine",
]
