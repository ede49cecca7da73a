# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# vsbuild/driver/client.py
"""
vSphere / vCenter session used by build steps.
"""
from __future__ import annotations

import logging
import socket
import ssl
from typing import Any, Dict, Optional

from pyVim.connect import Disconnect, SmartConnect
from pyVmomi import vim

from ..core.exceptions import VMwareError, wrap_vmware
from .vsphere import VsphereVirtualMachine


class VsphereClient:
    """
    Owns one pyVmomi service instance. VM handles obtained from it stay valid
    until `disconnect()`.
    """

    def __init__(
        self,
        logger: logging.Logger,
        host: str,
        user: str,
        password: str,
        *,
        port: int = 443,
        insecure: bool = False,
        timeout: Optional[float] = None,
    ) -> None:
        self.logger = logger
        self.host = (host or "").strip()
        self.user = (user or "").strip()
        self.password = password or ""
        self.port = int(port)
        self.insecure = bool(insecure)
        self.timeout = timeout

        self.si: Any = None
        self._vm_obj_by_name_cache: Dict[str, Any] = {}

    def has_creds(self) -> bool:
        return bool(self.host and self.user and self.password)

    @property
    def connected(self) -> bool:
        return self.si is not None

    # Context managers

    def __enter__(self) -> "VsphereClient":
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        self.disconnect()
        return False

    # Connection

    def _ssl_context(self) -> ssl.SSLContext:
        """
        SSL context for the vSphere connection.

        insecure=True disables certificate verification entirely; only meant for
        lab hosts with self-signed certificates.
        """
        if self.insecure:
            self.logger.warning(
                "TLS certificate verification is DISABLED (insecure=True). "
                "Only use this in trusted environments with self-signed certificates."
            )
            ctx = ssl.SSLContext(ssl.PROTOCOL_TLS_CLIENT)
            ctx.check_hostname = False
            ctx.verify_mode = ssl.CERT_NONE
            return ctx
        return ssl.create_default_context()

    def connect(self) -> None:
        if not self.has_creds():
            raise VMwareError(code=2, msg="vSphere host, username and password are required")
        ctx = self._ssl_context()
        old_timeout = socket.getdefaulttimeout()
        if self.timeout is not None:
            socket.setdefaulttimeout(self.timeout)
        try:
            self.si = SmartConnect(
                host=self.host,
                user=self.user,
                pwd=self.password,
                port=self.port,
                sslContext=ctx,
            )
        except Exception as e:
            self.si = None
            raise wrap_vmware(f"Failed to connect to vSphere: {e}", e, host=self.host, port=self.port) from e
        finally:
            socket.setdefaulttimeout(old_timeout)
        self.logger.info("Connected to vSphere: %s:%s", self.host, self.port)

    def disconnect(self) -> None:
        try:
            if self.si is not None:
                Disconnect(self.si)
                self.logger.debug("Disconnected from vSphere: %s", self.host)
        except Exception as e:
            self.logger.error("Error during disconnect: %s", e)
        finally:
            self.si = None
            self._vm_obj_by_name_cache = {}

    def _content(self) -> Any:
        if not self.si:
            raise VMwareError(msg="Not connected")
        try:
            return self.si.RetrieveContent()
        except Exception as e:
            raise VMwareError(msg=f"Failed to retrieve content: {e}", cause=e) from e

    # VM lookup

    def get_vm_by_name(self, name: str) -> Any:
        """Return the vim.VirtualMachine called `name`, or None."""
        if name in self._vm_obj_by_name_cache:
            return self._vm_obj_by_name_cache[name]
        content = self._content()
        view = content.viewManager.CreateContainerView(content.rootFolder, [vim.VirtualMachine], True)
        try:
            for vm_obj in view.view:
                if vm_obj.name == name:
                    self._vm_obj_by_name_cache[name] = vm_obj
                    return vm_obj
        finally:
            view.Destroy()
        return None

    def vm(self, name: str) -> VsphereVirtualMachine:
        vm_obj = self.get_vm_by_name(name)
        if vm_obj is None:
            raise VMwareError(msg=f"VM not found: {name}").with_context(host=self.host)
        return VsphereVirtualMachine(self.logger, vm_obj)
