# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# vsbuild/multistep/ui.py
from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Optional

from rich.console import Console
from rich.markup import escape


class Ui(ABC):
    """Message sink for user-facing build output."""

    @abstractmethod
    def say(self, msg: str) -> None:
        ...

    @abstractmethod
    def message(self, msg: str) -> None:
        ...

    @abstractmethod
    def error(self, msg: str) -> None:
        ...


class ConsoleUi(Ui):
    """
    Writes build output to a rich console on stderr.

    Every line is mirrored to the logger at DEBUG so a --log-file run keeps
    the full transcript.
    """

    def __init__(self, logger: logging.Logger, *, console: Optional[Console] = None, prefix: str = "vsbuild") -> None:
        self.logger = logger
        self.console = console if console is not None else Console(stderr=True)
        self.prefix = prefix

    def say(self, msg: str) -> None:
        self.console.print(f"[bold green]==> {escape(self.prefix)}:[/] {escape(msg)}", highlight=False)
        self.logger.debug("ui.say: %s", msg)

    def message(self, msg: str) -> None:
        self.console.print(f"    {escape(self.prefix)}: {escape(msg)}", highlight=False)
        self.logger.debug("ui.message: %s", msg)

    def error(self, msg: str) -> None:
        self.console.print(f"[bold red]==> {escape(self.prefix)}: {escape(msg)}[/]", highlight=False)
        self.logger.debug("ui.error: %s", msg)
