# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# vsbuild/__main__.py
from __future__ import annotations

import logging
import signal
import sys
import traceback
from typing import List, Optional, Sequence

from .cli.args import parse_args_with_config
from .core.exceptions import ConfigError, VsbuildError, format_exception_for_cli
from .core.logger import Log
from .driver.client import VsphereClient
from .multistep import BasicRunner, BuildState, ConsoleUi, StepAction
from .steps import CDRomConfig, ReattachCDRomConfig, StepConnect, StepReattachCDRom

EXIT_OK = 0
EXIT_HALTED = 1
EXIT_USAGE = 2
EXIT_INTERRUPTED = 130


def build_steps(logger: logging.Logger, args) -> List:
    client = VsphereClient(
        logger,
        args.vcenter_server,
        args.username,
        args.password,
        port=args.port,
        insecure=args.insecure_connection,
        timeout=args.timeout,
    )
    reattach = StepReattachCDRom(
        ReattachCDRomConfig.from_mapping(vars(args)),
        CDRomConfig.from_mapping(vars(args)),
    )
    Log.trace(logger, "Reattach plan: %s", reattach.describe())
    return [StepConnect(client, args.vm_name), reattach]


def run(argv: Optional[Sequence[str]] = None) -> int:
    logger: Optional[logging.Logger] = None

    # Phase 1: parse (config errors surface here, before any vSphere call)
    try:
        args, _conf, logger = parse_args_with_config(argv)
    except ConfigError as e:
        print(f"💥 ERROR    {e}", file=sys.stderr)
        return EXIT_USAGE

    # Phase 2: run pipeline
    runner = BasicRunner(logger, build_steps(logger, args))
    previous = signal.signal(signal.SIGINT, lambda _sig, _frame: runner.cancel())
    state = BuildState(ui=ConsoleUi(logger))
    try:
        action = runner.run(state)
    except Exception as e:
        Log.fail(logger, f"UNHANDLED {type(e).__name__}: {e}")
        logger.debug(traceback.format_exc())
        return EXIT_HALTED
    finally:
        signal.signal(signal.SIGINT, previous)

    if state.cancelled:
        Log.warn(logger, "Interrupted by user (Ctrl+C).")
        return EXIT_INTERRUPTED
    if action is StepAction.HALT:
        if state.error is not None:
            Log.fail(logger, format_exception_for_cli(state.error, verbose=args.verbose))
            if isinstance(state.error, VsbuildError):
                return state.error.code
        return EXIT_HALTED
    Log.ok(logger, "Build steps finished")
    return EXIT_OK


def main() -> None:
    raise SystemExit(run())


if __name__ == "__main__":
    main()
