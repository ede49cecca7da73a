# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# vsbuild/cli/args.py
from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from typing import Any, Dict, Optional, Sequence, Tuple

from ..config.config_loader import Config
from ..core.exceptions import ConfigError, redact_mapping
from ..core.logger import Log, c
from ..driver.vm import CdromType
from ..steps.reattach_cdrom import CDRomConfig, ReattachCDRomConfig

YAML_EXAMPLE = """\
  vcenter_server: vcenter.example.com
  username: administrator@vsphere.local
  password_env: VSBUILD_PASSWORD
  insecure_connection: true
  vm_name: ubuntu-template
  cdrom_type: sata
  iso_paths:
    - "[datastore1] iso/ubuntu-24.04.iso"
  reattach_cdroms: 2
"""


class HelpFormatter(argparse.RawDescriptionHelpFormatter, argparse.ArgumentDefaultsHelpFormatter):
    """Combines raw description formatting with default value display in help."""


def _require(v: Any) -> bool:
    """True if v is meaningfully present (treats empty/whitespace-only strings as missing)."""
    if v is None:
        return False
    if isinstance(v, str):
        return v.strip() != ""
    return True


def _merged_secret(args: argparse.Namespace, value_key: str, env_key: str) -> Optional[str]:
    """
    Resolve a secret from the direct value, else from the environment variable
    named by `env_key`.
    """
    direct = getattr(args, value_key, None)
    if _require(direct):
        return str(direct)
    envname = getattr(args, env_key, None)
    if _require(envname):
        return os.environ.get(str(envname))
    return None


def _add_global_config_logging(p: argparse.ArgumentParser) -> None:
    from .. import __version__

    p.add_argument(
        "--config",
        action="append",
        default=[],
        help="YAML config file, directory or glob (repeatable; later overrides earlier).",
    )
    p.add_argument("--dump-config", action="store_true", help="Print merged config and exit.")
    p.add_argument("--version", action="version", version=__version__)
    p.add_argument("-v", "--verbose", action="count", default=0, help="Verbosity: -v, -vv, -vvv")
    p.add_argument("-q", "--quiet", action="count", default=0, help="Less output: -q, -qq")
    p.add_argument("--log-file", dest="log_file", default=None, help="Write logs to file.")
    p.add_argument("--json-logs", dest="json_logs", action="store_true", help="Emit logs as NDJSON.")


def _add_vsphere_knobs(p: argparse.ArgumentParser) -> None:
    g = p.add_argument_group("vSphere connection")
    g.add_argument("--vcenter-server", dest="vcenter_server", default=None, help="vCenter/ESXi host.")
    g.add_argument("--port", dest="port", type=int, default=443, help="vSphere API port.")
    g.add_argument("--username", dest="username", default=None, help="vSphere user.")
    g.add_argument("--password", dest="password", default=None, help="vSphere password (prefer --password-env).")
    g.add_argument(
        "--password-env",
        dest="password_env",
        default="VSBUILD_PASSWORD",
        help="Environment variable holding the vSphere password.",
    )
    g.add_argument(
        "--insecure",
        dest="insecure_connection",
        action="store_true",
        help="Skip TLS certificate verification.",
    )
    g.add_argument("--timeout", dest="timeout", type=float, default=None, help="Socket timeout in seconds.")
    g.add_argument("--vm", dest="vm_name", default=None, help="Name of the build VM.")


def _add_cdrom_knobs(p: argparse.ArgumentParser) -> None:
    g = p.add_argument_group("CD-ROM devices")
    g.add_argument(
        "--cdrom-type",
        dest="cdrom_type",
        default=CdromType.IDE.value,
        choices=[t.value for t in CdromType],
        help="Controller family for CD-ROM devices.",
    )
    g.add_argument(
        "--iso-path",
        dest="iso_paths",
        action="append",
        default=[],
        help="Media attached during the build (repeatable; adds to config iso_paths).",
    )
    g.add_argument(
        "--reattach-cdroms",
        dest="reattach_cdroms",
        type=int,
        default=0,
        help="CD-ROM devices to keep on the final VM (1-4, 0 skips the step).",
    )


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="vsbuild",
        description=c("vsbuild: vSphere build steps", "green", ["bold"]),
        formatter_class=HelpFormatter,
        epilog=c("YAML example:\n", "cyan", ["bold"]) + c(YAML_EXAMPLE, "cyan"),
    )
    _add_global_config_logging(p)
    _add_vsphere_knobs(p)
    _add_cdrom_knobs(p)
    return p


def _build_preparser() -> argparse.ArgumentParser:
    pre = argparse.ArgumentParser(add_help=False)
    pre.add_argument("--config", action="append", default=[])
    pre.add_argument("-v", "--verbose", action="count", default=0)
    pre.add_argument("-q", "--quiet", action="count", default=0)
    pre.add_argument("--log-file", dest="log_file", default=None)
    pre.add_argument("--json-logs", dest="json_logs", action="store_true")
    pre.add_argument("--dump-config", action="store_true")
    return pre


def validate_args(args: argparse.Namespace) -> None:
    """
    Check everything that can be checked without talking to vSphere.
    Resolves `args.password` from `--password-env` as a side effect.
    """
    problems = []
    for key, flag in (("vcenter_server", "--vcenter-server"), ("username", "--username"), ("vm_name", "--vm")):
        if not _require(getattr(args, key, None)):
            problems.append(f"missing {key} ({flag} or YAML `{key}:`)")

    args.password = _merged_secret(args, "password", "password_env")
    if not _require(args.password):
        problems.append(f"missing password (--password, or set ${args.password_env})")

    try:
        reattach = ReattachCDRomConfig.from_mapping(vars(args))
        cdrom = CDRomConfig.from_mapping(vars(args))
    except ConfigError as e:
        problems.append(e.msg)
    else:
        problems.extend(reattach.prepare())
        problems.extend(cdrom.prepare())

    if problems:
        raise ConfigError(code=2, msg="; ".join(problems))


def parse_args_with_config(
    argv: Optional[Sequence[str]] = None,
    logger: Optional[logging.Logger] = None,
) -> Tuple[argparse.Namespace, Dict[str, Any], logging.Logger]:
    """
    Flow:
      Phase 0: parse only the flags needed to locate config/logging
      Phase 1: load+merge config files
      Phase 2: apply config as defaults onto the parser
      Phase 3: full parse to get final args
      Phase 4: validate
    """
    if argv is None:
        argv = sys.argv[1:]
    argv = list(argv)

    parser = build_parser()

    args0, _rest = _build_preparser().parse_known_args(argv)
    if logger is None:
        logger = Log.setup(args0.verbose, args0.log_file, quiet=args0.quiet, json_logs=args0.json_logs)

    conf: Dict[str, Any] = {}
    if args0.config:
        conf = Config.load_many(logger, Config.expand_configs(logger, args0.config))

    if args0.dump_config:
        print(json.dumps(redact_mapping(conf), indent=2, sort_keys=True, default=str))
        raise SystemExit(0)

    Config.apply_as_defaults(logger, parser, conf)
    args = parser.parse_args(argv)
    validate_args(args)
    return args, conf, logger
