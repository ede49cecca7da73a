# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# vsbuild/config/config_loader.py
"""
YAML build configuration.

Several files may be given; they are merged left to right (nested mappings
merge, everything else is replaced). The merged mapping is then applied to the
argparse parser as defaults so explicit CLI flags still win.
"""
from __future__ import annotations

import argparse
import glob
import logging
from pathlib import Path
from typing import Any, Dict, List, Sequence

import yaml

from ..core.exceptions import ConfigError

_CONFIG_SUFFIXES = (".yaml", ".yml")


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    out = dict(base)
    for k, v in override.items():
        if isinstance(v, dict) and isinstance(out.get(k), dict):
            out[k] = _deep_merge(out[k], v)
        else:
            out[k] = v
    return out


def _normalize_key(k: Any) -> str:
    return str(k).strip().replace("-", "_")


class Config:
    @staticmethod
    def expand_configs(logger: logging.Logger, cfgs: Sequence[str]) -> List[Path]:
        """
        Resolve config arguments into files: plain paths, globs, or directories
        (every *.yaml / *.yml inside, sorted by name).
        """
        out: List[Path] = []
        for raw in cfgs:
            p = Path(raw).expanduser()
            if p.is_dir():
                found = sorted(x for x in p.iterdir() if x.suffix in _CONFIG_SUFFIXES and x.is_file())
                logger.debug("Config dir %s: %d file(s)", p, len(found))
                out.extend(found)
            elif any(ch in raw for ch in "*?["):
                matches = sorted(Path(m) for m in glob.glob(str(p)))
                if not matches:
                    raise ConfigError(code=2, msg=f"Config glob matched nothing: {raw}")
                out.extend(matches)
            else:
                out.append(p)
        return out

    @staticmethod
    def load_one(logger: logging.Logger, path: Path) -> Dict[str, Any]:
        try:
            text = Path(path).read_text(encoding="utf-8")
        except OSError as e:
            raise ConfigError(code=2, msg=f"Cannot read config {path}: {e.strerror or e}", cause=e) from e
        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as e:
            raise ConfigError(code=2, msg=f"Invalid YAML in {path}: {e}", cause=e) from e
        if data is None:
            logger.warning("Config %s is empty", path)
            return {}
        if not isinstance(data, dict):
            raise ConfigError(code=2, msg=f"Config {path} must be a mapping at top level (got {type(data).__name__})")
        logger.debug("Loaded config %s (%d key(s))", path, len(data))
        return {_normalize_key(k): v for k, v in data.items()}

    @staticmethod
    def load_many(logger: logging.Logger, paths: Sequence[Path]) -> Dict[str, Any]:
        merged: Dict[str, Any] = {}
        for p in paths:
            merged = _deep_merge(merged, Config.load_one(logger, p))
        return merged

    @staticmethod
    def apply_as_defaults(logger: logging.Logger, parser: argparse.ArgumentParser, conf: Dict[str, Any]) -> None:
        """
        Set parser defaults from config keys that match an argument dest.
        Unknown keys are reported and ignored. A scalar given for an append
        option becomes a one-item list so CLI values can still be appended.
        """
        dests = {a.dest for a in parser._actions if a.dest != argparse.SUPPRESS}
        append_dests = {a.dest for a in parser._actions if isinstance(a, argparse._AppendAction)}
        known = {k: v for k, v in conf.items() if k in dests}
        for k in append_dests & known.keys():
            v = known[k]
            if v is None:
                known[k] = []
            elif not isinstance(v, list):
                known[k] = list(v) if isinstance(v, tuple) else [v]
        unknown = sorted(k for k in conf if k not in dests)
        if unknown:
            logger.warning("Ignoring unknown config key(s): %s", ", ".join(unknown))
        if known:
            parser.set_defaults(**known)
