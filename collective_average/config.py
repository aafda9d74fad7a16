"""
Run configuration resolved from command-line flags, then COLLAVG_*
environment variables, then defaults. The number of processes is fixed by
the launcher (mpiexec -n ...) and is not part of the configuration.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Mapping, Optional

from collective_average.errors import InvalidParameter

ENV_PREFIX = "COLLAVG_"
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass(frozen=True)
class RunConfig:
    values: Optional[int] = None
    iterations: int = 100
    timeout: float = 300.0
    output_dir: Path = Path("benchmarks")
    log_level: str = "WARNING"

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "RunConfig":
        if environ is None:
            environ = os.environ
        found = {}
        for f in fields(cls):
            key = ENV_PREFIX + f.name.upper()
            if key in environ:
                found[f.name] = _parse(key, environ[key], f.name)
        return cls(**found)

    def merged(self, **overrides) -> "RunConfig":
        """Copy with every override that is not None applied."""
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})


def _parse(key: str, raw: str, name: str):
    try:
        if name in ("values", "iterations"):
            return int(raw)
        if name == "timeout":
            return float(raw)
    except ValueError:
        raise InvalidParameter(f"{key} must be a number, got {raw!r}") from None
    if name == "output_dir":
        return Path(raw)
    if raw.upper() not in LOG_LEVELS:
        raise InvalidParameter(f"{key} must be one of {', '.join(LOG_LEVELS)}, got {raw!r}")
    return raw.upper()
