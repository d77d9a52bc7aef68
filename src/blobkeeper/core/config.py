from __future__ import annotations

import os
import re
from dataclasses import dataclass
from pathlib import Path

from blobkeeper.core.errors import ConfigurationError


@dataclass(frozen=True)
class AppPaths:
    project_root: Path
    data_dir: Path
    db_path: Path
    images_dir: Path


DEFAULT_DATA_DIRNAME = ".blobkeeper"

EAGER_MODE_SAME_KIND = "same-kind"
EAGER_MODE_UNCHECKED = "unchecked"
EAGER_MODE_OFF = "off"
EAGER_MODES = (EAGER_MODE_SAME_KIND, EAGER_MODE_UNCHECKED, EAGER_MODE_OFF)

DEFAULT_SWEEP_AT = "03:00"
DEFAULT_SWEEP_GRACE_SECONDS = 900

_SWEEP_AT_RE = re.compile(r"^([01]?\d|2[0-3]):([0-5]\d)$")


@dataclass(frozen=True)
class GCSettings:
    eager_mode: str = EAGER_MODE_SAME_KIND
    sweep_schedule_enabled: bool = True
    sweep_at: tuple[int, int] = (3, 0)
    sweep_grace_seconds: int = DEFAULT_SWEEP_GRACE_SECONDS


def load_paths(project_root: Path | None = None) -> AppPaths:
    root = (project_root or Path.cwd()).expanduser().resolve()

    home_raw = os.getenv("BLOBKEEPER_HOME")
    if home_raw:
        data_dir = Path(home_raw).expanduser().resolve()
    else:
        data_dir = root / DEFAULT_DATA_DIRNAME

    return AppPaths(
        project_root=root,
        data_dir=data_dir,
        db_path=data_dir / "blobkeeper.db",
        images_dir=data_dir / "images",
    )


def read_float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        value = float(raw)
    except ValueError:
        return default
    return value if value > 0 else default


def read_int_env(name: str, default: int, *, allow_zero: bool = False) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        value = int(raw)
    except ValueError:
        return default
    if value > 0 or (allow_zero and value == 0):
        return value
    return default


def read_bool_env(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    value = str(raw).strip().lower()
    if value in {"1", "true", "yes", "on"}:
        return True
    if value in {"0", "false", "no", "off"}:
        return False
    return default


def parse_sweep_at(value: str) -> tuple[int, int]:
    match = _SWEEP_AT_RE.match(value.strip())
    if not match:
        raise ConfigurationError(f"Invalid sweep time {value!r}; expected HH:MM (24h).")
    return int(match.group(1)), int(match.group(2))


def load_gc_settings() -> GCSettings:
    eager_mode = (os.getenv("BLOBKEEPER_EAGER_CLEANUP_MODE") or EAGER_MODE_SAME_KIND).strip().lower()
    if eager_mode not in EAGER_MODES:
        raise ConfigurationError(
            f"Invalid BLOBKEEPER_EAGER_CLEANUP_MODE {eager_mode!r}; expected one of {', '.join(EAGER_MODES)}."
        )
    return GCSettings(
        eager_mode=eager_mode,
        sweep_schedule_enabled=read_bool_env("BLOBKEEPER_SWEEP_SCHEDULE_ENABLED", True),
        sweep_at=parse_sweep_at(os.getenv("BLOBKEEPER_SWEEP_AT") or DEFAULT_SWEEP_AT),
        sweep_grace_seconds=read_int_env(
            "BLOBKEEPER_SWEEP_GRACE_SECONDS",
            DEFAULT_SWEEP_GRACE_SECONDS,
            allow_zero=True,
        ),
    )
