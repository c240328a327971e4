from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Paths:
    lxc_path: str = "/var/lib/lxc"
    work_dir: str = "/work"
    output_dir: str = "/out"
    cache_dir: str = "/var/cache/lxc"
    log_default: str = "/var/log/lxc-toolbox.log"
    env_file: str = ".env"


PATHS = Paths()
