from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Tuple

from dotenv import dotenv_values

from .cache import cache_key, cache_path
from .distros import DEFAULT_RELEASES, Distribution, SUPPORTED
from .errors import ValidationError
from .lib.env import PATHS

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BuildConfig:
    distribution: Distribution
    release: str
    architecture: str = "amd64"
    variant: str = "cloud"
    container_name: str = "tmp-image"
    output_dir: str = PATHS.output_dir
    cache_dir: str = PATHS.cache_dir
    zip_basename: str = ""
    ssh_user: str = ""
    ssh_password: str = field(default="", repr=False)
    ssh_key_file: str = ""
    root_password: str = field(default="", repr=False)
    lxc_path: str = PATHS.lxc_path
    work_dir: str = PATHS.work_dir
    dry_run: bool = False

    @property
    def cache_key(self) -> str:
        return cache_key(str(self.distribution), self.release, self.architecture, self.variant)

    @property
    def cached_base_path(self) -> Path:
        return cache_path(self.cache_dir, self.cache_key)

    @property
    def container_dir(self) -> Path:
        return Path(self.lxc_path) / self.container_name

    @property
    def rootfs_dir(self) -> Path:
        return self.container_dir / "rootfs"

    @property
    def zip_path(self) -> Path:
        return Path(self.output_dir) / f"{self.zip_basename}.zip"

    @property
    def key_only_ssh(self) -> bool:
        """Key file given and no password at all: sshd goes key-only."""
        return bool(self.ssh_key_file) and not self.ssh_password and not self.root_password


# (BuildConfig field, environment variable, YAML key)
_FIELDS: Tuple[Tuple[str, str, str], ...] = (
    ("distribution", "DIST", "dist"),
    ("release", "RELEASE", "release"),
    ("architecture", "ARCH", "arch"),
    ("variant", "VARIANT", "variant"),
    ("container_name", "NAME", "name"),
    ("output_dir", "OUTDIR", "outdir"),
    ("cache_dir", "CACHE_DIR", "cache_dir"),
    ("zip_basename", "ZIP_BASENAME", "zip_name"),
    ("ssh_user", "SSH_USER", "ssh_user"),
    ("ssh_password", "SSH_PASSWORD", "ssh_password"),
    ("ssh_key_file", "SSH_KEY_FILE", "ssh_key_file"),
    ("root_password", "ROOT_PASSWORD", "root_password"),
    ("lxc_path", "LXC_PATH", "lxc_path"),
    ("work_dir", "WORK_DIR", "work_dir"),
)

ENV_VARS = tuple(env for _, env, _ in _FIELDS)

_DEFAULTS: Dict[str, str] = {
    "distribution": "debian",
    "architecture": "amd64",
    "variant": "cloud",
    "container_name": "tmp-image",
    "output_dir": PATHS.output_dir,
    "cache_dir": PATHS.cache_dir,
    "lxc_path": PATHS.lxc_path,
    "work_dir": PATHS.work_dir,
}


def load_env_file(path: str | None) -> Dict[str, str]:
    """Read KEY=VALUE pairs from a .env file without touching os.environ."""
    if not path:
        return {}
    p = Path(path)
    if not p.is_file():
        return {}
    logger.info("Loading environment variables from %s", path)
    return {k: v for k, v in dotenv_values(p).items() if v is not None}


def load_yaml_config(path: str | None) -> Dict[str, str]:
    """Load an optional YAML build config (lowercase keys, e.g. dist, release, ssh_user)."""
    if not path:
        return {}
    p = Path(path)
    if not p.exists():
        raise ValidationError(f"Build config '{path}' not found")

    if p.suffix.lower() not in {".yaml", ".yml"}:
        raise ValidationError("build config must be YAML", context={"path": path})

    try:
        import yaml  # type: ignore
    except Exception as e:
        raise RuntimeError("PyYAML is required to read a YAML build config") from e

    raw = yaml.safe_load(p.read_text(encoding="utf-8")) or {}
    if not isinstance(raw, dict):
        raise ValidationError("build config must contain a mapping/object", context={"path": path})

    known = {yaml_key for _, _, yaml_key in _FIELDS}
    unknown = sorted(str(k) for k in raw if k not in known)
    if unknown:
        raise ValidationError(
            f"Unknown build config keys: {', '.join(unknown)}",
            hint="Valid keys: " + ", ".join(sorted(known)),
        )

    by_yaml = {yaml_key: name for name, _, yaml_key in _FIELDS}
    return {by_yaml[k]: str(v) for k, v in raw.items() if v is not None}


def _pick(name: str, env_var: str, layers: List[Mapping[str, Any]]) -> str:
    # layers are highest-precedence first; empty strings count as unset
    for source, key in zip(layers, (name, env_var, env_var, name)):
        value = source.get(key)
        if value is not None and str(value) != "":
            return str(value)
    return _DEFAULTS.get(name, "")


def _password_warnings(values: Mapping[str, str]) -> List[str]:
    out = []
    for name in ("ssh_password", "root_password"):
        if "$" in values.get(name, ""):
            out.append(
                f"{name} contains '$'; check for accidental shell-variable expansion "
                "and consider using a .env file for passwords instead of the command line"
            )
    return out


def resolve_build_config(
    *,
    cli: Mapping[str, Any] | None = None,
    environ: Mapping[str, str] | None = None,
    env_file: str | None = None,
    config_file: str | None = None,
    dry_run: bool = False,
) -> BuildConfig:
    """Merge CLI > environment > .env > YAML config > defaults and validate.

    Reads only the .env/YAML files and checks the SSH key file exists; nothing
    is created or modified.
    """

    layers: List[Mapping[str, Any]] = [
        dict(cli or {}),
        dict(environ or {}),
        load_env_file(env_file),
        load_yaml_config(config_file),
    ]
    values = {name: _pick(name, env_var, layers) for name, env_var, _ in _FIELDS}

    dist_name = values["distribution"].strip().lower()
    if not values["release"]:
        try:
            values["release"] = DEFAULT_RELEASES[Distribution(dist_name)]
        except ValueError:
            raise ValidationError(
                f"Unknown distribution '{values['distribution']}' or missing release version",
                hint="Use --help to see supported distributions",
            ) from None

    try:
        dist = Distribution(dist_name)
    except ValueError:
        raise ValidationError(
            f"Unsupported distribution '{values['distribution']}'",
            hint="Supported: " + ", ".join(SUPPORTED),
        ) from None

    key_file = values["ssh_key_file"]
    if key_file and not Path(key_file).is_file():
        raise ValidationError(f"SSH key file '{key_file}' not found")

    for w in _password_warnings(values):
        logger.warning("Warning: %s", w)

    if not values["zip_basename"]:
        values["zip_basename"] = f"LXC_{dist}_{values['release']}_toolbox_{values['architecture']}"

    values.pop("distribution")
    return BuildConfig(distribution=dist, dry_run=dry_run, **values)
