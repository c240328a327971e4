from __future__ import annotations

import argparse
import logging
import os
import sys
from typing import Any, Dict, Mapping, Optional

from .build_config import BuildConfig, resolve_build_config
from .build_state import BuildState
from .distros import KNOWN_RELEASES, SUPPORTED
from .errors import ToolboxError
from .lib.env import PATHS
from .logging_utils import DEFAULT_LOG_PATH, configure_logging
from .metadata import describe
from .pipeline import PipelineResult, run_pipeline
from .steps import (
    ArchiveRootfsStep,
    ConfigureSshStep,
    CustomizeRootfsStep,
    FetchBaseImageStep,
    PackageZipStep,
    WriteMetadataStep,
)

logger = logging.getLogger(__name__)


def build_steps():
    return [
        FetchBaseImageStep(),
        CustomizeRootfsStep(),
        ConfigureSshStep(),
        ArchiveRootfsStep(),
        WriteMetadataStep(),
        PackageZipStep(),
    ]


def run_build(cfg: BuildConfig) -> PipelineResult:
    """Run the six build stages for an already resolved config."""

    logger.info(
        "Building LXC image: %s %s (%s, %s)", cfg.distribution, cfg.release, cfg.architecture, cfg.variant
    )
    logger.info("Output: %s", str(cfg.zip_path))
    if cfg.ssh_user:
        logger.info("SSH User: %s", cfg.ssh_user)
        if cfg.ssh_password:
            logger.info("SSH Password: [SET]")
        if cfg.ssh_key_file:
            logger.info("SSH Key: %s", cfg.ssh_key_file)
    if cfg.root_password:
        logger.info("Root Password: [SET]")

    return run_pipeline(state=BuildState(config=cfg), steps=build_steps())


class _Parser(argparse.ArgumentParser):
    # validation failures exit 1, same as build failures
    def error(self, message: str) -> None:  # type: ignore[override]
        self.print_usage(sys.stderr)
        self.exit(1, f"{self.prog}: error: {message}\nUse --help for usage information.\n")


def _epilog() -> str:
    lines = [
        "environment variables:",
        "  DIST, RELEASE, ARCH, VARIANT, NAME, OUTDIR, CACHE_DIR, ZIP_BASENAME,",
        "  SSH_USER, SSH_PASSWORD, SSH_KEY_FILE, ROOT_PASSWORD",
        "  (command line options override environment variables, which override .env)",
        "",
        "supported distributions:",
    ]
    for dist, releases in KNOWN_RELEASES.items():
        lines.append(f"  {dist.value:<12} releases: {', '.join(releases)}")
    lines += [
        "",
        "examples:",
        "  lxc-toolbox                                  # Debian trixie",
        "  lxc-toolbox -d ubuntu -r jammy",
        "  lxc-toolbox -d fedora -r 39 -v minimal",
        "  lxc-toolbox --ssh-user admin --ssh-key-file ~/.ssh/id_rsa.pub",
        "",
        "Requires privileged access for chroot operations (docker run --privileged).",
    ]
    return "\n".join(lines)


def build_parser() -> argparse.ArgumentParser:
    p = _Parser(
        prog="lxc-toolbox",
        description="Build customized LXC container images with SSH, Python, and sudo preinstalled.",
        epilog=_epilog(),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    p.add_argument("-d", "--dist", dest="distribution", help="Distribution (default: debian); one of " + ", ".join(SUPPORTED))
    p.add_argument("-r", "--release", dest="release", help="Release/version (default depends on distribution)")
    p.add_argument("-a", "--arch", dest="architecture", help="Architecture (default: amd64)")
    p.add_argument("-v", "--variant", dest="variant", help="Variant (default: cloud; falls back to default)")
    p.add_argument("-n", "--name", dest="container_name", help="Container name (default: tmp-image)")
    p.add_argument("-o", "--outdir", dest="output_dir", help=f"Output directory (default: {PATHS.output_dir})")
    p.add_argument("-c", "--cache", dest="cache_dir", help=f"Cache directory (default: {PATHS.cache_dir})")
    p.add_argument("--zip-name", dest="zip_basename", help="Custom zip filename prefix")
    p.add_argument("--ssh-user", dest="ssh_user", help="Create SSH user with this username")
    p.add_argument("--ssh-password", dest="ssh_password", help="SSH password for the user (prefer .env)")
    p.add_argument("--ssh-key-file", dest="ssh_key_file", help="Add SSH public key from file")
    p.add_argument("--root-password", dest="root_password", help="Set root password (prefer .env)")
    p.add_argument("--lxc-path", dest="lxc_path", help=f"LXC container path (default: {PATHS.lxc_path})")
    p.add_argument("--work-dir", dest="work_dir", help=f"Scratch directory (default: {PATHS.work_dir})")
    p.add_argument("--env-file", default=PATHS.env_file, help="Read variables from this .env file if present")
    p.add_argument("--config", default=None, help="Optional YAML build config")
    p.add_argument("--log", default=DEFAULT_LOG_PATH, help="Path to build log")
    p.add_argument("--dry-run", action="store_true", help="Log commands without running them")
    return p


_NON_CONFIG = {"env_file", "config", "log", "dry_run"}


def _cli_values(args: argparse.Namespace) -> Dict[str, Any]:
    return {k: v for k, v in vars(args).items() if k not in _NON_CONFIG and v is not None}


def main(argv: Optional[list[str]] = None, environ: Optional[Mapping[str, str]] = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        cfg = resolve_build_config(
            cli=_cli_values(args),
            environ=os.environ if environ is None else environ,
            env_file=args.env_file,
            config_file=args.config,
            dry_run=bool(args.dry_run),
        )
    except ToolboxError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    # the log file is the first thing a build writes; invalid input never gets here
    configure_logging(log_path=args.log)

    try:
        result = run_build(cfg)
    except ToolboxError as e:
        logger.error("%s", e)
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except Exception:
        logger.exception("Build failed")
        return 1

    cfg = result.state.config
    print("")
    print("Build complete!")
    print(f"Output: {cfg.zip_path}")
    print(f"Description: {describe(cfg)}")
    if result.warnings:
        print(f"Warnings: {len(result.warnings)} (see log)")
    print("")
    print("To use this image:")
    print("1. Unzip the file in your LXC images directory")
    print("2. Use 'lxc-create -n mycontainer -t local -- --metadata ./'")
    if cfg.ssh_user:
        print(f"3. Start container and connect: ssh {cfg.ssh_user}@<container-ip>")
    else:
        print("3. Start container and attach: lxc-attach -n mycontainer")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
