"""Run lxc-toolbox inside a privileged Docker container.

Useful on hosts without lxc-create, or to keep leftover mounts and container
directories out of the host. Output and cache directories are bind mounted,
so cached base images survive between runs.
"""

from __future__ import annotations

import argparse
import logging
import os
import shlex
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Sequence, Tuple

import docker
from docker.errors import APIError, BuildError, DockerException, ImageNotFound

from .build_config import load_env_file
from .distros import SUPPORTED, parse_distribution
from .errors import DockerError, ToolboxError, ValidationError
from .lib.env import PATHS
from .logging_utils import configure_logging

logger = logging.getLogger(__name__)

DEFAULT_IMAGE = "lxc-builder"
CONTAINER_OUT = "/out"
CONTAINER_CACHE = "/var/cache/lxc"
CONTAINER_KEY = "/ssh_key"


@dataclass(frozen=True)
class WrapperOptions:
    dist: str
    release: str = ""
    arch: str = "amd64"
    variant: str = "cloud"
    output_dir: Path = Path("out")
    cache_dir: Path = Path("lxc-cache")
    build_image: bool = True
    zip_basename: str = ""
    docker_args: str = ""
    ssh_user: str = ""
    ssh_password: str = field(default="", repr=False)
    ssh_key_file: Optional[Path] = None
    root_password: str = field(default="", repr=False)
    image: str = DEFAULT_IMAGE
    context: Path = Path(".")


@dataclass(frozen=True)
class RunPlan:
    image: str
    volumes: Dict[str, Dict[str, str]]
    environment: Dict[str, str]
    network: Optional[str] = None


def _first(*values: Optional[str], default: str = "") -> str:
    for v in values:
        if v:
            return v
    return default


def resolve_wrapper_options(
    args: argparse.Namespace,
    *,
    environ: Mapping[str, str],
) -> WrapperOptions:
    """Positional/flag values > environment > .env > defaults, then validate."""

    dotenv = load_env_file(args.env_file)

    def layered(cli_value: Optional[str], name: str, default: str = "") -> str:
        return _first(cli_value, environ.get(name), dotenv.get(name), default=default)

    dist = parse_distribution(layered(args.dist, "DIST", "debian"), allow_aliases=True)

    key_file: Optional[Path] = None
    key = layered(args.ssh_key_file, "SSH_KEY_FILE")
    if key:
        key_file = Path(key).expanduser().resolve()
        if not key_file.is_file():
            raise ValidationError(f"SSH key file '{key_file}' not found")

    ssh_password = layered(args.ssh_password, "SSH_PASSWORD")
    if ssh_password and not Path(args.env_file).is_file():
        logger.warning("Warning: Consider using .env file for passwords instead of command line")

    return WrapperOptions(
        dist=dist.value,
        release=layered(args.release, "RELEASE"),
        arch=layered(args.arch, "ARCH", "amd64"),
        variant=layered(args.variant, "VARIANT", "cloud"),
        output_dir=Path(args.output).expanduser().resolve(),
        cache_dir=Path(args.cache).expanduser().resolve(),
        build_image=not args.no_build,
        zip_basename=args.zip_name or "",
        docker_args=args.docker_args or "",
        ssh_user=layered(args.ssh_user, "SSH_USER"),
        ssh_password=ssh_password,
        ssh_key_file=key_file,
        root_password=layered(args.root_password, "ROOT_PASSWORD"),
        image=args.image,
        context=Path(args.context).expanduser().resolve(),
    )


def parse_docker_args(
    text: str,
) -> Tuple[Dict[str, str], Dict[str, Dict[str, str]], Optional[str]]:
    """Translate the supported subset of `docker run` flags for the SDK.

    Supports -e/--env K=V, -v/--volume SRC:DST[:ro|rw] and --network NAME.
    """
    env: Dict[str, str] = {}
    volumes: Dict[str, Dict[str, str]] = {}
    network: Optional[str] = None

    tokens = shlex.split(text or "")
    i = 0
    while i < len(tokens):
        tok = tokens[i]
        if "=" in tok and tok.startswith("--"):
            flag, value = tok.split("=", 1)
        else:
            flag, value = tok, None
            if i + 1 < len(tokens):
                value = tokens[i + 1]
                i += 1
        if value is None:
            raise ValidationError(f"Missing value for docker argument '{flag}'")

        if flag in {"-e", "--env"}:
            k, sep, v = value.partition("=")
            # `-e NAME` passes the caller's variable through, as docker does
            env[k] = v if sep else os.environ.get(k, "")
        elif flag in {"-v", "--volume"}:
            parts = value.split(":")
            if len(parts) not in (2, 3):
                raise ValidationError(f"Invalid volume spec '{value}'", hint="Use SRC:DST[:ro]")
            mode = parts[2] if len(parts) == 3 else "rw"
            volumes[str(Path(parts[0]).expanduser().resolve())] = {"bind": parts[1], "mode": mode}
        elif flag == "--network":
            network = value
        else:
            raise ValidationError(
                f"Unsupported docker argument '{flag}'",
                hint="Supported: -e/--env, -v/--volume, --network",
            )
        i += 1
    return env, volumes, network


def plan_run(opts: WrapperOptions) -> RunPlan:
    environment: Dict[str, str] = {
        "DIST": opts.dist,
        "ARCH": opts.arch,
        "VARIANT": opts.variant,
    }
    optional = {
        "RELEASE": opts.release,
        "ZIP_BASENAME": opts.zip_basename,
        "SSH_USER": opts.ssh_user,
        "SSH_PASSWORD": opts.ssh_password,
        "ROOT_PASSWORD": opts.root_password,
    }
    environment.update({k: v for k, v in optional.items() if v})

    volumes: Dict[str, Dict[str, str]] = {
        str(opts.output_dir): {"bind": CONTAINER_OUT, "mode": "rw"},
        str(opts.cache_dir): {"bind": CONTAINER_CACHE, "mode": "rw"},
    }
    if opts.ssh_key_file is not None:
        volumes[str(opts.ssh_key_file)] = {"bind": CONTAINER_KEY, "mode": "ro"}
        environment["SSH_KEY_FILE"] = CONTAINER_KEY

    extra_env, extra_volumes, network = parse_docker_args(opts.docker_args)
    environment.update(extra_env)
    volumes.update(extra_volumes)
    return RunPlan(image=opts.image, volumes=volumes, environment=environment, network=network)


def connect() -> Any:
    try:
        client = docker.from_env()
        client.ping()
        return client
    except DockerException as exc:
        raise DockerError(
            "Docker daemon is not running",
            hint="Install Docker (https://docs.docker.com/engine/install/) and start it, then try again.",
        ) from exc


def ensure_image(client: Any, opts: WrapperOptions) -> None:
    if not opts.build_image:
        logger.info("Skipping Docker build (using existing %s image)", opts.image)
        try:
            client.images.get(opts.image)
        except ImageNotFound as exc:
            raise DockerError(
                f"{opts.image} image not found",
                hint="Run without --no-build to build the image first",
            ) from exc
        except APIError as exc:
            raise DockerError(f"Could not inspect {opts.image} image", context={"image": opts.image}) from exc
        return

    logger.info("Building Docker image %s from %s", opts.image, str(opts.context))
    try:
        client.images.build(path=str(opts.context), tag=opts.image, rm=True)
    except (BuildError, APIError) as exc:
        raise DockerError(
            "Failed to build Docker image",
            hint="Make sure the Dockerfile is present in the build context",
            context={"context": str(opts.context)},
        ) from exc
    logger.info("Docker image built successfully")


def _remove(container: Any) -> None:
    try:
        container.remove(force=True)
    except APIError as exc:
        logger.warning("Could not remove build container %s: %s", getattr(container, "id", "?"), exc)


def run_container(client: Any, plan: RunPlan, *, out=None) -> int:
    """Run the privileged build container, streaming its output; returns the exit status."""
    out = out or sys.stdout
    kwargs: Dict[str, Any] = {
        "detach": True,
        "privileged": True,
        "volumes": plan.volumes,
        "environment": plan.environment,
    }
    if plan.network:
        kwargs["network"] = plan.network

    logger.info("Running privileged container from %s", plan.image)
    try:
        container = client.containers.run(plan.image, **kwargs)
    except (APIError, ImageNotFound) as exc:
        raise DockerError("Could not start build container", context={"image": plan.image}) from exc

    try:
        for chunk in container.logs(stream=True, follow=True):
            out.write(chunk.decode("utf-8", errors="replace"))
        status = container.wait()
    except APIError as exc:
        raise DockerError(
            "Lost contact with build container",
            hint="Check the Docker daemon log, then rerun the build",
            context={"image": plan.image},
        ) from exc
    finally:
        _remove(container)
    return int(status.get("StatusCode", 1))


def _print_success(opts: WrapperOptions) -> None:
    print("")
    print("Build complete!")
    print("")
    print("Output files:")
    for p in sorted(opts.output_dir.iterdir()):
        print(f"  {p.name}")
    print("")
    print("SSH Connection Info:")
    if opts.ssh_user:
        print(f"   User: {opts.ssh_user}")
        if opts.ssh_password:
            print("   Password: [as configured]")
        if opts.ssh_key_file:
            print("   Key authentication: enabled")
        print(f"   Connect: ssh {opts.ssh_user}@<container-ip>")
    else:
        print("   No SSH user configured - use lxc-attach")
    print("")
    print("Next steps:")
    print("   1. Extract the zip file to your LXC images directory")
    print("   2. Create a container: lxc-create -n mycontainer -t local -- --metadata ./")
    print("   3. Start the container: lxc-start -n mycontainer")
    if opts.ssh_user:
        print(f"   4. Connect via SSH: ssh {opts.ssh_user}@$(lxc-info -n mycontainer -iH)")
    else:
        print("   4. Connect to container: lxc-attach -n mycontainer")


def _print_failure() -> None:
    print("", file=sys.stderr)
    print("Build failed!", file=sys.stderr)
    print("Troubleshooting tips:", file=sys.stderr)
    print("   - Ensure Docker has privileged container support", file=sys.stderr)
    print("   - Check that the distribution/release combination is valid", file=sys.stderr)
    print("   - Verify internet connectivity for downloading base images", file=sys.stderr)
    print("   - Verify SSH key file permissions and format", file=sys.stderr)


class _Parser(argparse.ArgumentParser):
    def error(self, message: str) -> None:  # type: ignore[override]
        self.print_usage(sys.stderr)
        self.exit(1, f"{self.prog}: error: {message}\nUse --help for usage information.\n")


def build_parser() -> argparse.ArgumentParser:
    p = _Parser(
        prog="lxc-toolbox-docker",
        description="Docker wrapper for building customized LXC container images.",
        epilog=(
            "The image is written to the output directory as "
            "LXC_${DIST}_${RELEASE}_toolbox_${ARCH}.zip.\n"
            "Supported distributions: " + ", ".join(SUPPORTED) + " (rocky is accepted for rockylinux)."
        ),
    )
    p.add_argument("dist", nargs="?", help="Distribution (default: debian)")
    p.add_argument("release", nargs="?", help="Release/version (auto-detected if not specified)")
    p.add_argument("arch", nargs="?", help="Architecture (default: amd64)")
    p.add_argument("variant", nargs="?", help="Variant (default: cloud)")
    p.add_argument("-o", "--output", default="./out", help="Output directory (default: ./out)")
    p.add_argument("-c", "--cache", default="./lxc-cache", help="Cache directory (default: ./lxc-cache)")
    p.add_argument("--no-build", action="store_true", help="Skip Docker image build (use existing image)")
    p.add_argument("--zip-name", default=None, help="Custom zip filename prefix")
    p.add_argument("--docker-args", default=None, help="Additional docker run arguments (-e, -v, --network)")
    p.add_argument("--ssh-user", default=None)
    p.add_argument("--ssh-password", default=None, help="Prefer setting SSH_PASSWORD in .env")
    p.add_argument("--ssh-key-file", default=None)
    p.add_argument("--root-password", default=None, help="Prefer setting ROOT_PASSWORD in .env")
    p.add_argument("--env-file", default=PATHS.env_file)
    p.add_argument("--image", default=DEFAULT_IMAGE, help=f"Builder image tag (default: {DEFAULT_IMAGE})")
    p.add_argument("--context", default=".", help="Docker build context holding the Dockerfile")
    p.add_argument("--log", default="lxc-toolbox-docker.log", help="Path to wrapper log")
    return p


def main(argv: Optional[Sequence[str]] = None, environ: Optional[Mapping[str, str]] = None) -> int:
    args = build_parser().parse_args(list(argv) if argv is not None else None)

    try:
        opts = resolve_wrapper_options(args, environ=os.environ if environ is None else environ)
        plan = plan_run(opts)
    except ToolboxError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    # invalid input leaves no log file behind
    configure_logging(log_path=args.log)

    try:
        client = connect()

        logger.info("Creating directories...")
        opts.output_dir.mkdir(parents=True, exist_ok=True)
        opts.cache_dir.mkdir(parents=True, exist_ok=True)

        ensure_image(client, opts)

        logger.info(
            "Starting LXC image build: dist=%s release=%s arch=%s variant=%s",
            opts.dist,
            opts.release or "auto-detect",
            opts.arch,
            opts.variant,
        )
        logger.info("Output dir: %s, cache dir: %s", str(opts.output_dir), str(opts.cache_dir))
    except ToolboxError as e:
        logger.error("%s", e)
        print(f"Error: {e}", file=sys.stderr)
        return 1

    try:
        status = run_container(client, plan)
    except DockerError as e:
        logger.error("%s", e)
        print(f"Error: {e}", file=sys.stderr)
        _print_failure()
        return 1

    if status != 0:
        logger.error("Build container exited with status %s", status)
        _print_failure()
        return 1

    _print_success(opts)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
