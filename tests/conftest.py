"""Shared test fixtures."""

from __future__ import annotations

import subprocess
from pathlib import Path
from typing import Callable, List, Optional, Sequence

import pytest

from lxc_toolbox.build_config import BuildConfig
from lxc_toolbox.distros import Distribution

SAMPLE_SSHD_CONFIG = """\
# This is the sshd server system-wide configuration file.
Include /etc/ssh/sshd_config.d/*.conf

#PermitRootLogin prohibit-password
#PubkeyAuthentication yes
#PasswordAuthentication yes
KbdInteractiveAuthentication no
UsePAM yes
"""


def seed_rootfs(root: Path) -> None:
    """Lay out the bits of a freshly downloaded image the build touches."""
    for d in ("etc/ssh", "proc", "sys", "dev/pts", "run", "home"):
        (root / d).mkdir(parents=True, exist_ok=True)
    (root / "etc/ssh/sshd_config").write_text(SAMPLE_SSHD_CONFIG, encoding="utf-8")
    resolv = root / "etc/resolv.conf"
    if not resolv.is_symlink():
        resolv.symlink_to("../run/systemd/resolve/stub-resolv.conf")


class FakeSystem:
    """Stands in for subprocess.run; records argv and simulates lxc-create and tar."""

    def __init__(self) -> None:
        self.calls: List[List[str]] = []
        self.inputs: List[Optional[str]] = []
        self._failures: List[Callable[[Sequence[str]], bool]] = []

    def fail_when(self, predicate: Callable[[Sequence[str]], bool]) -> None:
        self._failures.append(predicate)

    def called(self, program: str) -> List[List[str]]:
        return [c for c in self.calls if c and c[0] == program]

    def chroot_calls(self) -> List[List[str]]:
        return [c[2:] for c in self.called("chroot")]

    def __call__(self, argv, input=None, text=True, stdout=None, stderr=None, cwd=None, env=None):
        argv = list(argv)
        self.calls.append(argv)
        self.inputs.append(input)
        for predicate in self._failures:
            if predicate(argv):
                return subprocess.CompletedProcess(argv, 1, "", "simulated failure")
        self._effects(argv)
        return subprocess.CompletedProcess(argv, 0, "", "")

    def _effects(self, argv: List[str]) -> None:
        if argv[0] == "lxc-create":
            name = argv[argv.index("-n") + 1]
            lxc_path = argv[argv.index("-P") + 1]
            seed_rootfs(Path(lxc_path) / name / "rootfs")
        elif argv[0] == "tar" and "-cJf" in argv:
            Path(argv[argv.index("-cJf") + 1]).write_bytes(b"fake-xz")
        elif argv[0] == "tar" and "-xJf" in argv:
            seed_rootfs(Path(argv[argv.index("-C") + 1]))


@pytest.fixture
def fake_system(monkeypatch: pytest.MonkeyPatch) -> FakeSystem:
    fake = FakeSystem()
    monkeypatch.setattr("lxc_toolbox.lib.command.subprocess.run", fake)
    return fake


@pytest.fixture
def make_config(tmp_path: Path) -> Callable[..., BuildConfig]:
    def _make(**overrides) -> BuildConfig:
        values = dict(
            distribution=Distribution.DEBIAN,
            release="trixie",
            architecture="amd64",
            variant="cloud",
            container_name="tmp-image",
            output_dir=str(tmp_path / "out"),
            cache_dir=str(tmp_path / "cache"),
            lxc_path=str(tmp_path / "lxc"),
            work_dir=str(tmp_path / "work"),
        )
        values.update(overrides)
        if not values.get("zip_basename"):
            values["zip_basename"] = (
                f"LXC_{values['distribution']}_{values['release']}_toolbox_{values['architecture']}"
            )
        return BuildConfig(**values)

    return _make


@pytest.fixture
def key_file(tmp_path: Path) -> Path:
    p = tmp_path / "id_ed25519.pub"
    p.write_text("ssh-ed25519 AAAAC3NzaC1lZDI1NTE5AAAAITestKey admin@host\n", encoding="utf-8")
    return p
