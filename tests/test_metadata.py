from pathlib import Path
from typing import Callable

from lxc_toolbox.build_config import BuildConfig
from lxc_toolbox.distros import Distribution
from lxc_toolbox.metadata import METADATA_FILES, describe, render_create_message, write_metadata


def test_description_mentions_credentials_without_values(make_config: Callable[..., BuildConfig], key_file: Path) -> None:
    cfg = make_config(ssh_user="admin", ssh_password="pw1", ssh_key_file=str(key_file))

    text = describe(cfg)

    assert text.startswith("Debian trixie with SSH, Python, and sudo preinstalled")
    assert "SSH user: admin (password set) (SSH key added)" in text
    assert "pw1" not in text


def test_message_without_ssh_user(make_config: Callable[..., BuildConfig]) -> None:
    msg = render_create_message(make_config(distribution=Distribution.ARCH, release="current"))

    assert msg.startswith("Arch current with SSH")
    assert "Variant: cloud (amd64)" in msg
    assert "- No SSH user configured" in msg
    assert "- Root password: not set" in msg
    assert "lxc-attach" in msg


def test_message_never_contains_passwords(make_config: Callable[..., BuildConfig]) -> None:
    cfg = make_config(ssh_user="admin", ssh_password="hunter2", root_password="toor!")

    msg = render_create_message(cfg)

    assert "- Password authentication: enabled" in msg
    assert "- Root password: set" in msg
    assert "hunter2" not in msg and "toor!" not in msg


def test_write_metadata_creates_all_files(make_config: Callable[..., BuildConfig], tmp_path: Path) -> None:
    out = write_metadata(tmp_path, make_config())

    assert set(out) == set(METADATA_FILES)
    assert (tmp_path / "excludes-user").read_text(encoding="utf-8") == ""
    assert "lxc.include" in (tmp_path / "config").read_text(encoding="utf-8")
