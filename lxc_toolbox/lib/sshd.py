from __future__ import annotations

import logging
import re
import shutil
from pathlib import Path
from typing import Dict

logger = logging.getLogger(__name__)

SSHD_CONFIG = "etc/ssh/sshd_config"


def sshd_policy(*, key_only: bool) -> Dict[str, str]:
    """Options written into sshd_config.

    Root login and both auth methods are on unless the image is key-only
    (key file given, no user or root password), which turns off password
    auth and root login.
    """
    policy = {
        "PermitRootLogin": "yes",
        "PasswordAuthentication": "yes",
        "PubkeyAuthentication": "yes",
    }
    if key_only:
        policy["PasswordAuthentication"] = "no"
        policy["PermitRootLogin"] = "no"
    return policy


def set_sshd_option(text: str, key: str, value: str) -> str:
    """Set key to value on top-level lines for it, active or commented out; append if absent.

    Only ``Key value`` and ``#Key value`` at column 0 count. Indented lines
    belong to Match blocks and prose comments merely mention the key.
    """
    pattern = re.compile(rf"^#?{re.escape(key)}[ \t].*$", re.MULTILINE)
    line = f"{key} {value}"
    new, count = pattern.subn(line, text)
    if count:
        return new
    if new and not new.endswith("\n"):
        new += "\n"
    return new + line + "\n"


def harden_sshd_config(text: str, *, key_only: bool) -> str:
    for key, value in sshd_policy(key_only=key_only).items():
        text = set_sshd_option(text, key, value)
    return text


def write_sshd_config(target_root: str, *, key_only: bool, dry_run: bool = False) -> bool:
    """Rewrite the image's sshd_config, keeping a .backup copy.

    Returns False when the image has no sshd_config.
    """
    p = Path(target_root) / SSHD_CONFIG
    if dry_run:
        logger.info("Would rewrite %s (key_only=%s)", str(p), key_only)
        return True
    if not p.is_file():
        return False

    shutil.copy2(p, p.with_name(p.name + ".backup"))
    p.write_text(harden_sshd_config(p.read_text(encoding="utf-8"), key_only=key_only), encoding="utf-8")
    logger.info("Configured %s (key_only=%s)", str(p), key_only)
    return True
