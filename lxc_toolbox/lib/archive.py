from __future__ import annotations

import logging
import zipfile
from pathlib import Path
from typing import Sequence

from .command import run_cmd

logger = logging.getLogger(__name__)


def extract_tar_xz(archive: Path, dest_dir: Path, *, dry_run: bool = False) -> None:
    run_cmd(["tar", "-xJf", str(archive), "-C", str(dest_dir)], dry_run=dry_run)


def create_tar_xz(
    src_dir: Path,
    archive: Path,
    *,
    preserve_metadata: bool = False,
    exclude: Sequence[str] = (),
    dry_run: bool = False,
) -> None:
    """Archive the contents of src_dir (not the directory itself) as tar.xz."""
    argv = ["tar"]
    if preserve_metadata:
        argv += ["--xattrs", "--acls", "--numeric-owner"]
    argv += ["-C", str(src_dir), "-cJf", str(archive)]
    argv += [f"--exclude={e}" for e in exclude]
    argv.append(".")
    run_cmd(argv, dry_run=dry_run)


def write_zip(zip_path: Path, src_dir: Path, names: Sequence[str], *, dry_run: bool = False) -> None:
    """Write names (relative to src_dir) into zip_path, replacing any existing file."""
    if dry_run:
        logger.info("Would write %s (%s)", str(zip_path), ", ".join(names))
        return

    missing = [n for n in names if not (src_dir / n).is_file()]
    if missing:
        raise FileNotFoundError(f"Missing bundle files in {src_dir}: {', '.join(missing)}")

    zip_path.parent.mkdir(parents=True, exist_ok=True)
    tmp = zip_path.with_name(zip_path.name + ".tmp")
    try:
        with zipfile.ZipFile(tmp, "w", compression=zipfile.ZIP_DEFLATED) as zf:
            for n in names:
                zf.write(src_dir / n, arcname=n)
    except BaseException:
        tmp.unlink(missing_ok=True)
        raise
    tmp.replace(zip_path)
    logger.info("Wrote %s", str(zip_path))
