"""Base image cache: one tar.xz per (dist, release, arch, variant), never pruned."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

from .lib.archive import create_tar_xz, extract_tar_xz

if TYPE_CHECKING:
    from .build_config import BuildConfig

logger = logging.getLogger(__name__)


def cache_key(distribution: str, release: str, architecture: str, variant: str) -> str:
    return f"{distribution}-{release}-{architecture}-{variant}"


def cache_path(cache_dir: str | Path, key: str) -> Path:
    return Path(cache_dir) / f"base-{key}.tar.xz"


class BaseImageCache:
    def __init__(self, root: str | Path, *, dry_run: bool = False) -> None:
        self.root = Path(root)
        self.dry_run = dry_run

    def path_for(self, cfg: BuildConfig) -> Path:
        return cache_path(self.root, cfg.cache_key)

    def has(self, cfg: BuildConfig) -> bool:
        return self.path_for(cfg).is_file()

    def restore(self, cfg: BuildConfig, rootfs_dir: Path) -> Path:
        cached = self.path_for(cfg)
        logger.info("[CACHE HIT] Extracting cached base image: %s", cached)
        extract_tar_xz(cached, rootfs_dir, dry_run=self.dry_run)
        return cached

    def store(self, cfg: BuildConfig, rootfs_dir: Path) -> Path:
        cached = self.path_for(cfg)
        logger.info("[CACHE] Saving base image to cache: %s", cached)
        if self.dry_run:
            create_tar_xz(rootfs_dir, cached, preserve_metadata=True, dry_run=True)
            return cached

        self.root.mkdir(parents=True, exist_ok=True)
        # a partial archive must never sit under the cache key
        tmp = cached.with_name(cached.name + ".tmp")
        try:
            create_tar_xz(rootfs_dir, tmp, preserve_metadata=True)
        except BaseException:
            tmp.unlink(missing_ok=True)
            raise
        tmp.replace(cached)
        return cached
