from __future__ import annotations

import dataclasses
import logging
import shutil

from ..build_state import BuildState
from ..cache import BaseImageCache
from ..errors import CommandError
from ..lib.lxc import lxc_download

logger = logging.getLogger(__name__)

FALLBACK_VARIANT = "default"


class FetchBaseImageStep:
    step_id = "10_fetch_base"
    title = "Fetching base image"

    def run(self, state: BuildState) -> BuildState:
        cfg = state.config
        dry_run = cfg.dry_run
        cache = BaseImageCache(cfg.cache_dir, dry_run=dry_run)

        self._reset_container_dir(state)

        if cache.has(cfg):
            if not dry_run:
                cfg.rootfs_dir.mkdir(parents=True, exist_ok=True)
            state.artifacts["base_image"] = cache.restore(cfg, cfg.rootfs_dir)
            state.cache_hit = True
            return state

        logger.info("[CACHE MISS] Downloading base image with lxc-create")
        logger.info("Attempting to download %s %s %s %s...", cfg.distribution, cfg.release, cfg.architecture, cfg.variant)
        try:
            self._download(state)
        except CommandError:
            if cfg.variant == FALLBACK_VARIANT:
                raise
            logger.warning("Variant '%s' not available, trying '%s'...", cfg.variant, FALLBACK_VARIANT)
            self._reset_container_dir(state)
            # cache entry below is keyed under the variant actually downloaded
            state.config = dataclasses.replace(cfg, variant=FALLBACK_VARIANT)
            self._download(state)

        state.artifacts["base_image"] = cache.store(state.config, state.config.rootfs_dir)
        return state

    def _download(self, state: BuildState) -> None:
        cfg = state.config
        lxc_download(
            cfg.container_name,
            dist=str(cfg.distribution),
            release=cfg.release,
            arch=cfg.architecture,
            variant=cfg.variant,
            lxc_path=cfg.lxc_path,
            dry_run=cfg.dry_run,
        )

    def _reset_container_dir(self, state: BuildState) -> None:
        d = state.config.container_dir
        if state.config.dry_run:
            logger.info("Would remove %s", str(d))
            return
        if d.exists():
            shutil.rmtree(d)
