from __future__ import annotations

import posixpath

from .config import RunConfig, normalize_prefix


def derive_target_key(key: str, extension: str = ".webp") -> str:
    """Swap the last extension of *key* for *extension*.

    ``img/a.png`` becomes ``img/a.webp`` and ``img/b.tar.gz`` becomes
    ``img/b.tar.webp``. Dots in directory names are left alone.
    """

    stem, _ = posixpath.splitext(key)
    return stem + extension


def has_target_extension(key: str, extension: str = ".webp") -> bool:
    return key.lower().endswith(extension.lower())


def should_process(key: str, config: RunConfig) -> bool:
    if has_target_extension(key, config.target.extension):
        return False
    if config.include_prefix and not key.startswith(normalize_prefix(config.include_prefix)):
        return False
    if any(key.startswith(normalize_prefix(prefix)) for prefix in config.exclude_prefixes):
        return False
    return True


__all__ = ["derive_target_key", "has_target_extension", "should_process"]
