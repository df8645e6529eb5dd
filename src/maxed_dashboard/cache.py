# Maxed Dashboard - Marketing analytics dashboard core
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Local cache of the resolved settings of the active account.

The cache is an ordinary object: the application builds one, hands it to
the sync client and to whatever reads settings, and resets it when the
active account changes. Its lifecycle is::

    UNINITIALIZED -> LOADING -> READY | ERROR

- begin_loading() starts a fetch (resetting the tree first if the
  account changed),
- load() stores the fetched tree (READY),
- fail() records a fetch error (ERROR); the tree is left as it was,
- set() applies an optimistic write into the tree,
- replace() swaps in the server's resolved tree after an update (READY).

Trees passed in are deep-copied, so callers never share nested nodes with
the cache.

Reads never block: outside READY, get() returns the caller's default.
All access is expected from a single thread, so nothing is locked.
"""

import copy
from collections.abc import Mapping
from enum import Enum
from typing import Any, Optional, Union

from .logging import get_logger
from .paths import get_by_path, set_by_path
from .settings import SettingPath

logger = get_logger(__name__)

PathLike = Union[str, SettingPath]


class CacheStatus(str, Enum):
    UNINITIALIZED = "uninitialized"
    LOADING = "loading"
    READY = "ready"
    ERROR = "error"


def _path_str(path: PathLike) -> str:
    return path.path if isinstance(path, SettingPath) else path


class SettingsCache:
    """Resolved settings tree of one account, plus sync bookkeeping."""

    def __init__(self) -> None:
        self.status = CacheStatus.UNINITIALIZED
        self.account_id: Optional[str] = None
        self.tree: Optional[dict[str, Any]] = None
        self.error: Optional[str] = None
        self.saving_path: Optional[str] = None

    def __repr__(self) -> str:
        return (
            f"SettingsCache(account_id={self.account_id!r}, "
            f"status={self.status.value!r}, saving_path={self.saving_path!r})"
        )

    @property
    def is_ready(self) -> bool:
        return self.status is CacheStatus.READY

    # -- lifecycle ---------------------------------------------------------

    def reset(self) -> None:
        """Drop everything and go back to UNINITIALIZED."""
        self.status = CacheStatus.UNINITIALIZED
        self.account_id = None
        self.tree = None
        self.error = None
        self.saving_path = None

    def switch_account(self, account_id: str) -> bool:
        """
        Make ``account_id`` the active account.

        Returns:
            True if the account changed (and the cache was reset).
        """
        if account_id == self.account_id:
            return False
        if self.account_id is not None:
            logger.debug(
                "Active account changed from %s to %s", self.account_id, account_id
            )
        self.reset()
        self.account_id = account_id
        return True

    def begin_loading(self, account_id: str) -> None:
        self.switch_account(account_id)
        self.status = CacheStatus.LOADING
        self.error = None
        logger.debug("Loading settings for account %s", account_id)

    def load(self, tree: Mapping[str, Any]) -> None:
        """Store a freshly fetched tree."""
        self.tree = self._as_tree(tree)
        self.status = CacheStatus.READY
        logger.debug("Settings ready for account %s", self.account_id)

    def fail(self, message: str) -> None:
        """Record a fetch failure; the current tree is kept."""
        self.error = message
        self.status = CacheStatus.ERROR

    def replace(
        self, tree: Mapping[str, Any], account_id: Optional[str] = None
    ) -> None:
        """Replace the whole tree with the server's resolved settings."""
        if account_id is not None and self.account_id is None:
            self.account_id = account_id
        self.tree = self._as_tree(tree)
        self.status = CacheStatus.READY

    @staticmethod
    def _as_tree(tree: Mapping[str, Any]) -> dict[str, Any]:
        if not isinstance(tree, Mapping):
            raise ValueError(
                f"Settings tree must be a mapping, got {type(tree).__name__}."
            )
        return copy.deepcopy(dict(tree))

    # -- reads and writes --------------------------------------------------

    def get(self, path: PathLike, default: Any = None) -> Any:
        """Read a setting, or ``default`` if unavailable or not READY."""
        if self.status is not CacheStatus.READY:
            return default
        return get_by_path(self.tree, _path_str(path), default)

    def set(self, path: PathLike, value: Any) -> bool:
        """
        Optimistically write a value into the cached tree.

        Typed accessors validate the value first. Without a tree (nothing
        fetched yet) the write is skipped.

        Returns:
            True if the tree was modified.
        """
        if self.tree is None:
            logger.debug(
                "No settings loaded, skipping local write to %s", _path_str(path)
            )
            return False
        if isinstance(path, SettingPath):
            path.set(self.tree, value)
        else:
            set_by_path(self.tree, path, value)
        return True

    def snapshot(self) -> Optional[dict[str, Any]]:
        """Deep copy of the current tree, or None if nothing is loaded."""
        if self.tree is None:
            return None
        return copy.deepcopy(self.tree)

    def restore(self, snapshot: Optional[dict[str, Any]]) -> None:
        """Put back a tree taken with snapshot(); the status is unchanged."""
        self.tree = None if snapshot is None else self._as_tree(snapshot)

    # -- error and in-flight bookkeeping -----------------------------------

    def record_error(self, message: Optional[str]) -> None:
        """Record (or clear, with None) an error without changing status."""
        self.error = message

    def mark_saving(self, path: PathLike) -> None:
        self.saving_path = _path_str(path)

    def clear_saving(self, path: PathLike) -> None:
        # Only clear our own marker; a later update may have replaced it.
        if self.saving_path == _path_str(path):
            self.saving_path = None

    def is_saving(self, path: Optional[PathLike] = None) -> bool:
        """True if ``path`` (or, without argument, any path) is being saved."""
        if path is None:
            return self.saving_path is not None
        return self.saving_path == _path_str(path)
