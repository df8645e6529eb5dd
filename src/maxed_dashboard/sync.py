# Maxed Dashboard - Marketing analytics dashboard core
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
HTTP client for the account settings service.

The service exposes one resource per account::

    GET   /api/accounts/{account_id}/settings  -> resolved settings (JSON)
    PATCH /api/accounts/{account_id}/settings  -> resolved settings (JSON)

The PATCH body is a sparse override tree holding only the changed path;
the server merges it into the stored overrides (JSON Merge Patch) and
answers with the full resolved tree, which then replaces the local cache.

Updates are optimistic: the cache is written before the request is sent,
so reads made while the request is in flight already see the new value.
On failure the error is recorded on the cache and raised; the optimistic
value stays in place unless ``rollback_on_failure`` is configured, in
which case the tree is put back exactly as it was before the write. There
is no retry and no de-duplication: when updates overlap, the last
response to arrive wins.
"""

from typing import Any, Optional
from urllib.parse import quote

import requests

from .cache import PathLike, SettingsCache
from .config import ClientConfig
from .logging import format_exception_summary, get_logger
from .paths import build_patch
from .settings import lookup_setting, validate_patch

logger = get_logger(__name__)


class SettingsSyncError(RuntimeError):
    """Base class for failures talking to the settings service."""

    def __init__(self, message: str, account_id: str, path: Optional[str] = None):
        super().__init__(message)
        self.account_id = account_id
        self.path = path


class SettingsFetchError(SettingsSyncError):
    """Resolved settings could not be fetched."""


class SettingsUpdateError(SettingsSyncError):
    """A settings patch was not accepted."""


class SettingsSyncClient:
    """
    Keeps a SettingsCache in sync with the remote settings service.

    Args:
        cache: Cache to populate and update.
        config: Client configuration (base URL, timeout, rollback policy).
        session: Optional requests session, e.g. one carrying auth headers.
    """

    SETTINGS_ENDPOINT = "/api/accounts/{account_id}/settings"

    def __init__(
        self,
        cache: SettingsCache,
        config: Optional[ClientConfig] = None,
        session: Optional[requests.Session] = None,
    ):
        self.cache = cache
        self.config = config or ClientConfig()
        self.session = session or requests.Session()

    def __enter__(self) -> "SettingsSyncClient":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def close(self) -> None:
        self.session.close()

    def settings_url(self, account_id: str) -> str:
        endpoint = self.SETTINGS_ENDPOINT.format(
            account_id=quote(str(account_id), safe="")
        )
        return f"{self.config.base_url}{endpoint}"

    def _request(
        self,
        method: str,
        account_id: str,
        patch: Optional[dict[str, Any]] = None,
    ) -> dict[str, Any]:
        response = self.session.request(
            method,
            self.settings_url(account_id),
            json=patch,
            headers={"Accept": "application/json"},
            timeout=self.config.timeout,
        )
        response.raise_for_status()

        data = response.json()
        if not isinstance(data, dict):
            raise ValueError(
                "Settings service returned "
                f"{type(data).__name__}, expected a JSON object."
            )
        return data

    def fetch_all(self, account_id: str) -> dict[str, Any]:
        """
        Fetch the resolved settings of an account into the cache.

        Returns:
            The resolved settings tree.

        Raises:
            ValueError: if ``account_id`` is empty.
            SettingsFetchError: on transport errors, non-2xx responses or
                a body that is not a JSON object. The cache moves to ERROR.
        """
        if not account_id:
            raise ValueError("Account ID is required")

        self.cache.begin_loading(account_id)
        try:
            tree = self._request("GET", account_id)
        except (requests.RequestException, ValueError) as exc:
            message = f"Failed to fetch settings: {format_exception_summary(exc)}"
            self.cache.fail(message)
            logger.error("Error fetching settings for account %s: %s", account_id, exc)
            raise SettingsFetchError(message, account_id) from exc

        self.cache.load(tree)
        return tree

    def update_path(
        self, account_id: str, path: PathLike, value: Any
    ) -> dict[str, Any]:
        """
        Change one setting, optimistically, then persist it.

        Steps:
            1. write ``value`` into the cache at ``path``,
            2. send a patch containing only ``path``,
            3. replace the cache with the resolved tree from the response.

        While the request runs, ``cache.saving_path`` names ``path``.

        Args:
            account_id: Account to update.
            path: Dot path or SettingPath of a known setting.
            value: New value; None reverts the setting to its default.

        Returns:
            The resolved settings tree returned by the server.

        Raises:
            ValueError: if ``account_id`` is empty or ``value`` is invalid.
            KeyError: if ``path`` is not a known setting.
            SettingsUpdateError: if the patch was not accepted.
        """
        if not account_id:
            self.cache.record_error("Account ID is required")
            raise ValueError("Account ID is required")
        if self.cache.account_id not in (None, account_id):
            raise ValueError(
                f"Settings cache holds account {self.cache.account_id!r}, "
                f"not {account_id!r}; fetch it first."
            )

        setting = lookup_setting(path)
        setting.validate(value)
        patch = build_patch(setting.path, value)
        validate_patch(patch)

        previous = self.cache.snapshot() if self.config.rollback_on_failure else None

        self.cache.mark_saving(setting.path)
        self.cache.record_error(None)
        try:
            self.cache.set(setting.path, value)
            logger.debug(
                "Submitting settings patch for account %s: %s", account_id, patch
            )

            try:
                resolved = self._request("PATCH", account_id, patch)
            except (requests.RequestException, ValueError) as exc:
                message = (
                    f"Failed to update setting at {setting.path}: "
                    f"{format_exception_summary(exc)}"
                )
                self.cache.record_error(message)
                logger.error(
                    "Error updating setting %s for account %s: %s",
                    setting.path,
                    account_id,
                    exc,
                )
                if self.config.rollback_on_failure:
                    self.cache.restore(previous)
                    logger.info("Rolled back local value of %s", setting.path)
                raise SettingsUpdateError(message, account_id, setting.path) from exc

            self.cache.replace(resolved, account_id)
            return resolved
        finally:
            self.cache.clear_saving(setting.path)

    def reset_path(self, account_id: str, path: PathLike) -> dict[str, Any]:
        """Revert one setting to the system default."""
        return self.update_path(account_id, path, None)
