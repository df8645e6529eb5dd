import pytest

from maxed_dashboard.cache import CacheStatus, SettingsCache
from maxed_dashboard.settings import PRIMARY_GOAL, default_account_settings


def _ready_cache(account_id: str = "acc-1") -> SettingsCache:
    cache = SettingsCache()
    cache.begin_loading(account_id)
    cache.load(default_account_settings())
    return cache


def test_new_cache_is_uninitialized() -> None:
    """A fresh cache has no account and serves caller defaults."""
    cache = SettingsCache()

    assert cache.status is CacheStatus.UNINITIALIZED
    assert cache.tree is None
    assert cache.account_id is None
    assert cache.get("global.primaryGoal", "fallback") == "fallback"


def test_loading_then_ready() -> None:
    """begin_loading() then load() makes the tree readable."""
    cache = SettingsCache()
    cache.begin_loading("acc-1")

    assert cache.status is CacheStatus.LOADING
    assert cache.account_id == "acc-1"

    cache.load(default_account_settings())

    assert cache.is_ready
    assert cache.get("global.currencyCode") == "USD"


@pytest.mark.parametrize("path", ["global.primaryGoal", "sections.x.y", "anything"])
def test_get_while_loading_returns_default(path: str) -> None:
    """Reads during a fetch fall back to the caller's default."""
    cache = _ready_cache()
    cache.begin_loading("acc-1")

    assert cache.status is CacheStatus.LOADING
    assert cache.get(path, "default") == "default"


def test_fetch_failure_keeps_tree_and_returns_defaults() -> None:
    """After a failed fetch the old tree is kept but reads use defaults."""
    cache = _ready_cache()
    cache.begin_loading("acc-1")
    cache.fail("Failed to fetch settings: boom")

    assert cache.status is CacheStatus.ERROR
    assert cache.error == "Failed to fetch settings: boom"
    assert cache.tree is not None
    assert cache.get("global.currencyCode", "EUR") == "EUR"


def test_optimistic_write_is_visible_immediately() -> None:
    """A local write is readable right away, without a server round trip."""
    cache = _ready_cache()

    assert cache.set("sections.overviews.google.pinnedMetrics", ["spend", "roas"])

    assert cache.status is CacheStatus.READY
    assert cache.get("sections.overviews.google.pinnedMetrics", []) == ["spend", "roas"]


def test_write_through_typed_setting_is_validated() -> None:
    """Typed settings refuse invalid values and leave the tree unchanged."""
    cache = _ready_cache()

    cache.set(PRIMARY_GOAL, "leads")
    assert cache.get(PRIMARY_GOAL) == "leads"

    with pytest.raises(ValueError):
        cache.set(PRIMARY_GOAL, "profit")
    assert cache.get(PRIMARY_GOAL) == "leads"


def test_write_without_tree_is_skipped() -> None:
    """Writing before anything is fetched does not create a tree."""
    cache = SettingsCache()

    assert cache.set("global.primaryGoal", "leads") is False
    assert cache.tree is None


def test_replace_swaps_whole_tree() -> None:
    """Reconciliation replaces the tree, dropping local-only writes."""
    cache = _ready_cache()
    cache.set("global.hiddenMetrics", ["cpm"])

    server_tree = default_account_settings()
    server_tree["global"]["primaryGoal"] = "awareness"
    cache.replace(server_tree)

    assert cache.get("global.hiddenMetrics") == []
    assert cache.get("global.primaryGoal") == "awareness"
    assert cache.is_ready


def test_replace_rejects_non_mapping() -> None:
    cache = _ready_cache()

    with pytest.raises(ValueError):
        cache.replace(["not", "a", "tree"])  # type: ignore[arg-type]


def test_account_switch_resets_tree() -> None:
    """Switching account clears the tree and the previous error."""
    cache = _ready_cache("acc-1")
    cache.record_error("stale error")

    changed = cache.switch_account("acc-2")

    assert changed
    assert cache.account_id == "acc-2"
    assert cache.tree is None
    assert cache.error is None
    assert cache.status is CacheStatus.UNINITIALIZED
    assert cache.switch_account("acc-2") is False


def test_begin_loading_same_account_keeps_tree() -> None:
    cache = _ready_cache("acc-1")
    cache.begin_loading("acc-1")

    assert cache.tree is not None


def test_reset() -> None:
    cache = _ready_cache()
    cache.mark_saving("global.primaryGoal")
    cache.reset()

    assert cache.status is CacheStatus.UNINITIALIZED
    assert cache.tree is None
    assert cache.account_id is None
    assert not cache.is_saving()


def test_saving_path_tracking() -> None:
    """Only the path currently being saved is reported as saving."""
    cache = _ready_cache()
    assert not cache.is_saving()

    cache.mark_saving("global.primaryGoal")
    assert cache.is_saving()
    assert cache.is_saving("global.primaryGoal")
    assert cache.is_saving(PRIMARY_GOAL)
    assert not cache.is_saving("global.currencyCode")

    # A newer update owns the marker; the older one must not clear it.
    cache.mark_saving("global.currencyCode")
    cache.clear_saving("global.primaryGoal")
    assert cache.is_saving("global.currencyCode")

    cache.clear_saving("global.currencyCode")
    assert not cache.is_saving()


def test_record_error_does_not_change_status() -> None:
    cache = _ready_cache()
    cache.record_error("Failed to update setting")

    assert cache.is_ready
    assert cache.error == "Failed to update setting"
    cache.record_error(None)
    assert cache.error is None


def test_load_keeps_a_private_copy() -> None:
    """Mutating the tree given to load() does not reach the cache."""
    tree = default_account_settings()
    cache = SettingsCache()
    cache.begin_loading("acc-1")
    cache.load(tree)

    tree["global"]["hiddenMetrics"].append("cpm")

    assert cache.get("global.hiddenMetrics") == []


def test_snapshot_and_restore() -> None:
    """restore() brings back the exact tree, including keys that were absent."""
    cache = _ready_cache()
    snapshot = cache.snapshot()

    cache.set("sections.dashboard.layout.spend", "hero")
    cache.set("global.currencyCode.nested", "EUR")
    cache.restore(snapshot)

    assert cache.tree == default_account_settings()
    assert cache.get("sections.dashboard.layout") == {}
    assert cache.get("global.currencyCode") == "USD"
    assert cache.is_ready


def test_snapshot_without_tree() -> None:
    cache = SettingsCache()

    assert cache.snapshot() is None
    cache.restore(None)
    assert cache.tree is None
