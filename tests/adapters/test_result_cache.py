from __future__ import annotations

from dataclasses import replace
from datetime import timedelta
from pathlib import Path

from regsync.adapters.result_cache import RESULT_CACHE_KEY, ReconciliationResultCache
from regsync.domain.model import ReconciledPackage, RegistryPackageGroup
from regsync.domain.versions import SemanticVersion
from tests.helpers.registry import InMemoryCacheStore, make_local, make_manifest, make_registry


def _group() -> RegistryPackageGroup:
    registry = make_registry()
    manifest = make_manifest("com.example.tool", "1.0.0", "1.1.0-rc.1", "1.1.0")
    record = manifest.resolve()
    package = ReconciledPackage(
        name="com.example.tool",
        version=record.version,
        manifest=manifest,
        record=record,
        collision_count=2,
    )
    changed = replace(
        package,
        name="com.example.edited",
        local_path=Path("/project/Packages/com.example.edited"),
        local_version=SemanticVersion.parse("0.9.0"),
    )
    return RegistryPackageGroup(
        registry=registry.identity,
        available=(package,),
        changed=(changed,),
        installable=(make_local("sample.tool", "1.2.0"),),
    )


def test_restore_returns_saved_groups() -> None:
    store = InMemoryCacheStore()
    cache = ReconciliationResultCache(store)
    group = _group()

    cache.save([group])
    restored = cache.restore()

    assert restored == [group]
    assert restored is not None
    available = restored[0].available[0]
    assert available.collision_count == 2
    assert [str(v) for v in available.remote_versions] == ["1.0.0", "1.1.0-rc.1", "1.1.0"]
    assert restored[0].changed[0].local_version == SemanticVersion.parse("0.9.0")


def test_restore_misses_after_one_hour() -> None:
    store = InMemoryCacheStore()
    cache = ReconciliationResultCache(store)
    cache.save([_group()])

    store.advance(timedelta(hours=1, seconds=1))

    assert cache.restore() is None


def test_restore_without_saved_result_is_none() -> None:
    assert ReconciliationResultCache(InMemoryCacheStore()).restore() is None


def test_unreadable_payload_is_treated_as_miss() -> None:
    store = InMemoryCacheStore()
    store.put(RESULT_CACHE_KEY, {"groups": [{"registry_name": "x"}]})

    assert ReconciliationResultCache(store).restore() is None


def test_invalid_version_in_payload_is_treated_as_miss() -> None:
    store = InMemoryCacheStore()
    store.put(
        RESULT_CACHE_KEY,
        {
            "groups": [
                {
                    "registry_name": "x",
                    "registry_url": "https://x.example.com",
                    "installable": [{"name": "a", "version": "one", "path": "/a"}],
                }
            ]
        },
    )

    assert ReconciliationResultCache(store).restore() is None


def test_save_replaces_previous_result() -> None:
    store = InMemoryCacheStore()
    cache = ReconciliationResultCache(store)
    cache.save([_group()])

    cache.save([])

    assert cache.restore() == []
