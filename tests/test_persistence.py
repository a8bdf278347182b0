"""Tests for the local-first persistence gateway and store."""

from dataclasses import replace

from shootflow.domain.requests import ShootStatus
from shootflow.services.persistence import PersistenceGateway
from shootflow.services.store import ShootRequestStore
from tests.conftest import InMemoryShootRequestRepository, make_group, make_request


def test_load_replaces_the_collection() -> None:
    repository = InMemoryShootRequestRepository()
    repository.rows = {request.id: request for request in make_group(size=2)}
    store = ShootRequestStore()
    store.put(make_request("stale"))
    gateway = PersistenceGateway(store=store, repository=repository)

    assert gateway.load() == 2
    assert "stale" not in store
    assert store.group_member_ids("g1") == ["g1-1", "g1-2"]


def test_apply_reports_failure_and_keeps_change() -> None:
    repository = InMemoryShootRequestRepository(failing_ids={"r1"})
    store = ShootRequestStore()
    gateway = PersistenceGateway(store=store, repository=repository)

    outcome = gateway.apply(make_request("r1"))

    assert outcome.persisted is False
    assert outcome.error == "database unavailable"
    assert "saved locally but not persisted" in (outcome.warning or "")
    assert "r1" in store
    assert gateway.unsynced_ids == {"r1"}


def test_retry_writes_latest_version() -> None:
    repository = InMemoryShootRequestRepository(fail_all=True)
    store = ShootRequestStore()
    gateway = PersistenceGateway(store=store, repository=repository)
    request = make_request("r1")
    gateway.apply(request)
    gateway.apply(replace(request, status=ShootStatus.WITH_VENDOR))

    repository.fail_all = False
    outcomes = gateway.retry_unsynced()

    assert [outcome.persisted for outcome in outcomes] == [True]
    assert repository.rows["r1"].status == ShootStatus.WITH_VENDOR
    assert repository.saves == ["r1"]


def test_store_filters_by_status() -> None:
    store = ShootRequestStore()
    store.replace_all(
        [
            make_request("a", status=ShootStatus.WITH_VENDOR),
            make_request("b"),
            make_request("c", status=ShootStatus.WITH_VENDOR),
        ]
    )

    assert [request.id for request in store.with_status(ShootStatus.WITH_VENDOR)] == [
        "a",
        "c",
    ]
    assert len(store) == 3
