"""Tests for the lifecycle state machine."""

import asyncio

import pytest

from shootflow.domain.errors import ShootRequestNotFoundError, TransitionError
from shootflow.domain.requests import (
    EquipmentLine,
    InvoiceRecord,
    ShootStatus,
    VendorQuote,
)
from tests.conftest import make_request, seed


def test_request_moves_through_the_whole_lifecycle(container, email_client) -> None:
    lifecycle = container.lifecycle_service

    async def scenario() -> None:
        await lifecycle.register_requests([make_request("r1")])
        await lifecycle.send_to_vendor("r1")
        assert lifecycle.get_request("r1").status == ShootStatus.WITH_VENDOR

        await lifecycle.vendor_submit("r1", 5000, "ok")
        await lifecycle.aggregator.flush_now()
        quoted = lifecycle.get_request("r1")
        assert quoted.status == ShootStatus.WITH_SWATI
        assert quoted.vendor_quote == VendorQuote(amount=5000, notes="ok")

        await lifecycle.approve("r1")
        approved = lifecycle.get_request("r1")
        assert approved.status == ShootStatus.READY_FOR_SHOOT
        assert approved.approved_amount == 5000

        assert await container.sweep_service.run_completion_sweep() == ["r1"]
        assert lifecycle.get_request("r1").status == ShootStatus.PENDING_INVOICE

        await lifecycle.upload_invoice("r1", "invoice-r1.pdf")
        assert lifecycle.get_request("r1").invoice == InvoiceRecord("invoice-r1.pdf")

        await lifecycle.mark_paid("r1")

    asyncio.run(scenario())

    final = lifecycle.get_request("r1")
    assert final.status == ShootStatus.COMPLETED
    assert final.paid is True
    assert [activity.action for activity in final.activities] == [
        "Request Created",
        "Sent to Vendor",
        "Quote Submitted",
        "Quote Approved",
        "Shoot Completed",
        "Invoice Uploaded",
        "Payment Completed",
    ]
    assert [message["to"] for message in email_client.sent] == [
        "approver@studio.test",
        "priya@studio.test",
        "priya@studio.test",
        "priya@studio.test",
        "finance@studio.test",
        "vendor@rentals.test",
    ]


def test_every_message_of_a_request_shares_one_thread(container, email_client) -> None:
    lifecycle = container.lifecycle_service

    async def scenario() -> None:
        await lifecycle.register_requests([make_request("r1")])
        await lifecycle.send_to_vendor("r1")
        await lifecycle.vendor_submit("r1", 5000)
        await lifecycle.aggregator.flush_now()

    asyncio.run(scenario())

    assert lifecycle.get_request("r1").email_thread_id == "msg-1@shootflow.test"
    assert [message["thread_id"] for message in email_client.sent] == [
        None,
        "msg-1@shootflow.test",
        "msg-1@shootflow.test",
    ]
    assert {message["subject"] for message in email_client.sent} == {
        "ShootFlow: Shoot r1"
    }


def test_unknown_request_is_not_found(container) -> None:
    with pytest.raises(ShootRequestNotFoundError):
        asyncio.run(container.lifecycle_service.send_to_vendor("missing"))


def test_approve_without_quote_leaves_request_unchanged(
    container, email_client
) -> None:
    request = make_request("r1", status=ShootStatus.WITH_SWATI)
    seed(container, request)

    with pytest.raises(TransitionError):
        asyncio.run(container.lifecycle_service.approve("r1"))

    assert container.store.get("r1") == request
    assert email_client.sent == []


def test_approve_from_new_request_is_rejected(container) -> None:
    seed(container, make_request("r1"))

    with pytest.raises(TransitionError) as excinfo:
        asyncio.run(container.lifecycle_service.approve("r1"))

    assert excinfo.value.status == ShootStatus.NEW_REQUEST


def test_mark_paid_requires_invoice(container) -> None:
    seed(container, make_request("r1", status=ShootStatus.PENDING_INVOICE))

    with pytest.raises(TransitionError):
        asyncio.run(container.lifecycle_service.mark_paid("r1"))


def test_reject_sends_request_back_to_vendor(container, email_client) -> None:
    lifecycle = container.lifecycle_service
    seed(
        container,
        make_request(
            "r1", status=ShootStatus.WITH_SWATI, vendor_quote=VendorQuote(9000)
        ),
    )

    async def scenario() -> None:
        await lifecycle.reject("r1", "Too expensive")
        rejected = lifecycle.get_request("r1")
        assert rejected.status == ShootStatus.WITH_VENDOR
        assert rejected.rejection_reason == "Too expensive"
        assert rejected.vendor_quote is None

        await lifecycle.vendor_submit("r1", 7000, "revised")
        await lifecycle.aggregator.flush_now()

    asyncio.run(scenario())

    resubmitted = lifecycle.get_request("r1")
    assert resubmitted.status == ShootStatus.WITH_SWATI
    assert resubmitted.rejection_reason is None
    assert resubmitted.vendor_quote == VendorQuote(amount=7000, notes="revised")
    assert "Too expensive" in email_client.sent[0]["html"]


def test_reject_requires_a_reason(container) -> None:
    seed(
        container,
        make_request(
            "r1", status=ShootStatus.WITH_SWATI, vendor_quote=VendorQuote(9000)
        ),
    )

    with pytest.raises(TransitionError):
        asyncio.run(container.lifecycle_service.reject("r1", "   "))

    assert container.store.require("r1").status == ShootStatus.WITH_SWATI


def test_vendor_submit_applies_itemized_rates(container) -> None:
    seed(container, make_request("r1", status=ShootStatus.WITH_VENDOR))

    async def scenario() -> None:
        await container.lifecycle_service.vendor_submit(
            "r1", 5200, itemized={"r1-cam": 1800}
        )
        await container.lifecycle_service.aggregator.flush_now()

    asyncio.run(scenario())

    request = container.store.require("r1")
    rates = {line.id: line.vendor_rate for line in request.equipment}
    assert rates == {"r1-cam": 1800, "r1-light": None}
    assert request.vendor_total() == 2 * 1800 + 1500


def test_cancel_is_silent_and_terminal(container, email_client) -> None:
    lifecycle = container.lifecycle_service
    seed(container, make_request("r1", status=ShootStatus.WITH_VENDOR))

    outcome = lifecycle.cancel("r1", "Shoot postponed")

    cancelled = outcome.request
    assert cancelled.status == ShootStatus.CANCELLED
    assert cancelled.cancellation_reason == "Shoot postponed"
    assert cancelled.activities[-1].notification_triggered is False
    assert email_client.sent == []
    with pytest.raises(TransitionError):
        asyncio.run(lifecycle.send_to_vendor("r1"))
    with pytest.raises(TransitionError):
        lifecycle.cancel("r1", "again")


def test_cancel_clears_rejection_reason(container) -> None:
    seed(
        container,
        make_request(
            "r1", status=ShootStatus.WITH_VENDOR, rejection_reason="Too expensive"
        ),
    )

    cancelled = container.lifecycle_service.cancel("r1", "").request

    assert cancelled.rejection_reason is None
    assert cancelled.cancellation_reason == "No reason provided"


def test_each_status_change_appends_one_activity(container) -> None:
    lifecycle = container.lifecycle_service
    seed(container, make_request("r1"))

    asyncio.run(lifecycle.send_to_vendor("r1"))

    request = lifecycle.get_request("r1")
    assert len(request.activities) == 1
    assert request.activities[0].action == "Sent to Vendor"
    assert request.activities[0].notification_triggered is True


def test_correct_pricing_updates_quote_and_approved_amount(container) -> None:
    seed(
        container,
        make_request(
            "r1",
            status=ShootStatus.READY_FOR_SHOOT,
            vendor_quote=VendorQuote(5000, "ok"),
            approved=True,
            approved_amount=5000,
        ),
    )
    equipment = [EquipmentLine(id="r1-cam", name="FX3 Camera", expected_rate=3500)]

    outcome = container.lifecycle_service.correct_pricing(
        "r1", equipment, amount=7000, editor="Swati"
    )

    request = outcome.request
    assert request.status == ShootStatus.READY_FOR_SHOOT
    assert request.equipment == equipment
    assert request.vendor_quote == VendorQuote(7000, "ok")
    assert request.approved_amount == 7000
    assert request.activities[-1].action == "Equipment Updated"
    assert "Swati" in request.activities[-1].description


def test_correct_pricing_before_approval_leaves_approved_amount_unset(
    container,
) -> None:
    seed(
        container,
        make_request(
            "r1", status=ShootStatus.WITH_SWATI, vendor_quote=VendorQuote(5000)
        ),
    )

    outcome = container.lifecycle_service.correct_pricing("r1", [], amount=4500)

    assert outcome.request.vendor_quote == VendorQuote(4500)
    assert outcome.request.approved_amount is None


def test_persistence_failure_keeps_local_change(container, repository) -> None:
    seed(container, make_request("r1"))
    repository.fail_all = True

    outcome = asyncio.run(container.lifecycle_service.send_to_vendor("r1"))

    assert outcome.consistent is False
    assert outcome.warnings
    assert container.store.require("r1").status == ShootStatus.WITH_VENDOR
    assert container.gateway.unsynced_ids == {"r1"}

    repository.fail_all = False
    retried = container.gateway.retry_unsynced()

    assert [item.persisted for item in retried] == [True]
    assert repository.rows["r1"].status == ShootStatus.WITH_VENDOR
    assert container.gateway.unsynced_ids == set()


def test_delivery_failure_does_not_block_transition(container, email_client) -> None:
    lifecycle = container.lifecycle_service
    email_client.fail = True

    outcome = asyncio.run(lifecycle.register_requests([make_request("r1")]))

    assert outcome.notification is not None
    assert outcome.notification.ok is False
    assert any("Notification not delivered" in item for item in outcome.warnings)
    assert lifecycle.get_request("r1").email_thread_id is None

    email_client.fail = False
    asyncio.run(lifecycle.send_to_vendor("r1"))

    assert email_client.sent[0]["thread_id"] is None
    assert lifecycle.get_request("r1").email_thread_id == "msg-1@shootflow.test"


def test_register_rejects_duplicate_ids(container) -> None:
    seed(container, make_request("r1"))

    with pytest.raises(ValueError, match="already exists"):
        asyncio.run(container.lifecycle_service.register_requests([make_request("r1")]))
