"""FastAPI application factory."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from uuid import uuid4

from fastapi import FastAPI, HTTPException, Query, Request, status
from fastapi.responses import JSONResponse

from shootflow.api.admin import router as admin_router
from shootflow.api.schemas import (
    CancelBody,
    InvoiceBody,
    NewRequestsBody,
    PricingBody,
    RejectBody,
    ShootIn,
    VendorQuoteBody,
)
from shootflow.app_logging import configure_logging
from shootflow.containers import AppContainer
from shootflow.domain.errors import ShootRequestNotFoundError, TransitionError
from shootflow.domain.requests import ShootRequest, ShootStatus
from shootflow.services.lifecycle import LifecycleOutcome


def create_app(container: AppContainer) -> FastAPI:  # noqa: PLR0915
    """Create a FastAPI app configured with dependencies."""
    configure_logging()
    logger = logging.getLogger(__name__)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        state_container: AppContainer = app.state.container
        try:
            state_container.gateway.load()
        except Exception:
            logger.exception("Failed to load shoot requests")
        if state_container.settings.sweeps_enabled:
            state_container.sweep_scheduler.start()
        yield
        await state_container.sweep_scheduler.stop()
        await state_container.lifecycle_service.aclose()
        await state_container.close_resources()

    app = FastAPI(lifespan=lifespan)
    app.state.container = container

    app.include_router(admin_router)

    @app.exception_handler(ShootRequestNotFoundError)
    async def not_found(
        _request: Request, exc: ShootRequestNotFoundError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_404_NOT_FOUND,
            content={"detail": f"Request {exc.request_id} not found"},
        )

    @app.exception_handler(TransitionError)
    async def transition_rejected(
        _request: Request, exc: TransitionError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_409_CONFLICT,
            content={
                "detail": str(exc),
                "request_id": exc.request_id,
                "status": exc.status.value,
            },
        )

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Simple health check endpoint."""
        return {"status": "ok"}

    @app.get("/requests")
    async def list_requests(
        request: Request,
        status_filter: ShootStatus | None = Query(default=None, alias="status"),
    ) -> dict[str, object]:
        """Return every request, optionally filtered by status."""
        state_container: AppContainer = request.app.state.container
        requests = state_container.lifecycle_service.list_requests()
        if status_filter is not None:
            requests = [item for item in requests if item.status == status_filter]
        return {"requests": requests}

    @app.get("/requests/{request_id}")
    async def get_request(request_id: str, request: Request) -> dict[str, object]:
        state_container: AppContainer = request.app.state.container
        return {"request": state_container.lifecycle_service.get_request(request_id)}

    @app.get("/requests/{request_id}/group")
    async def get_group(request_id: str, request: Request) -> dict[str, object]:
        """Return the request's group with its combined quote."""
        state_container: AppContainer = request.app.state.container
        group = state_container.lifecycle_service.get_group(request_id)
        return {
            "group_id": group.group_id,
            "members": list(group.members),
            "uniform": group.is_uniform,
            "quoted_total": group.quoted_total(),
        }

    @app.post("/requests", status_code=status.HTTP_201_CREATED)
    async def create_requests(
        body: NewRequestsBody, request: Request
    ) -> dict[str, object]:
        """Accept shoots raised by the intake form."""
        state_container: AppContainer = request.app.state.container
        shoots = _new_requests(body.shoots)
        try:
            outcome = await state_container.lifecycle_service.register_requests(shoots)
        except ValueError as exc:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)
            ) from exc
        return _outcome_response(outcome)

    @app.post("/requests/{request_id}/send-to-vendor")
    async def send_to_vendor(request_id: str, request: Request) -> dict[str, object]:
        state_container: AppContainer = request.app.state.container
        outcome = await state_container.lifecycle_service.send_to_vendor(request_id)
        return _outcome_response(outcome)

    @app.post("/requests/{request_id}/vendor-quote")
    async def vendor_quote(
        request_id: str, body: VendorQuoteBody, request: Request
    ) -> dict[str, object]:
        """Record the vendor's quote."""
        state_container: AppContainer = request.app.state.container
        outcome = await state_container.lifecycle_service.vendor_submit(
            request_id, body.amount, notes=body.notes, itemized=body.itemized
        )
        return _outcome_response(outcome)

    @app.post("/requests/{request_id}/approve")
    async def approve(request_id: str, request: Request) -> dict[str, object]:
        """Approve the quote of the request and its group."""
        state_container: AppContainer = request.app.state.container
        outcome = await state_container.lifecycle_service.approve(request_id)
        return _outcome_response(outcome)

    @app.post("/requests/{request_id}/reject")
    async def reject(
        request_id: str, body: RejectBody, request: Request
    ) -> dict[str, object]:
        state_container: AppContainer = request.app.state.container
        outcome = await state_container.lifecycle_service.reject(
            request_id, body.reason
        )
        return _outcome_response(outcome)

    @app.post("/requests/{request_id}/invoice")
    async def upload_invoice(
        request_id: str, body: InvoiceBody, request: Request
    ) -> dict[str, object]:
        state_container: AppContainer = request.app.state.container
        outcome = await state_container.lifecycle_service.upload_invoice(
            request_id, body.name, raw_document=body.data
        )
        return _outcome_response(outcome)

    @app.post("/requests/{request_id}/mark-paid")
    async def mark_paid(request_id: str, request: Request) -> dict[str, object]:
        state_container: AppContainer = request.app.state.container
        outcome = await state_container.lifecycle_service.mark_paid(request_id)
        return _outcome_response(outcome)

    @app.post("/requests/{request_id}/cancel")
    async def cancel(
        request_id: str, body: CancelBody, request: Request
    ) -> dict[str, object]:
        state_container: AppContainer = request.app.state.container
        outcome = state_container.lifecycle_service.cancel(request_id, body.reason)
        return _outcome_response(outcome)

    @app.put("/requests/{request_id}/pricing")
    async def correct_pricing(
        request_id: str, body: PricingBody, request: Request
    ) -> dict[str, object]:
        """Apply an admin correction to equipment pricing."""
        state_container: AppContainer = request.app.state.container
        outcome = state_container.lifecycle_service.correct_pricing(
            request_id,
            [line.to_domain() for line in body.equipment],
            amount=body.amount,
            editor=body.editor,
        )
        return _outcome_response(outcome)

    return app


def _new_requests(shoots: list[ShootIn]) -> list[ShootRequest]:
    created_at = datetime.now(tz=UTC)
    group_id = uuid4().hex if len(shoots) > 1 else None
    return [
        ShootRequest(
            id=shoot.id or uuid4().hex,
            name=shoot.name,
            date=shoot.date,
            status=ShootStatus.NEW_REQUEST,
            requestor=shoot.requestor.to_domain(),
            equipment=[line.to_domain() for line in shoot.equipment],
            duration=shoot.duration,
            location=shoot.location,
            approval_email=shoot.approval_email,
            group_id=group_id,
            group_index=index if group_id else None,
            group_size=len(shoots) if group_id else None,
            created_at=created_at,
            shoot_date=shoot.shoot_date,
        )
        for index, shoot in enumerate(shoots, start=1)
    ]


def _outcome_response(outcome: LifecycleOutcome) -> dict[str, object]:
    response: dict[str, object] = {
        "requests": outcome.requests,
        "consistent": outcome.consistent,
        "warnings": outcome.warnings,
    }
    if outcome.notification is not None:
        response["notified"] = outcome.notification.ok
    return response
