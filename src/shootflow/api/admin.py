"""Admin API endpoints with simple token auth."""

from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi import APIRouter, Depends, Header, HTTPException, Request, status

if TYPE_CHECKING:
    from shootflow.containers import AppContainer

router = APIRouter(prefix="/admin", tags=["admin"])


def _get_admin_token(request: Request) -> str:
    container: AppContainer = request.app.state.container
    return container.settings.admin_token


async def require_admin(
    x_admin_token: str | None = Header(default=None),
    admin_token: str = Depends(_get_admin_token),
) -> None:
    """Ensure requests include a valid admin token."""
    if not x_admin_token or x_admin_token != admin_token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED)


@router.get("/health", dependencies=[Depends(require_admin)])
async def admin_health(request: Request) -> dict[str, object]:
    """Report collection size, pending writes and scheduler state."""
    container: AppContainer = request.app.state.container
    return {
        "status": "ok",
        "requests": len(container.store),
        "unsynced": sorted(container.gateway.unsynced_ids),
        "scheduler_running": container.sweep_scheduler.running,
    }


@router.post("/sweeps/completion", dependencies=[Depends(require_admin)])
async def run_completion_sweep(request: Request) -> dict[str, object]:
    """Run the completion sweep now."""
    container: AppContainer = request.app.state.container
    return {"completed": await container.sweep_service.run_completion_sweep()}


@router.post("/sweeps/reminders", dependencies=[Depends(require_admin)])
async def run_reminder_sweep(request: Request) -> dict[str, object]:
    """Run the invoice reminder sweep now."""
    container: AppContainer = request.app.state.container
    return {"reminded": await container.sweep_service.run_reminder_sweep()}


@router.post("/sync/retry", dependencies=[Depends(require_admin)])
async def retry_sync(request: Request) -> dict[str, object]:
    """Retry durable writes that previously failed."""
    container: AppContainer = request.app.state.container
    outcomes = container.gateway.retry_unsynced()
    return {
        "retried": [outcome.request.id for outcome in outcomes],
        "unsynced": sorted(container.gateway.unsynced_ids),
    }
