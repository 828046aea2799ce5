"""Dashboard endpoint."""

from fastapi import APIRouter, Depends
from rideway.routes.deps import get_current_user_id
from rideway.schemas import MotorcycleResponse
from rideway.services.database import get_db
from rideway.services.maintenance_service import build_dashboard
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter()


@router.get("/dashboard")
async def dashboard(
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Motorcycles, top upcoming maintenance and the overdue count."""
    data = await build_dashboard(db, user_id)
    data["motorcycles"] = [
        MotorcycleResponse.model_validate(m).model_dump() for m in data["motorcycles"]
    ]
    return data
