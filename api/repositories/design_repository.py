"""Repository for design operations."""

from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from models import Design, DesignStatus


class DesignRepository:
    """Repository for design CRUD operations."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def get_by_id(self, design_id: str) -> Design | None:
        result = await self.db.execute(select(Design).where(Design.id == design_id))
        return result.scalar_one_or_none()

    async def create(
        self,
        name: str,
        *,
        description: str | None = None,
        status: DesignStatus = DesignStatus.DRAFT,
        design_data: dict[str, Any] | None = None,
        settings: dict[str, Any] | None = None,
    ) -> Design:
        """Create a new design.

        Calls flush() but does NOT commit; the caller is responsible for
        transaction management.
        """
        design = Design(
            name=name,
            description=description,
            status=status,
            design_data=design_data,
            settings=settings,
        )
        self.db.add(design)
        await self.db.flush()
        return design

    async def update_content(
        self,
        design: Design,
        *,
        design_data: dict[str, Any] | None = None,
        settings: dict[str, Any] | None = None,
    ) -> Design:
        """Replace the canvas document and/or settings (whole-value JSON writes)."""
        if design_data is not None:
            design.design_data = design_data
        if settings is not None:
            design.settings = settings
        await self.db.flush()
        return design
