"""Design business logic.

Designs are edited elsewhere; this module only covers what the certificate
pipeline needs from them: creation, lookup, content replacement, variable
detection and the read-only snapshot handed to the render core.
"""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from models import Design
from rendering import DesignSnapshot, detect_design_variables
from repositories.design_repository import DesignRepository
from schemas import DesignCreate, DesignUpdate

logger = logging.getLogger(__name__)


class DesignNotFoundError(Exception):
    """Raised when a design does not exist."""

    def __init__(self, design_id: str) -> None:
        self.design_id = design_id
        super().__init__(f"Design not found: {design_id}")


async def create_design(db: AsyncSession, data: DesignCreate) -> Design:
    design = await DesignRepository(db).create(
        data.name,
        description=data.description,
        status=data.status,
        design_data=data.design_data,
        settings=data.settings,
    )
    logger.info("design.created", extra={"design_id": design.id})
    return design


async def get_design(db: AsyncSession, design_id: str) -> Design:
    """Raises DesignNotFoundError when the design does not exist."""
    design = await DesignRepository(db).get_by_id(design_id)
    if design is None:
        raise DesignNotFoundError(design_id)
    return design


async def update_design_data(
    db: AsyncSession, design_id: str, data: DesignUpdate
) -> Design:
    """Replace a design's document and/or settings.

    Existing certificate payloads are not touched; they change only when
    explicitly regenerated.
    """
    repo = DesignRepository(db)
    design = await repo.get_by_id(design_id)
    if design is None:
        raise DesignNotFoundError(design_id)

    design = await repo.update_content(
        design, design_data=data.design_data, settings=data.settings
    )
    logger.info("design.updated", extra={"design_id": design.id})
    return design


async def get_design_variables(db: AsyncSession, design_id: str) -> list[str]:
    design = await get_design(db, design_id)
    return detect_design_variables(design.design_data)


def to_snapshot(design: Design) -> DesignSnapshot:
    """Freeze the parts of a design the render core reads."""
    return DesignSnapshot.model_validate(design)
