"""Repository layer for database operations.

Repositories encapsulate all database queries, keeping routes thin and focused
on HTTP handling. This separation provides:
- Single source of truth for database operations
- Easier testing (repositories can be mocked)
- Cleaner route code focused on request/response handling
- Reusable queries across multiple endpoints
"""

from repositories.campaign_repository import CampaignRepository
from repositories.certificate_repository import CertificateRepository
from repositories.design_repository import DesignRepository

__all__ = [
    "CampaignRepository",
    "CertificateRepository",
    "DesignRepository",
]
