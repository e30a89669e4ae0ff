"""Snipply Backend — Admin Schemas"""

from pydantic import Field

from snipply.schemas.common import CamelModel


class AdminStats(CamelModel):
    """Site totals returned by GET /api/admin/stats."""
    total_users: int = Field(ge=0)
    total_snippets: int = Field(ge=0)
    total_admins: int = Field(ge=0)
    public_snippets: int = Field(ge=0)
    private_snippets: int = Field(ge=0)


class AdminSetupResponse(CamelModel):
    message: str
    user: dict = Field(description="id, username and rank of the created account")
