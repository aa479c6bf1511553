# app/schemas/context.py
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

CompanyRole = Literal["owner", "admin", "member"]


class Principal(BaseModel):
    """Authenticated identity as supplied by the identity provider."""

    model_config = ConfigDict(frozen=True)

    id: str
    email: str


class ActiveContext(BaseModel):
    """The single company (and role) a request is scoped to."""

    model_config = ConfigDict(frozen=True)

    company_id: int
    role: CompanyRole

    @property
    def is_admin(self) -> bool:
        return self.role in ("owner", "admin")


class CompanyChoice(BaseModel):
    company_id: int
    company_name: str
    role: CompanyRole


class SelectCompanyIn(BaseModel):
    company_id: int = Field(ge=1)


class SelectCompanyOut(BaseModel):
    company_id: int
    role: CompanyRole


class ContextOut(BaseModel):
    context: Optional[ActiveContext] = None
    needs_selection: bool = False
    companies: List[CompanyChoice] = []
