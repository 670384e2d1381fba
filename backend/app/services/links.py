"""Shared pieces for linking CRM entities.

A link request names its target in one of two ways: an existing entity id,
or the fields of a new entity that is created and linked in the same
transaction.
"""

import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, model_validator
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.api.errors import NotFoundError
from backend.app.db.models import Comm, Company, CompanyDomain, CompanyWebsite, Person
from backend.app.models.common import CamelModel, CommType
from backend.app.services.comm_validation import normalize_comm
from backend.app.services.company_validation import CompanyDomainIn, CompanyWebsiteIn

FieldsT = TypeVar("FieldsT")


@dataclass(frozen=True)
class LinkExisting:
    id: uuid.UUID


@dataclass(frozen=True)
class CreateAndLink(Generic[FieldsT]):
    fields: FieldsT


LinkTarget = LinkExisting | CreateAndLink


class PersonFields(BaseModel):
    first_name: str | None = None
    last_name: str | None = None
    bio: str | None = None


class CompanyFields(BaseModel):
    name: str
    logo_url: str | None = None
    description: str | None = None
    domains: list[CompanyDomainIn] = []
    websites: list[CompanyWebsiteIn] = []


class CommFields(BaseModel):
    type: CommType
    value: Any


class CommOut(CamelModel):
    id: uuid.UUID
    type: CommType
    value: dict[str, Any]
    canonical_value: str
    created_at: datetime

    @classmethod
    def from_row(cls, comm: Comm) -> "CommOut":
        return cls(
            id=comm.comm_id,
            type=CommType(comm.type),
            value=comm.value,
            canonical_value=comm.canonical_value,
            created_at=comm.created_at,
        )


async def get_person(session: AsyncSession, tenant_id: uuid.UUID, person_id: uuid.UUID) -> Person:
    result = await session.execute(
        select(Person).where(Person.person_id == person_id, Person.tenant_id == tenant_id)
    )
    person = result.scalar_one_or_none()
    if person is None:
        raise NotFoundError("Person not found")
    return person


async def get_company(
    session: AsyncSession, tenant_id: uuid.UUID, company_id: uuid.UUID
) -> Company:
    result = await session.execute(
        select(Company).where(Company.company_id == company_id, Company.tenant_id == tenant_id)
    )
    company = result.scalar_one_or_none()
    if company is None:
        raise NotFoundError("Company not found")
    return company


async def get_comm(session: AsyncSession, tenant_id: uuid.UUID, comm_id: uuid.UUID) -> Comm:
    result = await session.execute(
        select(Comm).where(Comm.comm_id == comm_id, Comm.tenant_id == tenant_id)
    )
    comm = result.scalar_one_or_none()
    if comm is None:
        raise NotFoundError("Communication not found")
    return comm


async def find_or_create_comm(
    session: AsyncSession, tenant_id: uuid.UUID, fields: CommFields
) -> Comm:
    """Return the tenant's comm with the same canonical value, creating it if absent.

    Raises:
        ValidationError: If the value does not fit the comm type
    """
    value, canonical = normalize_comm(fields.type, fields.value)

    result = await session.execute(
        select(Comm).where(
            Comm.tenant_id == tenant_id,
            Comm.type == fields.type.value,
            Comm.canonical_value == canonical,
        )
    )
    comm = result.scalars().first()
    if comm is None:
        comm = Comm(
            tenant_id=tenant_id, type=fields.type.value, value=value, canonical_value=canonical
        )
        session.add(comm)
        await session.flush()
    return comm


def new_company(tenant_id: uuid.UUID, fields: CompanyFields) -> Company:
    """Build a pending company row with its domains and websites."""
    return Company(
        tenant_id=tenant_id,
        name=fields.name,
        logo_url=fields.logo_url,
        description=fields.description,
        domains=[CompanyDomain(domain=d.domain, is_primary=d.is_primary) for d in fields.domains],
        websites=[
            CompanyWebsite(url=w.url, type=w.type, is_primary=w.is_primary) for w in fields.websites
        ],
    )


class CommLinkInput(CamelModel):
    """Link by commId, or find-or-create a comm from type and value.

    commId takes precedence when both shapes are sent.
    """

    comm_id: uuid.UUID | None = None
    type: CommType | None = None
    value: Any = None

    @model_validator(mode="after")
    def _one_shape(self) -> "CommLinkInput":
        if self.comm_id is None and (self.type is None or self.value in (None, "")):
            raise ValueError("Either commId or comm type and value must be provided")
        return self

    def target(self) -> LinkTarget:
        if self.comm_id is not None:
            return LinkExisting(self.comm_id)
        return CreateAndLink(CommFields(type=self.type, value=self.value))
