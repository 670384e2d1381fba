"""People within a tenant, and their links to companies and comms."""

import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import delete, select

from backend.app.db.models import (
    Comm,
    CommPerson,
    Company,
    Person,
    PersonCompany,
)
from backend.app.models.common import CamelModel
from backend.app.services.base import BaseEntityService
from backend.app.services.links import (
    CommFields,
    CommOut,
    LinkExisting,
    LinkTarget,
    PersonFields,
    find_or_create_comm,
    get_comm,
    get_company,
    get_person,
    new_company,
)

UPDATABLE_FIELDS = ("first_name", "last_name", "bio")


class PersonOut(CamelModel):
    id: uuid.UUID
    first_name: str | None
    last_name: str | None
    bio: str | None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_row(cls, person: Person) -> "PersonOut":
        return cls(
            id=person.person_id,
            first_name=person.first_name,
            last_name=person.last_name,
            bio=person.bio,
            created_at=person.created_at,
            updated_at=person.updated_at,
        )


class LinkedCompany(CamelModel):
    id: uuid.UUID
    name: str
    role: str | None
    is_primary: bool


class PersonDetail(PersonOut):
    companies: list[LinkedCompany] = []
    comms: list[CommOut] = []


class PeopleService(BaseEntityService):
    """CRUD for people plus company and comm links.

    Linking needs create, unlinking needs delete; links are idempotent.
    """

    async def list_people(self) -> list[PersonOut]:
        self.require("read", "Insufficient permissions to read people")

        result = await self.session.execute(
            select(Person).where(Person.tenant_id == self.tenant_id).order_by(Person.created_at)
        )
        return [PersonOut.from_row(p) for p in result.scalars()]

    async def get_person(self, person_id: uuid.UUID) -> PersonDetail:
        """Fetch a person with linked companies and comms.

        Raises:
            NotFoundError: If the person is not in this tenant
        """
        self.require("read", "Insufficient permissions to read this person")
        person = await get_person(self.session, self.tenant_id, person_id)

        companies = await self.session.execute(
            select(Company, PersonCompany)
            .join(PersonCompany, PersonCompany.company_id == Company.company_id)
            .where(
                PersonCompany.tenant_id == self.tenant_id,
                PersonCompany.person_id == person_id,
            )
            .order_by(PersonCompany.created_at)
        )
        comms = await self.session.execute(
            select(Comm)
            .join(CommPerson, CommPerson.comm_id == Comm.comm_id)
            .where(CommPerson.tenant_id == self.tenant_id, CommPerson.person_id == person_id)
            .order_by(CommPerson.created_at)
        )

        return PersonDetail(
            **PersonOut.from_row(person).model_dump(),
            companies=[
                LinkedCompany(
                    id=company.company_id, name=company.name, role=link.role, is_primary=link.is_primary
                )
                for company, link in companies.all()
            ],
            comms=[CommOut.from_row(c) for c in comms.scalars()],
        )

    async def create_person(self, fields: PersonFields) -> PersonOut:
        self.require("create", "Insufficient permissions to create a person")

        person = Person(tenant_id=self.tenant_id, **fields.model_dump())
        self.session.add(person)
        await self.session.flush()
        return PersonOut.from_row(person)

    async def update_person(self, person_id: uuid.UUID, updates: dict[str, Any]) -> PersonOut:
        self.require("update", "Insufficient permissions to update this person")
        person = await get_person(self.session, self.tenant_id, person_id)

        for field in UPDATABLE_FIELDS:
            if field in updates:
                setattr(person, field, updates[field])
        await self.session.flush()
        await self.session.refresh(person)
        return PersonOut.from_row(person)

    async def delete_person(self, person_id: uuid.UUID) -> None:
        self.require("delete", "Insufficient permissions to delete this person")
        person = await get_person(self.session, self.tenant_id, person_id)

        await self.session.execute(
            delete(PersonCompany).where(PersonCompany.person_id == person.person_id)
        )
        await self.session.execute(delete(CommPerson).where(CommPerson.person_id == person.person_id))
        await self.session.delete(person)
        await self.session.flush()

    async def link_company(
        self,
        person_id: uuid.UUID,
        target: LinkTarget,
        role: str | None = None,
        is_primary: bool = False,
    ) -> LinkedCompany:
        """Link a person to an existing company, or to a company created here.

        Raises:
            NotFoundError: If the person or the existing company is not in this tenant
        """
        self.require("create", "Insufficient permissions to link companies")
        await get_person(self.session, self.tenant_id, person_id)

        if isinstance(target, LinkExisting):
            company = await get_company(self.session, self.tenant_id, target.id)
        else:
            company = new_company(self.tenant_id, target.fields)
            self.session.add(company)
            await self.session.flush()

        result = await self.session.execute(
            select(PersonCompany).where(
                PersonCompany.person_id == person_id,
                PersonCompany.company_id == company.company_id,
            )
        )
        link = result.scalar_one_or_none()
        if link is None:
            link = PersonCompany(
                tenant_id=self.tenant_id,
                person_id=person_id,
                company_id=company.company_id,
                role=role,
                is_primary=is_primary,
            )
            self.session.add(link)
            await self.session.flush()

        return LinkedCompany(
            id=company.company_id, name=company.name, role=link.role, is_primary=link.is_primary
        )

    async def unlink_company(self, person_id: uuid.UUID, company_id: uuid.UUID) -> None:
        self.require("delete", "Insufficient permissions to unlink companies")
        await get_person(self.session, self.tenant_id, person_id)

        await self.session.execute(
            delete(PersonCompany).where(
                PersonCompany.tenant_id == self.tenant_id,
                PersonCompany.person_id == person_id,
                PersonCompany.company_id == company_id,
            )
        )

    async def link_comm(self, person_id: uuid.UUID, target: LinkTarget) -> CommOut:
        """Link a comm to a person.

        Create-and-link reuses the tenant's comm with the same canonical
        value instead of inserting a duplicate.
        """
        self.require("create", "Insufficient permissions to link communications")
        await get_person(self.session, self.tenant_id, person_id)

        if isinstance(target, LinkExisting):
            comm = await get_comm(self.session, self.tenant_id, target.id)
        else:
            fields: CommFields = target.fields
            comm = await find_or_create_comm(self.session, self.tenant_id, fields)

        existing = await self.session.execute(
            select(CommPerson.link_id).where(
                CommPerson.comm_id == comm.comm_id, CommPerson.person_id == person_id
            )
        )
        if existing.first() is None:
            self.session.add(
                CommPerson(tenant_id=self.tenant_id, comm_id=comm.comm_id, person_id=person_id)
            )
            await self.session.flush()
        return CommOut.from_row(comm)

    async def unlink_comm(self, person_id: uuid.UUID, comm_id: uuid.UUID) -> None:
        self.require("delete", "Insufficient permissions to unlink communications")
        await get_person(self.session, self.tenant_id, person_id)

        await self.session.execute(
            delete(CommPerson).where(
                CommPerson.tenant_id == self.tenant_id,
                CommPerson.person_id == person_id,
                CommPerson.comm_id == comm_id,
            )
        )
