"""Companies within a tenant, with domains, websites and links."""

import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import delete, select

from backend.app.db.models import (
    Comm,
    CommCompany,
    Company,
    CompanyDomain,
    CompanyWebsite,
    Person,
    PersonCompany,
)
from backend.app.models.common import CamelModel
from backend.app.services.base import BaseEntityService
from backend.app.services.company_validation import CompanyDomainIn, CompanyWebsiteIn
from backend.app.services.links import (
    CommOut,
    CompanyFields,
    LinkExisting,
    LinkTarget,
    find_or_create_comm,
    get_comm,
    get_company,
    get_person,
    new_company,
)

UPDATABLE_FIELDS = ("name", "logo_url", "description")


class DomainOut(CamelModel):
    domain: str
    is_primary: bool


class WebsiteOut(CamelModel):
    url: str
    type: str | None
    is_primary: bool


class CompanyOut(CamelModel):
    id: uuid.UUID
    name: str
    logo_url: str | None
    description: str | None
    domains: list[DomainOut]
    websites: list[WebsiteOut]
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_row(cls, company: Company) -> "CompanyOut":
        return cls(
            id=company.company_id,
            name=company.name,
            logo_url=company.logo_url,
            description=company.description,
            domains=[DomainOut(domain=d.domain, is_primary=d.is_primary) for d in company.domains],
            websites=[
                WebsiteOut(url=w.url, type=w.type, is_primary=w.is_primary) for w in company.websites
            ],
            created_at=company.created_at,
            updated_at=company.updated_at,
        )


class LinkedPerson(CamelModel):
    id: uuid.UUID
    first_name: str | None
    last_name: str | None
    role: str | None
    is_primary: bool


class CompanyDetail(CompanyOut):
    people: list[LinkedPerson] = []
    comms: list[CommOut] = []


class CompaniesService(BaseEntityService):
    """CRUD for companies plus person and comm links.

    Same permission rules as people: linking needs create, unlinking needs
    delete, and links are idempotent.
    """

    async def list_companies(self) -> list[CompanyOut]:
        self.require("read", "Insufficient permissions to read companies")

        result = await self.session.execute(
            select(Company).where(Company.tenant_id == self.tenant_id).order_by(Company.created_at)
        )
        return [CompanyOut.from_row(c) for c in result.scalars()]

    async def get_company(self, company_id: uuid.UUID) -> CompanyDetail:
        self.require("read", "Insufficient permissions to read this company")
        company = await get_company(self.session, self.tenant_id, company_id)

        people = await self.session.execute(
            select(Person, PersonCompany)
            .join(PersonCompany, PersonCompany.person_id == Person.person_id)
            .where(
                PersonCompany.tenant_id == self.tenant_id,
                PersonCompany.company_id == company_id,
            )
            .order_by(PersonCompany.created_at)
        )
        comms = await self.session.execute(
            select(Comm)
            .join(CommCompany, CommCompany.comm_id == Comm.comm_id)
            .where(CommCompany.tenant_id == self.tenant_id, CommCompany.company_id == company_id)
            .order_by(CommCompany.created_at)
        )

        return CompanyDetail(
            **CompanyOut.from_row(company).model_dump(),
            people=[
                LinkedPerson(
                    id=person.person_id,
                    first_name=person.first_name,
                    last_name=person.last_name,
                    role=link.role,
                    is_primary=link.is_primary,
                )
                for person, link in people.all()
            ],
            comms=[CommOut.from_row(c) for c in comms.scalars()],
        )

    async def create_company(self, fields: CompanyFields) -> CompanyOut:
        self.require("create", "Insufficient permissions to create a company")

        company = new_company(self.tenant_id, fields)
        self.session.add(company)
        await self.session.flush()
        return CompanyOut.from_row(company)

    async def update_company(self, company_id: uuid.UUID, updates: dict[str, Any]) -> CompanyOut:
        """Apply a partial update.

        Domains and websites, when sent, replace the existing sets.
        """
        self.require("update", "Insufficient permissions to update this company")
        company = await get_company(self.session, self.tenant_id, company_id)

        for field in UPDATABLE_FIELDS:
            if field in updates:
                setattr(company, field, updates[field])

        domains: list[CompanyDomainIn] | None = updates.get("domains")
        if domains is not None:
            existing_domains = {row.domain: row for row in company.domains}
            wanted_domains = {d.domain: d for d in domains}
            domain_rows: list[CompanyDomain] = []
            for domain, item in wanted_domains.items():
                row = existing_domains.get(domain) or CompanyDomain(domain=domain)
                row.is_primary = item.is_primary
                domain_rows.append(row)
            company.domains = domain_rows

        websites: list[CompanyWebsiteIn] | None = updates.get("websites")
        if websites is not None:
            existing_websites = {row.url: row for row in company.websites}
            wanted_websites = {w.url: w for w in websites}
            website_rows: list[CompanyWebsite] = []
            for url, item in wanted_websites.items():
                row = existing_websites.get(url) or CompanyWebsite(url=url)
                row.type = item.type
                row.is_primary = item.is_primary
                website_rows.append(row)
            company.websites = website_rows

        await self.session.flush()
        await self.session.refresh(company)
        return CompanyOut.from_row(company)

    async def delete_company(self, company_id: uuid.UUID) -> None:
        self.require("delete", "Insufficient permissions to delete this company")
        company = await get_company(self.session, self.tenant_id, company_id)

        await self.session.execute(
            delete(PersonCompany).where(PersonCompany.company_id == company.company_id)
        )
        await self.session.execute(
            delete(CommCompany).where(CommCompany.company_id == company.company_id)
        )
        await self.session.delete(company)
        await self.session.flush()

    async def link_person(
        self,
        company_id: uuid.UUID,
        target: LinkTarget,
        role: str | None = None,
        is_primary: bool = False,
    ) -> LinkedPerson:
        """Link an existing person, or a person created here, to the company.

        Raises:
            NotFoundError: If the company or the existing person is not in this tenant
        """
        self.require("create", "Insufficient permissions to link people")
        await get_company(self.session, self.tenant_id, company_id)

        if isinstance(target, LinkExisting):
            person = await get_person(self.session, self.tenant_id, target.id)
        else:
            person = Person(tenant_id=self.tenant_id, **target.fields.model_dump())
            self.session.add(person)
            await self.session.flush()

        result = await self.session.execute(
            select(PersonCompany).where(
                PersonCompany.person_id == person.person_id,
                PersonCompany.company_id == company_id,
            )
        )
        link = result.scalar_one_or_none()
        if link is None:
            link = PersonCompany(
                tenant_id=self.tenant_id,
                person_id=person.person_id,
                company_id=company_id,
                role=role,
                is_primary=is_primary,
            )
            self.session.add(link)
            await self.session.flush()

        return LinkedPerson(
            id=person.person_id,
            first_name=person.first_name,
            last_name=person.last_name,
            role=link.role,
            is_primary=link.is_primary,
        )

    async def unlink_person(self, company_id: uuid.UUID, person_id: uuid.UUID) -> None:
        self.require("delete", "Insufficient permissions to unlink people")
        await get_company(self.session, self.tenant_id, company_id)

        await self.session.execute(
            delete(PersonCompany).where(
                PersonCompany.tenant_id == self.tenant_id,
                PersonCompany.company_id == company_id,
                PersonCompany.person_id == person_id,
            )
        )

    async def link_comm(self, company_id: uuid.UUID, target: LinkTarget) -> CommOut:
        self.require("create", "Insufficient permissions to link communications")
        await get_company(self.session, self.tenant_id, company_id)

        if isinstance(target, LinkExisting):
            comm = await get_comm(self.session, self.tenant_id, target.id)
        else:
            comm = await find_or_create_comm(self.session, self.tenant_id, target.fields)

        existing = await self.session.execute(
            select(CommCompany.link_id).where(
                CommCompany.comm_id == comm.comm_id, CommCompany.company_id == company_id
            )
        )
        if existing.first() is None:
            self.session.add(
                CommCompany(tenant_id=self.tenant_id, comm_id=comm.comm_id, company_id=company_id)
            )
            await self.session.flush()
        return CommOut.from_row(comm)

    async def unlink_comm(self, company_id: uuid.UUID, comm_id: uuid.UUID) -> None:
        self.require("delete", "Insufficient permissions to unlink communications")
        await get_company(self.session, self.tenant_id, company_id)

        await self.session.execute(
            delete(CommCompany).where(
                CommCompany.tenant_id == self.tenant_id,
                CommCompany.company_id == company_id,
                CommCompany.comm_id == comm_id,
            )
        )
