"""Public v1 people endpoints - /api/v1/people."""

import uuid
from typing import Any, cast

from pydantic import Field, model_validator

from backend.app.api.service import HandlerSpec, ServiceRouter, V1ApiService
from backend.app.api.validation import NoInput
from backend.app.db.context import RequestContext
from backend.app.models.common import CamelModel
from backend.app.services.base import PermissionContext
from backend.app.services.company_validation import CompanyDomainIn, CompanyWebsiteIn
from backend.app.services.links import (
    CommLinkInput,
    CompanyFields,
    CreateAndLink,
    LinkExisting,
    LinkTarget,
    PersonFields,
)
from backend.app.services.people import PeopleService
from backend.app.services.scopes import COMMS_PEOPLE_READ, COMMS_PEOPLE_WRITE

router = ServiceRouter(prefix="/api/v1/people", tags=["v1-people"])


class CreatePersonRequest(CamelModel):
    first_name: str | None = Field(None, max_length=100)
    last_name: str | None = Field(None, max_length=100)
    bio: str | None = None


class PersonPath(CamelModel):
    person_id: uuid.UUID


class UpdatePersonRequest(PersonPath):
    """Request body for PATCH /api/v1/people/{personId}. Omitted fields are left unchanged."""

    first_name: str | None = Field(None, max_length=100)
    last_name: str | None = Field(None, max_length=100)
    bio: str | None = None


class LinkCompanyRequest(PersonPath):
    """Link by companyId, or create a company from name/domains/websites.

    companyId takes precedence when both shapes are sent.
    """

    company_id: uuid.UUID | None = None
    name: str | None = Field(None, min_length=1, max_length=200)
    logo_url: str | None = None
    description: str | None = None
    domains: list[CompanyDomainIn] = []
    websites: list[CompanyWebsiteIn] = []
    role: str | None = None
    is_primary: bool = False

    @model_validator(mode="after")
    def _one_shape(self) -> "LinkCompanyRequest":
        if self.company_id is None and self.name is None:
            raise ValueError("Either companyId or company name must be provided")
        return self

    def target(self) -> LinkTarget:
        if self.company_id is not None:
            return LinkExisting(self.company_id)
        return CreateAndLink(
            CompanyFields(
                name=self.name,
                logo_url=self.logo_url,
                description=self.description,
                domains=self.domains,
                websites=self.websites,
            )
        )


class UnlinkCompanyRequest(PersonPath):
    company_id: uuid.UUID


class LinkCommRequest(PersonPath, CommLinkInput):
    pass


class UnlinkCommRequest(PersonPath):
    comm_id: uuid.UUID


def _service(ctx: RequestContext) -> PeopleService:
    return PeopleService(ctx.session, PermissionContext.from_request(ctx))


async def list_people(ctx: RequestContext) -> Any:
    return await _service(ctx).list_people()


async def create_person(ctx: RequestContext) -> Any:
    data = cast(CreatePersonRequest, ctx.data)
    fields = PersonFields(first_name=data.first_name, last_name=data.last_name, bio=data.bio)
    return await _service(ctx).create_person(fields)


async def get_person(ctx: RequestContext) -> Any:
    data = cast(PersonPath, ctx.data)
    return await _service(ctx).get_person(data.person_id)


async def update_person(ctx: RequestContext) -> Any:
    data = cast(UpdatePersonRequest, ctx.data)
    updates = {f: getattr(data, f) for f in data.model_fields_set if f != "person_id"}
    return await _service(ctx).update_person(data.person_id, updates)


async def delete_person(ctx: RequestContext) -> dict[str, bool]:
    data = cast(PersonPath, ctx.data)
    await _service(ctx).delete_person(data.person_id)
    return {"deleted": True}


async def link_company(ctx: RequestContext) -> Any:
    data = cast(LinkCompanyRequest, ctx.data)
    return await _service(ctx).link_company(
        data.person_id, data.target(), role=data.role, is_primary=data.is_primary
    )


async def unlink_company(ctx: RequestContext) -> dict[str, bool]:
    data = cast(UnlinkCompanyRequest, ctx.data)
    await _service(ctx).unlink_company(data.person_id, data.company_id)
    return {"unlinked": True}


async def link_comm(ctx: RequestContext) -> Any:
    data = cast(LinkCommRequest, ctx.data)
    return await _service(ctx).link_comm(data.person_id, data.target())


async def unlink_comm(ctx: RequestContext) -> dict[str, bool]:
    data = cast(UnlinkCommRequest, ctx.data)
    await _service(ctx).unlink_comm(data.person_id, data.comm_id)
    return {"unlinked": True}


people_service = V1ApiService(
    {
        "GET": HandlerSpec(NoInput, list_people, COMMS_PEOPLE_READ, summary="List people"),
        "POST": HandlerSpec(
            CreatePersonRequest,
            create_person,
            COMMS_PEOPLE_WRITE,
            status_code=201,
            summary="Create a person",
        ),
    }
)
person_service = V1ApiService(
    {
        "GET": HandlerSpec(PersonPath, get_person, COMMS_PEOPLE_READ, summary="Get a person"),
        "PATCH": HandlerSpec(
            UpdatePersonRequest, update_person, COMMS_PEOPLE_WRITE, summary="Update a person"
        ),
        "DELETE": HandlerSpec(
            PersonPath, delete_person, COMMS_PEOPLE_WRITE, summary="Delete a person"
        ),
    }
)
person_companies_service = V1ApiService(
    {
        "POST": HandlerSpec(
            LinkCompanyRequest,
            link_company,
            COMMS_PEOPLE_WRITE,
            summary="Link a company to a person, creating it if needed",
        ),
        "DELETE": HandlerSpec(
            UnlinkCompanyRequest,
            unlink_company,
            COMMS_PEOPLE_WRITE,
            summary="Unlink a company from a person",
        ),
    }
)
person_comms_service = V1ApiService(
    {
        "POST": HandlerSpec(
            LinkCommRequest,
            link_comm,
            COMMS_PEOPLE_WRITE,
            summary="Link a communication channel to a person",
        ),
        "DELETE": HandlerSpec(
            UnlinkCommRequest,
            unlink_comm,
            COMMS_PEOPLE_WRITE,
            summary="Unlink a communication channel from a person",
        ),
    }
)

people_service.mount(router, "")
person_service.mount(router, "/{personId}")
person_companies_service.mount(router, "/{personId}/companies")
person_comms_service.mount(router, "/{personId}/comms")
