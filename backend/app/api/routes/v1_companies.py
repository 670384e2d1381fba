"""Public v1 company endpoints - /api/v1/companies."""

import uuid
from typing import Any, cast

from pydantic import Field, model_validator

from backend.app.api.service import HandlerSpec, ServiceRouter, V1ApiService
from backend.app.api.validation import NoInput
from backend.app.db.context import RequestContext
from backend.app.models.common import CamelModel
from backend.app.services.base import PermissionContext
from backend.app.services.companies import CompaniesService
from backend.app.services.company_validation import CompanyDomainIn, CompanyWebsiteIn
from backend.app.services.links import (
    CommLinkInput,
    CompanyFields,
    CreateAndLink,
    LinkExisting,
    LinkTarget,
    PersonFields,
)
from backend.app.services.scopes import COMMS_COMPANIES_READ, COMMS_COMPANIES_WRITE

router = ServiceRouter(prefix="/api/v1/companies", tags=["v1-companies"])


class CreateCompanyRequest(CamelModel):
    name: str = Field(..., min_length=1, max_length=200)
    logo_url: str | None = None
    description: str | None = None
    domains: list[CompanyDomainIn] = []
    websites: list[CompanyWebsiteIn] = []


class CompanyPath(CamelModel):
    company_id: uuid.UUID


class UpdateCompanyRequest(CompanyPath):
    """Request body for PATCH /api/v1/companies/{companyId}.

    Sending domains or websites replaces the whole set.
    """

    name: str | None = Field(None, min_length=1, max_length=200)
    logo_url: str | None = None
    description: str | None = None
    domains: list[CompanyDomainIn] | None = None
    websites: list[CompanyWebsiteIn] | None = None


class LinkPersonRequest(CompanyPath):
    """Link by personId, or create a person from firstName/lastName/bio.

    personId takes precedence when both shapes are sent.
    """

    person_id: uuid.UUID | None = None
    first_name: str | None = Field(None, max_length=100)
    last_name: str | None = Field(None, max_length=100)
    bio: str | None = None
    role: str | None = None
    is_primary: bool = False

    @model_validator(mode="after")
    def _one_shape(self) -> "LinkPersonRequest":
        if self.person_id is None and self.first_name is None and self.last_name is None:
            raise ValueError("Either personId or a person firstName/lastName must be provided")
        return self

    def target(self) -> LinkTarget:
        if self.person_id is not None:
            return LinkExisting(self.person_id)
        return CreateAndLink(
            PersonFields(first_name=self.first_name, last_name=self.last_name, bio=self.bio)
        )


class UnlinkPersonRequest(CompanyPath):
    person_id: uuid.UUID


class LinkCommRequest(CompanyPath, CommLinkInput):
    pass


class UnlinkCommRequest(CompanyPath):
    comm_id: uuid.UUID


def _service(ctx: RequestContext) -> CompaniesService:
    return CompaniesService(ctx.session, PermissionContext.from_request(ctx))


async def list_companies(ctx: RequestContext) -> Any:
    return await _service(ctx).list_companies()


async def create_company(ctx: RequestContext) -> Any:
    data = cast(CreateCompanyRequest, ctx.data)
    return await _service(ctx).create_company(CompanyFields(**dict(data)))


async def get_company(ctx: RequestContext) -> Any:
    data = cast(CompanyPath, ctx.data)
    return await _service(ctx).get_company(data.company_id)


async def update_company(ctx: RequestContext) -> Any:
    data = cast(UpdateCompanyRequest, ctx.data)
    updates = {f: getattr(data, f) for f in data.model_fields_set if f != "company_id"}
    return await _service(ctx).update_company(data.company_id, updates)


async def delete_company(ctx: RequestContext) -> dict[str, bool]:
    data = cast(CompanyPath, ctx.data)
    await _service(ctx).delete_company(data.company_id)
    return {"deleted": True}


async def link_person(ctx: RequestContext) -> Any:
    data = cast(LinkPersonRequest, ctx.data)
    return await _service(ctx).link_person(
        data.company_id, data.target(), role=data.role, is_primary=data.is_primary
    )


async def unlink_person(ctx: RequestContext) -> dict[str, bool]:
    data = cast(UnlinkPersonRequest, ctx.data)
    await _service(ctx).unlink_person(data.company_id, data.person_id)
    return {"unlinked": True}


async def link_comm(ctx: RequestContext) -> Any:
    data = cast(LinkCommRequest, ctx.data)
    return await _service(ctx).link_comm(data.company_id, data.target())


async def unlink_comm(ctx: RequestContext) -> dict[str, bool]:
    data = cast(UnlinkCommRequest, ctx.data)
    await _service(ctx).unlink_comm(data.company_id, data.comm_id)
    return {"unlinked": True}


companies_service = V1ApiService(
    {
        "GET": HandlerSpec(NoInput, list_companies, COMMS_COMPANIES_READ, summary="List companies"),
        "POST": HandlerSpec(
            CreateCompanyRequest,
            create_company,
            COMMS_COMPANIES_WRITE,
            status_code=201,
            summary="Create a company",
        ),
    }
)
company_service = V1ApiService(
    {
        "GET": HandlerSpec(CompanyPath, get_company, COMMS_COMPANIES_READ, summary="Get a company"),
        "PATCH": HandlerSpec(
            UpdateCompanyRequest, update_company, COMMS_COMPANIES_WRITE, summary="Update a company"
        ),
        "DELETE": HandlerSpec(
            CompanyPath, delete_company, COMMS_COMPANIES_WRITE, summary="Delete a company"
        ),
    }
)
company_people_service = V1ApiService(
    {
        "POST": HandlerSpec(
            LinkPersonRequest,
            link_person,
            COMMS_COMPANIES_WRITE,
            summary="Link a person to a company, creating them if needed",
        ),
        "DELETE": HandlerSpec(
            UnlinkPersonRequest,
            unlink_person,
            COMMS_COMPANIES_WRITE,
            summary="Unlink a person from a company",
        ),
    }
)
company_comms_service = V1ApiService(
    {
        "POST": HandlerSpec(
            LinkCommRequest,
            link_comm,
            COMMS_COMPANIES_WRITE,
            summary="Link a communication channel to a company",
        ),
        "DELETE": HandlerSpec(
            UnlinkCommRequest,
            unlink_comm,
            COMMS_COMPANIES_WRITE,
            summary="Unlink a communication channel from a company",
        ),
    }
)

companies_service.mount(router, "")
company_service.mount(router, "/{companyId}")
company_people_service.mount(router, "/{companyId}/people")
company_comms_service.mount(router, "/{companyId}/comms")
