"""Initial schema

Revision ID: 001
Revises:
Create Date: 2026-10-18

Creates all tables:
- user_profile, auth_session
- tenant, tenant_user, tenant_invitation, api_key
- connection, member_profile
- person, company, company_domain, company_website, person_company
- comm, comm_person, comm_company
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

JSON = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now(), nullable=False),
    ]


def _tenant_fk() -> sa.Column:
    return sa.Column(
        "tenant_id",
        sa.Uuid(),
        sa.ForeignKey("tenant.tenant_id", ondelete="CASCADE"),
        nullable=False,
    )


def upgrade() -> None:
    """Create all tables."""
    # user_profile table
    op.create_table(
        "user_profile",
        sa.Column("user_id", sa.Uuid(), primary_key=True),
        sa.Column("email", sa.Text(), nullable=False, unique=True),
        sa.Column("display_name", sa.Text(), nullable=True),
        sa.Column("first_name", sa.Text(), nullable=True),
        sa.Column("last_name", sa.Text(), nullable=True),
        sa.Column("phone", sa.Text(), nullable=True),
        sa.Column("timezone", sa.Text(), server_default="UTC", nullable=False),
        sa.Column("avatar_url", sa.Text(), nullable=True),
        sa.Column("preferences", JSON, nullable=False),
        *_timestamps(),
    )

    # auth_session table
    op.create_table(
        "auth_session",
        sa.Column("session_id", sa.Uuid(), primary_key=True),
        sa.Column(
            "user_id",
            sa.Uuid(),
            sa.ForeignKey("user_profile.user_id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("token_hash", sa.Text(), nullable=False, unique=True),
        sa.Column("expires_at", sa.DateTime(), nullable=False),
        sa.Column("revoked_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("idx_auth_session_user", "auth_session", ["user_id"])

    # tenant table
    op.create_table(
        "tenant",
        sa.Column("tenant_id", sa.Uuid(), primary_key=True),
        sa.Column("slug", sa.Text(), nullable=False, unique=True),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("status", sa.Text(), server_default="active", nullable=False),
        sa.Column("subscription_tier", sa.Text(), server_default="free", nullable=False),
        *_timestamps(),
    )

    # tenant_user table
    op.create_table(
        "tenant_user",
        sa.Column("tenant_user_id", sa.Uuid(), primary_key=True),
        _tenant_fk(),
        sa.Column(
            "user_id",
            sa.Uuid(),
            sa.ForeignKey("user_profile.user_id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("role", sa.Text(), nullable=False),
        sa.Column("status", sa.Text(), server_default="active", nullable=False),
        sa.Column("invited_by", sa.Uuid(), nullable=True),
        sa.Column("invited_by_email", sa.Text(), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("tenant_id", "user_id", name="uq_tenant_user"),
    )
    op.create_index("idx_tenant_user_user", "tenant_user", ["user_id"])

    # tenant_invitation table
    op.create_table(
        "tenant_invitation",
        sa.Column("invitation_id", sa.Uuid(), primary_key=True),
        _tenant_fk(),
        sa.Column("email", sa.Text(), nullable=False),
        sa.Column("role", sa.Text(), nullable=False),
        sa.Column("token", sa.Text(), nullable=False, unique=True),
        sa.Column("status", sa.Text(), server_default="pending", nullable=False),
        sa.Column("invited_by", sa.Uuid(), nullable=False),
        sa.Column("message", sa.Text(), nullable=True),
        sa.Column("expires_at", sa.DateTime(), nullable=False),
        sa.Column("accepted_at", sa.DateTime(), nullable=True),
        *_timestamps(),
    )
    op.create_index("idx_invitation_tenant_email", "tenant_invitation", ["tenant_id", "email"])

    # api_key table
    op.create_table(
        "api_key",
        sa.Column("key_id", sa.Uuid(), primary_key=True),
        _tenant_fk(),
        sa.Column(
            "created_by",
            sa.Uuid(),
            sa.ForeignKey("user_profile.user_id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("key_prefix", sa.Text(), nullable=False, unique=True),
        sa.Column("key_hash", sa.Text(), nullable=False),
        sa.Column("scopes", JSON, nullable=False),
        sa.Column("expires_at", sa.DateTime(), nullable=True),
        sa.Column("last_used_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("idx_api_key_tenant", "api_key", ["tenant_id"])

    # connection table
    op.create_table(
        "connection",
        sa.Column("connection_id", sa.Uuid(), primary_key=True),
        _tenant_fk(),
        sa.Column("user_id", sa.Uuid(), nullable=True),
        sa.Column("provider", sa.Text(), nullable=False),
        sa.Column("method", sa.Text(), nullable=False),
        sa.Column("external_id", sa.Text(), nullable=True),
        sa.Column("status", sa.Text(), server_default="active", nullable=False),
        sa.Column("enabled_capabilities", JSON, nullable=False),
        sa.Column("credentials", JSON, nullable=False),
        sa.Column("settings", JSON, nullable=False),
        sa.Column("metadata", JSON, nullable=False),
        *_timestamps(),
    )
    op.create_index("idx_connection_tenant_provider", "connection", ["tenant_id", "provider"])

    # member_profile table
    op.create_table(
        "member_profile",
        sa.Column("member_profile_id", sa.Uuid(), primary_key=True),
        _tenant_fk(),
        sa.Column(
            "tenant_user_id",
            sa.Uuid(),
            sa.ForeignKey("tenant_user.tenant_user_id", ondelete="CASCADE"),
            nullable=False,
            unique=True,
        ),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now(), nullable=False),
    )

    # person table
    op.create_table(
        "person",
        sa.Column("person_id", sa.Uuid(), primary_key=True),
        _tenant_fk(),
        sa.Column("first_name", sa.Text(), nullable=True),
        sa.Column("last_name", sa.Text(), nullable=True),
        sa.Column("bio", sa.Text(), nullable=True),
        *_timestamps(),
    )
    op.create_index("idx_person_tenant", "person", ["tenant_id"])

    # company table
    op.create_table(
        "company",
        sa.Column("company_id", sa.Uuid(), primary_key=True),
        _tenant_fk(),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("logo_url", sa.Text(), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        *_timestamps(),
    )
    op.create_index("idx_company_tenant", "company", ["tenant_id"])

    # company_domain / company_website tables
    op.create_table(
        "company_domain",
        sa.Column("domain_id", sa.Uuid(), primary_key=True),
        sa.Column(
            "company_id",
            sa.Uuid(),
            sa.ForeignKey("company.company_id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("domain", sa.Text(), nullable=False),
        sa.Column("is_primary", sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.UniqueConstraint("company_id", "domain", name="uq_company_domain"),
    )
    op.create_table(
        "company_website",
        sa.Column("website_id", sa.Uuid(), primary_key=True),
        sa.Column(
            "company_id",
            sa.Uuid(),
            sa.ForeignKey("company.company_id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("url", sa.Text(), nullable=False),
        sa.Column("type", sa.Text(), nullable=True),
        sa.Column("is_primary", sa.Boolean(), server_default=sa.false(), nullable=False),
    )

    # person_company link table
    op.create_table(
        "person_company",
        sa.Column("link_id", sa.Uuid(), primary_key=True),
        _tenant_fk(),
        sa.Column(
            "person_id",
            sa.Uuid(),
            sa.ForeignKey("person.person_id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "company_id",
            sa.Uuid(),
            sa.ForeignKey("company.company_id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("role", sa.Text(), nullable=True),
        sa.Column("is_primary", sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint("person_id", "company_id", name="uq_person_company"),
    )

    # comm table
    op.create_table(
        "comm",
        sa.Column("comm_id", sa.Uuid(), primary_key=True),
        _tenant_fk(),
        sa.Column("type", sa.Text(), nullable=False),
        sa.Column("value", JSON, nullable=False),
        sa.Column("canonical_value", sa.Text(), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint("tenant_id", "type", "canonical_value", name="uq_comm_canonical"),
    )

    # comm link tables
    for table, column, target in (
        ("comm_person", "person_id", "person.person_id"),
        ("comm_company", "company_id", "company.company_id"),
    ):
        op.create_table(
            table,
            sa.Column("link_id", sa.Uuid(), primary_key=True),
            _tenant_fk(),
            sa.Column(
                "comm_id",
                sa.Uuid(),
                sa.ForeignKey("comm.comm_id", ondelete="CASCADE"),
                nullable=False,
            ),
            sa.Column(column, sa.Uuid(), sa.ForeignKey(target, ondelete="CASCADE"), nullable=False),
            sa.Column("created_at", sa.DateTime(), server_default=sa.func.now(), nullable=False),
            sa.UniqueConstraint("comm_id", column, name=f"uq_{table}"),
        )


def downgrade() -> None:
    """Drop all tables."""
    for table in (
        "comm_company",
        "comm_person",
        "comm",
        "person_company",
        "company_website",
        "company_domain",
        "company",
        "person",
        "member_profile",
        "connection",
        "api_key",
        "tenant_invitation",
        "tenant_user",
        "tenant",
        "auth_session",
        "user_profile",
    ):
        op.drop_table(table)
