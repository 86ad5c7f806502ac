"""create pipeline tables

Revision ID: 202610190001
Revises:
Create Date: 2026-10-19 00:01:00
"""

from collections.abc import Sequence

from alembic import op
import sqlalchemy as sa


revision: str = "202610190001"
down_revision: str | None = None
branch_labels: Sequence[str] | None = None
depends_on: Sequence[str] | None = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    ]


def _line_item_columns() -> list[sa.Column]:
    return [
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("quantity", sa.Numeric(18, 4), nullable=False),
        sa.Column("unit_price", sa.Numeric(18, 2), nullable=False),
        sa.Column("is_tax_line", sa.Boolean(), nullable=False),
        sa.Column("tax_rate", sa.Numeric(9, 4), nullable=True),
        sa.Column("sort_order", sa.Integer(), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        "pipeline_company",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("organization_id", sa.Uuid(), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("phone", sa.String(length=64), nullable=True),
        sa.Column("email", sa.String(length=320), nullable=True),
        sa.Column("website", sa.String(length=500), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("address_line1", sa.String(length=255), nullable=True),
        sa.Column("address_line2", sa.String(length=255), nullable=True),
        sa.Column("city", sa.String(length=128), nullable=True),
        sa.Column("state", sa.String(length=128), nullable=True),
        sa.Column("postal_code", sa.String(length=32), nullable=True),
        sa.Column("tax_id", sa.String(length=64), nullable=True),
        sa.Column("is_deleted", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_pipeline_company_org_name", "pipeline_company", ["organization_id", "name"], unique=False)

    op.create_table(
        "pipeline_lead",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("organization_id", sa.Uuid(), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("company", sa.String(length=255), nullable=True),
        sa.Column("company_id", sa.Uuid(), nullable=True),
        sa.Column("phone", sa.String(length=64), nullable=True),
        sa.Column("email", sa.String(length=320), nullable=True),
        sa.Column("address_line1", sa.String(length=255), nullable=True),
        sa.Column("address_line2", sa.String(length=255), nullable=True),
        sa.Column("city", sa.String(length=128), nullable=True),
        sa.Column("state", sa.String(length=128), nullable=True),
        sa.Column("postal_code", sa.String(length=32), nullable=True),
        sa.Column("lead_source", sa.String(length=128), nullable=True),
        sa.Column("project_type", sa.String(length=128), nullable=True),
        sa.Column("estimated_value", sa.Numeric(18, 2), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("status", sa.String(length=32), nullable=False, server_default="New"),
        sa.Column("is_deleted", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("lost_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.Column("row_version", sa.Integer(), nullable=False, server_default="1"),
        sa.ForeignKeyConstraint(["company_id"], ["pipeline_company.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_pipeline_lead_org_status", "pipeline_lead", ["organization_id", "status"], unique=False)

    op.create_table(
        "pipeline_tax_line",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("label", sa.String(length=128), nullable=False),
        sa.Column("rate", sa.Numeric(9, 4), nullable=False),
        sa.Column("lead_id", sa.Uuid(), nullable=True),
        sa.Column("company_id", sa.Uuid(), nullable=True),
        sa.CheckConstraint("(lead_id IS NULL) <> (company_id IS NULL)", name="ck_pipeline_tax_line_single_owner"),
        sa.ForeignKeyConstraint(["lead_id"], ["pipeline_lead.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["company_id"], ["pipeline_company.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "pipeline_estimate",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("organization_id", sa.Uuid(), nullable=False),
        sa.Column("lead_id", sa.Uuid(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("subtotal", sa.Numeric(18, 2), nullable=False),
        sa.Column("tax_total", sa.Numeric(18, 2), nullable=False),
        sa.Column("amount", sa.Numeric(18, 2), nullable=False),
        sa.Column("status", sa.String(length=32), nullable=False, server_default="Draft"),
        sa.Column("sent_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("accepted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("rejected_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.Column("row_version", sa.Integer(), nullable=False, server_default="1"),
        sa.ForeignKeyConstraint(["lead_id"], ["pipeline_lead.id"], ondelete="RESTRICT"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_pipeline_estimate_org_lead", "pipeline_estimate", ["organization_id", "lead_id"], unique=False)

    op.create_table(
        "pipeline_estimate_line_item",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("estimate_id", sa.Uuid(), nullable=False),
        *_line_item_columns(),
        sa.ForeignKeyConstraint(["estimate_id"], ["pipeline_estimate.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_pipeline_estimate_line_item_estimate",
        "pipeline_estimate_line_item",
        ["estimate_id"],
        unique=False,
    )

    op.create_table(
        "pipeline_job",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("organization_id", sa.Uuid(), nullable=False),
        sa.Column("lead_id", sa.Uuid(), nullable=False),
        sa.Column("estimate_id", sa.Uuid(), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("status", sa.String(length=32), nullable=False, server_default="Scheduled"),
        sa.Column("start_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("estimated_end_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.Column("row_version", sa.Integer(), nullable=False, server_default="1"),
        sa.ForeignKeyConstraint(["lead_id"], ["pipeline_lead.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["estimate_id"], ["pipeline_estimate.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_pipeline_job_org_status", "pipeline_job", ["organization_id", "status"], unique=False)

    op.create_table(
        "pipeline_job_milestone",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("job_id", sa.Uuid(), nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("status", sa.String(length=32), nullable=False, server_default="Pending"),
        sa.Column("occurred_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("sort_order", sa.Integer(), nullable=False, server_default="0"),
        *_timestamps(),
        sa.ForeignKeyConstraint(["job_id"], ["pipeline_job.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_pipeline_job_milestone_job_sort",
        "pipeline_job_milestone",
        ["job_id", "sort_order"],
        unique=False,
    )

    op.create_table(
        "pipeline_job_expense",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("organization_id", sa.Uuid(), nullable=False),
        sa.Column("job_id", sa.Uuid(), nullable=False),
        sa.Column("vendor", sa.String(length=255), nullable=False),
        sa.Column("category", sa.String(length=128), nullable=True),
        sa.Column("amount", sa.Numeric(18, 2), nullable=False),
        sa.Column("spent_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("receipt_url", sa.String(length=1000), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["job_id"], ["pipeline_job.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_pipeline_job_expense_job_spent",
        "pipeline_job_expense",
        ["job_id", "spent_at"],
        unique=False,
    )

    op.create_table(
        "pipeline_invoice",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("organization_id", sa.Uuid(), nullable=False),
        sa.Column("job_id", sa.Uuid(), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("subtotal", sa.Numeric(18, 2), nullable=False),
        sa.Column("tax_total", sa.Numeric(18, 2), nullable=False),
        sa.Column("amount", sa.Numeric(18, 2), nullable=False),
        sa.Column("status", sa.String(length=32), nullable=False, server_default="Draft"),
        sa.Column("due_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("issued_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("paid_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("overdue_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.Column("row_version", sa.Integer(), nullable=False, server_default="1"),
        sa.ForeignKeyConstraint(["job_id"], ["pipeline_job.id"], ondelete="RESTRICT"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_pipeline_invoice_org_job", "pipeline_invoice", ["organization_id", "job_id"], unique=False)
    op.create_index(
        "ix_pipeline_invoice_org_status_due",
        "pipeline_invoice",
        ["organization_id", "status", "due_at"],
        unique=False,
    )

    op.create_table(
        "pipeline_invoice_line_item",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("invoice_id", sa.Uuid(), nullable=False),
        *_line_item_columns(),
        sa.ForeignKeyConstraint(["invoice_id"], ["pipeline_invoice.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_pipeline_invoice_line_item_invoice",
        "pipeline_invoice_line_item",
        ["invoice_id"],
        unique=False,
    )


def downgrade() -> None:
    op.drop_index("ix_pipeline_invoice_line_item_invoice", table_name="pipeline_invoice_line_item")
    op.drop_table("pipeline_invoice_line_item")
    op.drop_index("ix_pipeline_invoice_org_status_due", table_name="pipeline_invoice")
    op.drop_index("ix_pipeline_invoice_org_job", table_name="pipeline_invoice")
    op.drop_table("pipeline_invoice")
    op.drop_index("ix_pipeline_job_expense_job_spent", table_name="pipeline_job_expense")
    op.drop_table("pipeline_job_expense")
    op.drop_index("ix_pipeline_job_milestone_job_sort", table_name="pipeline_job_milestone")
    op.drop_table("pipeline_job_milestone")
    op.drop_index("ix_pipeline_job_org_status", table_name="pipeline_job")
    op.drop_table("pipeline_job")
    op.drop_index("ix_pipeline_estimate_line_item_estimate", table_name="pipeline_estimate_line_item")
    op.drop_table("pipeline_estimate_line_item")
    op.drop_index("ix_pipeline_estimate_org_lead", table_name="pipeline_estimate")
    op.drop_table("pipeline_estimate")
    op.drop_table("pipeline_tax_line")
    op.drop_index("ix_pipeline_lead_org_status", table_name="pipeline_lead")
    op.drop_table("pipeline_lead")
    op.drop_index("ix_pipeline_company_org_name", table_name="pipeline_company")
    op.drop_table("pipeline_company")
