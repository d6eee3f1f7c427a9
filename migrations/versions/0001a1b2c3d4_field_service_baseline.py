"""field_service_baseline

Create the workflow tables: clients, sites, cases, quotes, interventions,
intervention_logs, intervention_media, quote_requests, devices,
device_proposals, review_items.

Revision ID: 0001a1b2c3d4
Revises:
Create Date: 2026-10-19 09:00:00.000000
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect as sa_inspect


# revision identifiers, used by Alembic.
revision = "0001a1b2c3d4"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps(updated=True):
    cols = [sa.Column("created_at", sa.DateTime(timezone=True), nullable=False)]
    if updated:
        cols.append(sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False))
    return cols


def upgrade():
    bind = op.get_bind()
    existing_tables = set(sa_inspect(bind).get_table_names())

    if "clients" not in existing_tables:
        op.create_table(
            "clients",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("name", sa.String(length=200), nullable=False),
            sa.Column("contact_name", sa.String(length=150), nullable=True),
            sa.Column("contact_email", sa.String(length=200), nullable=True),
            sa.Column("contact_phone", sa.String(length=50), nullable=True),
            sa.Column("billing_address", sa.Text(), nullable=True),
            sa.Column("notes", sa.Text(), nullable=True),
            *_timestamps(),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("idx_client_name", "clients", ["name"])

    if "sites" not in existing_tables:
        op.create_table(
            "sites",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("client_id", sa.String(length=36), nullable=False),
            sa.Column("label", sa.String(length=200), nullable=False),
            sa.Column("address_line1", sa.String(length=255), nullable=False),
            sa.Column("address_line2", sa.String(length=255), nullable=True),
            sa.Column("postal_code", sa.String(length=20), nullable=False),
            sa.Column("city", sa.String(length=120), nullable=False),
            sa.Column("country", sa.String(length=80), nullable=False),
            sa.Column("latitude", sa.Float(), nullable=True),
            sa.Column("longitude", sa.Float(), nullable=True),
            sa.Column("access_notes", sa.Text(), nullable=True),
            sa.Column("contact_name", sa.String(length=150), nullable=True),
            sa.Column("contact_email", sa.String(length=200), nullable=True),
            sa.Column("contact_phone", sa.String(length=50), nullable=True),
            *_timestamps(updated=False),
            sa.ForeignKeyConstraint(["client_id"], ["clients.id"], ondelete="RESTRICT"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_sites_client_id", "sites", ["client_id"])

    if "cases" not in existing_tables:
        op.create_table(
            "cases",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("title", sa.String(length=255), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("status", sa.String(length=30), nullable=False),
            sa.Column("priority", sa.String(length=20), nullable=False),
            sa.Column("client_id", sa.String(length=36), nullable=False),
            sa.Column("site_id", sa.String(length=36), nullable=False),
            sa.Column("drive_folder_url", sa.String(length=500), nullable=True),
            sa.Column("calendar_event_id", sa.String(length=200), nullable=True),
            sa.Column("planned_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("created_by_id", sa.String(length=64), nullable=False),
            sa.Column("closed_by_id", sa.String(length=64), nullable=True),
            sa.Column("closed_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("version", sa.Integer(), nullable=False),
            *_timestamps(),
            sa.ForeignKeyConstraint(["client_id"], ["clients.id"], ondelete="RESTRICT"),
            sa.ForeignKeyConstraint(["site_id"], ["sites.id"], ondelete="RESTRICT"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("idx_case_status", "cases", ["status"])
        op.create_index("idx_case_client", "cases", ["client_id"])
        op.create_index("ix_cases_site_id", "cases", ["site_id"])

    if "quotes" not in existing_tables:
        op.create_table(
            "quotes",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("case_id", sa.String(length=36), nullable=False),
            sa.Column("label", sa.String(length=255), nullable=True),
            sa.Column("status", sa.String(length=20), nullable=False),
            sa.Column("amount", sa.Numeric(12, 2), nullable=True),
            sa.Column("currency", sa.String(length=3), nullable=False),
            sa.Column("document_url", sa.String(length=500), nullable=True),
            sa.Column("notes", sa.Text(), nullable=True),
            sa.Column("requested_by_id", sa.String(length=64), nullable=False),
            sa.Column("handled_by_id", sa.String(length=64), nullable=True),
            sa.Column("sent_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("accepted_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("version", sa.Integer(), nullable=False),
            *_timestamps(),
            sa.ForeignKeyConstraint(["case_id"], ["cases.id"], ondelete="RESTRICT"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("idx_quote_case", "quotes", ["case_id"])
        op.create_index("idx_quote_status", "quotes", ["status"])

    if "interventions" not in existing_tables:
        op.create_table(
            "interventions",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("case_id", sa.String(length=36), nullable=False),
            sa.Column("title", sa.String(length=255), nullable=False),
            sa.Column("type", sa.String(length=20), nullable=False),
            sa.Column("status", sa.String(length=30), nullable=False),
            sa.Column("priority", sa.String(length=20), nullable=False),
            sa.Column("technician_id", sa.String(length=64), nullable=True),
            sa.Column("scheduled_start", sa.DateTime(timezone=True), nullable=True),
            sa.Column("scheduled_end", sa.DateTime(timezone=True), nullable=True),
            sa.Column("actual_start", sa.DateTime(timezone=True), nullable=True),
            sa.Column("actual_end", sa.DateTime(timezone=True), nullable=True),
            sa.Column("notes", sa.Text(), nullable=True),
            sa.Column("drive_folder_url", sa.String(length=500), nullable=True),
            sa.Column("version", sa.Integer(), nullable=False),
            *_timestamps(),
            sa.ForeignKeyConstraint(["case_id"], ["cases.id"], ondelete="RESTRICT"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("idx_intervention_case", "interventions", ["case_id"])
        op.create_index("idx_intervention_status", "interventions", ["status"])
        op.create_index("idx_intervention_technician", "interventions", ["technician_id"])

    if "intervention_logs" not in existing_tables:
        op.create_table(
            "intervention_logs",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("intervention_id", sa.String(length=36), nullable=False),
            sa.Column("status_from", sa.String(length=30), nullable=True),
            sa.Column("status_to", sa.String(length=30), nullable=False),
            sa.Column("created_by_id", sa.String(length=64), nullable=False),
            sa.Column("note", sa.Text(), nullable=True),
            sa.Column("idempotency_key", sa.String(length=200), nullable=True),
            *_timestamps(updated=False),
            sa.ForeignKeyConstraint(["intervention_id"], ["interventions.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("idempotency_key", name="uq_ilog_idempotency_key"),
        )
        op.create_index("idx_ilog_intervention", "intervention_logs", ["intervention_id", "created_at"])

    if "intervention_media" not in existing_tables:
        op.create_table(
            "intervention_media",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("intervention_id", sa.String(length=36), nullable=False),
            sa.Column("url", sa.String(length=1000), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("media_type", sa.String(length=20), nullable=False),
            *_timestamps(updated=False),
            sa.ForeignKeyConstraint(["intervention_id"], ["interventions.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_intervention_media_intervention_id", "intervention_media", ["intervention_id"])

    if "quote_requests" not in existing_tables:
        op.create_table(
            "quote_requests",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("intervention_id", sa.String(length=36), nullable=False),
            sa.Column("quote_id", sa.String(length=36), nullable=True),
            sa.Column("description", sa.Text(), nullable=False),
            sa.Column("template_key", sa.String(length=100), nullable=True),
            sa.Column("status", sa.String(length=20), nullable=False),
            *_timestamps(),
            sa.ForeignKeyConstraint(["intervention_id"], ["interventions.id"], ondelete="RESTRICT"),
            sa.ForeignKeyConstraint(["quote_id"], ["quotes.id"], ondelete="SET NULL"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_quote_requests_intervention_id", "quote_requests", ["intervention_id"])
        op.create_index("ix_quote_requests_quote_id", "quote_requests", ["quote_id"])

    if "devices" not in existing_tables:
        op.create_table(
            "devices",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("site_id", sa.String(length=36), nullable=False),
            sa.Column("label", sa.String(length=200), nullable=False),
            sa.Column("brand", sa.String(length=120), nullable=True),
            sa.Column("model", sa.String(length=120), nullable=True),
            sa.Column("serial_number", sa.String(length=120), nullable=True),
            sa.Column("status", sa.String(length=30), nullable=False),
            sa.Column("gps_latitude", sa.Float(), nullable=True),
            sa.Column("gps_longitude", sa.Float(), nullable=True),
            sa.Column("access_location", sa.String(length=255), nullable=True),
            sa.Column("notes", sa.Text(), nullable=True),
            sa.Column("installed_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("retired_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("version", sa.Integer(), nullable=False),
            *_timestamps(),
            sa.ForeignKeyConstraint(["site_id"], ["sites.id"], ondelete="RESTRICT"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("idx_device_site", "devices", ["site_id"])
        op.create_index("idx_device_status", "devices", ["status"])

    if "device_proposals" not in existing_tables:
        op.create_table(
            "device_proposals",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("site_id", sa.String(length=36), nullable=False),
            sa.Column("intervention_id", sa.String(length=36), nullable=False),
            sa.Column("previous_device_id", sa.String(length=36), nullable=True),
            sa.Column("created_device_id", sa.String(length=36), nullable=True),
            sa.Column("label", sa.String(length=200), nullable=False),
            sa.Column("brand", sa.String(length=120), nullable=True),
            sa.Column("model", sa.String(length=120), nullable=True),
            sa.Column("serial_number", sa.String(length=120), nullable=True),
            sa.Column("gps_latitude", sa.Float(), nullable=True),
            sa.Column("gps_longitude", sa.Float(), nullable=True),
            sa.Column("access_location", sa.String(length=255), nullable=True),
            sa.Column("notes", sa.Text(), nullable=True),
            sa.Column("photos_folder_url", sa.String(length=500), nullable=True),
            sa.Column("status", sa.String(length=30), nullable=False),
            sa.Column("validated_by_id", sa.String(length=64), nullable=True),
            sa.Column("validated_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("validation_notes", sa.Text(), nullable=True),
            sa.Column("rejection_note", sa.Text(), nullable=True),
            sa.Column("rejected_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("version", sa.Integer(), nullable=False),
            *_timestamps(),
            sa.ForeignKeyConstraint(["site_id"], ["sites.id"], ondelete="RESTRICT"),
            sa.ForeignKeyConstraint(["intervention_id"], ["interventions.id"], ondelete="RESTRICT"),
            sa.ForeignKeyConstraint(["previous_device_id"], ["devices.id"], ondelete="SET NULL"),
            sa.ForeignKeyConstraint(["created_device_id"], ["devices.id"], ondelete="SET NULL"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("idx_proposal_status", "device_proposals", ["status"])
        op.create_index("ix_device_proposals_intervention_id", "device_proposals", ["intervention_id"])

    if "review_items" not in existing_tables:
        op.create_table(
            "review_items",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("seq", sa.Integer(), nullable=False),
            sa.Column("queue", sa.String(length=30), nullable=False),
            sa.Column("label", sa.String(length=255), nullable=False),
            sa.Column("reference_type", sa.String(length=30), nullable=False),
            sa.Column("reference_id", sa.String(length=36), nullable=False),
            sa.Column("notes", sa.Text(), nullable=True),
            sa.Column("resolved_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("resolved_by_id", sa.String(length=64), nullable=True),
            *_timestamps(updated=False),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("idx_review_reference", "review_items", ["reference_id", "resolved_at"])
        op.create_index("idx_review_queue", "review_items", ["queue"])
        op.create_index("ix_review_items_seq", "review_items", ["seq"])


def downgrade():
    bind = op.get_bind()
    existing_tables = set(sa_inspect(bind).get_table_names())

    for table in (
        "review_items", "device_proposals", "devices", "quote_requests",
        "intervention_media", "intervention_logs", "interventions", "quotes",
        "cases", "sites", "clients",
    ):
        if table in existing_tables:
            op.drop_table(table)
