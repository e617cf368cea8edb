"""Create saleor_app_configuration table.

Revision ID: 20250601_000001
Revises: 
Create Date: 2025-06-01 00:00:01.000000
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision = "20250601_000001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    bind = op.get_bind()
    inspector = sa.inspect(bind)
    if not inspector.has_table("saleor_app_configuration"):
        op.create_table(
            "saleor_app_configuration",
            sa.Column("id", sa.String(), primary_key=True),
            sa.Column("tenant", sa.Text(), nullable=False),
            sa.Column("app_name", sa.Text(), nullable=False),
            sa.Column(
                "configurations",
                postgresql.JSONB(astext_type=sa.Text()),
                nullable=False,
            ),
            sa.Column(
                "is_active",
                sa.Boolean(),
                nullable=False,
                server_default=sa.text("false"),
            ),
            sa.Column(
                "created_at",
                sa.DateTime(),
                server_default=sa.text("now()"),
                nullable=False,
            ),
            sa.Column(
                "updated_at",
                sa.DateTime(),
                server_default=sa.text("now()"),
                nullable=False,
            ),
            sa.UniqueConstraint(
                "tenant",
                "app_name",
                name="uq_app_configuration_tenant_app",
            ),
        )


def downgrade() -> None:
    op.drop_table("saleor_app_configuration")
