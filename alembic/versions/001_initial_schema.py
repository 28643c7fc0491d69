"""initial schema - opportunities, contacts, mappings, integrations, sync jobs

Revision ID: 001_initial
Revises: None
Create Date: 2026-10-18

For NEW databases: run `alembic upgrade head` (creates all tables from models).
"""
from typing import Sequence, Union

from alembic import op

revision: str = "001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create all tables from SQLAlchemy models.

    checkfirst=True makes it safe on a database where some tables exist.
    """
    from tenderlink.models import Base

    Base.metadata.create_all(bind=op.get_bind(), checkfirst=True)


def downgrade() -> None:
    """Drop all tables. DESTRUCTIVE — only for dev/test environments."""
    from tenderlink.models import Base

    Base.metadata.drop_all(bind=op.get_bind())
