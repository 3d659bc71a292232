"""Add rules overrides table and mission shelter flag

Revision ID: b3d5f7a9c1e2
Revises: a1c2e3f4b5d6
Create Date: 2026-10-20 10:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 'b3d5f7a9c1e2'
down_revision = 'a1c2e3f4b5d6'
branch_labels = None
depends_on = None


def upgrade():
    """Store admin rule edits in the database; flag granted mission shelters."""
    op.create_table(
        'merit_rules_overrides',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('version', sa.Integer(), nullable=False),
        sa.Column('settings', sa.JSON(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )

    with op.batch_alter_table('weekly_missions', schema=None) as batch_op:
        batch_op.add_column(
            sa.Column('shelter_granted', sa.Boolean(), nullable=False, server_default=sa.false())
        )

    # Missions paid before this revision already received their shelter
    op.execute("UPDATE weekly_missions SET shelter_granted = completed")


def downgrade():
    """Drop the rules overrides table and the mission shelter flag."""
    with op.batch_alter_table('weekly_missions', schema=None) as batch_op:
        batch_op.drop_column('shelter_granted')

    op.drop_table('merit_rules_overrides')
