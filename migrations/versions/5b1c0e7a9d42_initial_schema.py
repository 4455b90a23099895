"""initial schema

Revision ID: 5b1c0e7a9d42
Revises:
Create Date: 2025-01-15 09:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '5b1c0e7a9d42'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table('processes',
    sa.Column('id', sa.String(length=100), nullable=False),
    sa.Column('name', sa.String(length=255), nullable=False),
    sa.Column('description', sa.Text(), nullable=True),
    sa.Column('created_at', sa.DateTime(), nullable=True),
    sa.Column('updated_at', sa.DateTime(), nullable=True),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('name')
    )
    op.create_table('equipment',
    sa.Column('id', sa.String(length=100), nullable=False),
    sa.Column('name', sa.String(length=255), nullable=False),
    sa.Column('description', sa.Text(), nullable=True),
    sa.Column('category', sa.String(length=50), nullable=True),
    sa.Column('location', sa.String(length=255), nullable=True),
    sa.Column('status', sa.String(length=20), nullable=True),
    sa.Column('documentation_url', sa.Text(), nullable=True),
    sa.Column('image_urls', sa.JSON(), nullable=True),
    sa.Column('created_at', sa.DateTime(), nullable=True),
    sa.Column('updated_at', sa.DateTime(), nullable=True),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_table('kanban_cards',
    sa.Column('id', sa.String(length=100), nullable=False),
    sa.Column('column_id', sa.String(length=100), nullable=False),
    sa.Column('title', sa.String(length=255), nullable=False),
    sa.Column('image_url', sa.Text(), nullable=True),
    sa.Column('assignee', sa.String(length=255), nullable=True),
    sa.Column('material', sa.String(length=255), nullable=True),
    sa.Column('machine', sa.String(length=255), nullable=True),
    sa.Column('due_date', sa.String(length=40), nullable=True),
    sa.Column('content', sa.Text(), nullable=True),
    sa.Column('created_by', sa.String(length=255), nullable=True),
    sa.Column('quantity_per_robot', sa.Integer(), nullable=True),
    sa.Column('quantity_to_make', sa.Integer(), nullable=True),
    sa.Column('onshape_document_id', sa.String(length=100), nullable=True),
    sa.Column('onshape_instance_type', sa.String(length=1), nullable=True),
    sa.Column('onshape_instance_id', sa.String(length=100), nullable=True),
    sa.Column('onshape_element_id', sa.String(length=100), nullable=True),
    sa.Column('onshape_part_id', sa.String(length=100), nullable=True),
    sa.Column('onshape_version_id', sa.String(length=100), nullable=True),
    sa.Column('date_created', sa.DateTime(), nullable=True),
    sa.Column('date_updated', sa.DateTime(), nullable=True),
    sa.PrimaryKeyConstraint('id')
    )
    with op.batch_alter_table('kanban_cards', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_kanban_cards_column_id'), ['column_id'], unique=False)

    op.create_table('kanban_config',
    sa.Column('id', sa.String(length=50), nullable=False),
    sa.Column('columns', sa.JSON(), nullable=False),
    sa.Column('updated_at', sa.DateTime(), nullable=True),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_table('users',
    sa.Column('onshape_user_id', sa.String(length=100), nullable=False),
    sa.Column('name', sa.String(length=255), nullable=True),
    sa.Column('created_at', sa.DateTime(), nullable=True),
    sa.Column('updated_at', sa.DateTime(), nullable=True),
    sa.PrimaryKeyConstraint('onshape_user_id')
    )
    op.create_table('equipment_processes',
    sa.Column('equipment_id', sa.String(length=100), nullable=False),
    sa.Column('process_id', sa.String(length=100), nullable=False),
    sa.ForeignKeyConstraint(['equipment_id'], ['equipment.id'], ondelete='CASCADE'),
    sa.ForeignKeyConstraint(['process_id'], ['processes.id'], ondelete='CASCADE'),
    sa.PrimaryKeyConstraint('equipment_id', 'process_id')
    )
    op.create_table('kanban_card_processes',
    sa.Column('card_id', sa.String(length=100), nullable=False),
    sa.Column('process_id', sa.String(length=100), nullable=False),
    sa.ForeignKeyConstraint(['card_id'], ['kanban_cards.id'], ondelete='CASCADE'),
    sa.ForeignKeyConstraint(['process_id'], ['processes.id'], ondelete='CASCADE'),
    sa.PrimaryKeyConstraint('card_id', 'process_id')
    )


def downgrade():
    op.drop_table('kanban_card_processes')
    op.drop_table('equipment_processes')
    op.drop_table('users')
    op.drop_table('kanban_config')
    with op.batch_alter_table('kanban_cards', schema=None) as batch_op:
        batch_op.drop_index(batch_op.f('ix_kanban_cards_column_id'))

    op.drop_table('kanban_cards')
    op.drop_table('equipment')
    op.drop_table('processes')
