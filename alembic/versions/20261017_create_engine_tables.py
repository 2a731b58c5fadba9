"""Create supplier engine tables.

Revision ID: 20261017_engine
Revises:
Create Date: 2026-10-17

Marketplace tables read by the engine:
- users, categories, cities
- category_suppliers, city_suppliers, machine_suppliers
- portfolios, portfolio_images, reviews, projects

Engine-owned tables:
- quotes (at most one PENDING quote per project/supplier)
- supplier_ratings (one row per supplier)
- conversations, messages
- distribution_jobs
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '20261017_engine'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # ============================================
    # MARKETPLACE
    # ============================================
    op.create_table(
        'users',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('full_name', sa.String(255), nullable=True),
        sa.Column('role', sa.String(20), nullable=False, server_default='CUSTOMER'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('is_blocked', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('premium_level', sa.String(20), nullable=False, server_default='NONE'),
        sa.Column('workshop_name', sa.String(255), nullable=True),
        sa.Column('workshop_address', sa.Text(), nullable=True),
        sa.Column('profile_image_url', sa.String(500), nullable=True),
        sa.Column('cover_image_url', sa.String(500), nullable=True),
        sa.Column('last_login_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )

    op.create_table(
        'categories',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('title', sa.String(255), nullable=False),
    )
    op.create_table(
        'cities',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('title', sa.String(255), nullable=False),
    )

    op.create_table(
        'category_suppliers',
        sa.Column('category_id', sa.String(36), sa.ForeignKey('categories.id', ondelete='CASCADE'), primary_key=True),
        sa.Column('supplier_id', sa.String(36), sa.ForeignKey('users.id', ondelete='CASCADE'), primary_key=True),
    )
    op.create_index('ix_category_suppliers_supplier_id', 'category_suppliers', ['supplier_id'])

    op.create_table(
        'city_suppliers',
        sa.Column('city_id', sa.String(36), sa.ForeignKey('cities.id', ondelete='CASCADE'), primary_key=True),
        sa.Column('supplier_id', sa.String(36), sa.ForeignKey('users.id', ondelete='CASCADE'), primary_key=True),
    )
    op.create_index('ix_city_suppliers_supplier_id', 'city_suppliers', ['supplier_id'])

    op.create_table(
        'machine_suppliers',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('supplier_id', sa.String(36), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('machine_name', sa.String(255), nullable=True),
    )
    op.create_index('ix_machine_suppliers_supplier_id', 'machine_suppliers', ['supplier_id'])

    op.create_table(
        'portfolios',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('supplier_id', sa.String(36), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('title', sa.String(255), nullable=True),
    )
    op.create_index('ix_portfolios_supplier_id', 'portfolios', ['supplier_id'])

    op.create_table(
        'portfolio_images',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('portfolio_id', sa.String(36), sa.ForeignKey('portfolios.id', ondelete='CASCADE'), nullable=False),
        sa.Column('url', sa.String(500), nullable=False),
    )
    op.create_index('ix_portfolio_images_portfolio_id', 'portfolio_images', ['portfolio_id'])

    op.create_table(
        'reviews',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('supplier_id', sa.String(36), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('customer_id', sa.String(36), nullable=True),
        sa.Column('rating', sa.Integer(), nullable=False),
        sa.Column('response_time_hours', sa.Float(), nullable=True),
        sa.Column('is_approved', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('is_deleted', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    op.create_index('ix_reviews_supplier_id', 'reviews', ['supplier_id'])

    op.create_table(
        'projects',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('customer_id', sa.String(36), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('category_id', sa.String(36), sa.ForeignKey('categories.id'), nullable=False),
        sa.Column('city_id', sa.String(36), sa.ForeignKey('cities.id'), nullable=False),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('status', sa.String(20), nullable=False, server_default='PENDING'),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    op.create_index('ix_projects_customer_id', 'projects', ['customer_id'])

    # ============================================
    # QUOTES
    # ============================================
    op.create_table(
        'quotes',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('project_id', sa.String(36), sa.ForeignKey('projects.id', ondelete='CASCADE'), nullable=False),
        sa.Column('supplier_id', sa.String(36), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('price', sa.Float(), nullable=False),
        sa.Column('delivery_time_days', sa.Integer(), nullable=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('status', sa.String(20), nullable=False, server_default='PENDING'),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('accepted_at', sa.DateTime(), nullable=True),
        sa.Column('rejected_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_quotes_project_id', 'quotes', ['project_id'])
    op.create_index('ix_quotes_supplier_id', 'quotes', ['supplier_id'])
    op.create_index(
        'ux_quotes_pending_project_supplier',
        'quotes',
        ['project_id', 'supplier_id'],
        unique=True,
        sqlite_where=sa.text("status = 'PENDING'"),
        postgresql_where=sa.text("status = 'PENDING'"),
    )

    # ============================================
    # SUPPLIER RATINGS
    # ============================================
    op.create_table(
        'supplier_ratings',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('supplier_id', sa.String(36), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('total_score', sa.Float(), nullable=False, server_default='0'),
        sa.Column('premium_score', sa.Float(), nullable=False, server_default='0'),
        sa.Column('review_score', sa.Float(), nullable=False, server_default='0'),
        sa.Column('profile_score', sa.Float(), nullable=False, server_default='0'),
        sa.Column('response_score', sa.Float(), nullable=False, server_default='0'),
        sa.Column('activity_score', sa.Float(), nullable=False, server_default='0'),
        sa.Column('penalties', sa.Float(), nullable=False, server_default='0'),
        sa.Column('last_calculated_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_supplier_ratings_supplier_id', 'supplier_ratings', ['supplier_id'], unique=True)

    # ============================================
    # MESSAGING
    # ============================================
    op.create_table(
        'conversations',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('customer_id', sa.String(36), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('supplier_id', sa.String(36), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('project_id', sa.String(36), sa.ForeignKey('projects.id', ondelete='SET NULL'), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('last_message_at', sa.DateTime(), nullable=True),
        sa.UniqueConstraint('customer_id', 'supplier_id', 'project_id', name='uq_conversations_participants_project'),
    )
    op.create_index('ix_conversations_customer_id', 'conversations', ['customer_id'])
    op.create_index('ix_conversations_supplier_id', 'conversations', ['supplier_id'])

    op.create_table(
        'messages',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('conversation_id', sa.String(36), sa.ForeignKey('conversations.id', ondelete='CASCADE'), nullable=False),
        sa.Column('sender_id', sa.String(36), nullable=False),
        sa.Column('content', sa.Text(), nullable=False),
        sa.Column('metadata', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    op.create_index('ix_messages_conversation_id', 'messages', ['conversation_id'])

    # ============================================
    # DISTRIBUTION JOBS
    # ============================================
    op.create_table(
        'distribution_jobs',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('queue', sa.String(100), nullable=False),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('payload', sa.JSON(), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='waiting'),
        sa.Column('attempts', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('max_attempts', sa.Integer(), nullable=False, server_default='3'),
        sa.Column('backoff_delay', sa.Float(), nullable=False, server_default='2.0'),
        sa.Column('backoff_factor', sa.Float(), nullable=False, server_default='2.0'),
        sa.Column('next_run_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('last_error', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.Column('finished_at', sa.DateTime(), nullable=True),
    )
    op.create_index(
        'ix_distribution_jobs_queue_status_next',
        'distribution_jobs',
        ['queue', 'status', 'next_run_at'],
    )


def downgrade() -> None:
    op.drop_index('ix_distribution_jobs_queue_status_next', table_name='distribution_jobs')
    op.drop_table('distribution_jobs')

    op.drop_index('ix_messages_conversation_id', table_name='messages')
    op.drop_table('messages')
    op.drop_index('ix_conversations_supplier_id', table_name='conversations')
    op.drop_index('ix_conversations_customer_id', table_name='conversations')
    op.drop_table('conversations')

    op.drop_index('ix_supplier_ratings_supplier_id', table_name='supplier_ratings')
    op.drop_table('supplier_ratings')

    op.drop_index('ux_quotes_pending_project_supplier', table_name='quotes')
    op.drop_index('ix_quotes_supplier_id', table_name='quotes')
    op.drop_index('ix_quotes_project_id', table_name='quotes')
    op.drop_table('quotes')

    op.drop_index('ix_projects_customer_id', table_name='projects')
    op.drop_table('projects')
    op.drop_index('ix_reviews_supplier_id', table_name='reviews')
    op.drop_table('reviews')
    op.drop_index('ix_portfolio_images_portfolio_id', table_name='portfolio_images')
    op.drop_table('portfolio_images')
    op.drop_index('ix_portfolios_supplier_id', table_name='portfolios')
    op.drop_table('portfolios')
    op.drop_index('ix_machine_suppliers_supplier_id', table_name='machine_suppliers')
    op.drop_table('machine_suppliers')
    op.drop_index('ix_city_suppliers_supplier_id', table_name='city_suppliers')
    op.drop_table('city_suppliers')
    op.drop_index('ix_category_suppliers_supplier_id', table_name='category_suppliers')
    op.drop_table('category_suppliers')
    op.drop_table('cities')
    op.drop_table('categories')
    op.drop_table('users')
