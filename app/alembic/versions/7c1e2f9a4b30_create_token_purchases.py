"""create_token_purchases

Revision ID: 7c1e2f9a4b30
Revises: 
Create Date: 2026-10-19 10:12:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '7c1e2f9a4b30'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table('token_purchases',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('wallet_address', sa.String(), nullable=False),
        sa.Column('amount', sa.String(), nullable=False),
        sa.Column('selected_payment_token', sa.Enum('ETH', 'USDT', 'USDC', name='payment_token'), nullable=False),
        sa.Column('payment_amount', sa.String(), nullable=False),
        sa.Column('payment_tx_hash', sa.String(), nullable=True),
        sa.Column('fulfilled', sa.Boolean(), nullable=False),
        sa.Column('tx_hash', sa.String(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_token_purchases_wallet_address'), 'token_purchases', ['wallet_address'], unique=False)
    op.create_index(op.f('ix_token_purchases_fulfilled'), 'token_purchases', ['fulfilled'], unique=False)


def downgrade() -> None:
    op.drop_index(op.f('ix_token_purchases_fulfilled'), table_name='token_purchases')
    op.drop_index(op.f('ix_token_purchases_wallet_address'), table_name='token_purchases')
    op.drop_table('token_purchases')
    sa.Enum(name='payment_token').drop(op.get_bind(), checkfirst=True)
