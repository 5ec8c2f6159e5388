"""Create portfolio tables

Revision ID: 0a1b2c3d4e5f
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "0a1b2c3d4e5f"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _audit_columns() -> list:
    return [
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
    ]


def upgrade() -> None:
    op.create_table(
        "historical_prices",
        sa.Column("symbol", sa.String(length=20), nullable=False),
        sa.Column("region", sa.String(length=8), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("open", sa.Numeric(precision=14, scale=4), nullable=True),
        sa.Column("high", sa.Numeric(precision=14, scale=4), nullable=True),
        sa.Column("low", sa.Numeric(precision=14, scale=4), nullable=True),
        sa.Column("close", sa.Numeric(precision=14, scale=4), nullable=False),
        sa.Column("volume", sa.BigInteger(), nullable=True),
        sa.Column("adjusted_close", sa.Numeric(precision=14, scale=4), nullable=True),
        *_audit_columns(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "symbol",
            "region",
            "date",
            name="uq_historical_prices_symbol_region_date",
        ),
    )
    op.create_index(
        "ix_historical_prices_symbol_region_date",
        "historical_prices",
        ["symbol", "region", "date"],
        unique=False,
    )

    op.create_table(
        "current_prices",
        sa.Column("symbol", sa.String(length=20), nullable=False),
        sa.Column("region", sa.String(length=8), nullable=False),
        sa.Column("regular_market_price", sa.Numeric(precision=14, scale=4), nullable=True),
        sa.Column("regular_market_change_percent", sa.Numeric(precision=12, scale=6), nullable=True),
        sa.Column("fifty_two_week_high", sa.Numeric(precision=14, scale=4), nullable=True),
        sa.Column("fifty_two_week_low", sa.Numeric(precision=14, scale=4), nullable=True),
        sa.Column("dividend_yield", sa.Numeric(precision=12, scale=6), nullable=True),
        sa.Column("market_cap", sa.Numeric(precision=20, scale=2), nullable=True),
        sa.Column("trailing_pe", sa.Numeric(precision=12, scale=4), nullable=True),
        *_audit_columns(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("symbol", "region", name="uq_current_prices_symbol_region"),
    )
    op.create_index(op.f("ix_current_prices_symbol"), "current_prices", ["symbol"], unique=False)
    op.create_index(op.f("ix_current_prices_region"), "current_prices", ["region"], unique=False)

    op.create_table(
        "portfolio_holdings",
        sa.Column("symbol", sa.String(length=20), nullable=False),
        sa.Column("region", sa.String(length=8), nullable=False),
        sa.Column("company", sa.String(length=200), nullable=False),
        sa.Column("stock_type", sa.String(length=10), nullable=False),
        sa.Column("rating", sa.Integer(), nullable=False),
        sa.Column("sector", sa.String(length=100), nullable=True),
        sa.Column("quantity", sa.Numeric(precision=18, scale=4), nullable=False),
        sa.Column("purchase_price", sa.Numeric(precision=14, scale=4), nullable=True),
        *_audit_columns(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("symbol", "region", name="uq_portfolio_holdings_symbol_region"),
    )
    op.create_index(op.f("ix_portfolio_holdings_symbol"), "portfolio_holdings", ["symbol"], unique=False)
    op.create_index(op.f("ix_portfolio_holdings_region"), "portfolio_holdings", ["region"], unique=False)


def downgrade() -> None:
    op.drop_index(op.f("ix_portfolio_holdings_region"), table_name="portfolio_holdings")
    op.drop_index(op.f("ix_portfolio_holdings_symbol"), table_name="portfolio_holdings")
    op.drop_table("portfolio_holdings")
    op.drop_index(op.f("ix_current_prices_region"), table_name="current_prices")
    op.drop_index(op.f("ix_current_prices_symbol"), table_name="current_prices")
    op.drop_table("current_prices")
    op.drop_index("ix_historical_prices_symbol_region_date", table_name="historical_prices")
    op.drop_table("historical_prices")
