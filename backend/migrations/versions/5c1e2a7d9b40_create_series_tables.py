from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "5c1e2a7d9b40"
down_revision = None
branch_labels = None
depends_on = None

def upgrade():
    op.create_table(
        "series",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("owner_id", sa.String(length=64), nullable=True),
        sa.Column("company", sa.String(length=255), nullable=False),
        sa.Column("place", sa.String(length=255), nullable=False),
        sa.Column("frequency_days", sa.Integer(), nullable=True),
        sa.Column("min_bound", sa.Float(), nullable=True),
        sa.Column("max_bound", sa.Float(), nullable=True),
        sa.Column("last_date", sa.Date(), nullable=True),
        sa.Column("is_deleted", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_series_id", "series", ["id"])
    op.create_index("ix_series_owner_id", "series", ["owner_id"])

    op.create_table(
        "data_points",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("series_id", sa.Integer(), sa.ForeignKey("series.id", ondelete="CASCADE"), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("value", sa.Float(), nullable=False),
        sa.UniqueConstraint("series_id", "date", name="uq_data_points_series_date"),
    )
    op.create_index("ix_data_points_series_date", "data_points", ["series_id", "date"])

    op.create_table(
        "predictions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("series_id", sa.Integer(), sa.ForeignKey("series.id", ondelete="CASCADE"), nullable=False),
        sa.Column("target_date", sa.Date(), nullable=False),
        sa.Column("predicted_value", sa.Float(), nullable=False),
        sa.Column("algorithm_version", sa.String(length=32), nullable=False),
        sa.Column("based_on_last_date", sa.Date(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint("series_id", "target_date", name="uq_prediction_day"),
    )
    op.create_index("ix_predictions_series_id", "predictions", ["series_id"])

    op.create_table(
        "evaluations",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "prediction_id",
            sa.Integer(),
            sa.ForeignKey("predictions.id", ondelete="CASCADE"),
            nullable=False,
            unique=True,
        ),
        sa.Column("actual_value", sa.Float(), nullable=False),
        sa.Column("error", sa.Float(), nullable=False),
        sa.Column("absolute_error", sa.Float(), nullable=False),
        sa.Column("percentage_error", sa.Float(), nullable=False),
        sa.Column("evaluated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )

def downgrade():
    op.drop_table("evaluations")
    op.drop_index("ix_predictions_series_id", table_name="predictions")
    op.drop_table("predictions")
    op.drop_index("ix_data_points_series_date", table_name="data_points")
    op.drop_table("data_points")
    op.drop_index("ix_series_owner_id", table_name="series")
    op.drop_index("ix_series_id", table_name="series")
    op.drop_table("series")
