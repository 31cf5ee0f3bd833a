from sqlalchemy import Column, Date, DateTime, Float, ForeignKey, Integer, String, UniqueConstraint, func
from sqlalchemy.orm import relationship
from seriescast.db.base import Base

class Prediction(Base):
    __tablename__ = "predictions"

    id = Column(Integer, primary_key=True)
    series_id = Column(Integer, ForeignKey("series.id", ondelete="CASCADE"), nullable=False, index=True)
    target_date = Column(Date, nullable=False)
    predicted_value = Column(Float, nullable=False)
    algorithm_version = Column(String(32), nullable=False)
    based_on_last_date = Column(Date, nullable=False)  # real frontier when the forecast was made
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    series = relationship("Series", back_populates="predictions")
    evaluation = relationship(
        "Evaluation",
        back_populates="prediction",
        uselist=False,
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (UniqueConstraint("series_id", "target_date", name="uq_prediction_day"),)
