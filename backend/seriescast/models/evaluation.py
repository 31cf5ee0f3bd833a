from sqlalchemy import Column, DateTime, Float, ForeignKey, Integer, func
from sqlalchemy.orm import relationship
from seriescast.db.base import Base

class Evaluation(Base):
    """Retrospective score of a Prediction, written once when its target date gets real data."""

    __tablename__ = "evaluations"

    id = Column(Integer, primary_key=True)
    prediction_id = Column(
        Integer,
        ForeignKey("predictions.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    actual_value = Column(Float, nullable=False)
    error = Column(Float, nullable=False)           # actual - predicted
    absolute_error = Column(Float, nullable=False)
    percentage_error = Column(Float, nullable=False)
    evaluated_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    prediction = relationship("Prediction", back_populates="evaluation")
