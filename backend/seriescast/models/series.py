from sqlalchemy import Boolean, Column, Date, DateTime, Float, Integer, String, func
from sqlalchemy.orm import relationship
from seriescast.db.base import Base

class Series(Base):
    """
    Series = one tracked metric (company/place) with its own cadence and history.
    frequency_days stays NULL until the first successful upload fixes it.
    """

    __tablename__ = "series"

    id = Column(Integer, primary_key=True, index=True)
    owner_id = Column(String(64), nullable=True, index=True)
    company = Column(String(255), nullable=False)
    place = Column(String(255), nullable=False)
    frequency_days = Column(Integer, nullable=True)
    min_bound = Column(Float, nullable=True)
    max_bound = Column(Float, nullable=True)
    last_date = Column(Date, nullable=True)
    is_deleted = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    data_points = relationship(
        "DataPoint",
        back_populates="series",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    predictions = relationship(
        "Prediction",
        back_populates="series",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
