from sqlalchemy import Column, Date, Float, ForeignKey, Index, Integer, UniqueConstraint
from sqlalchemy.orm import relationship
from seriescast.db.base import Base

class DataPoint(Base):
    __tablename__ = "data_points"

    id = Column(Integer, primary_key=True)
    series_id = Column(Integer, ForeignKey("series.id", ondelete="CASCADE"), nullable=False)
    date = Column(Date, nullable=False)  # yyyy-mm-dd
    value = Column(Float, nullable=False)

    series = relationship("Series", back_populates="data_points")

    __table_args__ = (
        UniqueConstraint("series_id", "date", name="uq_data_points_series_date"),
        Index("ix_data_points_series_date", "series_id", "date"),
    )
