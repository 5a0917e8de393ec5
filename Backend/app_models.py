from sqlalchemy import Column, Integer, String, Float, DateTime
from sqlalchemy.sql import func
from database import Base


class Photo(Base):
    __tablename__ = "photos"

    id = Column(Integer, primary_key=True, autoincrement=True)
    filename = Column(String, unique=True, index=True, nullable=False)
    content_type = Column(String, nullable=False)

    # Pixel dimensions read from the stored image
    width = Column(Integer, nullable=False)
    height = Column(Integer, nullable=False)

    # EXIF GPS, when the camera wrote one
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())
