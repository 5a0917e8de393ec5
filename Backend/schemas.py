from pydantic import BaseModel, Field
from typing import List, Optional

from app_utils.constants import DEFAULT_CENTER, DEFAULT_ZOOM


# Photo service Schemas
class PhotoUpload(BaseModel):
    filename: str
    data: str                 # base64, optionally a data: URL


class Dimensions(BaseModel):
    width: int
    height: int


class PhotoInfo(BaseModel):
    filename: str
    dimensions: Dimensions


class MessageResponse(BaseModel):
    message: str
    code: int


# Report map Schemas
class FilterRequest(BaseModel):
    category: Optional[str] = None
    keyword: Optional[str] = None


class ViewportRequest(BaseModel):
    center_lon: float = Field(DEFAULT_CENTER[0], ge=-180, le=180)
    center_lat: float = Field(DEFAULT_CENTER[1], ge=-90, le=90)
    zoom: float = Field(DEFAULT_ZOOM, ge=0, le=24)
    width: int = Field(800, gt=0)
    height: int = Field(600, gt=0)
    distance: Optional[float] = Field(None, gt=0, description="Cluster distance in pixels")


class CategoryCount(BaseModel):
    category: str
    count: int


class CategoryResponse(BaseModel):
    status: str
    categories: List[CategoryCount]
