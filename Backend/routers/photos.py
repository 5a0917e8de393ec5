from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import Response
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from typing import List

import base64
import binascii
import logging
import os
from pathlib import Path

from database import get_db
from app_utils.constants import MAX_PHOTO_BYTES, PHOTO_DIR
from app_utils.exif import read_image_info
from schemas import PhotoUpload, PhotoInfo, MessageResponse
from crud import save_photo, get_photo, list_photos

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Photos"])

# Directory for storing photo bytes
PHOTO_PATH = Path(PHOTO_DIR)
PHOTO_PATH.mkdir(parents=True, exist_ok=True)


def _safe_filename(filename: str) -> str:
    name = filename.strip()
    if not name or name in {".", ".."} or "/" in name or "\\" in name or "\x00" in name:
        raise HTTPException(status_code=400, detail=f"Invalid filename: {filename!r}")
    return name


def _decode_base64(data: str) -> bytes:
    # Browsers often send data URLs: data:image/jpeg;base64,....
    if data.startswith("data:") and "," in data:
        data = data.split(",", 1)[1]
    # 4 base64 chars per 3 bytes; reject before decoding
    if len(data) // 4 * 3 > MAX_PHOTO_BYTES + 3:
        raise HTTPException(status_code=413, detail="Photo is too large")
    try:
        return base64.b64decode(data, validate=True)
    except (binascii.Error, ValueError):
        raise HTTPException(status_code=400, detail="Photo data is not valid base64")


# ==================================================
# UPLOAD PHOTO
# ==================================================
@router.post("/images", response_model=MessageResponse)
def upload_photo(payload: PhotoUpload, db: Session = Depends(get_db)):
    """
    Store a report photo sent as base64.
    - Reads pixel dimensions (and EXIF GPS if present) from the image.
    - Writes the bytes under PHOTO_DIR and records the metadata.
    - An existing photo with the same filename is overwritten.
    """
    filename = _safe_filename(payload.filename)
    image_bytes = _decode_base64(payload.data)
    if not image_bytes:
        raise HTTPException(status_code=400, detail="Photo data is empty")
    if len(image_bytes) > MAX_PHOTO_BYTES:
        raise HTTPException(status_code=413, detail="Photo is too large")

    try:
        info = read_image_info(image_bytes)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    # Bytes take their real name only once the metadata row is committed
    path = PHOTO_PATH / filename
    partial = PHOTO_PATH / f".{filename}.part"
    with open(partial, "wb") as f:
        f.write(image_bytes)

    try:
        save_photo(
            db=db,
            filename=filename,
            content_type=info["content_type"],
            width=info["width"],
            height=info["height"],
            latitude=info["latitude"],
            longitude=info["longitude"],
        )
    except SQLAlchemyError:
        db.rollback()
        partial.unlink(missing_ok=True)
        raise
    os.replace(partial, path)
    logger.info("Saved photo %s (%dx%d)", filename, info["width"], info["height"])

    return {"message": "Image saved!", "code": 200}


# ==================================================
# LIST PHOTOS
# ==================================================
@router.get("/images", response_model=List[PhotoInfo])
def get_photos(db: Session = Depends(get_db)):
    return [
        {
            "filename": photo.filename,
            "dimensions": {"width": photo.width, "height": photo.height},
        }
        for photo in list_photos(db)
    ]


# ==================================================
# GET PHOTO BY FILENAME
# ==================================================
@router.get("/image/{filename}")
def get_photo_bytes(filename: str, db: Session = Depends(get_db)):
    filename = _safe_filename(filename)
    photo = get_photo(db, filename)
    path = PHOTO_PATH / filename

    if not photo or not path.is_file():
        raise HTTPException(status_code=404, detail="Image not found")

    return Response(
        content=path.read_bytes(),
        media_type=photo.content_type,
        headers={
            "Content-Disposition": f'inline; filename="{photo.filename}"'
        }
    )
