from app_models import Photo


# ---------- Photo ----------
def save_photo(
    db,
    filename,
    content_type,
    width,
    height,
    latitude=None,
    longitude=None
):
    """
    Insert or overwrite the metadata row for a filename.
    Re-uploading a filename replaces the previous photo.
    """
    photo = db.query(Photo).filter(Photo.filename == filename).first()

    if photo is None:
        photo = Photo(filename=filename)
        db.add(photo)

    photo.content_type = content_type
    photo.width = width
    photo.height = height
    photo.latitude = latitude
    photo.longitude = longitude

    db.commit()
    db.refresh(photo)
    return photo


def get_photo(db, filename):
    return db.query(Photo).filter(Photo.filename == filename).first()


def list_photos(db):
    return db.query(Photo).order_by(Photo.filename).all()
