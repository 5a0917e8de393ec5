import logging
import re
from io import BytesIO

from PIL import ExifTags, Image, UnidentifiedImageError

logger = logging.getLogger(__name__)

GPS_IFD = 0x8825


# ---------------------------
# HELPERS
# ---------------------------
def _ratio_to_float(value):
    try:
        return value[0] / value[1]
    except Exception:
        return float(value)


def _convert_to_degrees(value):
    """
    Converts EXIF GPS coordinates to decimal degrees
    Handles ((deg,1),(min,1),(sec,100)) and IFDRational triples
    """
    try:
        d = _ratio_to_float(value[0])
        m = _ratio_to_float(value[1])
        s = _ratio_to_float(value[2])
        return d + (m / 60.0) + (s / 3600.0)
    except Exception:
        return None


def _parse_semicolon_coords(value):
    """
    Parses '16; 18; 9.41' style strings into decimal degrees
    """
    parts = str(value).split(";")
    if len(parts) < 3:
        return None
    try:
        d, m, s = (float(p.strip()) for p in parts[:3])
    except ValueError:
        return None
    return d + (m / 60.0) + (s / 3600.0)


def _parse_gps_position_string(value: str):
    """
    Fallback parser for GPSPosition string
    Example: 43 deg 28' 2.81" N, 11 deg 53' 6.46" E
    """
    matches = re.findall(r"(\d+)\D+(\d+)\D+([\d.]+)", value)
    if len(matches) < 2:
        return None

    lat_d, lat_m, lat_s = map(float, matches[0])
    lon_d, lon_m, lon_s = map(float, matches[1])

    lat = lat_d + lat_m / 60 + lat_s / 3600
    lon = lon_d + lon_m / 60 + lon_s / 3600

    if "S" in value:
        lat = -lat
    if "W" in value:
        lon = -lon

    return {"latitude": lat, "longitude": lon}


def _read_axis(tags, value_key, ref_key, negative_refs):
    raw = tags.get(value_key)
    if raw is None:
        return None
    degrees = _convert_to_degrees(raw)
    if degrees is None:
        degrees = _parse_semicolon_coords(raw)
    if degrees is not None and tags.get(ref_key) in negative_refs:
        degrees = -degrees
    return degrees


# ---------------------------
# EXIF GPS EXTRACTION
# ---------------------------
def extract_gps(img):
    """Latitude/longitude from an opened image's EXIF, or None."""
    exif = img.getexif()
    if not exif:
        return None

    gps_info = exif.get_ifd(GPS_IFD)
    if gps_info:
        tags = {ExifTags.GPSTAGS.get(k, k): v for k, v in gps_info.items()}
        lat = _read_axis(tags, "GPSLatitude", "GPSLatitudeRef", ("S", "s", b"S"))
        lon = _read_axis(tags, "GPSLongitude", "GPSLongitudeRef", ("W", "w", b"W"))
        if lat is not None and lon is not None:
            return {"latitude": lat, "longitude": lon}

    # Some devices only write a combined GPSPosition string
    tag_map = {ExifTags.TAGS.get(k, k): v for k, v in exif.items()}
    gps_position = tag_map.get("GPSPosition")
    if isinstance(gps_position, str):
        return _parse_gps_position_string(gps_position)
    return None


# ---------------------------
# IMAGE METADATA
# ---------------------------
def read_image_info(image_bytes: bytes):
    """
    Pixel dimensions, MIME type and EXIF GPS of an image.
    Raises ValueError when the bytes are not a readable image.
    """
    try:
        img = Image.open(BytesIO(image_bytes))
    except (UnidentifiedImageError, OSError) as e:
        raise ValueError("Data is not a readable image") from e

    with img:
        width, height = img.size
        content_type = Image.MIME.get(img.format, "application/octet-stream")
        try:
            gps = extract_gps(img)
        except Exception as e:
            logger.debug("Could not read EXIF GPS: %s", e)
            gps = None

    return {
        "width": width,
        "height": height,
        "content_type": content_type,
        "latitude": gps["latitude"] if gps else None,
        "longitude": gps["longitude"] if gps else None,
    }
