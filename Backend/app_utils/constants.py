import os

from dotenv import load_dotenv

load_dotenv()

# ---------------- Catalog API ----------------
CATALOG_URL = os.getenv("CATALOG_URL")
CATALOG_PAGE_SIZE = int(os.getenv("CATALOG_PAGE_SIZE", "100"))
CATALOG_MAX_PAGES = int(os.getenv("CATALOG_MAX_PAGES", "500"))  # hard cap against endless pagination
CATALOG_TIMEOUT = float(os.getenv("CATALOG_TIMEOUT", "10"))     # seconds per request

# Raw record keys, first match wins
GEOMETRY_KEY = "geom"
PHOTO_KEY = "image_name"
NAME_KEY = "name"
CATEGORY_KEYS = ("type", "category")
TIMESTAMP_KEYS = ("date", "timestamp")

# ---------------- Map sessions ----------------
SESSION_MAX = int(os.getenv("SESSION_MAX", "50"))                        # oldest evicted beyond this
SESSION_IDLE_TIMEOUT = float(os.getenv("SESSION_IDLE_TIMEOUT", "1800"))  # seconds without access

# ---------------- Photo storage ----------------
PHOTO_DIR = os.getenv("PHOTO_DIR", "images")
MAX_PHOTO_BYTES = int(os.getenv("MAX_PHOTO_BYTES", "12485760"))  # decoded upload size

# ---------------- Map view ----------------
DEFAULT_CENTER = (55.5364, -21.1151)  # (lon, lat), Reunion island
DEFAULT_ZOOM = 10
TILE_SIZE = 256
CLUSTER_DISTANCE = float(os.getenv("CLUSTER_DISTANCE", "40"))  # pixels

# Marker icon geometry (pixels)
MARKER_ICON_SIZE = (38, 95)
MARKER_ICON_ANCHOR = (22, 94)
BADGE_RADIUS = 10

LAT_MIN, LAT_MAX = -90.0, 90.0
LON_MIN, LON_MAX = -180.0, 180.0
