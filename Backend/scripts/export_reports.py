"""
Fetch every report from the catalog and write it as a GeoJSON file.

    python scripts/export_reports.py --out reports.geojson
"""
import argparse
import json
import logging
import sys

from app_utils.constants import CATALOG_PAGE_SIZE, CATALOG_URL
from app_utils.errors import PipelineError
from app_utils.normalize import normalize
from app_utils.pagination import fetch_all

logger = logging.getLogger("export_reports")


def export(url, page_size, out_path):
    records = fetch_all(url, page_size)
    collection = normalize(records)

    geojson = {
        "type": "FeatureCollection",
        "features": [f.to_geojson() for f in collection],
    }
    with open(out_path, "w", encoding="utf-8") as f:
        json.dump(geojson, f, ensure_ascii=False)

    logger.info(
        "Wrote %d reports to %s (%d malformed skipped)",
        len(collection), out_path, collection.malformed_count,
    )
    return collection


def main(argv=None):
    parser = argparse.ArgumentParser(description=__doc__.strip().splitlines()[0])
    parser.add_argument("--url", default=CATALOG_URL, help="Catalog records endpoint")
    parser.add_argument("--page-size", type=int, default=CATALOG_PAGE_SIZE)
    parser.add_argument("--out", default="reports.geojson")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    if not args.url:
        parser.error("no catalog URL; pass --url or set CATALOG_URL")

    try:
        export(args.url, args.page_size, args.out)
    except PipelineError as e:
        logger.error("Export failed: %s", e)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
