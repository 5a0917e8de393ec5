import os
import tempfile

# Settings are read at import time, so point them at scratch locations first.
_TMP = tempfile.mkdtemp(prefix="dumpmap-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_TMP, 'test.db')}"
os.environ["PHOTO_DIR"] = os.path.join(_TMP, "images")

import requests


class FakeResponse:
    def __init__(self, payload, status_code=200):
        self._payload = payload
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Error")

    def json(self):
        if isinstance(self._payload, Exception):
            raise self._payload
        return self._payload


class FakeCatalog:
    """
    Stands in for a requests.Session against the catalog endpoint.
    Serves `records` by limit/offset; `fail_at_call` makes that call raise.
    """

    def __init__(self, records, fail_at_call=None, status_code=200):
        self.records = list(records)
        self.fail_at_call = fail_at_call
        self.status_code = status_code
        self.calls = []

    def get(self, url, params=None, timeout=None):
        self.calls.append(dict(params))
        if self.fail_at_call is not None and len(self.calls) == self.fail_at_call:
            raise requests.ConnectionError("connection reset")
        limit, offset = params["limit"], params["offset"]
        page = self.records[offset:offset + limit]
        return FakeResponse({"total_count": len(self.records), "results": page}, self.status_code)


def make_record(i, category="dechets", name=None, lon=55.5, lat=-21.1):
    return {
        "geom": {"lon": lon, "lat": lat},
        "image_name": f"photo_{i}.jpg",
        "type": category,
        "name": name if name is not None else f"Report {i}",
        "date": "2024-03-01T10:00:00+00:00",
    }
