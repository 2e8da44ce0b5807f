import calendar
from datetime import datetime
from typing import Any

import pytz

from shared.search.document.Document import Document

DATE_FORMAT = "%Y-%m-%dT%H:%M:%SZ"


class SolrDocument(Document):
    """Document whose times travel to and from Solr as UTC ISO-8601 strings."""

    @classmethod
    def format_time_for_engine(cls, timestamp: int) -> str:
        return datetime.fromtimestamp(int(timestamp), pytz.utc).strftime(DATE_FORMAT)

    @classmethod
    def import_time_from_engine(cls, time: Any) -> int:
        """Parses a Solr date back to a unix timestamp. Sub-second precision is dropped."""
        if isinstance(time, (int, float)):
            return int(time)
        value = str(time).strip()
        # Solr may return milliseconds, e.g. 2016-01-01T10:00:00.123Z
        if "." in value:
            value = value.split(".", 1)[0] + "Z"
        parsed = datetime.strptime(value, DATE_FORMAT)
        return calendar.timegm(parsed.timetuple())
