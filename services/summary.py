import json
import logging
from concurrent.futures import ThreadPoolExecutor

from errors import InvalidAttendanceDate, MalformedDelegateResponse
from services.delegates import call_with_timeout
from utils.date_utils import filter_history, parse_date

logger = logging.getLogger(__name__)


def build_attendance_data(roster, start, end):
    return [
        {
            "name": s.name,
            "rollNumber": s.roll_number,
            "presentDates": filter_history(s.attendance_history, start, end),
        }
        for s in roster
    ]


class SummaryRequester:
    """One summarization call per request; no retry, no caching."""

    def __init__(self, delegate, timeout=30.0):
        self.delegate = delegate
        self.timeout = timeout
        self._pool = ThreadPoolExecutor(max_workers=2, thread_name_prefix="summary")

    def shutdown(self):
        self._pool.shutdown(wait=False)

    def summarize(self, class_code, start, end, roster):
        start, end = parse_date(start, "start date"), parse_date(end, "end date")
        if start > end:
            raise InvalidAttendanceDate("Start date must not be after end date")

        attendance_data = json.dumps(build_attendance_data(roster, start, end))
        response = call_with_timeout(self._pool, self.timeout, self.delegate.summarize,
                                     class_code, start.isoformat(), end.isoformat(), attendance_data)

        summary = response.get("summary") if isinstance(response, dict) else None
        if not isinstance(summary, str):
            raise MalformedDelegateResponse("AI service did not return a summary")
        logger.info("Summary generated for %s (%s..%s)", class_code, start, end)
        return summary
