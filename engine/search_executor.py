import logging
import time
from dataclasses import dataclass, field

from engine.json_utils import safe_json_dumps
from slskd.errors import SlskdError

logger = logging.getLogger(__name__)

MIN_POLL_DELAY_SECONDS = 0.5
MAX_POLL_DELAY_SECONDS = 5.0
EXTENSION_POLL_SECONDS = 1.0


def _log_event(level, message, **fields):
    payload = {"message": message, **fields}
    try:
        logger.log(level, safe_json_dumps(payload, sort_keys=True))
    except Exception as exc:
        logger.log(level, f"log_event_serialization_failed: {exc} message={message}")


def quadratic_delay(progress):
    """Seconds to wait before the next status poll.

    Long waits while few files have arrived, short ones mid-way, long
    again as the file ceiling is approached.
    """
    p = min(1.0, max(0.0, float(progress)))
    delay = 16 * p * p - 16 * p + 5
    return min(MAX_POLL_DELAY_SECONDS, max(MIN_POLL_DELAY_SECONDS, delay))


@dataclass
class SearchOutcome:
    search_id: str
    responses: list = field(default_factory=list)
    file_count: int = 0
    timed_out: bool = False
    info_url: str | None = None


class RemoteSearchExecutor:
    """Issues one query to the backend and waits for it to settle.

    The backend must provide ``start_search``, ``get_status``,
    ``get_results``, ``cancel_search`` and ``remove_search``.
    """

    def __init__(self, backend, settings, *, clock=None, sleep=None):
        self.backend = backend
        self.settings = settings
        self._clock = clock or time.monotonic
        self._sleep = sleep

    def _pause(self, seconds, stop_event):
        if stop_event and stop_event.is_set():
            return True
        if self._sleep is not None:
            self._sleep(seconds)
        elif stop_event is not None:
            return stop_event.wait(seconds)
        else:
            time.sleep(seconds)
        return bool(stop_event and stop_event.is_set())

    def _cancel(self, search_id):
        try:
            self.backend.cancel_search(search_id)
        except Exception:
            logger.warning("Failed to cancel search %s", search_id, exc_info=True)

    def _cleanup(self, search_id, interactive):
        if interactive:
            return
        try:
            self.backend.remove_search(search_id)
        except Exception:
            logger.warning("Failed to remove search %s", search_id, exc_info=True)

    def _info_url(self, search_id):
        base = getattr(self.settings, "info_base_url", "")
        return f"{base}/searches/{search_id}" if base else None

    def run(self, text, *, interactive=False, stop_event=None):
        """Return a :class:`SearchOutcome`, or None when nothing usable came back."""
        if stop_event and stop_event.is_set():
            return None
        try:
            return self._run(text, interactive, stop_event)
        except SlskdError as exc:
            logger.warning("Search for '%s' failed: %s", text, exc)
            return None

    def _run(self, text, interactive, stop_event):
        search_id = self.backend.start_search(text)
        if not search_id:
            logger.warning("Backend refused search for '%s'", text)
            return None
        try:
            return self._poll(search_id, interactive, stop_event)
        except SlskdError as exc:
            logger.warning("Search %s for '%s' failed: %s", search_id, text, exc)
            self._cancel(search_id)
            self._cleanup(search_id, interactive)
            return None

    def _poll(self, search_id, interactive, stop_event):
        timeout = max(0.0, float(self.settings.timeout_seconds))
        extension = max(0.0, float(self.settings.timeout_extension_seconds))
        file_limit = max(1, int(self.settings.file_limit))
        started = self._clock()
        extension_deadline = None
        max_files = 0
        timed_out = False
        polls = 0

        while True:
            status = self.backend.get_status(search_id)
            polls += 1
            if status is None:
                logger.info("Search %s disappeared from the backend", search_id)
                return None
            max_files = max(max_files, status.file_count)
            if not status.in_progress:
                break

            now = self._clock()
            if extension_deadline is None and now - started >= timeout:
                extension_deadline = now + extension
                _log_event(
                    logging.WARNING,
                    "search_timeout_extended",
                    search_id=search_id,
                    extension_seconds=extension,
                    files=max_files,
                )
            if extension_deadline is not None:
                if now >= extension_deadline:
                    timed_out = True
                    _log_event(
                        logging.WARNING,
                        "search_timeout_exhausted",
                        search_id=search_id,
                        files=max_files,
                    )
                    self._cancel(search_id)
                    break
                delay = EXTENSION_POLL_SECONDS
            else:
                delay = quadratic_delay(max_files / file_limit)

            if self._pause(delay, stop_event):
                _log_event(logging.INFO, "search_cancelled", search_id=search_id, polls=polls)
                self._cancel(search_id)
                return None

        responses = self.backend.get_results(search_id)
        self._cleanup(search_id, interactive)
        if responses is None:
            return None
        _log_event(
            logging.INFO,
            "search_completed",
            search_id=search_id,
            files=max_files,
            responses=len(responses),
            polls=polls,
            timed_out=timed_out,
        )
        return SearchOutcome(
            search_id=search_id,
            responses=list(responses),
            file_count=max_files,
            timed_out=timed_out,
            info_url=self._info_url(search_id),
        )
