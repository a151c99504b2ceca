"""
Client-side upload/poll state machine.

    initial -> uploading -> checking -> complete
                   |            |
                   +-> error <--+--> timed_out

reset() returns to initial from any state. Polls are chained single-shot
timers: the next one is scheduled only after the previous request settles,
so at most one timer and one request are ever outstanding.
"""

import logging
import threading
import time
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, Optional

import requests

from . import config
from .client import ApiClient, ApiError, AuthSession


class Status(str, Enum):
    INITIAL = "initial"
    UPLOADING = "uploading"
    CHECKING = "checking"
    COMPLETE = "complete"
    ERROR = "error"
    TIMED_OUT = "timed_out"


TERMINAL = {Status.COMPLETE, Status.ERROR, Status.TIMED_OUT}


class WorkflowError(RuntimeError):
    pass


@dataclass(frozen=True)
class AppDetails:
    name: str
    package: str
    version_name: str
    version_code: Any
    apk_sha256: str

    @classmethod
    def from_payload(cls, app: Dict[str, Any]) -> "AppDetails":
        return cls(
            name=app.get("name"),
            package=app.get("package"),
            version_name=app.get("version_name"),
            version_code=app.get("version_code"),
            apk_sha256=app.get("apk_sha256"),
        )


def accepts(path) -> bool:
    return Path(path).name.lower().endswith(config.ALLOWED_EXTENSIONS)


class UploadWorkflow:
    def __init__(
        self,
        client: ApiClient,
        session: AuthSession,
        interval: Optional[float] = None,
        max_attempts: Optional[int] = None,
        deadline: Optional[float] = None,
        on_change: Optional[Callable[["UploadWorkflow"], None]] = None,
        clock: Callable[[], float] = time.monotonic,
        timer_factory=threading.Timer,
    ):
        self.client = client
        self.session = session
        self.interval = config.POLL_INTERVAL if interval is None else interval
        self.max_attempts = config.POLL_MAX_ATTEMPTS if max_attempts is None else max_attempts
        self.deadline = config.POLL_DEADLINE if deadline is None else deadline
        self.on_change = on_change
        self._clock = clock
        self._timer_factory = timer_factory

        self._lock = threading.RLock()
        self._settled = threading.Event()
        self._settled.set()
        self._timer = None
        # identifies the one live timer; callbacks carrying any other token are stale
        self._timer_token = None
        self._timer_seq = 0
        # bumped on every reset/selection; in-flight responses compare against it
        self._generation = 0
        self._clear()

    def _clear(self):
        self.file: Optional[Path] = None
        self.status = Status.INITIAL
        self.progress = 0
        self.result: Optional[AppDetails] = None
        self.jobid: Optional[str] = None
        self.error: Optional[str] = None
        self.attempts = 0
        self._started_at: Optional[float] = None
        self._analyzed = False
        self._polling = False

    # -----------------------------
    # State inspection
    # -----------------------------
    @property
    def has_pending_poll(self) -> bool:
        return self._timer is not None

    @property
    def can_analyze(self) -> bool:
        return self.file is not None and self.status == Status.INITIAL and not self._analyzed

    def _notify(self):
        if self.on_change is not None:
            self.on_change(self)

    # -----------------------------
    # File selection
    # -----------------------------
    def select_file(self, path) -> bool:
        """Select an artifact; anything but an .apk leaves the state untouched."""
        if not accepts(path):
            logging.warning(f"Rejected {path}: please select an .apk file")
            return False

        with self._lock:
            self._cancel_timer()
            self._generation += 1
            self._clear()
            self.file = Path(path)
            self._settled.set()
        self._notify()
        return True

    def drop_file(self, paths: Iterable) -> bool:
        paths = list(paths)
        if not paths:
            return False
        return self.select_file(paths[0])

    def reset(self):
        with self._lock:
            self._cancel_timer()
            self._generation += 1
            self._clear()
            self._settled.set()
        self._notify()

    # -----------------------------
    # Upload
    # -----------------------------
    def analyze(self) -> Status:
        with self._lock:
            if self.file is None:
                raise WorkflowError("No APK selected.")
            if not self.can_analyze:
                raise WorkflowError(f"Analysis already started for this file ({self.status.value}).")

            self._analyzed = True
            self.status = Status.UPLOADING
            self.progress = 0
            self.result = None
            self.error = None
            self._settled.clear()
            generation = self._generation
            path = self.file
        self._notify()

        try:
            jobid = self.client.upload(path, self.session)
        except (ApiError, requests.RequestException) as e:
            logging.error(f"Analysis failed: {e}")
            self._fail(generation, str(e))
            return self.status
        except Exception as e:
            logging.exception("Analysis failed with an unexpected error")
            self._fail(generation, f"Upload failed: {e!r}")
            return self.status

        with self._lock:
            if generation != self._generation:
                return self.status
            self.jobid = jobid
            self.status = Status.CHECKING
            self.progress = 100
            self.attempts = 0
            self._started_at = self._clock()
            self._schedule()
        logging.info(f"Uploaded {path.name}, jobid = {jobid}")
        self._notify()
        return self.status

    # -----------------------------
    # Polling
    # -----------------------------
    def poll_once(self) -> Status:
        """Poll immediately instead of waiting for the timer."""
        with self._lock:
            if self.status != Status.CHECKING:
                raise WorkflowError(f"Nothing to poll in state {self.status.value}.")
            if self._polling:
                raise WorkflowError("A poll is already in flight.")
            self._cancel_timer()
            generation = self._generation
        self._poll(generation)
        return self.status

    def _schedule(self):
        self._timer_seq += 1
        token = self._timer_seq
        timer = self._timer_factory(self.interval, self._tick, args=(token,))
        timer.daemon = True
        self._timer = timer
        self._timer_token = token
        timer.start()

    def _cancel_timer(self):
        if self._timer is not None:
            self._timer.cancel()
        self._timer = None
        self._timer_token = None

    def _tick(self, token: int):
        with self._lock:
            if token != self._timer_token or self.status != Status.CHECKING:
                return
            self._timer = None
            self._timer_token = None
            generation = self._generation
        self._poll(generation)

    def _poll(self, generation: int):
        with self._lock:
            if generation != self._generation or self._polling:
                return
            self._polling = True
            self.attempts += 1
            jobid = self.jobid

        try:
            data = self.client.result(jobid, self.session)
        except (ApiError, requests.RequestException) as e:
            logging.error(f"Error during polling: {e}")
            self._fail(generation, str(e))
            return
        except Exception as e:
            logging.exception("Polling failed with an unexpected error")
            self._fail(generation, f"Polling failed: {e!r}")
            return

        with self._lock:
            if generation != self._generation:
                return
            self._polling = False
            if self.status != Status.CHECKING:
                return

            status = data.get("status") if isinstance(data, dict) else None
            if status == "complete":
                try:
                    app = data["result"]["app"]
                    self.result = AppDetails.from_payload(app)
                except (KeyError, TypeError, AttributeError):
                    self.status = Status.ERROR
                    self.error = "Analysis result is missing app details."
                else:
                    self.status = Status.COMPLETE
                    logging.info(f"Job {jobid} complete after {self.attempts} polls")
                self._settled.set()
            elif self.attempts >= self.max_attempts or self._clock() - self._started_at >= self.deadline:
                self.status = Status.TIMED_OUT
                self.error = f"Analysis did not complete after {self.attempts} polls."
                logging.warning(f"Job {jobid} timed out")
                self._settled.set()
            else:
                self._schedule()
        self._notify()

    def _fail(self, generation: int, message: str):
        with self._lock:
            if generation != self._generation:
                return
            self._polling = False
            self._cancel_timer()
            self.status = Status.ERROR
            self.error = message
            self._settled.set()
        self._notify()

    def wait(self, timeout: Optional[float] = None) -> Status:
        """Block until the workflow is idle or terminal."""
        self._settled.wait(timeout)
        return self.status
