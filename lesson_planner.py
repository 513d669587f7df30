"""
Lesson planner orchestration.
One LessonPlanner per browser session owns the form record and the single
result/error slot, and refuses a second generation while one is running.
"""

import logging
import threading
import uuid
from collections import OrderedDict

import form_state
from errors import GenerationInFlightError, InvalidInputError, LessonPlanError, UnexpectedGenerationError
from prompt_builder import build_prompt_parts

logger = logging.getLogger(__name__)


class LessonPlanner:

    def __init__(self, client, form=None):
        self.client = client
        self.form = form or form_state.LessonPlanFormData()
        self.result = None
        self.error = None
        self._generating = threading.Lock()

    # ── Form updates ────────────────────────────────────────

    def update_field(self, name, value):
        self.form = form_state.update_field(self.form, name, value)
        return self.form

    def switch_content_kind(self, name, kind):
        self.form = form_state.switch_content_kind(self.form, form_state.resolve_field(name), kind)
        return self.form

    def set_content_value(self, name, kind, value):
        self.form = form_state.set_content_value(self.form, form_state.resolve_field(name), kind, value)
        return self.form

    def attach_file(self, name, filename, mime_type, data):
        self.form = form_state.attach_file(self.form, form_state.resolve_field(name),
                                           filename, mime_type, data)
        return self.form

    # ── Derived state ───────────────────────────────────────

    @property
    def in_flight(self):
        return self._generating.locked()

    @property
    def can_generate(self):
        return form_state.can_generate(self.form) and not self.in_flight

    def state(self):
        return {
            "form": form_state.form_to_dict(self.form),
            "canGenerate": self.can_generate,
            "inFlight": self.in_flight,
        }

    # ── Generation ──────────────────────────────────────────

    def generate(self):
        """
        Run one generation on the current form snapshot.
        Returns (GenerationResult | None, LessonPlanError | None).
        A duplicate submission or a form that fails validation leaves the
        result/error slot untouched.
        """
        if not self._generating.acquire(blocking=False):
            logger.info("Rejected duplicate generation request")
            return None, GenerationInFlightError()
        try:
            form = self.form
            if not form_state.can_generate(form):
                return None, InvalidInputError()

            self.result = None
            self.error = None
            try:
                self.result = self.client.generate(build_prompt_parts(form))
            except LessonPlanError as e:
                self.error = e
            except Exception:
                logger.exception("Unhandled failure while generating a lesson plan")
                self.error = UnexpectedGenerationError()
            return self.result, self.error
        finally:
            self._generating.release()


class PlannerRegistry:
    """Bounded in-memory map of planner id -> LessonPlanner, least recently used evicted first."""

    def __init__(self, client, max_size=500):
        self.client = client
        self.max_size = max_size
        self._planners = OrderedDict()
        self._lock = threading.Lock()

    def get(self, planner_id=None):
        """Return (planner_id, planner), creating a fresh planner for unknown ids."""
        with self._lock:
            if planner_id and planner_id in self._planners:
                self._planners.move_to_end(planner_id)
                return planner_id, self._planners[planner_id]

            planner_id = uuid.uuid4().hex
            self._planners[planner_id] = LessonPlanner(self.client)
            while len(self._planners) > self.max_size:
                evicted, planner = next(iter(self._planners.items()))
                if planner.in_flight:
                    self._planners.move_to_end(evicted)
                    break
                del self._planners[evicted]
            return planner_id, self._planners[planner_id]

    def __len__(self):
        return len(self._planners)
