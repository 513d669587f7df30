"""Shared fixtures: offline provider, fake generation clients, Flask test client."""

import os
import threading

os.environ.setdefault("AI_PROVIDER", "offline")
os.environ.setdefault("FLASK_SECRET_KEY", "test-secret-key")

import pytest  # noqa: E402

from form_state import LessonPlanFormData, TextContent  # noqa: E402
from generation_client import GenerationResult, ImageSuggestion  # noqa: E402

SAMPLE_RESULT = GenerationResult(
    lesson_plan="**BÀI 1. LÀM QUEN VỚI PYTHON**\n**Thời lượng:** 2 tiết\n\n**I. MỤC TIÊU**",
    worksheet="**PHIẾU HỌC TẬP**\n* Câu 1",
    images=(ImageSuggestion(description="Sơ đồ", prompt="A diagram"),),
)


class FakeClient:
    """Stands in for GenerationClient; records every call."""

    def __init__(self, result=SAMPLE_RESULT, error=None):
        self.result = result
        self.error = error
        self.calls = []

    def generate(self, segments):
        self.calls.append(segments)
        if self.error is not None:
            raise self.error
        return self.result


class BlockingClient(FakeClient):
    """Holds the generation open until release is set."""

    def __init__(self, result=SAMPLE_RESULT):
        super().__init__(result=result)
        self.started = threading.Event()
        self.release = threading.Event()

    def generate(self, segments):
        self.calls.append(segments)
        self.started.set()
        self.release.wait(timeout=5)
        return self.result


@pytest.fixture
def fake_client():
    return FakeClient()


@pytest.fixture
def ready_form():
    return LessonPlanFormData(
        lesson_title="Bài 1. Làm quen với Python",
        textbook_content=TextContent("Python là ngôn ngữ lập trình bậc cao."),
    )


@pytest.fixture
def flask_app(monkeypatch, fake_client):
    import app as app_module
    from lesson_planner import PlannerRegistry

    monkeypatch.setattr(app_module, "planners", PlannerRegistry(fake_client))
    app_module.app.config["TESTING"] = True
    return app_module.app


@pytest.fixture
def client(flask_app):
    return flask_app.test_client()
