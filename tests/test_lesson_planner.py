"""Orchestration: result/error slot and the in-flight guard."""

import threading

from conftest import SAMPLE_RESULT, BlockingClient, FakeClient
from errors import (
    GenerationInFlightError, InvalidApiKeyError, InvalidInputError, MalformedResponseError,
)
from lesson_planner import LessonPlanner, PlannerRegistry


def test_generate_stores_result(ready_form, fake_client):
    planner = LessonPlanner(fake_client, form=ready_form)
    result, error = planner.generate()
    assert result is SAMPLE_RESULT
    assert error is None
    assert planner.result is SAMPLE_RESULT
    assert len(fake_client.calls) == 1
    assert not planner.in_flight


def test_invalid_form_never_reaches_the_client(fake_client):
    planner = LessonPlanner(fake_client)
    result, error = planner.generate()
    assert result is None
    assert isinstance(error, InvalidInputError)
    assert fake_client.calls == []
    assert planner.error is None


def test_failure_clears_previous_result(ready_form):
    client = FakeClient()
    planner = LessonPlanner(client, form=ready_form)
    planner.generate()
    assert planner.result is not None

    client.error = MalformedResponseError()
    result, error = planner.generate()
    assert result is None
    assert planner.result is None
    assert isinstance(planner.error, MalformedResponseError)


def test_invalid_key_and_malformed_messages_differ(ready_form):
    shown = []
    for exc in (InvalidApiKeyError(), MalformedResponseError()):
        planner = LessonPlanner(FakeClient(error=exc), form=ready_form)
        _, error = planner.generate()
        shown.append(error.message)
    assert shown[0] != shown[1]


def test_unhandled_exception_becomes_unexpected(ready_form):
    planner = LessonPlanner(FakeClient(error=RuntimeError("boom")), form=ready_form)
    _, error = planner.generate()
    assert error.kind == "unexpected"


def test_second_submission_while_in_flight_is_rejected(ready_form):
    client = BlockingClient()
    planner = LessonPlanner(client, form=ready_form)
    outcome = {}

    worker = threading.Thread(target=lambda: outcome.setdefault("first", planner.generate()))
    worker.start()
    assert client.started.wait(timeout=5)
    assert planner.in_flight
    assert not planner.can_generate

    result, error = planner.generate()
    assert result is None
    assert isinstance(error, GenerationInFlightError)
    assert len(client.calls) == 1

    client.release.set()
    worker.join(timeout=5)
    assert outcome["first"] == (SAMPLE_RESULT, None)
    assert not planner.in_flight
    assert planner.can_generate


def test_generation_uses_the_submitted_snapshot(ready_form):
    client = BlockingClient()
    planner = LessonPlanner(client, form=ready_form)
    worker = threading.Thread(target=planner.generate)
    worker.start()
    assert client.started.wait(timeout=5)

    planner.update_field("lessonTitle", "Bài khác")
    client.release.set()
    worker.join(timeout=5)

    assert "Bài 1. Làm quen với Python" in client.calls[0][0]["text"]
    assert planner.form.lesson_title == "Bài khác"


def test_content_updates_through_planner(fake_client):
    planner = LessonPlanner(fake_client)
    planner.update_field("lessonTitle", "Bài 1")
    planner.set_content_value("textbookContent", "text", "abc")
    assert planner.can_generate
    planner.switch_content_kind("textbookContent", "file")
    assert not planner.can_generate
    planner.attach_file("textbookContent", "sgk.pdf", "application/pdf", b"%PDF")
    assert planner.state()["canGenerate"] is True


def test_registry_reuses_and_evicts(fake_client):
    registry = PlannerRegistry(fake_client, max_size=2)
    first_id, first = registry.get()
    same_id, same = registry.get(first_id)
    assert same_id == first_id and same is first

    unknown_id, _ = registry.get("not-a-real-id")
    assert unknown_id != "not-a-real-id"

    registry.get()
    assert len(registry) == 2
    new_id, new_planner = registry.get(first_id)
    assert new_id != first_id
