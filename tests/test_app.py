"""HTTP surface of the generator page."""

import io
import threading

import pytest

import app as app_module
from conftest import SAMPLE_RESULT, BlockingClient
from errors import InvalidApiKeyError, MalformedResponseError
from lesson_planner import PlannerRegistry


def fill_required(client):
    client.post("/api/form", json={"field": "lessonTitle", "value": "Bài 1. Làm quen với Python"})
    return client.post("/api/form/content/textbookContent",
                       json={"kind": "text", "value": "Python là ngôn ngữ lập trình."})


def test_index_renders_form(client):
    resp = client.get("/")
    assert resp.status_code == 200
    body = resp.get_data(as_text=True)
    assert "Trợ lý Soạn Kế Hoạch Bài Dạy" in body
    assert "Lớp 6" in body and "Lớp 12" in body
    assert resp.headers["X-Content-Type-Options"] == "nosniff"


def test_form_state_starts_blocked(client):
    data = client.get("/api/form").get_json()
    assert data["canGenerate"] is False
    assert data["inFlight"] is False
    assert data["form"]["subject"] == "Tin học"


def test_generate_enabled_once_required_fields_present(client):
    client.post("/api/form", json={"field": "lessonTitle", "value": "Bài 1"})
    assert client.get("/api/form").get_json()["canGenerate"] is False
    data = fill_required(client).get_json()
    assert data["canGenerate"] is True


def test_numeric_field_coerced(client):
    data = client.post("/api/form", json={"field": "studentCount", "value": "abc"}).get_json()
    assert data["form"]["studentCount"] == 0


def test_invalid_field_is_400(client):
    resp = client.post("/api/form", json={"field": "grade", "value": "99"})
    assert resp.status_code == 400
    assert resp.get_json()["kind"] == "invalid-field"


def test_kind_switch_resets_value(client):
    fill_required(client)
    data = client.post("/api/form/content/textbookContent", json={"kind": "file"}).get_json()
    assert data["form"]["textbookContent"] == {"kind": "file", "value": None}
    assert data["canGenerate"] is False


def test_file_upload(client):
    client.post("/api/form", json={"field": "lessonTitle", "value": "Bài 1"})
    resp = client.post(
        "/api/form/content/textbookContent",
        data={"file": (io.BytesIO(b"%PDF-1.4 sgk"), "sgk.pdf", "application/pdf")},
        content_type="multipart/form-data",
    )
    data = resp.get_json()
    assert resp.status_code == 200
    assert data["form"]["textbookContent"]["value"]["filename"] == "sgk.pdf"
    assert data["canGenerate"] is True


def test_generate_without_required_fields_is_400(client, fake_client):
    resp = client.post("/api/generate")
    assert resp.status_code == 400
    assert resp.get_json()["kind"] == "invalid-input"
    assert fake_client.calls == []


def test_generate_success(client, fake_client):
    fill_required(client)
    resp = client.post("/api/generate")
    assert resp.status_code == 200
    data = resp.get_json()
    assert data["result"] == SAMPLE_RESULT.to_dict()
    assert 'class="section-header"' in data["lessonPlanHtml"]
    assert "PHIẾU HỌC TẬP" in data["worksheetHtml"]
    assert len(fake_client.calls) == 1

    stored = client.get("/api/result").get_json()
    assert stored["result"]["lessonPlan"] == SAMPLE_RESULT.lesson_plan
    assert stored["inFlight"] is False


def test_generate_failures_show_distinct_messages(client, fake_client):
    fill_required(client)
    messages = []
    for exc in (InvalidApiKeyError(), MalformedResponseError()):
        fake_client.error = exc
        resp = client.post("/api/generate")
        assert resp.status_code == 502
        data = resp.get_json()
        assert data["result"] is None
        messages.append((data["kind"], data["error"]))
    assert messages[0][0] == "invalid-api-key"
    assert messages[1][0] == "malformed-response"
    assert messages[0][1] != messages[1][1]


def test_sessions_are_isolated(flask_app):
    first, second = flask_app.test_client(), flask_app.test_client()
    fill_required(first)
    assert first.get("/api/form").get_json()["canGenerate"] is True
    assert second.get("/api/form").get_json()["canGenerate"] is False


def test_export_doc(client):
    resp = client.post("/api/export-doc", json={"content": "## Tiêu đề", "filename": "Giáo án.doc"})
    assert resp.status_code == 200
    assert resp.mimetype == "application/msword"
    assert "attachment" in resp.headers["Content-Disposition"]
    assert resp.data.startswith(b"\xef\xbb\xbf")
    assert "<h2>Tiêu đề</h2>" in resp.data.decode("utf-8-sig")


def test_export_doc_requires_content(client):
    assert client.post("/api/export-doc", json={"content": "  "}).status_code == 400


def test_export_html(client):
    data = client.post("/api/export-html", json={"content": "* a\n* b"}).get_json()
    assert data == {"html": "<ul><li>a</li><li>b</li></ul>"}


def test_unknown_api_route_is_json(client):
    resp = client.get("/api/nothing")
    assert resp.status_code == 404
    assert resp.get_json() == {"error": "Not found"}


@pytest.mark.parametrize("body", [
    {"field": ["x"], "value": "1"},
    {"field": {"a": 1}, "value": "1"},
    ["field", "value"],
])
def test_malformed_form_update_is_400(client, body):
    assert client.post("/api/form", json=body).status_code == 400


def test_huge_numeric_edit_is_coerced(client):
    data = client.post("/api/form", json={"field": "studentCount", "value": "9" * 5000}).get_json()
    assert data["form"]["studentCount"] == 0


def test_unhashable_content_kind_is_400(client):
    resp = client.post("/api/form/content/textbookContent", json={"kind": ["text"]})
    assert resp.status_code == 400
    assert resp.get_json()["kind"] == "invalid-field"


@pytest.mark.parametrize("body", [
    {"content": None},
    {"content": 42},
    {"content": ["## a"]},
    {"content": "## a", "filename": ["x.doc"]},
])
def test_export_doc_rejects_non_string_payload(client, body):
    resp = client.post("/api/export-doc", json=body)
    assert resp.status_code == 400
    assert "error" in resp.get_json()


@pytest.mark.parametrize("content", [None, 42, {"a": 1}])
def test_export_html_rejects_non_string_content(client, content):
    resp = client.post("/api/export-html", json={"content": content})
    assert resp.status_code == 400


def test_page_restores_result_box_when_generation_is_refused(client):
    body = client.get("/").get_data(as_text=True)
    assert "resultBox.innerHTML = previous;" in body


def test_duplicate_generate_is_409(monkeypatch):
    blocking = BlockingClient()
    registry = PlannerRegistry(blocking)
    monkeypatch.setattr(app_module, "planners", registry)
    app_module.app.config["TESTING"] = True
    client = app_module.app.test_client()
    fill_required(client)

    with client.session_transaction() as sess:
        _, planner = registry.get(sess["planner_id"])
    worker = threading.Thread(target=planner.generate)
    worker.start()
    try:
        assert blocking.started.wait(timeout=5)
        assert client.get("/api/result").get_json()["inFlight"] is True

        resp = client.post("/api/generate")
        assert resp.status_code == 409
        assert resp.get_json()["kind"] == "in-flight"
        assert len(blocking.calls) == 1
    finally:
        blocking.release.set()
        worker.join(timeout=5)

    assert client.get("/api/result").get_json()["result"]["lessonPlan"] == SAMPLE_RESULT.lesson_plan
