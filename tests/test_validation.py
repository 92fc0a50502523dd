import random

import pytest

from app.pms.errors import ValidationFailed
from app.pms.modules.project.dto import AddWeeklyNoteDto, LinkTaskDto
from app.pms.modules.strategic_brief.dto import CreateBriefDto, RequestRevisionDto
from app.pms.sanitize import sanitize_input, sanitize_rich_text
from app.pms.validation import parse_dto

_FRAGMENTS = [
    "<", ">", "/", "\"", "'", "&", "=", ";", " ", "\t", "\x00", "`",
    "a", "b", "g", "x", "amp", "lt", "#39",
    "<a", "<a href=", " href=", " target=", "https://bc.vn", "javascript:", "?q=1",
    "<b>", "</b>", "<p>", "<script>", "</script>", "<scr", "ipt>", "<!--", "-->",
    "<img src=x>", "&amp;", "&lt;", "&#x3c;",
]


def _generated_inputs(count: int = 3000, seed: int = 20261019) -> list[str]:
    rng = random.Random(seed)
    return ["".join(rng.choice(_FRAGMENTS) for _ in range(rng.randint(1, 12))) for _ in range(count)]


@pytest.mark.parametrize("sanitize", [sanitize_input, sanitize_rich_text], ids=["plain", "rich"])
def test_sanitizers_are_idempotent(sanitize):
    inputs = _generated_inputs() + ['<a href=g"<>', "<scr<script>ipt>alert(1)</script>", "a < b && c > d"]
    unstable = []
    for raw in inputs:
        once = sanitize(raw)
        if sanitize(once) != once:
            unstable.append(raw)
    assert unstable == []


def test_rich_text_drops_attribute_values_that_need_escaping():
    assert sanitize_rich_text('<a href=g"<>x</a>') == "<a>x</a>"
    assert sanitize_rich_text('<a href="https://bc.vn/a?x=1&y=2">x</a>') == "<a>x</a>"


def test_sanitize_input_strips_markup_and_script_bodies():
    assert sanitize_input("<script>alert(1)</script>hello") == "hello"
    assert sanitize_input("<b>bold</b>") == "bold"
    assert sanitize_input("") == ""


def test_rich_text_keeps_basic_formatting_and_https_links():
    out = sanitize_rich_text('<p><strong>Hi</strong> <a href="https://bc.vn">site</a></p><img src=x>')
    assert "<strong>Hi</strong>" in out
    assert 'href="https://bc.vn"' in out
    assert "<img" not in out
    assert "javascript" not in sanitize_rich_text('<a href="javascript:alert(1)">x</a>')


def test_link_task_requires_task_id():
    with pytest.raises(ValidationFailed) as exc:
        parse_dto(LinkTaskDto, {"action": "connect"})
    assert [e["field"] for e in exc.value.errors] == ["taskId"]


def test_link_task_rejects_unknown_action():
    with pytest.raises(ValidationFailed):
        parse_dto(LinkTaskDto, {"taskId": "t1", "action": "toggle"})


def test_link_task_reports_every_failing_field():
    with pytest.raises(ValidationFailed) as exc:
        parse_dto(LinkTaskDto, {"action": "toggle"})
    assert sorted(e["field"] for e in exc.value.errors) == ["action", "taskId"]


def test_link_task_action_is_optional():
    dto = parse_dto(LinkTaskDto, {"taskId": "t1"})
    assert dto.task_id == "t1"
    assert dto.action is None


def test_text_payloads_require_a_string():
    for dto_cls, field in ((AddWeeklyNoteDto, "note"), (RequestRevisionDto, "comment")):
        with pytest.raises(ValidationFailed):
            parse_dto(dto_cls, {})
        with pytest.raises(ValidationFailed):
            parse_dto(dto_cls, {field: 42})


def test_text_payloads_are_sanitized():
    dto = parse_dto(AddWeeklyNoteDto, {"note": "<b>Client</b> agreed"})
    assert dto.note == "Client agreed"


def test_unknown_fields_are_rejected():
    with pytest.raises(ValidationFailed) as exc:
        parse_dto(AddWeeklyNoteDto, {"note": "x", "extra": 1})
    assert exc.value.errors[0]["field"] == "extra"


def test_non_object_body_is_rejected():
    with pytest.raises(ValidationFailed):
        parse_dto(AddWeeklyNoteDto, ["note"])


def test_create_brief_accepts_any_combination_at_the_boundary():
    assert parse_dto(CreateBriefDto, {}).changes() == {}
    both = parse_dto(CreateBriefDto, {"pipelineId": "p", "projectId": "q"})
    assert (both.pipeline_id, both.project_id) == ("p", "q")
