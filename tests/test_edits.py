import pytest

from conftest import FakeCompletionService, FailingCompletionService
from core.completion import CompletionError
from core.edits import AIEdit, TemplateEdit, apply_edit, parse_edit


def ai_edit_payload(**overrides):
    settings = {
        "model": "gpt-4o-mini",
        "messages": [
            {"role": "system", "content": [{"type": "text", "text": "You write product titles."}]},
            {"role": "user", "content": [{"type": "text", "text": "Improve: {{title}}"}]},
        ],
        "temperature": 0.7,
        "top_p": 1,
        "max_completion_tokens": 64,
        "frequency_penalty": 0,
        "presence_penalty": 0,
        "response_format": {"type": "text"},
    }
    settings.update(overrides)
    return {"edit_type": "ai_edit", "settings": settings}


def test_none_edit_returns_none(fake_service):
    assert apply_edit(None, {"title": "x"}, fake_service) is None
    assert fake_service.requests == []


def test_template_edit_resolves_without_service():
    edit = {"edit_type": "dynamic_template", "settings": {"template": "{{vendor}} {{title}}"}}
    assert apply_edit(edit, {"vendor": "Acme", "title": "Shirt"}, None) == "Acme Shirt"


def test_template_edit_can_resolve_to_empty_string():
    assert apply_edit(TemplateEdit("{{missing}}"), {}, None) == ""


def test_ai_edit_sends_resolved_messages_and_strips_reply():
    service = FakeCompletionService(replies=["  Better Linen Shirt \n"])

    result = apply_edit(ai_edit_payload(), {"title": "Linen Shirt"}, service)

    assert result == "Better Linen Shirt"
    request = service.requests[0]
    assert request.model == "gpt-4o-mini"
    assert request.max_tokens == 64
    assert request.temperature == 0.7
    assert request.response_format == {"type": "text"}
    assert request.messages[1]["content"][0]["text"] == "Improve: Linen Shirt"


@pytest.mark.parametrize("reply", [None, "", "   "])
def test_ai_edit_without_content_returns_none(reply):
    service = FakeCompletionService(replies=[reply])
    assert apply_edit(ai_edit_payload(), {"title": "x"}, service) is None


def test_ai_edit_failure_propagates():
    with pytest.raises(CompletionError):
        apply_edit(ai_edit_payload(), {"title": "x"}, FailingCompletionService())


def test_parse_edit_accepts_flat_kind_form():
    edit = parse_edit({"kind": "ai", "model": "m", "messages": [], "max_tokens": 10})
    assert edit == AIEdit(model="m", messages=[], max_tokens=10)

    assert parse_edit({"kind": "template", "template": "t"}) == TemplateEdit("t")


def test_parse_edit_unknown_kind_is_none():
    assert parse_edit({"edit_type": "magic"}) is None
    assert parse_edit("not a dict") is None
