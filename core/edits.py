"""
Field Edit Descriptors
An edit describes how a product field gets its new value: either a static
template filled from the product context, or an AI completion whose prompt
messages are templated the same way.
"""

from dataclasses import dataclass, field
from typing import Dict, Any, List, Optional, Mapping, Union

from core.completion import CompletionRequest
from core.templating import resolve_template, resolve_messages

TEMPLATE_KINDS = ('template', 'dynamic_template')
AI_KINDS = ('ai', 'ai_edit')


@dataclass(frozen=True)
class TemplateEdit:
    template: str


@dataclass(frozen=True)
class AIEdit:
    model: str
    messages: List[Dict[str, Any]] = field(default_factory=list)
    temperature: Optional[float] = None
    top_p: Optional[float] = None
    max_tokens: Optional[int] = None
    frequency_penalty: Optional[float] = None
    presence_penalty: Optional[float] = None
    response_format: Optional[Dict[str, Any]] = None


EditDescriptor = Union[TemplateEdit, AIEdit]


def parse_edit(raw: Any) -> Optional[EditDescriptor]:
    """
    Build an edit descriptor from its JSON form.

    Accepts {"edit_type": "dynamic_template" | "ai_edit", "settings": {...}}
    as sent by the editor frontend, or the flat {"kind": "template" | "ai", ...}
    form. Already-built descriptors are returned as is.

    Returns:
        TemplateEdit, AIEdit, or None for empty/unknown input
    """
    if raw is None or isinstance(raw, (TemplateEdit, AIEdit)):
        return raw
    if not isinstance(raw, dict):
        return None

    kind = raw.get('edit_type') or raw.get('kind')
    options = raw.get('settings') if isinstance(raw.get('settings'), dict) else raw

    if kind in TEMPLATE_KINDS:
        return TemplateEdit(template=options.get('template') or '')

    if kind in AI_KINDS:
        max_tokens = options.get('max_tokens')
        if max_tokens is None:
            max_tokens = options.get('max_completion_tokens')
        return AIEdit(
            model=options.get('model') or '',
            messages=list(options.get('messages') or []),
            temperature=options.get('temperature'),
            top_p=options.get('top_p'),
            max_tokens=max_tokens,
            frequency_penalty=options.get('frequency_penalty'),
            presence_penalty=options.get('presence_penalty'),
            response_format=options.get('response_format'),
        )

    return None


def apply_edit(edit: Any, context: Mapping[str, Any], completion_service) -> Optional[str]:
    """
    Resolve an edit against a product context.

    Args:
        edit: Edit descriptor or its JSON form, may be None
        context: Flat product context used for {{key}} substitution
        completion_service: Object with complete(CompletionRequest) -> CompletionResult

    Returns:
        The new field value, '' when a template resolves to nothing, or None
        when there is no edit or the model returned no content.

    Raises:
        CompletionError: the completion service failed; not handled here
    """
    edit = parse_edit(edit)
    if edit is None:
        return None

    if isinstance(edit, TemplateEdit):
        return resolve_template(edit.template, context)

    request = CompletionRequest(
        model=edit.model,
        messages=resolve_messages(edit.messages, context),
        temperature=edit.temperature,
        top_p=edit.top_p,
        max_tokens=edit.max_tokens,
        frequency_penalty=edit.frequency_penalty,
        presence_penalty=edit.presence_penalty,
        response_format=edit.response_format,
    )
    result = completion_service.complete(request)
    text = (result.text or '').strip() if result is not None else ''
    return text or None
