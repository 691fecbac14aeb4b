from types import SimpleNamespace

import httpx
import pytest
import requests
from anthropic import APIConnectionError

from core.completion import (
    AnthropicCompletionService,
    CompletionError,
    CompletionRequest,
    OpenAICompletionService,
    get_completion_service,
)


class FakeResponse:
    def __init__(self, payload=None, status_code=200):
        self.payload = payload or {}
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.exceptions.HTTPError(f"{self.status_code} error", response=self)

    def json(self):
        return self.payload


class FakeSession:
    def __init__(self, response=None, error=None):
        self.headers = {}
        self.response = response
        self.error = error
        self.calls = []

    def post(self, url, json=None, timeout=None):
        self.calls.append({'url': url, 'json': json, 'timeout': timeout})
        if self.error is not None:
            raise self.error
        return self.response


class FakeAnthropicClient:
    def __init__(self, response=None, error=None):
        self.calls = []
        self.error = error
        self.response = response
        self.messages = SimpleNamespace(create=self.create)

    def create(self, **kwargs):
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        return self.response


def openai_service(session):
    return OpenAICompletionService(api_key='sk-test', api_url='https://llm.example.com/v1/chat',
                                   timeout=5, session=session)


def test_openai_payload_and_result():
    session = FakeSession(FakeResponse({
        'choices': [{'message': {'content': 'Hello'}}],
        'usage': {'total_tokens': 21},
    }))
    service = openai_service(session)

    result = service.complete(CompletionRequest(
        model='', messages=[{'role': 'user', 'content': 'Hi'}], temperature=0.2, max_tokens=50))

    assert result.text == 'Hello'
    assert result.usage_tokens == 21
    assert session.headers['Authorization'] == 'Bearer sk-test'
    call = session.calls[0]
    assert call['url'] == 'https://llm.example.com/v1/chat'
    assert call['timeout'] == 5
    assert call['json'] == {
        'model': 'gpt-4o-mini',
        'messages': [{'role': 'user', 'content': 'Hi'}],
        'temperature': 0.2,
        'max_tokens': 50,
    }


def test_openai_empty_choices_returns_no_text():
    result = openai_service(FakeSession(FakeResponse({'choices': []}))).complete(CompletionRequest(model='m'))
    assert result.text is None
    assert result.usage_tokens == 0


@pytest.mark.parametrize("status, retryable", [(429, True), (503, True), (400, False)])
def test_openai_http_errors(status, retryable):
    service = openai_service(FakeSession(FakeResponse(status_code=status)))
    with pytest.raises(CompletionError) as exc:
        service.complete(CompletionRequest(model='m'))
    assert exc.value.status_code == status
    assert exc.value.retryable is retryable


def test_openai_connection_error_is_retryable():
    service = openai_service(FakeSession(error=requests.exceptions.ConnectionError("down")))
    with pytest.raises(CompletionError) as exc:
        service.complete(CompletionRequest(model='m'))
    assert exc.value.retryable


def test_openai_requires_key():
    with pytest.raises(ValueError):
        OpenAICompletionService(api_key='')


def test_anthropic_converts_messages():
    client = FakeAnthropicClient(SimpleNamespace(
        content=[SimpleNamespace(type='text', text='Bonjour')],
        usage=SimpleNamespace(input_tokens=12, output_tokens=3),
    ))
    service = AnthropicCompletionService(api_key='', default_model='claude-test', client=client)

    result = service.complete(CompletionRequest(model='', messages=[
        {'role': 'system', 'content': [{'type': 'text', 'text': 'Be brief.'}]},
        {'role': 'user', 'content': [
            {'type': 'text', 'text': 'Translate'},
            {'type': 'image_url', 'image_url': {'url': 'https://cdn.example.com/a.jpg'}},
        ]},
    ], temperature=0.1))

    assert result.text == 'Bonjour'
    assert result.usage_tokens == 15
    kwargs = client.calls[0]
    assert kwargs['model'] == 'claude-test'
    assert kwargs['system'] == 'Be brief.'
    assert kwargs['max_tokens'] == AnthropicCompletionService.DEFAULT_MAX_TOKENS
    assert kwargs['temperature'] == 0.1
    assert kwargs['messages'] == [{'role': 'user', 'content': [
        {'type': 'text', 'text': 'Translate'},
        {'type': 'image', 'source': {'type': 'url', 'url': 'https://cdn.example.com/a.jpg'}},
    ]}]


def test_anthropic_errors_are_wrapped():
    error = APIConnectionError(request=httpx.Request('POST', 'https://api.anthropic.com/v1/messages'))
    service = AnthropicCompletionService(api_key='', client=FakeAnthropicClient(error=error))
    with pytest.raises(CompletionError) as exc:
        service.complete(CompletionRequest(model='m', messages=[{'role': 'user', 'content': 'x'}]))
    assert exc.value.retryable


def test_get_completion_service_picks_provider():
    settings = SimpleNamespace(
        COMPLETION_PROVIDER='anthropic', ANTHROPIC_API_KEY='ak', ANTHROPIC_MODEL='claude-test',
        OPENAI_API_KEY='sk', OPENAI_API_URL='https://llm.example.com', OPENAI_MODEL='gpt-test',
        COMPLETION_TIMEOUT=3,
    )
    assert isinstance(get_completion_service(settings), AnthropicCompletionService)

    settings.COMPLETION_PROVIDER = 'openai'
    service = get_completion_service(settings)
    assert isinstance(service, OpenAICompletionService)
    assert service.default_model == 'gpt-test'
