"""
AI Completion Services
Thin clients for the chat completion APIs used by AI edits. Both return a
CompletionResult and raise CompletionError when the upstream call fails.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Any, List, Optional

import requests
from anthropic import Anthropic, APIError

logger = logging.getLogger(__name__)


class CompletionError(Exception):
    """Upstream completion call failed"""

    def __init__(self, message: str, retryable: bool = True, status_code: Optional[int] = None):
        super().__init__(message)
        self.retryable = retryable
        self.status_code = status_code


@dataclass
class CompletionRequest:
    """Chat completion request in OpenAI message format"""
    model: str
    messages: List[Dict[str, Any]] = field(default_factory=list)
    temperature: Optional[float] = None
    top_p: Optional[float] = None
    max_tokens: Optional[int] = None
    frequency_penalty: Optional[float] = None
    presence_penalty: Optional[float] = None
    response_format: Optional[Dict[str, Any]] = None

    def to_payload(self) -> Dict[str, Any]:
        """Build the JSON body, leaving out options that were not set"""
        payload = {'model': self.model, 'messages': self.messages}
        for key in ('temperature', 'top_p', 'max_tokens', 'frequency_penalty',
                    'presence_penalty', 'response_format'):
            value = getattr(self, key)
            if value is not None:
                payload[key] = value
        return payload


@dataclass
class CompletionResult:
    text: Optional[str]
    usage_tokens: int = 0


class OpenAICompletionService:
    """Chat completions over plain HTTP"""

    def __init__(self, api_key: str, api_url: str = 'https://api.openai.com/v1/chat/completions',
                 default_model: str = 'gpt-4o-mini', timeout: float = 60.0, session=None):
        if not api_key:
            raise ValueError("OPENAI_API_KEY not set")
        self.api_url = api_url
        self.default_model = default_model
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({
            'Content-Type': 'application/json',
            'Authorization': f'Bearer {api_key}'
        })

    def complete(self, request: CompletionRequest) -> CompletionResult:
        payload = request.to_payload()
        payload['model'] = payload.get('model') or self.default_model

        try:
            response = self.session.post(self.api_url, json=payload, timeout=self.timeout)
            response.raise_for_status()
            result = response.json()
        except requests.exceptions.HTTPError as e:
            status = e.response.status_code if e.response is not None else None
            # 4xx other than rate limiting will fail again on retry
            retryable = status is None or status == 429 or status >= 500
            raise CompletionError(f"OpenAI HTTP error: {e}", retryable=retryable, status_code=status) from e
        except (requests.exceptions.RequestException, ValueError) as e:
            raise CompletionError(f"OpenAI request failed: {e}") from e

        choices = result.get('choices') or []
        message = (choices[0].get('message') or {}) if choices else {}
        usage = result.get('usage') or {}
        return CompletionResult(
            text=message.get('content'),
            usage_tokens=int(usage.get('total_tokens') or 0)
        )


class AnthropicCompletionService:
    """Chat completions through the Anthropic SDK"""

    DEFAULT_MAX_TOKENS = 1024

    def __init__(self, api_key: str, default_model: str = 'claude-3-5-haiku-latest',
                 timeout: float = 60.0, client=None):
        if client is None and not api_key:
            raise ValueError("ANTHROPIC_API_KEY required")
        self.client = client or Anthropic(api_key=api_key, timeout=timeout)
        self.default_model = default_model

    @staticmethod
    def _convert_part(part: Any) -> Optional[Dict[str, Any]]:
        if isinstance(part, str):
            return {'type': 'text', 'text': part}
        if part.get('type') == 'text':
            return {'type': 'text', 'text': part.get('text', '')}
        if part.get('type') == 'image_url':
            url = (part.get('image_url') or {}).get('url')
            if url:
                return {'type': 'image', 'source': {'type': 'url', 'url': url}}
        return None

    def _convert_messages(self, messages: List[Dict[str, Any]]):
        """Split OpenAI-style messages into an Anthropic system prompt and turns"""
        system_parts = []
        converted = []
        for msg in messages:
            content = msg.get('content')
            parts = [content] if isinstance(content, str) else (content or [])
            blocks = [b for b in (self._convert_part(p) for p in parts) if b]
            if msg.get('role') == 'system':
                system_parts.extend(b['text'] for b in blocks if b['type'] == 'text')
                continue
            if blocks:
                role = 'assistant' if msg.get('role') == 'assistant' else 'user'
                converted.append({'role': role, 'content': blocks})
        return '\n\n'.join(system_parts), converted

    def complete(self, request: CompletionRequest) -> CompletionResult:
        system, messages = self._convert_messages(request.messages)
        kwargs = {
            'model': request.model or self.default_model,
            'max_tokens': request.max_tokens or self.DEFAULT_MAX_TOKENS,
            'messages': messages,
        }
        if system:
            kwargs['system'] = system
        if request.temperature is not None:
            kwargs['temperature'] = request.temperature
        if request.top_p is not None:
            kwargs['top_p'] = request.top_p

        try:
            response = self.client.messages.create(**kwargs)
        except APIError as e:
            status = getattr(e, 'status_code', None)
            retryable = status is None or status == 429 or status >= 500
            raise CompletionError(f"Anthropic API error: {e}", retryable=retryable, status_code=status) from e

        text = ''.join(block.text for block in response.content if getattr(block, 'type', None) == 'text')
        usage = getattr(response, 'usage', None)
        tokens = (usage.input_tokens + usage.output_tokens) if usage else 0
        return CompletionResult(text=text or None, usage_tokens=tokens)


def get_completion_service(settings=None):
    """Create the completion service selected by COMPLETION_PROVIDER"""
    if settings is None:
        from config.settings import get_settings
        settings = get_settings()

    if settings.COMPLETION_PROVIDER == 'anthropic':
        logger.info("🤖 Using Anthropic completion service")
        return AnthropicCompletionService(
            api_key=settings.ANTHROPIC_API_KEY,
            default_model=settings.ANTHROPIC_MODEL,
            timeout=settings.COMPLETION_TIMEOUT,
        )

    logger.info("🤖 Using OpenAI completion service")
    return OpenAICompletionService(
        api_key=settings.OPENAI_API_KEY,
        api_url=settings.OPENAI_API_URL,
        default_model=settings.OPENAI_MODEL,
        timeout=settings.COMPLETION_TIMEOUT,
    )
