"""
Template Substitution
Fills {{key}} placeholders in edit templates and prompt messages from a flat
product context.
"""

import re
from typing import Dict, Any, List, Optional, Mapping

_PLACEHOLDER_RE = re.compile(r'\{\{(.*?)\}\}', re.DOTALL)


def resolve_template(template: Optional[str], context: Mapping[str, Any]) -> str:
    """
    Replace every {{key}} marker in template with its value from context.

    Keys are stripped before lookup. Unknown keys render as an empty string,
    and substituted values are never scanned again.

    Args:
        template: Template text, may be None or empty
        context: Flat mapping of key -> value

    Returns:
        Resolved string (never None)
    """
    if not template:
        return ''

    def _substitute(match):
        key = match.group(1).strip()
        if key not in context:
            return ''
        value = context[key]
        return '' if value is None else str(value)

    return _PLACEHOLDER_RE.sub(_substitute, template)


def resolve_messages(messages: List[Dict[str, Any]], context: Mapping[str, Any]) -> List[Dict[str, Any]]:
    """Resolve the text parts of chat messages, leaving other parts untouched"""
    resolved = []
    for msg in messages or []:
        content = msg.get('content')
        if isinstance(content, str):
            new_content = resolve_template(content, context)
        else:
            new_content = []
            for part in content or []:
                if isinstance(part, dict) and part.get('type') == 'text':
                    new_content.append({**part, 'text': resolve_template(part.get('text'), context)})
                else:
                    new_content.append(part)
        resolved.append({'role': msg.get('role', 'user'), 'content': new_content})
    return resolved
