"""
Application Settings
Reads configuration from environment variables (.env supported via python-dotenv)
"""

import os
from functools import lru_cache
from typing import Dict, Any, Tuple

from dotenv import load_dotenv

load_dotenv()

PROJECT_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, default))
    except (TypeError, ValueError):
        return default


def _env_float(name: str, default: float) -> float:
    try:
        return float(os.getenv(name, default))
    except (TypeError, ValueError):
        return default


class Settings:
    """Runtime configuration for the bulk editor"""

    def __init__(self):
        self.DEBUG = _env_bool('DEBUG', False)
        self.LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO').upper()

        self.DATABASE_PATH = os.getenv('DATABASE_PATH') or os.path.join(PROJECT_DIR, 'products.db')

        # Completion provider: 'openai' or 'anthropic'
        self.COMPLETION_PROVIDER = os.getenv('COMPLETION_PROVIDER', 'openai').strip().lower()
        self.OPENAI_API_KEY = os.getenv('OPENAI_API_KEY', '').strip()
        self.OPENAI_API_URL = os.getenv('OPENAI_API_URL', 'https://api.openai.com/v1/chat/completions')
        self.OPENAI_MODEL = os.getenv('OPENAI_MODEL', 'gpt-4o-mini')
        self.ANTHROPIC_API_KEY = os.getenv('ANTHROPIC_API_KEY', '').strip()
        self.ANTHROPIC_MODEL = os.getenv('ANTHROPIC_MODEL', 'claude-3-5-haiku-latest')
        self.COMPLETION_TIMEOUT = _env_float('COMPLETION_TIMEOUT', 60.0)

        # Batch processing
        self.BATCH_SIZE = _env_int('BATCH_SIZE', 10)
        self.PROGRESS_REPORT_EVERY = _env_int('PROGRESS_REPORT_EVERY', 5)
        self.TASK_WORKERS = _env_int('TASK_WORKERS', 4)
        self.TASK_MAX_ATTEMPTS = _env_int('TASK_MAX_ATTEMPTS', 3)
        self.TASK_RETRY_DELAY = _env_float('TASK_RETRY_DELAY', 2.0)

        self.LOGGING_CONFIG: Dict[str, Any] = {
            'version': 1,
            'disable_existing_loggers': False,
            'formatters': {
                'default': {
                    'format': '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
                }
            },
            'handlers': {
                'console': {
                    'class': 'logging.StreamHandler',
                    'formatter': 'default',
                }
            },
            'root': {
                'level': self.LOG_LEVEL,
                'handlers': ['console'],
            },
        }


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the cached settings instance"""
    return Settings()


def validate_environment() -> Tuple[bool, str]:
    """Check that the selected completion provider has credentials"""
    settings = get_settings()
    problems = []

    if settings.COMPLETION_PROVIDER not in ('openai', 'anthropic'):
        problems.append(f"Unknown COMPLETION_PROVIDER: {settings.COMPLETION_PROVIDER}")
    elif settings.COMPLETION_PROVIDER == 'openai' and not settings.OPENAI_API_KEY:
        problems.append("OPENAI_API_KEY not set")
    elif settings.COMPLETION_PROVIDER == 'anthropic' and not settings.ANTHROPIC_API_KEY:
        problems.append("ANTHROPIC_API_KEY not set")

    if settings.BATCH_SIZE < 1:
        problems.append("BATCH_SIZE must be at least 1")

    if problems:
        return False, '; '.join(problems)
    return True, 'Environment OK'
