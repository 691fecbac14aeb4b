#!/usr/bin/env python3
"""
Shopify Catalog Bulk Editor
Flask application exposing bulk edit, batch task, history and CSV export endpoints
"""

# Load environment variables FIRST
from dotenv import load_dotenv
load_dotenv()

import time
import logging.config

from flask import Flask, jsonify

from config.settings import get_settings, validate_environment

settings = get_settings()
logging.config.dictConfig(settings.LOGGING_CONFIG)
logger = logging.getLogger(__name__)

startup_time = time.time()


def create_app(db=None, queue=None, processor=None, app_settings=None):
    """
    Build the Flask app.

    Collaborators default to the module singletons; tests pass their own.
    """
    app_settings = app_settings or settings
    app = Flask(__name__)

    from routes.bulk_edit_routes import setup_bulk_edit_routes
    setup_bulk_edit_routes(app, db=db, queue=queue, processor=processor, settings=app_settings)
    logger.info("✅ Bulk edit routes registered")

    @app.route('/health', methods=['GET'])
    def api_health():
        """Service health check"""
        env_ok, env_message = validate_environment()
        return jsonify({
            'healthy': True,
            'completion_configured': env_ok,
            'message': env_message,
            'timestamp': time.time(),
            'uptime_seconds': time.time() - startup_time
        })

    return app


if __name__ == '__main__':
    # Validate environment on startup
    is_valid, message = validate_environment()
    if not is_valid:
        logger.warning(f"Environment validation issues: {message}")

    app = create_app()
    app.run(debug=settings.DEBUG, port=8000)
