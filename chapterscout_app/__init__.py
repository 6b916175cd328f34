# Load environment variables FIRST before any other imports
from dotenv import load_dotenv
load_dotenv()

import time
import uuid
from typing import Optional

from flask import Flask, g, request

from sources import ProviderRegistry, get_provider_registry

from .config import DEBUG, HOST, PORT
from .log import debug_log_event, log
from .storage import MemoryStore


def create_app(registry: Optional[ProviderRegistry] = None, store: Optional[MemoryStore] = None):
    """Create and configure an instance of the Flask application."""
    app = Flask(__name__, instance_relative_config=True)

    app.config.from_mapping(
        JSON_SORT_KEYS=False,
        HOST=HOST,
        PORT=PORT,
        DEBUG=DEBUG,
    )

    # =============================================================================
    # SHARED SERVICES (provider registry, follow store)
    # =============================================================================
    app.extensions['chapterscout'] = {
        'registry': registry if registry is not None else get_provider_registry(),
        'store': store if store is not None else MemoryStore(),
    }

    # =============================================================================
    # REQUEST DEBUG LOGGING
    # =============================================================================
    @app.before_request
    def assign_request_id():
        g.request_id = uuid.uuid4().hex[:12]
        g.request_start = time.time()

    @app.after_request
    def debug_request_log(response):
        start_time = getattr(g, 'request_start', None)
        debug_log_event({
            'event': 'request',
            'request_id': getattr(g, 'request_id', None),
            'method': request.method,
            'path': request.path,
            'query': request.query_string.decode('utf-8', errors='ignore'),
            'status': response.status_code,
            'duration_ms': int((time.time() - start_time) * 1000) if start_time else None,
        })
        return response

    @app.teardown_request
    def debug_exception_log(error=None):
        if not error:
            return
        debug_log_event({
            'event': 'exception',
            'request_id': getattr(g, 'request_id', None),
            'method': request.method,
            'path': request.path,
            'error_type': error.__class__.__name__,
            'error': str(error),
        })

    # =============================================================================
    # BLUEPRINTS & ROUTES
    # =============================================================================
    from .routes.consensus_api import consensus_bp
    from .routes.library_api import library_bp

    app.register_blueprint(consensus_bp)
    app.register_blueprint(library_bp)

    # =============================================================================
    # INITIALIZATION LOGIC
    # =============================================================================
    with app.app_context():
        # Register logging callback for sources
        from sources.base import set_log_callback
        set_log_callback(log)

        providers = app.extensions['chapterscout']['registry'].providers
        log(f"Loaded {len(providers)} sources: {', '.join(p.name for p in providers)}")

    return app

# App instance should be created by the caller (run.py or WSGI entrypoint)
