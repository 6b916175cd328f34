"""
================================================================================
ChapterScout - Consensus API Routes
================================================================================
Flask blueprint exposing resolution, consensus and update checks.

ENDPOINTS:
  GET  /api/sources                - List providers
  GET  /api/sources/health         - Provider status
  GET  /api/search?q=&limit=       - Unified (deduplicated) search
  POST /api/search/sources         - Raw search on named providers
  POST /api/resolve                - Find a work on every reading source
  POST /api/chapters               - Chapter list from one provider
  POST /api/pages/resolve          - Reader page URL -> image URL
  POST /api/consensus              - Chapter-count consensus
  POST /api/consensus/quick        - Consensus count only (3 sources)
  POST /api/consensus/validate     - Check a reported chapter count
  POST /api/updates/check          - Run the scheduled update check
  GET  /api/notifications          - Stored notifications
  POST /api/notifications/<id>/read - Mark one notification read
  POST /api/notifications/read_all - Mark every notification read
  POST /api/notifications/clear    - Delete every notification
  GET  /api/logs                   - Drain queued log lines
================================================================================
"""

import asyncio
import logging
import threading
from typing import Optional

from flask import Blueprint, current_app, jsonify, request

from sources import ProviderNotFound, ProviderRegistry

from ..consensus import ChapterConsensus
from ..log import drain_messages, log
from ..search import CrossSourceResolver, search_manga
from ..storage import MemoryStore
from ..tasks import run_scheduled_check
from .validators import (
    MAX_LIMIT, MAX_SOURCES, MAX_TITLE_LENGTH, MAX_URL_LENGTH,
    clamp_int, sanitize_string, validate_fields, validate_optional_url
)

logger = logging.getLogger(__name__)

consensus_bp = Blueprint('consensus_api', __name__)

_loops = threading.local()


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def run_async(coro):
    """
    Run async coroutine in sync Flask context.

    Each request thread keeps its own event loop so connector state created
    on one loop is never awaited from another.
    """
    loop = getattr(_loops, 'loop', None)
    if loop is None or loop.is_closed():
        loop = asyncio.new_event_loop()
        _loops.loop = loop
    return loop.run_until_complete(coro)


def _error(message: str, detail: Optional[str] = None, code: str = 'invalid_request', status: int = 400):
    payload = {'error': message, 'code': code}
    if detail:
        payload['detail'] = detail
    return jsonify(payload), status


def _registry() -> ProviderRegistry:
    return current_app.extensions['chapterscout']['registry']


def _store() -> MemoryStore:
    return current_app.extensions['chapterscout']['store']


def _json_payload():
    payload = request.get_json(silent=True)
    return payload if isinstance(payload, dict) else None


def _title_and_url(payload):
    """Validate {title, url?}. Returns (title, url, error)."""
    error = validate_fields(payload, [('title', str, MAX_TITLE_LENGTH)]) or validate_optional_url(payload)
    if error:
        return None, None, error
    title = sanitize_string(payload['title'], MAX_TITLE_LENGTH)
    if not title:
        return None, None, "Field 'title' must not be empty"
    return title, payload.get('url') or None, None


@consensus_bp.errorhandler(ProviderNotFound)
def _provider_not_found(exc: ProviderNotFound):
    return _error(f"Unknown provider: {exc.name}", code='provider_not_found', status=404)


# =============================================================================
# SOURCES & SEARCH
# =============================================================================

@consensus_bp.route('/api/sources', methods=['GET'])
def list_sources():
    return jsonify({'sources': _registry().list_providers()})


@consensus_bp.route('/api/sources/health', methods=['GET'])
def sources_health():
    return jsonify(_registry().get_health_report())


@consensus_bp.route('/api/search', methods=['GET'])
def search():
    """
    Unified search across reading sources.

    Query params:
        q: search text (required)
        limit: max unified results (default 20, max 100)
    """
    query = sanitize_string(request.args.get('q', ''), MAX_TITLE_LENGTH)
    if not query:
        return _error('Missing search query', code='missing_query')

    limit, error = clamp_int(request.args.get('limit'), 20, MAX_LIMIT)
    if error:
        return _error('Invalid limit', detail=error)

    results = run_async(search_manga(_registry(), query, limit))
    return jsonify({'query': query, 'results': [r.to_dict() for r in results]})


@consensus_bp.route('/api/search/sources', methods=['POST'])
def search_by_source():
    """
    Search only the named providers, without grouping.

    Body:
        {"query": "...", "sources": ["MangaDex", ...], "limit": 10}

    Unknown names are ignored; with none left the metadata provider is used.
    """
    payload = _json_payload()
    if payload is None:
        return _error('Expected a JSON object')

    error = validate_fields(payload, [('query', str, MAX_TITLE_LENGTH), ('sources', list, None)])
    if error:
        return _error(error)
    if not all(isinstance(name, str) for name in payload['sources']):
        return _error("Field 'sources' must be a list of provider names")

    query = sanitize_string(payload['query'], MAX_TITLE_LENGTH)
    if not query:
        return _error('Missing search query', code='missing_query')

    limit, error = clamp_int(payload.get('limit'), 10, MAX_LIMIT)
    if error:
        return _error('Invalid limit', detail=error)

    results = run_async(_registry().search_enabled(query, payload['sources'], limit))
    return jsonify({'query': query, 'results': [r.to_dict() for r in results]})


@consensus_bp.route('/api/resolve', methods=['POST'])
def resolve():
    """
    Find a work on every reading source.

    Body:
        {"title": "...", "url": "...", "enabled_sources": ["MangaDex", ...]}
    """
    payload = _json_payload()
    if payload is None:
        return _error('Expected a JSON object')

    title, url, error = _title_and_url(payload)
    if error:
        return _error(error)

    enabled = payload.get('enabled_sources')
    if enabled is not None and (
            not isinstance(enabled, list) or not all(isinstance(name, str) for name in enabled)):
        return _error("Field 'enabled_sources' must be a list of provider names")

    resolver = CrossSourceResolver(_registry())
    candidates = run_async(resolver.resolve(title, url, enabled))
    return jsonify({'title': title, 'candidates': [c.to_dict() for c in candidates]})


@consensus_bp.route('/api/chapters', methods=['POST'])
def chapters():
    """
    Chapter list of one work on one provider.

    Body:
        {"source": "MangaDex", "url": "..."}
    """
    payload = _json_payload()
    if payload is None:
        return _error('Expected a JSON object')

    error = validate_fields(payload, [('source', str, 100), ('url', str, MAX_URL_LENGTH)])
    if error:
        return _error(error)

    chapter_list = run_async(_registry().dispatch(payload['source'], 'get_chapters', payload['url']))
    return jsonify({
        'source': payload['source'],
        'count': len(chapter_list or []),
        'chapters': [c.to_dict() for c in chapter_list or []],
    })


@consensus_bp.route('/api/pages/resolve', methods=['POST'])
def resolve_page():
    """
    Resolve a reader page to its image URL.

    Body:
        {"source": "MangaHere", "url": "..."}

    Resolution failures return the page URL unchanged.
    """
    payload = _json_payload()
    if payload is None:
        return _error('Expected a JSON object')

    error = validate_fields(payload, [('source', str, 100), ('url', str, MAX_URL_LENGTH)])
    if error:
        return _error(error)

    registry = _registry()
    registry.by_name(payload['source'])
    resolved = run_async(registry.resolve_page_url(payload['url'], payload['source']))
    return jsonify({'source': payload['source'], 'url': resolved})


# =============================================================================
# CONSENSUS
# =============================================================================

@consensus_bp.route('/api/consensus', methods=['POST'])
def consensus():
    """
    Chapter-count consensus.

    Body:
        {"title": "...", "url": "...", "max_sources": 5}

    Returns:
        {"count": 100, "confidence": 67, "sources": [...], "allCounts": [...]}
    """
    payload = _json_payload()
    if payload is None:
        return _error('Expected a JSON object')

    title, url, error = _title_and_url(payload)
    if error:
        return _error(error)

    max_sources, error = clamp_int(payload.get('max_sources'), 5, MAX_SOURCES)
    if error:
        return _error('Invalid max_sources', detail=error)

    engine = ChapterConsensus(_registry())
    result = run_async(engine.consensus(title, url, max_sources))
    return jsonify(result.to_dict())


@consensus_bp.route('/api/consensus/quick', methods=['POST'])
def quick_consensus():
    payload = _json_payload()
    if payload is None:
        return _error('Expected a JSON object')

    title, url, error = _title_and_url(payload)
    if error:
        return _error(error)

    count = run_async(ChapterConsensus(_registry()).quick_consensus_count(title, url))
    return jsonify({'count': count})


@consensus_bp.route('/api/consensus/validate', methods=['POST'])
def validate_count():
    """
    Check a reported chapter count against the consensus.

    Body:
        {"reported_count": 98, "title": "...", "url": "..."}
    """
    payload = _json_payload()
    if payload is None:
        return _error('Expected a JSON object')

    error = validate_fields(payload, [('reported_count', int, None)])
    if error:
        return _error(error)

    title, url, error = _title_and_url(payload)
    if error:
        return _error(error)

    engine = ChapterConsensus(_registry())
    validation = run_async(engine.validate_chapter_count(payload['reported_count'], title, url))
    return jsonify(validation.to_dict())


# =============================================================================
# UPDATES & NOTIFICATIONS
# =============================================================================

@consensus_bp.route('/api/updates/check', methods=['POST'])
def check_updates():
    """
    Run the update check over the followed works.

    Body (optional):
        {"force": true}   - ignore the check cooldown
    """
    payload = _json_payload() or {}
    force = bool(payload.get('force', False))

    result = run_async(run_scheduled_check(_store(), force=force, registry=_registry()))
    if result is None:
        return jsonify({'skipped': True, 'reason': 'cooldown'})

    log(f"Update check: {result.checked} checked, {result.new_chapters} new, {result.errors} errors")
    return jsonify({'skipped': False, **result.to_dict()})


@consensus_bp.route('/api/notifications', methods=['GET'])
def notifications():
    store = _store()
    unread_only = request.args.get('unread', 'false').lower() in ('1', 'true', 'yes')
    return jsonify({
        'notifications': [n.to_dict() for n in store.get_notifications(unread_only)],
        'unread': store.get_unread_notification_count(),
    })


@consensus_bp.route('/api/notifications/<notification_id>/read', methods=['POST'])
def mark_notification_read(notification_id):
    store = _store()
    if not store.mark_notification_read(notification_id):
        return _error('Notification not found', code='notification_not_found', status=404)
    return jsonify({'status': 'ok', 'unread': store.get_unread_notification_count()})


@consensus_bp.route('/api/notifications/read_all', methods=['POST'])
def mark_all_notifications_read():
    store = _store()
    store.mark_all_notifications_read()
    return jsonify({'status': 'ok', 'unread': 0})


@consensus_bp.route('/api/notifications/clear', methods=['POST'])
def clear_notifications():
    _store().clear_notifications()
    return jsonify({'status': 'ok'})


@consensus_bp.route('/api/logs', methods=['GET'])
def logs():
    return jsonify({'logs': drain_messages()})
