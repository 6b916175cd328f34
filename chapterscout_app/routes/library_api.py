"""
================================================================================
ChapterScout - Library API Routes
================================================================================
Followed works, reading progress and notification settings. Everything here
reads and writes the app's follow store; the update checker picks it up on
its next run.

ENDPOINTS:
  GET  /api/library                  - Followed works
  POST /api/library/follow           - Follow a work
  POST /api/library/unfollow         - Stop following a work
  POST /api/library/update_progress  - Record the last chapter read
  GET  /api/library/settings         - Notification settings
  POST /api/library/settings         - Change notification settings
================================================================================
"""

from flask import Blueprint, jsonify

from ..log import log
from ..models import FollowedWork
from .consensus_api import _error, _json_payload, _store
from .validators import MAX_TITLE_LENGTH, sanitize_string, validate_fields, validate_optional_url

library_bp = Blueprint('library_api', __name__, url_prefix='/api/library')

_KEY_RULES = [('id', str, 500), ('source', str, 100)]
MAX_CHAPTER_LENGTH = 50


@library_bp.route('', methods=['GET'])
def get_follows():
    return jsonify({'follows': [work.to_dict() for work in _store().get_follows()]})


@library_bp.route('/follow', methods=['POST'])
def follow():
    """
    Follow a work.

    Body:
        {"id": "...", "source": "Comick", "title": "...", "url": "...",
         "lastKnownChapter": 120, "coverUrl": "...", "importedReadingProgress": {...}}
    """
    data = _json_payload()
    if data is None:
        return _error('Expected a JSON object')

    error = (
        validate_fields(data, _KEY_RULES + [('title', str, MAX_TITLE_LENGTH)])
        or validate_optional_url(data)
    )
    if error:
        return _error(error)

    progress = data.get('importedReadingProgress')
    if progress is not None and not isinstance(progress, dict):
        return _error("Field 'importedReadingProgress' must be an object")

    work = FollowedWork.from_dict(data)
    work.title = sanitize_string(work.title, MAX_TITLE_LENGTH)
    if not work.title:
        return _error("Field 'title' must not be empty")

    if not _store().add_follow(work):
        return _error('Already following this manga', code='already_following', status=409)

    log(f"Following {work.title} ({work.source})")
    return jsonify({'status': 'ok', 'follow': work.to_dict()}), 201


@library_bp.route('/unfollow', methods=['POST'])
def unfollow():
    data = _json_payload()
    if data is None:
        return _error('Expected a JSON object')

    error = validate_fields(data, _KEY_RULES)
    if error:
        return _error(error)

    if not _store().remove_follow(data['id'], data['source']):
        return _error('Not following this manga', code='follow_not_found', status=404)
    return jsonify({'status': 'ok'})


@library_bp.route('/update_progress', methods=['POST'])
def update_progress():
    """
    Record the last chapter read.

    Body:
        {"id": "...", "source": "...", "chapterNumber": "12.5"}
    """
    data = _json_payload()
    if data is None:
        return _error('Expected a JSON object')

    error = validate_fields(data, _KEY_RULES)
    if error:
        return _error(error)

    chapter = data.get('chapterNumber')
    if isinstance(chapter, bool) or not isinstance(chapter, (str, int, float)):
        return _error("Field 'chapterNumber' must be a number or numeric string")
    if isinstance(chapter, str) and len(chapter) > MAX_CHAPTER_LENGTH:
        return _error(f"Field 'chapterNumber' exceeds max length {MAX_CHAPTER_LENGTH}")

    store = _store()
    store.set_reading_progress(data['id'], data['source'], chapter)
    return jsonify({'status': 'ok', 'progress': store.get_reading_progress(data['id'], data['source']).to_dict()})


# =============================================================================
# NOTIFICATION SETTINGS
# =============================================================================

def _settings_payload():
    store = _store()
    return {
        'enabledSources': store.get_enabled_notification_sources(),
        'checkOnlySourceManga': store.get_check_only_source_manga(),
    }


@library_bp.route('/settings', methods=['GET'])
def get_settings():
    return jsonify(_settings_payload())


@library_bp.route('/settings', methods=['POST'])
def update_settings():
    """
    Change notification settings. Omitted fields keep their value.

    Body:
        {"enabledSources": ["MangaDex"] | null, "checkOnlySourceManga": false}

    A null enabledSources checks every reading source.
    """
    data = _json_payload()
    if data is None:
        return _error('Expected a JSON object')

    sources = data.get('enabledSources')
    if sources is not None and (
            not isinstance(sources, list) or not all(isinstance(name, str) for name in sources)):
        return _error("Field 'enabledSources' must be a list of provider names or null")
    if 'checkOnlySourceManga' in data and not isinstance(data['checkOnlySourceManga'], bool):
        return _error("Field 'checkOnlySourceManga' must be bool")

    store = _store()
    if 'enabledSources' in data:
        store.set_enabled_notification_sources(sources)
    if 'checkOnlySourceManga' in data:
        store.set_check_only_source_manga(data['checkOnlySourceManga'])

    return jsonify(_settings_payload())
