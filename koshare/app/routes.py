"""Action dispatcher for the check-in API.

Every call goes to ``/exec`` with an ``action`` name, mirroring the single
web-app endpoint the browser client was built against. Parameters may arrive
as query-string fields, a JSON or form POST body, or a JSON ``data`` bag
(applied last). The response is always HTTP 200 with a result envelope.
"""

import collections.abc
import hmac
import json
import logging
from typing import Any

import fastapi
import sqlmodel

from koshare import protocol

from . import auth, counters, database, pagination, records, settings
from .errors import (
    AuthError,
    KoShareError,
    NotFoundError,
    UnknownActionError,
    ValidationError,
)

logger = logging.getLogger(__name__)

router = fastapi.APIRouter()

VISIT_COUNT_KEY = 'visitCount'

Params = dict[str, Any]
Handler = collections.abc.Callable[[sqlmodel.Session, Params], dict[str, Any]]

ACTIONS: dict[str, Handler] = {}


def action(name: str) -> collections.abc.Callable[[Handler], Handler]:
    """Register a handler under an action name."""

    def register(handler: Handler) -> Handler:
        ACTIONS[name] = handler
        return handler

    return register


# ---------------------------------------------------------------------------
# Parameter helpers
# ---------------------------------------------------------------------------


def _int_param(params: Params, name: str, default: int) -> int:
    value = params.get(name)
    if value is None or value == '':
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f'{name} must be an integer') from None


def _required(params: Params, name: str) -> str:
    value = params.get(name)
    if value is None or str(value).strip() == '':
        raise ValidationError(f'{name} is required')
    return str(value).strip()


def _thumbnail(params: Params) -> str | None:
    value = params.get('thumbnail') or params.get('image')
    return value if isinstance(value, str) else None


def _decode_bag(raw: Any) -> Params:
    """Decode the ``data`` parameter, which may already be an object."""
    if isinstance(raw, dict):
        return raw
    try:
        bag = json.loads(raw)
    except (TypeError, ValueError):
        raise ValidationError('data must be a JSON object') from None
    if not isinstance(bag, dict):
        raise ValidationError('data must be a JSON object')
    return bag


async def collect_params(request: fastapi.Request) -> Params:
    """Merge query parameters, the POST body and the ``data`` bag."""
    params: Params = dict(request.query_params)
    if request.method == 'POST':
        content_type = request.headers.get('content-type', '')
        if content_type.startswith(('application/x-www-form-urlencoded', 'multipart/form-data')):
            form = await request.form()
            params.update({k: v for k, v in form.items() if isinstance(v, str)})
        else:
            body = await request.body()
            if body.strip():
                try:
                    parsed = json.loads(body)
                except ValueError:
                    raise ValidationError('Request body must be JSON') from None
                if not isinstance(parsed, dict):
                    raise ValidationError('Request body must be a JSON object')
                params.update(parsed)
    if params.get('data') not in (None, ''):
        params.update(_decode_bag(params.pop('data')))
    return params


# ---------------------------------------------------------------------------
# Actions
# ---------------------------------------------------------------------------


@action('login')
def login(session: sqlmodel.Session, params: Params) -> dict[str, Any]:
    """Exchange the shared PIN for a session token."""
    grant = auth.login(session, params.get('pin'))
    return {'token': grant.token, 'expiresIn': grant.expires_in}


@action('verifyToken')
def verify_token(session: sqlmodel.Session, params: Params) -> dict[str, Any]:
    """Report whether a token is still valid."""
    return {'valid': auth.verify(session, params.get('token'))}


@action('getCheckIns')
def get_checkins(session: sqlmodel.Session, params: Params) -> dict[str, Any]:
    """Return one page of check-ins, newest first."""
    page = pagination.list_page(
        session,
        page=_int_param(params, 'page', 1),
        limit=_int_param(params, 'limit', settings.DEFAULT_PAGE_LIMIT),
    )
    return page.to_wire()


@action('getThumbnail')
def get_thumbnail(session: sqlmodel.Session, params: Params) -> dict[str, Any]:
    """Return the thumbnail for one check-in ('' when there is none)."""
    checkin_id = _required(params, 'id')
    return {'id': checkin_id, 'thumbnail': records.get_thumbnail(session, checkin_id) or ''}


@action('saveCheckIn')
def save_checkin(session: sqlmodel.Session, params: Params) -> dict[str, Any]:
    """Create a check-in without an image."""
    auth.require_token(session, params.get('token'))
    row = records.append(session, params)
    return records.serialize_checkin(row)


@action('saveWithImage')
def save_with_image(session: sqlmodel.Session, params: Params) -> dict[str, Any]:
    """Create a check-in and, if it fits, its thumbnail."""
    auth.require_token(session, params.get('token'))
    row, stored = records.append_with_thumbnail(session, params, _thumbnail(params))
    return records.serialize_checkin(row, has_thumbnail=stored)


@action('saveThumbnail')
def save_thumbnail(session: sqlmodel.Session, params: Params) -> dict[str, Any]:
    """Attach a thumbnail to an existing check-in (second phase of a save)."""
    auth.require_token(session, params.get('token'))
    checkin_id = _required(params, 'id')
    outcome = records.attach_thumbnail(session, checkin_id, _thumbnail(params))
    if outcome is records.AttachOutcome.RECORD_MISSING:
        raise NotFoundError('Check-in not found')
    return {
        'id': checkin_id,
        'hasThumbnail': outcome is records.AttachOutcome.STORED,
        'outcome': outcome.value,
    }


@action('deleteCheckIn')
def delete_checkin(session: sqlmodel.Session, params: Params) -> dict[str, Any]:
    """Delete a check-in and its thumbnail."""
    auth.require_token(session, params.get('token'))
    checkin_id = _required(params, 'id')
    if records.delete(session, checkin_id) is records.DeleteOutcome.NOT_FOUND:
        raise NotFoundError('Check-in not found')
    return {'id': checkin_id}


@action('setPin')
def set_pin(session: sqlmodel.Session, params: Params) -> dict[str, Any]:
    """Configure the shared PIN using the admin secret."""
    admin_key = str(params.get('adminKey') or '')
    if settings.ADMIN_SECRET is None or not hmac.compare_digest(
        admin_key.encode('utf-8'), settings.ADMIN_SECRET.encode('utf-8')
    ):
        raise AuthError('Admin key required')
    auth.set_credential(session, params.get('pin'))
    return {'configured': True}


@action('changePin')
def change_pin(session: sqlmodel.Session, params: Params) -> dict[str, Any]:
    """Replace the shared PIN from an authenticated session."""
    auth.change_credential(session, params.get('newPin'), params.get('token'))
    return {'changed': True}


@action('getStats')
def get_stats(session: sqlmodel.Session, params: Params) -> dict[str, Any]:
    """Return the visit counter and the number of saved locations."""
    return {
        'visitCount': counters.get_count(session, VISIT_COUNT_KEY),
        'totalLocations': records.count(session),
    }


@action('incrementVisit')
def increment_visit(session: sqlmodel.Session, params: Params) -> dict[str, Any]:
    """Count one app visit."""
    return {'visitCount': counters.increment(session, VISIT_COUNT_KEY)}


# ---------------------------------------------------------------------------
# Dispatch
# ---------------------------------------------------------------------------


def dispatch(session: sqlmodel.Session, params: Params) -> protocol.Result:
    """Run the named action and wrap its outcome in a result envelope."""
    name = str(params.get('action') or '')
    try:
        handler = ACTIONS.get(name)
        if handler is None:
            raise UnknownActionError(f'Unknown action: {name!r}')
        return protocol.Ok(data=handler(session, params))
    except KoShareError as e:
        session.rollback()
        return protocol.Err(code=e.code, error=e.message)
    except Exception:
        logger.exception('Action %r failed', name)
        session.rollback()
        return protocol.Err(code='INTERNAL_ERROR', error='Internal error')


@router.api_route('/exec', methods=['GET', 'POST'])
async def execute(
    request: fastapi.Request,
    session: sqlmodel.Session = fastapi.Depends(database.get_session),
) -> dict[str, Any]:
    """Single entry point for every action."""
    try:
        params = await collect_params(request)
    except KoShareError as e:
        return protocol.Err(code=e.code, error=e.message).to_envelope()
    return dispatch(session, params).to_envelope()
