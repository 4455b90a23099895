# services/parts_actions.py
"""
Form actions posted by the Onshape parts page

Every action answers {'success': bool, 'data' | 'error': ...}; the caller
turns success into 200 and failures into 400.
"""

import logging
import math
from typing import Callable, List, Optional
from urllib.parse import quote

from flask import current_app

from core.errors import ApiError
from core.onshape_client import (
    OnshapeApiError, OnshapeClient, build_thumbnail_url, extract_version_id,
)
from services import kanban

logger = logging.getLogger(__name__)

THUMBNAIL_PROXY_PATH = '/api/onshape/thumbnail'

ClientFactory = Callable[[], OnshapeClient]


def _ok(data) -> dict:
    return {'success': True, 'data': data}


def _fail(error: str) -> dict:
    return {'success': False, 'error': error}


def _text(form, key: str) -> Optional[str]:
    value = form.get(key)
    if value is None:
        return None
    value = str(value)
    return value if value != '' else None


def _positive_number(form, key: str, label: str, errors: List[str]) -> Optional[int]:
    raw = _text(form, key)
    if raw is None:
        errors.append(f"{label} is required")
        return None
    try:
        number = float(raw)
    except ValueError:
        errors.append(f"{label} must be a number")
        return None
    if not math.isfinite(number):
        errors.append(f"{label} must be a number")
        return None
    if number <= 0:
        errors.append(f"{label} must be greater than 0")
        return None
    if number != int(number):
        errors.append(f"{label} must be a whole number")
        return None
    return int(number)


def thumbnail_proxy_url(raw_thumbnail_url: Optional[str], document_id: Optional[str],
                        instance_type: str, instance_id: Optional[str],
                        element_id: Optional[str], part_id: Optional[str]) -> Optional[str]:
    """Card image URL served through the authenticated thumbnail proxy"""
    if raw_thumbnail_url:
        target = raw_thumbnail_url
    elif document_id and instance_id and element_id and part_id:
        target = build_thumbnail_url(
            document_id, instance_type, instance_id, element_id, part_id,
            api_url=current_app.config['ONSHAPE_API_URL'],
        )
    else:
        return None
    return f"{THUMBNAIL_PROXY_PATH}?url={quote(target, safe='')}"


def _current_user_id(get_client: ClientFactory) -> Optional[str]:
    try:
        return get_client().get_current_user().get('id')
    except (ApiError, OnshapeApiError) as e:
        logger.warning(f"Could not resolve current Onshape user: {e}")
        return None


def add_card(form, get_client: ClientFactory) -> dict:
    errors = []
    part_number = _text(form, 'partNumber')
    if not part_number:
        errors.append('Part number is required')
    process_ids = [p for p in form.getlist('processIds') if p]
    if not process_ids:
        errors.append('At least one process is required')
    quantity_per_robot = _positive_number(form, 'quantityPerRobot', 'Quantity per robot', errors)
    quantity_to_make = _positive_number(form, 'quantityToMake', 'Quantity to make', errors)
    if errors:
        return _fail(', '.join(errors))

    document_id = _text(form, 'documentId')
    instance_type = _text(form, 'instanceType') or 'w'
    instance_id = _text(form, 'instanceId')
    element_id = _text(form, 'elementId')
    part_id = _text(form, 'partId')

    payload = {
        'title': part_number,
        'imageUrl': thumbnail_proxy_url(
            _text(form, 'rawThumbnailUrl'), document_id, instance_type,
            instance_id, element_id, part_id,
        ),
        'assignee': 'Unassigned',
        'machine': 'TBD',
        'createdBy': _current_user_id(get_client),
        'processIds': process_ids,
        'quantityPerRobot': quantity_per_robot,
        'quantityToMake': quantity_to_make,
        'dueDate': _text(form, 'dueDate'),
        'onshapeDocumentId': document_id,
        'onshapeInstanceType': instance_type,
        'onshapeInstanceId': instance_id,
        'onshapeElementId': element_id,
        'onshapePartId': part_id,
        'onshapeVersionId': extract_version_id(instance_type, instance_id),
    }
    try:
        card = kanban.create_card(payload)
    except ApiError as e:
        logger.error(f"Error adding card for part {part_number}: {e.message}")
        return _fail(e.message)
    return _ok(card.to_dict())


def move_card(form) -> dict:
    errors = []
    card_id = _text(form, 'cardId')
    column_id = _text(form, 'columnId')
    if not card_id:
        errors.append('Card ID is required')
    if not column_id:
        errors.append('Column ID is required')
    if errors:
        return _fail(', '.join(errors))

    try:
        card = kanban.move_card(card_id, column_id)
    except ApiError as e:
        logger.error(f"Error moving card {card_id}: {e.message}")
        return _fail(e.message)
    return _ok(card.to_dict())


def update_due_date(form) -> dict:
    card_id = _text(form, 'cardId')
    if not card_id:
        return _fail('Card ID is required')

    try:
        card = kanban.update_due_date(card_id, _text(form, 'dueDate'))
    except ApiError as e:
        logger.error(f"Error updating due date of card {card_id}: {e.message}")
        return _fail(e.message)
    return _ok(card.to_dict())


def update_part_number(form, get_client: ClientFactory) -> dict:
    fields = {key: _text(form, key) for key in
              ('partId', 'partNumber', 'documentId', 'instanceId', 'elementId')}
    missing = [key for key, value in fields.items() if not value or not value.strip()]
    if missing:
        return _fail(f"Missing required fields: {', '.join(missing)}")

    try:
        client = get_client()
    except ApiError as e:
        return _fail(e.message)

    try:
        result = client.update_part_number(
            fields['documentId'],
            _text(form, 'instanceType') or 'w',
            fields['instanceId'],
            fields['elementId'],
            fields['partId'],
            fields['partNumber'],
        )
    except OnshapeApiError as e:
        logger.error(f"Part number update failed for part {fields['partId']}: {e.message}")
        return _fail(e.message)
    return _ok(result)


def handle_action(form, get_client: ClientFactory) -> dict:
    """Dispatch on the `action` field; anything unrecognized updates a part number"""
    action = _text(form, 'action')
    if action == 'addCard':
        return add_card(form, get_client)
    if action == 'moveCard':
        return move_card(form)
    if action == 'updateDueDate':
        return update_due_date(form)
    return update_part_number(form, get_client)
