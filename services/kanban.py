# services/kanban.py
"""
Kanban board: cards and the column configuration

The board layout lives in a single `kanban_config` row with id `default`.
When that row does not exist the four default columns are used. New cards
always land in the column at position 0.
"""

import copy
import logging
from typing import List, Optional

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from core.database_models import KanbanCard, KanbanConfig, db, utcnow
from core.errors import ApiError, NotFoundError, ValidationError
from core.image_storage import delete_stored_image
from services.common import (
    generate_id, optional_positive_int, optional_text, require_text, resolve_processes,
)

logger = logging.getLogger(__name__)

CONFIG_ID = 'default'
DEFAULT_COLUMNS = [
    {'id': 'backlog', 'title': 'Backlog', 'position': 0},
    {'id': 'in-progress', 'title': 'In Progress', 'position': 1},
    {'id': 'review', 'title': 'Review', 'position': 2},
    {'id': 'done', 'title': 'Done', 'position': 3},
]

_TEXT_FIELDS = {
    'imageUrl': 'image_url',
    'assignee': 'assignee',
    'material': 'material',
    'machine': 'machine',
    'dueDate': 'due_date',
    'content': 'content',
    'createdBy': 'created_by',
    'onshapeDocumentId': 'onshape_document_id',
    'onshapeInstanceType': 'onshape_instance_type',
    'onshapeInstanceId': 'onshape_instance_id',
    'onshapeElementId': 'onshape_element_id',
    'onshapePartId': 'onshape_part_id',
    'onshapeVersionId': 'onshape_version_id',
}
_INT_FIELDS = {
    'quantityPerRobot': 'quantity_per_robot',
    'quantityToMake': 'quantity_to_make',
}


def _bucket() -> str:
    return current_app.config.get('CARD_IMAGE_BUCKET', 'card-images')


def _commit(action: str) -> None:
    try:
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error(f"Error trying to {action}: {e}")
        raise ApiError(f"Failed to {action}") from e


def _parse_fields(payload: dict, partial: bool) -> dict:
    values = {}
    for key, column in _TEXT_FIELDS.items():
        if key in payload or not partial:
            values[column] = optional_text(payload.get(key), key)
    for key, column in _INT_FIELDS.items():
        if key in payload or not partial:
            values[column] = optional_positive_int(payload.get(key), key)
    return values


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Board configuration
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

def validate_columns(columns) -> List[dict]:
    """
    Check a column list and return a normalized copy

    Each column needs a non-empty string id, a string title and an integer
    position. Ids must be unique and positions must be exactly 0..n-1.
    """
    if not isinstance(columns, list) or not columns:
        raise ValidationError('Invalid config structure: columns must be a non-empty list')

    normalized = []
    for column in columns:
        if not isinstance(column, dict):
            raise ValidationError('Invalid config structure: each column must be an object')
        column_id = column.get('id')
        title = column.get('title')
        position = column.get('position')
        if not isinstance(column_id, str) or not column_id.strip():
            raise ValidationError('Each column needs a non-empty id')
        if not isinstance(title, str):
            raise ValidationError(f"Column {column_id} needs a title")
        if isinstance(position, bool) or not isinstance(position, int):
            raise ValidationError(f"Column {column_id} needs an integer position")
        normalized.append({'id': column_id, 'title': title, 'position': position})

    ids = [c['id'] for c in normalized]
    if len(set(ids)) != len(ids):
        raise ValidationError('Column ids must be unique')
    if sorted(c['position'] for c in normalized) != list(range(len(normalized))):
        raise ValidationError('Column positions must be unique and run from 0 to n-1')
    return normalized


def get_config() -> dict:
    row = db.session.get(KanbanConfig, CONFIG_ID)
    if row is None or not row.columns:
        logger.debug("No kanban config stored, using default columns")
        return {'columns': copy.deepcopy(DEFAULT_COLUMNS)}
    return {'columns': list(row.columns)}


def get_columns() -> List[dict]:
    return get_config()['columns']


def save_config(config) -> dict:
    if not isinstance(config, dict):
        raise ValidationError('Invalid config structure')
    columns = validate_columns(config.get('columns'))

    row = db.session.get(KanbanConfig, CONFIG_ID)
    if row is None:
        row = KanbanConfig(id=CONFIG_ID, columns=columns)
        db.session.add(row)
    else:
        row.columns = columns
    _commit('save config')

    logger.info(f"Saved kanban config with {len(columns)} columns")
    return {'columns': columns}


def first_column_id() -> str:
    for column in get_columns():
        if column.get('position') == 0:
            return column['id']
    return DEFAULT_COLUMNS[0]['id']


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Cards
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

def list_cards(column_id: Optional[str] = None) -> List[KanbanCard]:
    query = db.select(KanbanCard).order_by(KanbanCard.date_created.asc())
    if column_id:
        query = query.where(KanbanCard.column_id == column_id)
    return db.session.execute(query).scalars().all()


def get_card(card_id: str) -> KanbanCard:
    card = db.session.get(KanbanCard, card_id)
    if card is None:
        raise NotFoundError('Card not found')
    return card


def create_card(payload: dict) -> KanbanCard:
    title = require_text(payload, 'title')
    values = _parse_fields(payload, partial=False)
    processes = resolve_processes(payload.get('processIds'))

    card_id = optional_text(payload.get('id'), 'id') or generate_id('card', random_suffix=False)
    if db.session.get(KanbanCard, card_id) is not None:
        raise ValidationError(f"Card {card_id} already exists")

    card = KanbanCard(id=card_id, column_id=first_column_id(), title=title, **values)
    card.processes = processes
    db.session.add(card)
    _commit('create card')

    logger.info(f"Created card {card.id} in column {card.column_id}")
    return card


def update_card(card_id: str, payload: dict) -> KanbanCard:
    """Partial update; id and the timestamps are never taken from the payload"""
    card = get_card(card_id)

    if 'title' in payload:
        card.title = require_text(payload, 'title')
    if 'columnId' in payload:
        card.column_id = _existing_column(payload['columnId'])
    for column, value in _parse_fields(payload, partial=True).items():
        setattr(card, column, value)
    if 'processIds' in payload:
        card.processes = resolve_processes(payload['processIds'])

    card.date_updated = utcnow()
    _commit('update card')
    return card


def _existing_column(column_id) -> str:
    if not isinstance(column_id, str) or not column_id.strip():
        raise ValidationError('Column ID is required')
    if column_id not in {c['id'] for c in get_columns()}:
        raise ValidationError(f"Unknown column: {column_id}")
    return column_id


def move_card(card_id: str, column_id) -> KanbanCard:
    card = get_card(card_id)
    card.column_id = _existing_column(column_id)
    card.date_updated = utcnow()
    _commit('move card')
    logger.info(f"Moved card {card_id} to {card.column_id}")
    return card


def assign_card(card_id: str, assignee) -> KanbanCard:
    card = get_card(card_id)
    card.assignee = optional_text(assignee, 'assignee')
    card.date_updated = utcnow()
    _commit('assign card')
    logger.info(f"Assigned card {card_id} to {card.assignee}")
    return card


def update_due_date(card_id: str, due_date) -> KanbanCard:
    card = get_card(card_id)
    card.due_date = optional_text(due_date, 'dueDate')
    card.date_updated = utcnow()
    _commit('update due date')
    return card


def delete_card(card_id: str) -> dict:
    """Delete a card and its stored image, returns the deleted record"""
    card = get_card(card_id)
    record = card.to_dict()

    if card.image_url:
        delete_stored_image(_bucket(), card.image_url)

    db.session.delete(card)
    _commit('delete card')

    logger.info(f"Deleted card {card_id}")
    return record
