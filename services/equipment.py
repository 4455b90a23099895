# services/equipment.py
"""
Equipment inventory service

Creation and process association are two separate commits: when the
association step fails the equipment row is kept without processes.
"""

import logging
from typing import List, Optional

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from core.database_models import Equipment, db
from core.errors import ApiError, NotFoundError, ValidationError
from core.image_storage import delete_stored_image, get_image_storage, object_name
from services.common import (
    generate_id, optional_choice, optional_string_list, optional_text,
    require_text, resolve_processes,
)

logger = logging.getLogger(__name__)

EQUIPMENT_STATUSES = ('available', 'in-use', 'maintenance', 'retired')
EQUIPMENT_CATEGORIES = (
    'CNC',
    '3D Printer',
    'Hand Tools',
    'Measuring',
    'Power Tools',
    'Safety Equipment',
    'Fasteners',
    'Materials',
    'Other',
)

# wire name -> (column, parser)
_FIELDS = {
    'description': ('description', lambda v: optional_text(v, 'description')),
    'category': ('category', lambda v: optional_choice(v, 'category', EQUIPMENT_CATEGORIES)),
    'location': ('location', lambda v: optional_text(v, 'location')),
    'status': ('status', lambda v: optional_choice(v, 'status', EQUIPMENT_STATUSES)),
    'documentationUrl': ('documentation_url', lambda v: optional_text(v, 'documentationUrl')),
    'imageUrls': ('image_urls', lambda v: optional_string_list(v, 'imageUrls') or None),
}


def _bucket() -> str:
    return current_app.config.get('EQUIPMENT_IMAGE_BUCKET', 'equipment-images')


def list_equipment() -> List[Equipment]:
    return db.session.execute(
        db.select(Equipment).order_by(Equipment.created_at.desc())
    ).scalars().all()


def get_equipment(equipment_id: str) -> Equipment:
    equipment = db.session.get(Equipment, equipment_id)
    if equipment is None:
        raise NotFoundError('Equipment not found')
    return equipment


def _set_processes(equipment: Equipment, processes) -> None:
    try:
        equipment.processes = processes
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error(f"Failed to associate processes with equipment {equipment.id}: {e}")
        raise ApiError('Equipment saved but process association failed') from e


def create_equipment(payload: dict) -> Equipment:
    name = require_text(payload, 'name')
    values = {column: parse(payload.get(key)) for key, (column, parse) in _FIELDS.items()}
    processes = resolve_processes(payload.get('processIds'))

    equipment_id = optional_text(payload.get('id'), 'id') or generate_id('equipment')
    if db.session.get(Equipment, equipment_id) is not None:
        raise ValidationError(f"Equipment {equipment_id} already exists")

    equipment = Equipment(id=equipment_id, name=name, **values)
    db.session.add(equipment)
    try:
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error(f"Error creating equipment: {e}")
        raise ApiError('Failed to create equipment') from e

    if processes:
        _set_processes(equipment, processes)

    logger.info(f"Created equipment {equipment.id}")
    return equipment


def update_equipment(equipment_id: str, payload: dict) -> Equipment:
    equipment = get_equipment(equipment_id)

    if 'name' in payload:
        equipment.name = require_text(payload, 'name')
    for key, (column, parse) in _FIELDS.items():
        if key in payload:
            setattr(equipment, column, parse(payload[key]))

    processes = None
    if 'processIds' in payload:
        processes = resolve_processes(payload['processIds'])

    try:
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error(f"Error updating equipment {equipment_id}: {e}")
        raise ApiError('Failed to update equipment') from e

    if processes is not None:
        _set_processes(equipment, processes)
    return equipment


def delete_equipment(equipment_id: str) -> dict:
    """Delete the equipment and every stored image, returns the deleted record"""
    equipment = get_equipment(equipment_id)
    record = equipment.to_dict()

    if equipment.image_urls:
        for image_url in equipment.image_urls:
            delete_stored_image(_bucket(), image_url)

    db.session.delete(equipment)
    try:
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error(f"Error deleting equipment {equipment_id}: {e}")
        raise ApiError('Failed to delete equipment') from e

    logger.info(f"Deleted equipment {equipment_id}")
    return record


def add_image(equipment_id: str, file) -> str:
    """Upload an image file and append its URL, returns the URL"""
    if file is None or not file.filename:
        raise ValidationError('No file provided')
    content_type = file.mimetype or ''
    if not content_type.startswith('image/'):
        raise ValidationError('File must be an image')

    equipment = get_equipment(equipment_id)
    image_url = get_image_storage().upload(
        _bucket(),
        object_name(equipment_id, file.filename),
        file.read(),
        content_type=content_type,
    )

    equipment.image_urls = list(equipment.image_urls or []) + [image_url]
    db.session.commit()
    logger.info(f"Added image to equipment {equipment_id}")
    return image_url


def remove_image(equipment_id: str, image_url: Optional[str]) -> None:
    if not image_url:
        raise ValidationError('Missing imageUrl query parameter')

    equipment = get_equipment(equipment_id)
    remaining = [url for url in (equipment.image_urls or []) if url != image_url]

    delete_stored_image(_bucket(), image_url)

    equipment.image_urls = remaining or None
    db.session.commit()
