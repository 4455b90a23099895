# services/processes.py
"""
Manufacturing process catalogue
"""

import logging
from typing import List

from sqlalchemy.exc import SQLAlchemyError

from core.database_models import Process, db, equipment_processes, kanban_card_processes
from core.errors import ApiError, NotFoundError, ValidationError
from services.common import generate_id, optional_text, require_text

logger = logging.getLogger(__name__)

SEED_PROCESSES = [
    ('process-cnc-milling', 'CNC Milling', 'Computer numerical control milling operations'),
    ('process-3d-printing', '3D Printing', 'Additive manufacturing using 3D printers'),
    ('process-hand-tooling', 'Hand Tooling', 'Manual operations using hand tools'),
    ('process-measuring', 'Measuring', 'Measurement and inspection operations'),
    ('process-power-tooling', 'Power Tooling', 'Operations using power tools'),
    ('process-safety-equipment', 'Safety Equipment', 'Safety-related processes and equipment'),
    ('process-fastening', 'Fastening', 'Assembly and fastening operations'),
    ('process-material-processing', 'Material Processing', 'Material preparation and processing'),
    ('process-other', 'Other', 'Other manufacturing processes'),
]


def list_processes() -> List[Process]:
    return db.session.execute(db.select(Process).order_by(Process.name)).scalars().all()


def get_process(process_id: str) -> Process:
    process = db.session.get(Process, process_id)
    if process is None:
        raise NotFoundError('Process not found')
    return process


def _ensure_unique_name(name: str, exclude_id: str = None) -> None:
    query = db.select(Process).where(Process.name == name)
    if exclude_id:
        query = query.where(Process.id != exclude_id)
    if db.session.execute(query).scalars().first() is not None:
        raise ValidationError(f"A process named {name} already exists")


def _commit(action: str) -> None:
    try:
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error(f"Error trying to {action}: {e}")
        raise ApiError(f"Failed to {action}") from e


def create_process(payload: dict) -> Process:
    name = require_text(payload, 'name')
    _ensure_unique_name(name)

    process_id = optional_text(payload.get('id'), 'id') or generate_id('process')
    if db.session.get(Process, process_id) is not None:
        raise ValidationError(f"Process {process_id} already exists")

    process = Process(
        id=process_id,
        name=name,
        description=optional_text(payload.get('description'), 'description'),
    )
    db.session.add(process)
    _commit('create process')
    logger.info(f"Created process {process.id} ({process.name})")
    return process


def update_process(process_id: str, payload: dict) -> Process:
    process = get_process(process_id)

    if 'name' in payload:
        name = require_text(payload, 'name')
        _ensure_unique_name(name, exclude_id=process_id)
        process.name = name
    if 'description' in payload:
        process.description = optional_text(payload['description'], 'description')

    _commit('update process')
    return process


def delete_process(process_id: str) -> dict:
    """Delete a process along with its equipment and card associations"""
    process = get_process(process_id)
    record = process.to_dict()

    db.session.execute(
        equipment_processes.delete().where(equipment_processes.c.process_id == process_id)
    )
    db.session.execute(
        kanban_card_processes.delete().where(kanban_card_processes.c.process_id == process_id)
    )
    db.session.delete(process)
    _commit('delete process')

    logger.info(f"Deleted process {process_id}")
    return record


def seed_processes() -> int:
    """Insert the default process set, skipping ids that already exist"""
    created = 0
    for process_id, name, description in SEED_PROCESSES:
        if db.session.get(Process, process_id) is not None:
            continue
        if db.session.execute(db.select(Process).where(Process.name == name)).scalars().first():
            continue
        db.session.add(Process(id=process_id, name=name, description=description))
        created += 1
    _commit('seed processes')
    logger.info(f"Seeded {created} processes")
    return created
