from datetime import datetime, timezone

from flask_sqlalchemy import SQLAlchemy
from sqlalchemy import (
    Column, Integer, String, DateTime, JSON, Text, ForeignKey, Table
)
from sqlalchemy.orm import relationship

db = SQLAlchemy()


def utcnow():
    return datetime.now(timezone.utc)


def _iso(value):
    return value.isoformat() if value else None


equipment_processes = Table(
    'equipment_processes',
    db.metadata,
    Column('equipment_id', String(100), ForeignKey('equipment.id', ondelete='CASCADE'), primary_key=True),
    Column('process_id', String(100), ForeignKey('processes.id', ondelete='CASCADE'), primary_key=True),
)

kanban_card_processes = Table(
    'kanban_card_processes',
    db.metadata,
    Column('card_id', String(100), ForeignKey('kanban_cards.id', ondelete='CASCADE'), primary_key=True),
    Column('process_id', String(100), ForeignKey('processes.id', ondelete='CASCADE'), primary_key=True),
)


class Process(db.Model):
    __tablename__ = 'processes'

    id = Column(String(100), primary_key=True)
    name = Column(String(255), nullable=False, unique=True)
    description = Column(Text)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'description': self.description,
            'createdAt': _iso(self.created_at),
            'updatedAt': _iso(self.updated_at),
        }


class Equipment(db.Model):
    __tablename__ = 'equipment'

    id = Column(String(100), primary_key=True)
    name = Column(String(255), nullable=False)
    description = Column(Text)
    category = Column(String(50))
    location = Column(String(255))
    status = Column(String(20))
    documentation_url = Column(Text)
    image_urls = Column(JSON)  # list of public storage URLs
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    # Relationships
    processes = relationship('Process', secondary=equipment_processes, lazy='selectin')

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'description': self.description,
            'category': self.category,
            'location': self.location,
            'status': self.status,
            'documentationUrl': self.documentation_url,
            'imageUrls': list(self.image_urls) if self.image_urls else None,
            'processIds': sorted(p.id for p in self.processes),
            'createdAt': _iso(self.created_at),
            'updatedAt': _iso(self.updated_at),
        }


class KanbanCard(db.Model):
    __tablename__ = 'kanban_cards'

    id = Column(String(100), primary_key=True)
    column_id = Column(String(100), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    image_url = Column(Text)
    assignee = Column(String(255))
    material = Column(String(255))
    machine = Column(String(255))
    due_date = Column(String(40))  # ISO 8601 date as sent by the board
    content = Column(Text)  # markdown notes
    created_by = Column(String(255))
    quantity_per_robot = Column(Integer)
    quantity_to_make = Column(Integer)

    # Onshape coordinates used to link back to the part
    onshape_document_id = Column(String(100))
    onshape_instance_type = Column(String(1))
    onshape_instance_id = Column(String(100))
    onshape_element_id = Column(String(100))
    onshape_part_id = Column(String(100))
    onshape_version_id = Column(String(100))

    date_created = Column(DateTime, default=utcnow)
    date_updated = Column(DateTime, default=utcnow)

    # Relationships
    processes = relationship('Process', secondary=kanban_card_processes, lazy='selectin')

    def to_dict(self):
        return {
            'id': self.id,
            'columnId': self.column_id,
            'title': self.title,
            'imageUrl': self.image_url,
            'assignee': self.assignee,
            'material': self.material,
            'machine': self.machine,
            'dueDate': self.due_date,
            'content': self.content,
            'createdBy': self.created_by,
            'quantityPerRobot': self.quantity_per_robot,
            'quantityToMake': self.quantity_to_make,
            'onshapeDocumentId': self.onshape_document_id,
            'onshapeInstanceType': self.onshape_instance_type,
            'onshapeInstanceId': self.onshape_instance_id,
            'onshapeElementId': self.onshape_element_id,
            'onshapePartId': self.onshape_part_id,
            'onshapeVersionId': self.onshape_version_id,
            'processIds': sorted(p.id for p in self.processes),
            'dateCreated': _iso(self.date_created),
            'dateUpdated': _iso(self.date_updated),
        }


class KanbanConfig(db.Model):
    __tablename__ = 'kanban_config'

    id = Column(String(50), primary_key=True, default='default')
    columns = Column(JSON, nullable=False)  # [{id, title, position}, ...]
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)


class User(db.Model):
    __tablename__ = 'users'

    onshape_user_id = Column(String(100), primary_key=True)
    name = Column(String(255))
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    def to_dict(self):
        return {
            'onshapeUserId': self.onshape_user_id,
            'name': self.name,
            'createdAt': _iso(self.created_at),
            'updatedAt': _iso(self.updated_at),
        }
