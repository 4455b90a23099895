# api/equipment.py
"""
Equipment inventory endpoints
"""

import logging

from flask import Blueprint, jsonify, request

from api.helpers import json_body
from services import equipment as equipment_service

equipment_bp = Blueprint('equipment', __name__, url_prefix='/api/equipment')
logger = logging.getLogger(__name__)


@equipment_bp.route('', methods=['GET'])
def list_equipment():
    items = equipment_service.list_equipment()
    return jsonify({'equipment': [item.to_dict() for item in items]})


@equipment_bp.route('', methods=['POST'])
def create_equipment():
    item = equipment_service.create_equipment(json_body())
    return jsonify({'equipment': item.to_dict()}), 201


@equipment_bp.route('/<equipment_id>', methods=['GET'])
def get_equipment(equipment_id):
    return jsonify({'equipment': equipment_service.get_equipment(equipment_id).to_dict()})


@equipment_bp.route('/<equipment_id>', methods=['PUT'])
def update_equipment(equipment_id):
    item = equipment_service.update_equipment(equipment_id, json_body())
    return jsonify({'equipment': item.to_dict()})


@equipment_bp.route('/<equipment_id>', methods=['DELETE'])
def delete_equipment(equipment_id):
    return jsonify({'equipment': equipment_service.delete_equipment(equipment_id)})


@equipment_bp.route('/<equipment_id>/image', methods=['POST'])
def upload_image(equipment_id):
    """Multipart upload, field name `file`"""
    image_url = equipment_service.add_image(equipment_id, request.files.get('file'))
    return jsonify({'imageUrl': image_url}), 201


@equipment_bp.route('/<equipment_id>/image', methods=['DELETE'])
def delete_image(equipment_id):
    equipment_service.remove_image(equipment_id, request.args.get('imageUrl'))
    return jsonify({'success': True})
