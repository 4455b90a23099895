# api/kanban.py
"""
Kanban board endpoints: cards and column configuration
"""

import logging

from flask import Blueprint, jsonify, request

from api.helpers import json_body
from services import kanban

kanban_bp = Blueprint('kanban', __name__, url_prefix='/api/kanban')
logger = logging.getLogger(__name__)


@kanban_bp.route('/cards', methods=['GET'])
def list_cards():
    cards = kanban.list_cards(request.args.get('columnId'))
    return jsonify({'cards': [card.to_dict() for card in cards]})


@kanban_bp.route('/cards', methods=['POST'])
def create_card():
    card = kanban.create_card(json_body())
    return jsonify({'card': card.to_dict()}), 201


@kanban_bp.route('/cards/<card_id>', methods=['GET'])
def get_card(card_id):
    return jsonify({'card': kanban.get_card(card_id).to_dict()})


@kanban_bp.route('/cards/<card_id>', methods=['PATCH'])
def update_card(card_id):
    card = kanban.update_card(card_id, json_body())
    return jsonify({'card': card.to_dict()})


@kanban_bp.route('/cards/<card_id>', methods=['DELETE'])
def delete_card(card_id):
    return jsonify({'card': kanban.delete_card(card_id)})


@kanban_bp.route('/cards/<card_id>/assign', methods=['POST'])
def assign_card(card_id):
    card = kanban.assign_card(card_id, json_body().get('assignee'))
    return jsonify({'card': card.to_dict()})


@kanban_bp.route('/cards/<card_id>/move', methods=['POST'])
def move_card(card_id):
    card = kanban.move_card(card_id, json_body().get('columnId'))
    return jsonify({'card': card.to_dict()})


@kanban_bp.route('/config', methods=['GET'])
def get_config():
    return jsonify(kanban.get_config())


@kanban_bp.route('/config', methods=['PUT'])
def save_config():
    config = kanban.save_config(json_body())
    return jsonify({'success': True, 'config': config})


@kanban_bp.route('/config/columns', methods=['GET'])
def get_columns():
    return jsonify(kanban.get_columns())
