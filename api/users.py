# api/users.py
from flask import Blueprint, jsonify

from services import users as user_service

users_bp = Blueprint('users', __name__, url_prefix='/api/users')


@users_bp.route('', methods=['GET'])
def list_users():
    return jsonify([user.to_dict() for user in user_service.list_users()])


@users_bp.route('/<user_id>', methods=['GET'])
def get_user(user_id):
    return jsonify(user_service.get_user(user_id).to_dict())
