# api/processes.py
from flask import Blueprint, jsonify

from api.helpers import json_body
from services import processes as process_service

processes_bp = Blueprint('processes', __name__, url_prefix='/api/processes')


@processes_bp.route('', methods=['GET'])
def list_processes():
    return jsonify({'processes': [p.to_dict() for p in process_service.list_processes()]})


@processes_bp.route('', methods=['POST'])
def create_process():
    process = process_service.create_process(json_body())
    return jsonify({'process': process.to_dict()}), 201


@processes_bp.route('/<process_id>', methods=['GET'])
def get_process(process_id):
    return jsonify({'process': process_service.get_process(process_id).to_dict()})


@processes_bp.route('/<process_id>', methods=['PUT'])
def update_process(process_id):
    process = process_service.update_process(process_id, json_body())
    return jsonify({'process': process.to_dict()})


@processes_bp.route('/<process_id>', methods=['DELETE'])
def delete_process(process_id):
    return jsonify({'process': process_service.delete_process(process_id)})
