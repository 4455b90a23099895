# api/mfg.py
"""
Form actions from the manufacturing parts page
"""

import logging

from flask import Blueprint, jsonify, request

from middleware.security import build_onshape_client
from services.parts_actions import handle_action

mfg_bp = Blueprint('mfg', __name__, url_prefix='/api/mfg')
logger = logging.getLogger(__name__)


@mfg_bp.route('/parts/actions', methods=['POST'])
def parts_actions():
    """
    Dispatch on the `action` form field: addCard, moveCard, updateDueDate,
    anything else updates the part number in Onshape
    """
    result = handle_action(request.form, build_onshape_client)
    if not result['success']:
        logger.warning(f"Parts action {request.form.get('action')} failed: {result['error']}")
    return jsonify(result), 200 if result['success'] else 400
