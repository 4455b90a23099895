# api/onshape.py
"""
Authenticated proxy over the Onshape REST API

The browser never sees the bearer token for these calls; each request is
made server-side with the token from the session cookie.
"""

import logging

from flask import Blueprint, Response, jsonify, request

from core.errors import ValidationError
from core.onshape_client import build_thumbnail_url
from middleware.security import build_onshape_client

onshape_bp = Blueprint('onshape', __name__, url_prefix='/api/onshape')
logger = logging.getLogger(__name__)


def _required_args(*names):
    values = {name: request.args.get(name) for name in names}
    missing = [name for name, value in values.items() if not value]
    if missing:
        raise ValidationError(f"Missing required parameters: {', '.join(missing)}")
    return values


@onshape_bp.route('/parts', methods=['GET'])
def get_parts():
    """Parts of a Part Studio element"""
    args = _required_args('documentId', 'instanceType', 'instanceId', 'elementId')
    with_thumbnails = request.args.get('withThumbnails') == 'true'

    client = build_onshape_client()
    parts = client.get_parts(
        args['documentId'],
        args['instanceType'],
        args['instanceId'],
        args['elementId'],
        with_thumbnails=with_thumbnails,
    )
    return jsonify(parts)


@onshape_bp.route('/version', methods=['GET'])
def get_version():
    args = _required_args('documentId', 'versionId')
    client = build_onshape_client()
    return jsonify(client.get_version(args['documentId'], args['versionId']))


@onshape_bp.route('/thumbnail', methods=['GET'])
def get_thumbnail():
    """
    Part thumbnail image

    Either a full Onshape thumbnail `url` or documentId, instanceId,
    elementId and partId (instanceType defaults to `w`).
    """
    thumbnail_url = request.args.get('url')
    client = None

    if not thumbnail_url:
        document_id = request.args.get('documentId')
        instance_id = request.args.get('instanceId')
        element_id = request.args.get('elementId')
        part_id = request.args.get('partId')
        if not (document_id and instance_id and element_id and part_id):
            raise ValidationError(
                'Missing thumbnail URL or required parameters '
                '(documentId, instanceId, elementId, partId)'
            )
        client = build_onshape_client()
        thumbnail_url = build_thumbnail_url(
            document_id,
            request.args.get('instanceType') or 'w',
            instance_id,
            element_id,
            part_id,
            api_url=client.api_url,
        )

    client = client or build_onshape_client()
    if not client.is_api_url(thumbnail_url):
        logger.warning(f"Rejected thumbnail URL outside the Onshape API: {thumbnail_url}")
        raise ValidationError('Thumbnail URL must point at the Onshape API')

    data, content_type = client.get_thumbnail(thumbnail_url)
    response = Response(data, content_type=content_type)
    response.headers['Cache-Control'] = 'public, max-age=3600'
    return response
