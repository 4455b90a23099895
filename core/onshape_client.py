# core/onshape_client.py
"""
Bearer-token client for the Onshape REST API
Documentation: https://onshape-public.github.io/docs/
"""

import logging
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import quote, urlparse

import requests

logger = logging.getLogger(__name__)

DEFAULT_API_URL = 'https://cad.onshape.com/api'
PART_NUMBER_NAMES = ('part number', 'partnumber', 'part_number')


class OnshapeApiError(Exception):
    """Non-2xx answer from the Onshape API"""

    def __init__(self, message: str, status: int):
        super().__init__(message)
        self.message = message
        self.status = status


def normalize_instance_type(instance_type: Optional[str]) -> str:
    """w = workspace, v = version, anything else is a microversion"""
    return instance_type if instance_type in ('w', 'v') else 'm'


def build_thumbnail_url(document_id: str, instance_type: str, instance_id: str,
                        element_id: str, part_id: str,
                        api_url: str = DEFAULT_API_URL) -> str:
    wvm = normalize_instance_type(instance_type)
    return (
        f"{api_url.rstrip('/')}/v10/thumbnails/d/{document_id}/{wvm}/{instance_id}"
        f"/e/{element_id}/p/{quote(part_id, safe='')}?outputFormat=PNG&pixelSize=300"
    )


def extract_version_id(instance_type: Optional[str], instance_id: Optional[str]) -> Optional[str]:
    """Version id of a part context; only version ('v') instances have one"""
    if instance_type == 'v' and instance_id:
        return instance_id
    return None


def find_part_number_property(properties: List[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    for prop in properties:
        name = (prop.get('name') or '').lower()
        property_id = (prop.get('propertyId') or '').lower()
        if name in PART_NUMBER_NAMES or 'partnumber' in property_id or 'part_number' in property_id:
            return prop
    return None


class OnshapeClient:
    """Thin wrapper attaching the bearer token to every Onshape call"""

    def __init__(self, access_token: str, api_url: str = DEFAULT_API_URL,
                 timeout: float = 30, http=None):
        self.access_token = access_token
        self.api_url = api_url.rstrip('/')
        self.timeout = timeout
        self.http = http or requests.Session()

    def _url(self, endpoint: str) -> str:
        if endpoint.startswith('http'):
            return endpoint
        return f"{self.api_url}{endpoint}"

    def is_api_url(self, url: str) -> bool:
        """Only the Onshape API origin may receive the bearer token"""
        target, api = urlparse(url), urlparse(self.api_url)
        return (target.scheme, target.netloc) == (api.scheme, api.netloc)

    def request(self, method: str, endpoint: str, **kwargs) -> requests.Response:
        headers = {
            'Authorization': f"Bearer {self.access_token}",
            'Accept': 'application/json',
        }
        headers.update(kwargs.pop('headers', {}))
        url = self._url(endpoint)
        try:
            response = self.http.request(method, url, headers=headers, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            logger.error(f"Onshape request {method} {url} failed: {e}")
            raise OnshapeApiError(f"Onshape request failed: {e}", 502) from e

        if not response.ok:
            message = f"Request failed with status {response.status_code}"
            try:
                error_data = response.json()
                message = error_data.get('message') or error_data.get('error') or message
            except ValueError:
                pass
            logger.warning(f"Onshape API error {response.status_code} for {method} {url}: {message}")
            raise OnshapeApiError(message, response.status_code)
        return response

    def get_json(self, endpoint: str, params: Optional[dict] = None) -> Any:
        return self.request('GET', endpoint, params=params).json()

    def get_current_user(self) -> Dict[str, Any]:
        return self.get_json('/users/sessioninfo')

    def get_parts(self, document_id: str, instance_type: str, instance_id: str,
                  element_id: str, with_thumbnails: bool = False) -> List[Dict[str, Any]]:
        wvm = normalize_instance_type(instance_type)
        data = self.get_json(
            f"/parts/d/{document_id}/{wvm}/{instance_id}/e/{element_id}",
            params={
                'withThumbnails': str(with_thumbnails).lower(),
                'includePropertyDefaults': 'true',
            },
        )
        if isinstance(data, dict):
            return data.get('parts') or []
        return data or []

    def get_version(self, document_id: str, version_id: str) -> Dict[str, Any]:
        return self.get_json(f"/documents/d/{document_id}/versions/{version_id}")

    def get_thumbnail(self, url: str) -> Tuple[bytes, str]:
        """Fetch image bytes and content type"""
        response = self.request('GET', url, headers={'Accept': 'image/*'})
        return response.content, response.headers.get('Content-Type') or 'image/png'

    def _metadata_path(self, document_id, instance_type, instance_id, element_id, part_id) -> str:
        wvm = normalize_instance_type(instance_type)
        return f"/metadata/d/{document_id}/{wvm}/{instance_id}/e/{element_id}/p/{quote(part_id, safe='')}"

    def get_part_metadata(self, document_id: str, instance_type: str, instance_id: str,
                          element_id: str, part_id: str) -> Dict[str, Any]:
        return self.get_json(
            self._metadata_path(document_id, instance_type, instance_id, element_id, part_id),
            params={'includeComputedProperties': 'true'},
        )

    def update_part_number(self, document_id: str, instance_type: str, instance_id: str,
                           element_id: str, part_id: str, part_number: str) -> Dict[str, Any]:
        """Set the "Part number" metadata property of a part"""
        metadata = self.get_part_metadata(document_id, instance_type, instance_id, element_id, part_id)
        properties = (metadata or {}).get('properties') or []
        if not properties:
            raise OnshapeApiError('Failed to retrieve part metadata or no properties found', 404)

        prop = find_part_number_property(properties)
        if not prop or not prop.get('propertyId'):
            available = ', '.join(p['name'] for p in properties if p.get('name')) or 'none'
            raise OnshapeApiError(f"Part number property not found. Available properties: {available}", 404)

        body = {
            'jsonType': 'metadata-part',
            'partId': part_id,
            'properties': [{'value': part_number.strip(), 'propertyId': prop['propertyId']}],
        }
        response = self.request(
            'POST',
            self._metadata_path(document_id, instance_type, instance_id, element_id, part_id),
            json=body,
        )
        logger.info(f"Updated part number of part {part_id} in document {document_id}")
        try:
            return response.json()
        except ValueError:
            return {}
