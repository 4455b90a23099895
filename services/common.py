# services/common.py
"""
Helpers shared by the domain services
"""

import math
import secrets
import string
import time
from typing import Any, Iterable, List, Optional

from core.database_models import Process, db
from core.errors import ValidationError

_ID_ALPHABET = string.ascii_lowercase + string.digits


def generate_id(prefix: str, random_suffix: bool = True) -> str:
    """<prefix>-<epoch ms>[-<7 random chars>]"""
    stamp = int(time.time() * 1000)
    if not random_suffix:
        return f"{prefix}-{stamp}"
    suffix = ''.join(secrets.choice(_ID_ALPHABET) for _ in range(7))
    return f"{prefix}-{stamp}-{suffix}"


def require_text(payload: dict, field: str) -> str:
    value = payload.get(field)
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"Missing required field: {field}")
    return value.strip()


def optional_text(value: Any, field: str) -> Optional[str]:
    """Empty values become None; non-strings are rejected"""
    if value is None or value == '':
        return None
    if not isinstance(value, str):
        raise ValidationError(f"Field {field} must be a string")
    return value


def optional_choice(value: Any, field: str, choices: Iterable[str]) -> Optional[str]:
    value = optional_text(value, field)
    choices = tuple(choices)
    if value is not None and value not in choices:
        raise ValidationError(f"Invalid {field}: {value}. Expected one of: {', '.join(choices)}")
    return value


def optional_positive_int(value: Any, field: str) -> Optional[int]:
    if value is None or value == '':
        return None
    if isinstance(value, bool):
        raise ValidationError(f"Field {field} must be a positive whole number")
    try:
        number = float(value)
    except (TypeError, ValueError, OverflowError):
        raise ValidationError(f"Field {field} must be a number")
    if not math.isfinite(number) or number <= 0 or not number.is_integer():
        raise ValidationError(f"Field {field} must be a positive whole number")
    return value if isinstance(value, int) else int(number)


def optional_string_list(value: Any, field: str) -> Optional[List[str]]:
    if value is None:
        return None
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ValidationError(f"Field {field} must be a list of strings")
    return value


def resolve_processes(process_ids: Any) -> List[Process]:
    """Load processes by id, rejecting unknown ids"""
    ids = optional_string_list(process_ids, 'processIds') or []
    if not ids:
        return []
    found = db.session.execute(db.select(Process).where(Process.id.in_(ids))).scalars().all()
    missing = sorted(set(ids) - {p.id for p in found})
    if missing:
        raise ValidationError(f"Unknown process id(s): {', '.join(missing)}")
    return list(found)
