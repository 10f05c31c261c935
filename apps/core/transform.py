"""
Key-style conversion for API payloads.

Resident-facing endpoints speak snake_case while the admin reporting
endpoints answer in camelCase. These helpers convert dict keys recursively;
lists are traversed and scalar values are left untouched.
"""
import re
from decimal import Decimal
from typing import Any

_CAMEL_BOUNDARY = re.compile(r'(?<=[a-z0-9])([A-Z])')


def camel_to_snake(key: str) -> str:
    """transactionCode -> transaction_code"""
    return _CAMEL_BOUNDARY.sub(r'_\1', key).lower()


def snake_to_camel(key: str) -> str:
    """transaction_code -> transactionCode"""
    head, *rest = key.split('_')
    return head + ''.join(part[:1].upper() + part[1:] for part in rest)


def to_snake_case(data: Any) -> Any:
    if isinstance(data, dict):
        return {
            camel_to_snake(k) if isinstance(k, str) else k: to_snake_case(v)
            for k, v in data.items()
        }
    if isinstance(data, (list, tuple)):
        return [to_snake_case(item) for item in data]
    return data


def to_camel_case(data: Any) -> Any:
    if isinstance(data, dict):
        return {
            snake_to_camel(k) if isinstance(k, str) else k: to_camel_case(v)
            for k, v in data.items()
        }
    if isinstance(data, (list, tuple)):
        return [to_camel_case(item) for item in data]
    return data


def to_report_payload(data: Any) -> Any:
    """
    camelCase keys with Decimal amounts as floats, the shape the admin
    reporting endpoints answer in.
    """
    if isinstance(data, dict):
        return {
            snake_to_camel(k) if isinstance(k, str) else k: to_report_payload(v)
            for k, v in data.items()
        }
    if isinstance(data, (list, tuple)):
        return [to_report_payload(item) for item in data]
    if isinstance(data, Decimal):
        return float(data)
    return data
