"""
Conversion between plaintext records and what a backend stores.

The embedded store keeps sensitive fields as ciphertext; the server store
keeps typed columns and needs real datetimes for its TIMESTAMPTZ columns.
Both directions live here so services never branch on the backend.
"""
from typing import Any, Dict

from ..crypto import SCREENSHOT_ENCRYPTED_FIELDS, TIME_LOG_ENCRYPTED_FIELDS, FieldCodec
from ..database.adapters import BackendAdapter
from ..schemas.time_tracking import Screenshot, TimeLog
from ..utils.time import parse_timestamp

TIME_LOG_COLUMNS = (
    "id, organization_id, user_id, project_id, task_id, start_time, end_time, duration_ms, "
    "duration_hours, paused_duration_ms, activity_score, description, is_billable, status, "
    "approved_by, approved_at, created_at, updated_at"
)

SCREENSHOT_COLUMNS = (
    "id, organization_id, user_id, time_log_id, s3_key, s3_url, thumbnail_url, file_size, "
    "mime_type, width, height, captured_at, created_at"
)


def _parse_fields(record: Dict[str, Any], fields) -> Dict[str, Any]:
    stored = dict(record)
    for field in fields:
        if stored.get(field) is not None:
            stored[field] = parse_timestamp(stored[field])
    return stored


def encode_time_log(store: BackendAdapter, codec: FieldCodec, record: Dict[str, Any]) -> Dict[str, Any]:
    if store.encrypts_at_rest:
        return codec.encrypt_fields(record, TIME_LOG_ENCRYPTED_FIELDS)
    return _parse_fields(record, ("start_time", "end_time"))


def decode_time_log(store: BackendAdapter, codec: FieldCodec, row: Dict[str, Any]) -> TimeLog:
    if store.encrypts_at_rest:
        row = codec.decrypt_fields(row, TIME_LOG_ENCRYPTED_FIELDS)
    return TimeLog(**row)


def encode_screenshot(store: BackendAdapter, codec: FieldCodec, record: Dict[str, Any]) -> Dict[str, Any]:
    if store.encrypts_at_rest:
        return codec.encrypt_fields(record, SCREENSHOT_ENCRYPTED_FIELDS)
    return _parse_fields(record, ("captured_at",))


def decode_screenshot(store: BackendAdapter, codec: FieldCodec, row: Dict[str, Any]) -> Screenshot:
    if store.encrypts_at_rest:
        row = codec.decrypt_fields(row, SCREENSHOT_ENCRYPTED_FIELDS)
    return Screenshot(**row)
