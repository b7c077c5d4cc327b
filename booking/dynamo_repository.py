from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

import boto3
from boto3.dynamodb.conditions import Key
from botocore.exceptions import ClientError

from booking.repository_interface import BookingRepositoryProtocol
from booking.session_record import session_from_record, session_to_record
from core.enums import INITIAL_STEP
from core.errors import SessionConflictError
from core.models import BookingSession, ReconciliationFlag


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


class DynamoBookingRepository(BookingRepositoryProtocol):
    PAYMENT_REFERENCE_INDEX = "payment_reference_index"
    FLAG_IDENTITY_INDEX = "identity_created_at_index"

    def __init__(
        self,
        *,
        region_name: str | None = None,
        table_prefix: str = "bookingbot",
        sessions_table_name: str | None = None,
        reconciliation_table_name: str | None = None,
        dynamodb_resource: Any | None = None,
    ) -> None:
        normalized_prefix = (table_prefix or "bookingbot").strip()
        self._ddb = dynamodb_resource or boto3.resource("dynamodb", region_name=region_name)
        self._sessions_table = self._ddb.Table(sessions_table_name or f"{normalized_prefix}-sessions")
        self._flags_table = self._ddb.Table(reconciliation_table_name or f"{normalized_prefix}-reconciliation")

    def get_session(self, identity: str) -> BookingSession | None:
        item = self._sessions_table.get_item(Key={"identity": identity}, ConsistentRead=True).get("Item")
        if item is None:
            return None
        return session_from_record(item)

    def create_session(self, identity: str) -> BookingSession:
        now = _utc_now()
        session = BookingSession(identity=identity, step=INITIAL_STEP.value, created_at=now, updated_at=now)
        try:
            self._sessions_table.put_item(
                Item=_without_nulls(session_to_record(session)),
                ConditionExpression="attribute_not_exists(identity)",
            )
        except ClientError as exc:
            if _is_conditional_failure(exc):
                raise SessionConflictError(f"session already exists: identity={identity}") from exc
            raise
        return session

    def save_session(self, session: BookingSession) -> None:
        session.updated_at = _utc_now()
        expected_version = int(session.version)
        record = session_to_record(session)
        record["version"] = expected_version + 1
        try:
            self._sessions_table.put_item(
                Item=_without_nulls(record),
                ConditionExpression="attribute_exists(identity) AND version = :expected",
                ExpressionAttributeValues={":expected": expected_version},
            )
        except ClientError as exc:
            if _is_conditional_failure(exc):
                raise SessionConflictError(
                    f"session changed concurrently: identity={session.identity} version={expected_version}"
                ) from exc
            raise
        session.version = expected_version + 1

    def delete_session(self, identity: str) -> None:
        self._sessions_table.delete_item(Key={"identity": identity})

    def record_message_id(self, identity: str, message_id: str) -> bool:
        key = (message_id or "").strip()
        if not key:
            return True
        try:
            self._sessions_table.update_item(
                Key={"identity": identity},
                UpdateExpression="SET last_processed_message_id = :mid",
                ConditionExpression=(
                    "attribute_exists(identity) AND "
                    "(attribute_not_exists(last_processed_message_id) OR last_processed_message_id <> :mid)"
                ),
                ExpressionAttributeValues={":mid": key},
            )
            return True
        except ClientError as exc:
            if _is_conditional_failure(exc):
                return False
            raise

    def find_session_by_payment_reference(self, reference: str) -> BookingSession | None:
        key = (reference or "").strip()
        if not key:
            return None
        rows = self._sessions_table.query(
            IndexName=self.PAYMENT_REFERENCE_INDEX,
            KeyConditionExpression=Key("payment_reference").eq(key),
            Limit=1,
        ).get("Items", [])
        if not rows:
            return None
        # the index projection may lag; read the authoritative item
        return self.get_session(str(rows[0]["identity"]))

    def flag_for_reconciliation(self, identity: str, reason: str, details: dict[str, Any]) -> str:
        flag_id = str(uuid4())
        self._flags_table.put_item(
            Item={
                "flag_id": flag_id,
                "identity": identity,
                "reason": reason,
                "details_json": json.dumps(details, ensure_ascii=False, default=str),
                "created_at": _utc_now(),
            }
        )
        return flag_id

    def list_reconciliation_flags(self, identity: str | None = None) -> list[ReconciliationFlag]:
        if identity:
            rows = self._flags_table.query(
                IndexName=self.FLAG_IDENTITY_INDEX,
                KeyConditionExpression=Key("identity").eq(identity),
            ).get("Items", [])
        else:
            rows = self._flags_table.scan().get("Items", [])
        flags = [
            ReconciliationFlag(
                flag_id=str(row["flag_id"]),
                identity=str(row["identity"]),
                reason=str(row["reason"]),
                details=_load_details(row.get("details_json")),
                created_at=str(row.get("created_at", "")),
            )
            for row in rows
        ]
        return sorted(flags, key=lambda flag: flag.created_at)


def _is_conditional_failure(exc: ClientError) -> bool:
    code = str(exc.response.get("Error", {}).get("Code", ""))
    return code == "ConditionalCheckFailedException"


def _without_nulls(record: dict[str, Any]) -> dict[str, Any]:
    # GSI key attributes must be absent rather than null
    return {key: value for key, value in record.items() if value is not None}


def _load_details(text: Any) -> dict[str, Any]:
    if not text:
        return {}
    try:
        value = json.loads(str(text))
    except ValueError:
        return {}
    return value if isinstance(value, dict) else {}
