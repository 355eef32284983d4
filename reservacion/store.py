"""
DynamoDB adapter for events, reservations and user profiles.

Reservations live in their own table keyed by (event_id, reservation_id).
"""
import logging
from contextlib import contextmanager
from decimal import Decimal
from typing import Dict, Iterable, List, Optional

import boto3
from boto3.dynamodb.conditions import Attr, Key
from botocore.exceptions import ClientError

from . import config
from .errors import NotFoundError, StoreError
from .models import Event, Reservation, Role, User

logger = logging.getLogger(__name__)


def clean_data(obj):
    """Recursively drop ``None`` values and empty sets, which DynamoDB rejects."""
    if isinstance(obj, dict):
        cleaned = {}
        for k, v in obj.items():
            if v is None or (isinstance(v, (set, frozenset)) and not v):
                continue
            cleaned[k] = clean_data(v)
        return cleaned
    if isinstance(obj, (list, tuple)):
        return [clean_data(i) for i in obj]
    return obj


def to_dynamo(obj):
    # Convert floats to Decimal for DynamoDB
    if isinstance(obj, float):
        return Decimal(str(obj))
    if isinstance(obj, dict):
        return {k: to_dynamo(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [to_dynamo(i) for i in obj]
    return obj


def from_dynamo(obj):
    if isinstance(obj, Decimal):
        return int(obj) if obj == obj.to_integral_value() else float(obj)
    if isinstance(obj, dict):
        return {k: from_dynamo(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [from_dynamo(i) for i in obj]
    if isinstance(obj, (set, frozenset)):
        return sorted(from_dynamo(i) for i in obj)
    return obj


@contextmanager
def _store_call(action: str):
    try:
        yield
    except ClientError as e:
        logger.exception("DynamoDB %s failed: %s", action, e.response["Error"].get("Message"))
        raise StoreError()


class ReservationStore:

    def __init__(self, dynamodb, events_table: str = config.EVENTS_TABLE,
                 reservations_table: str = config.RESERVATIONS_TABLE,
                 users_table: str = config.USERS_TABLE):
        self.dynamodb = dynamodb
        self.events = dynamodb.Table(events_table)
        self.reservations = dynamodb.Table(reservations_table)
        self.users = dynamodb.Table(users_table)

    # -------------------------
    # Helpers
    # -------------------------
    @staticmethod
    def _prepare(item: dict) -> dict:
        return to_dynamo(clean_data(item))

    @staticmethod
    def _scan_all(table, **kwargs) -> List[dict]:
        items = []
        while True:
            response = table.scan(**kwargs)
            items.extend(response.get("Items", []))
            last_key = response.get("LastEvaluatedKey")
            if not last_key:
                return items
            kwargs["ExclusiveStartKey"] = last_key

    @staticmethod
    def _query_all(table, **kwargs) -> List[dict]:
        items = []
        while True:
            response = table.query(**kwargs)
            items.extend(response.get("Items", []))
            last_key = response.get("LastEvaluatedKey")
            if not last_key:
                return items
            kwargs["ExclusiveStartKey"] = last_key

    # -------------------------
    # Events
    # -------------------------
    def get_event(self, event_id: str) -> Optional[Event]:
        with _store_call("get_event"):
            item = self.events.get_item(Key={"event_id": event_id}).get("Item")
        return Event.from_item(from_dynamo(item)) if item else None

    def require_event(self, event_id: str) -> Event:
        event = self.get_event(event_id)
        if event is None:
            raise NotFoundError("Event not found")
        return event

    def list_events(self) -> List[Event]:
        with _store_call("list_events"):
            items = self._scan_all(self.events)
        events = [Event.from_item(from_dynamo(i)) for i in items]
        return sorted(events, key=lambda e: e.created_at, reverse=True)

    def list_events_for_promoter(self, uid: str) -> List[Event]:
        with _store_call("list_events_for_promoter"):
            items = self._scan_all(self.events, FilterExpression=Attr("promoters").contains(uid))
        return [Event.from_item(from_dynamo(i)) for i in items]

    def create_event(self, event: Event) -> Event:
        with _store_call("create_event"):
            self.events.put_item(Item=self._prepare(event.to_item()))
        logger.info("Created event %s", event.event_id)
        return event

    def update_event(self, event_id: str, changes: Dict, remove: Iterable[str] = ()) -> Event:
        """Merge ``changes`` into the stored event.

        ``None`` values are dropped before writing; attributes that should
        disappear are named in ``remove``.
        """
        changes = self._prepare({k: v for k, v in changes.items() if k != "event_id"})
        remove = [attr for attr in remove if attr not in changes and attr != "event_id"]
        if not changes and not remove:
            return self.require_event(event_id)

        names, values, assignments = {}, {}, []
        for i, (attr, value) in enumerate(changes.items()):
            names[f"#a{i}"] = attr
            values[f":v{i}"] = value
            assignments.append(f"#a{i} = :v{i}")
        expression = "SET " + ", ".join(assignments) if assignments else ""
        if remove:
            for i, attr in enumerate(remove):
                names[f"#r{i}"] = attr
            expression += " REMOVE " + ", ".join(f"#r{i}" for i in range(len(remove)))

        kwargs = {
            "Key": {"event_id": event_id},
            "UpdateExpression": expression.strip(),
            "ConditionExpression": "attribute_exists(event_id)",
            "ExpressionAttributeNames": names,
            "ReturnValues": "ALL_NEW",
        }
        if values:
            kwargs["ExpressionAttributeValues"] = values

        try:
            response = self.events.update_item(**kwargs)
        except ClientError as e:
            if e.response["Error"]["Code"] == "ConditionalCheckFailedException":
                raise NotFoundError("Event not found")
            logger.exception("DynamoDB update_event failed: %s", e.response["Error"].get("Message"))
            raise StoreError()
        return Event.from_item(from_dynamo(response["Attributes"]))

    def count_reservations(self, event_id: str) -> int:
        with _store_call("count_reservations"):
            total = 0
            kwargs = {"KeyConditionExpression": Key("event_id").eq(event_id), "Select": "COUNT"}
            while True:
                response = self.reservations.query(**kwargs)
                total += response.get("Count", 0)
                if not response.get("LastEvaluatedKey"):
                    return total
                kwargs["ExclusiveStartKey"] = response["LastEvaluatedKey"]

    def attach_promoter(self, event_id: str, uid: str) -> None:
        """Add ``uid`` to the event's promoters and the event to the user's events.

        Both writes go through one transaction, and string-set ADD makes a
        repeated join a no-op.
        """
        client = self.dynamodb.meta.client
        try:
            client.transact_write_items(TransactItems=[
                {"Update": {
                    "TableName": self.events.name,
                    "Key": {"event_id": event_id},
                    "UpdateExpression": "ADD promoters :uid",
                    "ConditionExpression": "attribute_exists(event_id)",
                    "ExpressionAttributeValues": {":uid": {uid}},
                }},
                {"Update": {
                    "TableName": self.users.name,
                    "Key": {"uid": uid},
                    "UpdateExpression": "ADD events :event",
                    "ConditionExpression": "attribute_exists(uid)",
                    "ExpressionAttributeValues": {":event": {event_id}},
                }},
            ])
        except ClientError as e:
            if e.response["Error"]["Code"] == "TransactionCanceledException":
                raise NotFoundError("Event or user not found")
            logger.exception("DynamoDB attach_promoter failed: %s", e.response["Error"].get("Message"))
            raise StoreError()
        logger.info("Attached promoter %s to event %s", uid, event_id)

    # -------------------------
    # Reservations
    # -------------------------
    def list_reservations(self, event_id: str) -> List[Reservation]:
        with _store_call("list_reservations"):
            items = self._query_all(
                self.reservations, KeyConditionExpression=Key("event_id").eq(event_id)
            )
        reservations = [Reservation.from_item(from_dynamo(i)) for i in items]
        return sorted(reservations, key=lambda r: r.created_at, reverse=True)

    def get_reservation(self, event_id: str, reservation_id: str) -> Optional[Reservation]:
        with _store_call("get_reservation"):
            item = self.reservations.get_item(
                Key={"event_id": event_id, "reservation_id": reservation_id}
            ).get("Item")
        return Reservation.from_item(from_dynamo(item)) if item else None

    def create_reservation(self, reservation: Reservation) -> Reservation:
        with _store_call("create_reservation"):
            self.reservations.put_item(Item=self._prepare(reservation.to_item()))
        return reservation

    def delete_reservation(self, event_id: str, reservation_id: str) -> bool:
        with _store_call("delete_reservation"):
            response = self.reservations.delete_item(
                Key={"event_id": event_id, "reservation_id": reservation_id},
                ReturnValues="ALL_OLD",
            )
        return "Attributes" in response

    # -------------------------
    # Users
    # -------------------------
    def get_user(self, uid: str) -> Optional[User]:
        with _store_call("get_user"):
            item = self.users.get_item(Key={"uid": uid}).get("Item")
        return User.from_item(from_dynamo(item)) if item else None

    def put_user(self, user: User) -> User:
        with _store_call("put_user"):
            self.users.put_item(Item=self._prepare(user.to_item()))
        return user

    def list_users(self) -> List[User]:
        with _store_call("list_users"):
            items = self._scan_all(self.users)
        return [User.from_item(from_dynamo(i)) for i in items]

    def set_user_role(self, uid: str, role: Role) -> None:
        try:
            self.users.update_item(
                Key={"uid": uid},
                UpdateExpression="SET #r = :role",
                ConditionExpression="attribute_exists(uid)",
                ExpressionAttributeNames={"#r": "role"},
                ExpressionAttributeValues={":role": Role(role).value},
            )
        except ClientError as e:
            if e.response["Error"]["Code"] == "ConditionalCheckFailedException":
                raise NotFoundError("User not found")
            logger.exception("DynamoDB set_user_role failed: %s", e.response["Error"].get("Message"))
            raise StoreError()

    def delete_user(self, uid: str) -> bool:
        # Reservations and promoter memberships are left in place.
        with _store_call("delete_user"):
            response = self.users.delete_item(Key={"uid": uid}, ReturnValues="ALL_OLD")
        return "Attributes" in response

    def display_names(self, uids: Iterable[str]) -> Dict[str, str]:
        names = {}
        for uid in {u for u in uids if u}:
            user = self.get_user(uid)
            if user:
                names[uid] = user.display_name
        return names


def build_store(region: str = config.AWS_REGION) -> ReservationStore:
    return ReservationStore(boto3.resource("dynamodb", region_name=region))
