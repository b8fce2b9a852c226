import json

import pytest

from helpers import sns_body
from thumbnailer.exceptions import PayloadError
from thumbnailer.schemas import StorageObjectRef, WorkItem, decode_work_item


def test_decode_sns_envelope() -> None:
    item = decode_work_item(sns_body("media", "photos/cat.jpg"))
    assert item == WorkItem(source=StorageObjectRef(bucket="media", key="photos/cat.jpg"))


def test_decode_raw_delivery() -> None:
    item = decode_work_item(json.dumps({"bucket": "media", "key": "photos/cat.jpg"}))
    assert item.source.key == "photos/cat.jpg"


def test_payload_round_trips_through_envelope() -> None:
    item = WorkItem(source=StorageObjectRef(bucket="media", key="a b/ü.png"))
    body = json.dumps({"Type": "Notification", "Message": item.to_payload()})
    assert decode_work_item(body) == item


def test_work_item_is_immutable() -> None:
    item = WorkItem(source=StorageObjectRef(bucket="media", key="cat.jpg"))
    with pytest.raises(Exception):
        item.source = StorageObjectRef(bucket="other", key="dog.jpg")


@pytest.mark.parametrize(
    "body",
    [
        "not json",
        "[1, 2, 3]",
        json.dumps({"bucket": "media"}),
        json.dumps({"bucket": "", "key": "cat.jpg"}),
        json.dumps({"Type": "Notification", "Message": "{broken"}),
        json.dumps({"Type": "Notification", "Message": json.dumps({"key": "cat.jpg"})}),
        json.dumps({"Type": "SubscriptionConfirmation", "Message": "confirm"}),
    ],
)
def test_malformed_bodies_raise_payload_error(body: str) -> None:
    with pytest.raises(PayloadError) as exc_info:
        decode_work_item(body)
    assert exc_info.value.retryable is False
    assert exc_info.value.code == "payload_invalid"
