from __future__ import annotations

import pytest

from throttler import Bucket, BucketDecodeError, decode_bucket, encode_bucket


def test_encoded_record_preserves_precise_timestamp():
    bucket = Bucket(drops=7, timestamp=1718036512.123456789)
    decoded = decode_bucket(encode_bucket(bucket))
    assert decoded == bucket
    assert decoded.timestamp == bucket.timestamp


def test_decode_accepts_text_records():
    assert decode_bucket('{"drops": 2, "timestamp": 10}') == Bucket(drops=2, timestamp=10.0)


def test_integer_timestamp_is_normalized_to_float():
    assert isinstance(Bucket(drops=0, timestamp=5).timestamp, float)


@pytest.mark.parametrize(
    "raw",
    [
        b"\xff\xfe",
        b"not json",
        b"[1, 2]",
        b'{"drops": 1}',
        b'{"timestamp": 1.0}',
        b'{"drops": -1, "timestamp": 1.0}',
        b'{"drops": 1.5, "timestamp": 1.0}',
        b'{"drops": true, "timestamp": 1.0}',
        b'{"drops": 1, "timestamp": "yesterday"}',
        b'{"drops": 1, "timestamp": NaN}',
        b'{"drops": 1, "timestamp": Infinity}',
    ],
)
def test_decode_rejects_malformed_records(raw):
    with pytest.raises(BucketDecodeError):
        decode_bucket(raw)


def test_with_state_returns_new_bucket():
    bucket = Bucket.empty(3.0)
    updated = bucket.with_state(drops=4, timestamp=5.0)
    assert bucket == Bucket(drops=0, timestamp=3.0)
    assert updated == Bucket(drops=4, timestamp=5.0)
