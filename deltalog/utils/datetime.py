# Licensed to the Apache Software Foundation (ASF) under one
# or more contributor license agreements.  See the NOTICE file
# distributed with this work for additional information
# regarding copyright ownership.  The ASF licenses this file
# to you under the Apache License, Version 2.0 (the
# "License"); you may not use this file except in compliance
# with the License.  You may obtain a copy of the License at
#
#   http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing,
# software distributed under the License is distributed on an
# "AS IS" BASIS, WITHOUT WARRANTIES OR CONDITIONS OF ANY
# KIND, either express or implied.  See the License for the
# specific language governing permissions and limitations
# under the License.
"""Helper methods for working with date/time representations."""

from __future__ import annotations

import re
from datetime import date, datetime, timedelta, timezone
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

EPOCH_DATE = date.fromisoformat("1970-01-01")
EPOCH_TIMESTAMPTZ = datetime(1970, 1, 1, tzinfo=timezone.utc)
ISO_DATE = re.compile(r"(\d{4})-(\d{2})-(\d{2})", re.ASCII)
TIMESTAMP_TEXT = re.compile(
    r"(?P<date>\d{4}-\d{2}-\d{2})"
    r"(?:[ T](?P<time>\d{2}:\d{2}:\d{2})(?:\.(?P<fraction>\d{1,9}))?)?"
    r"(?P<offset>Z|[+-]\d{2}:\d{2})?",
    re.ASCII,
)
MICROS_DIGITS = 6


def date_str_to_days(date_str: str) -> int:
    """Convert a `YYYY-MM-DD` formatted date to days from 1970-01-01."""
    if not ISO_DATE.fullmatch(date_str):
        raise ValueError(f"Invalid date, expected YYYY-MM-DD: {date_str}")
    return date_to_days(date.fromisoformat(date_str))


def date_to_days(date_val: date) -> int:
    """Convert a Python date object to days from 1970-01-01."""
    return (date_val - EPOCH_DATE).days


def days_to_date(days: int) -> date:
    """Create a date from the number of days from 1970-01-01."""
    return EPOCH_DATE + timedelta(days)


def datetime_to_micros(dt: datetime) -> int:
    """Convert a timezone aware datetime to microseconds from 1970-01-01T00:00:00.000000+00:00."""
    delta = dt - EPOCH_TIMESTAMPTZ
    return (delta.days * 86400 + delta.seconds) * 1_000_000 + delta.microseconds


def resolve_timezone(name: Optional[str]) -> timezone | ZoneInfo:
    """Return the tzinfo for a zone name, UTC when no name is given."""
    if not name:
        return timezone.utc
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise ValueError(f"Unknown time zone: {name}") from e


def timestamp_str_to_micros(timestamp_str: str, tz_name: Optional[str] = None) -> int:
    """Convert timestamp text to microseconds from the epoch.

    Accepts `YYYY-MM-DD hh:mm:ss[.fraction]` (a `T` may separate date and time), an optional
    `Z` or `+hh:mm` offset, or a bare date which means midnight. The fraction is truncated to
    microseconds. Text without an offset is interpreted in `tz_name`, or UTC when it is None.

    Example:
        >>> timestamp_str_to_micros("1970-01-01 00:00:01.5")
        1500000
    """
    if not (match := TIMESTAMP_TEXT.fullmatch(timestamp_str)):
        raise ValueError(f"Invalid timestamp: {timestamp_str}")

    fraction = (match.group("fraction") or "")[:MICROS_DIGITS].ljust(MICROS_DIGITS, "0")
    naive = datetime.fromisoformat(f"{match.group('date')}T{match.group('time') or '00:00:00'}")
    naive = naive.replace(microsecond=int(fraction))

    if offset := match.group("offset"):
        aware = datetime.fromisoformat(f"{naive.isoformat()}{'+00:00' if offset == 'Z' else offset}")
    else:
        aware = naive.replace(tzinfo=resolve_timezone(tz_name))
    return datetime_to_micros(aware)
