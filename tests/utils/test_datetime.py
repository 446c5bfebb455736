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
from datetime import date, datetime, timezone, tzinfo

import pytest
import pytz

from deltalog.utils.datetime import (
    date_str_to_days,
    date_to_days,
    datetime_to_micros,
    days_to_date,
    resolve_timezone,
    timestamp_str_to_micros,
)

timezones = [
    pytz.timezone("Etc/GMT"),
    pytz.timezone("Etc/GMT+1"),
    pytz.timezone("Etc/GMT+10"),
    pytz.timezone("Etc/GMT+12"),
    pytz.timezone("Etc/GMT-1"),
    pytz.timezone("Etc/GMT-10"),
    pytz.timezone("Etc/GMT-14"),
]


def test_date_str_to_days() -> None:
    assert date_str_to_days("1970-01-01") == 0
    assert date_str_to_days("2023-01-01") == 19358
    assert date_str_to_days("1969-12-31") == -1


@pytest.mark.parametrize("date_str", ["2023-1-1", "20230101", "2023-01-01T00:00:00", " 2023-01-01", "2023-02-30"])
def test_date_str_to_days_invalid(date_str: str) -> None:
    with pytest.raises(ValueError):
        date_str_to_days(date_str)


def test_days_to_date() -> None:
    assert days_to_date(19358) == date(2023, 1, 1)
    assert date_to_days(days_to_date(-719162)) == -719162


@pytest.mark.parametrize("tz", timezones)
def test_datetime_tz_to_micros(tz: tzinfo) -> None:
    dt = datetime(2023, 7, 10, 10, 10, 10, 123456, tzinfo=tz)
    expected = round(dt.timestamp() * 1_000_000)
    assert datetime_to_micros(dt) == expected


def test_resolve_timezone() -> None:
    assert resolve_timezone(None) == timezone.utc
    assert resolve_timezone("") == timezone.utc
    assert str(resolve_timezone("Europe/Amsterdam")) == "Europe/Amsterdam"

    with pytest.raises(ValueError, match="Unknown time zone: Mars/Olympus_Mons"):
        resolve_timezone("Mars/Olympus_Mons")


@pytest.mark.parametrize(
    "timestamp_str, expected",
    [
        ("1970-01-01 00:00:00", 0),
        ("1970-01-01T00:00:01", 1_000_000),
        ("1970-01-01 00:00:01.5", 1_500_000),
        ("1970-01-01 00:00:00.123456789", 123_456),
        ("1970-01-02", 86_400_000_000),
        ("1970-01-01 01:00:00+01:00", 0),
        ("1970-01-01 00:00:00Z", 0),
        ("2023-07-10 10:10:10.123456", 1_688_983_810_123_456),
        ("1969-12-31 23:59:59", -1_000_000),
    ],
)
def test_timestamp_str_to_micros(timestamp_str: str, expected: int) -> None:
    assert timestamp_str_to_micros(timestamp_str) == expected


def test_timestamp_str_to_micros_in_timezone() -> None:
    # Amsterdam is UTC+2 in the summer
    assert timestamp_str_to_micros("2023-07-10 12:10:10.123456", "Europe/Amsterdam") == 1_688_983_810_123_456
    # An explicit offset wins over the zone of the column
    assert timestamp_str_to_micros("2023-07-10 10:10:10.123456Z", "Europe/Amsterdam") == 1_688_983_810_123_456


@pytest.mark.parametrize("timestamp_str", ["", "2023-07-10 10:10", "2023-07-10 10:10:10.", "10:10:10", "2023-07-10 25:00:00"])
def test_timestamp_str_to_micros_invalid(timestamp_str: str) -> None:
    with pytest.raises(ValueError):
        timestamp_str_to_micros(timestamp_str)
