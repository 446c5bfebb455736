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
import math
from typing import Any

import pytest

from deltalog.exceptions import UnsupportedTypeError
from deltalog.partitioning import decode_partition_value
from deltalog.types import (
    ArrayType,
    BooleanType,
    DataType,
    Date32Type,
    DateTime64Type,
    DateType,
    DecimalType,
    FixedStringType,
    Float32Type,
    Float64Type,
    Int8Type,
    Int16Type,
    Int32Type,
    Int64Type,
    MapType,
    NullableType,
    StringType,
    TupleType,
    UInt8Type,
    UInt64Type,
)


@pytest.mark.parametrize(
    "value, data_type, expected",
    [
        ("NL", StringType(), "NL"),
        ("2023-01-01", StringType(), "2023-01-01"),
        ("  padded ", NullableType(StringType()), "  padded "),
        ("abc", FixedStringType(3), "abc"),
        ("", StringType(), ""),
        ("-128", Int8Type(), -128),
        ("127", NullableType(Int8Type()), 127),
        ("+32767", Int16Type(), 32767),
        ("-2147483648", Int32Type(), -2147483648),
        ("9223372036854775807", Int64Type(), 9223372036854775807),
        ("255", UInt8Type(), 255),
        ("18446744073709551615", UInt64Type(), 18446744073709551615),
        ("1.5", Float32Type(), 1.5),
        ("-2.5e3", Float64Type(), -2500.0),
        ("inf", Float32Type(), math.inf),
        ("1970-01-01", DateType(), 0),
        ("2023-01-01", DateType(), 19358),
        ("2023-01-01", NullableType(Date32Type()), 19358),
        ("1969-12-31", Date32Type(), -1),
        ("2023-07-10 10:10:10.123456", DateTime64Type(6), 1_688_983_810_123_456),
        ("2023-07-10 12:10:10.123456", DateTime64Type(6, "Europe/Amsterdam"), 1_688_983_810_123_456),
        ("1970-01-01 00:00:00", NullableType(DateTime64Type(6)), 0),
    ],
)
def test_decode_partition_value(value: str, data_type: DataType, expected: Any) -> None:
    assert decode_partition_value(value, data_type) == expected


def test_decode_nan() -> None:
    assert math.isnan(decode_partition_value("NaN", Float64Type()))  # type: ignore


@pytest.mark.parametrize("value", ["3.4028235e38", "-3.4028235e38", "3.4028234663852886e38"])
def test_decode_float32_max(value: str) -> None:
    assert decode_partition_value(value, Float32Type()) == float(value)


@pytest.mark.parametrize("data_type", [StringType(), Int32Type(), NullableType(DateType()), BooleanType()])
def test_decode_null(data_type: DataType) -> None:
    assert decode_partition_value(None, data_type) is None


@pytest.mark.parametrize("data_type", [Int32Type(), NullableType(Float64Type()), Date32Type(), DateTime64Type(6)])
def test_decode_empty_string_is_null(data_type: DataType) -> None:
    assert decode_partition_value("", data_type) is None


@pytest.mark.parametrize(
    "value, data_type",
    [
        ("128", Int8Type()),
        ("-129", Int8Type()),
        ("-1", UInt8Type()),
        ("9223372036854775808", Int64Type()),
        ("1.0", Int32Type()),
        ("1_000", Int32Type()),
        (" 1", Int32Type()),
        ("0x10", Int32Type()),
        ("abc", Float64Type()),
        ("1e39", Float32Type()),
        ("3.5e38", Float32Type()),
        ("-3.5e38", NullableType(Float32Type())),
        ("1,5", Float32Type()),
        ("١٢٣", Int32Type()),
        ("1.٥", Float64Type()),
        ("٢٠٢٣-01-01", Date32Type()),
        ("2023-07-10 ١0:10:10", DateTime64Type(6)),
        ("2023-13-01", Date32Type()),
        ("01/01/2023", Date32Type()),
        ("1969-12-31", DateType()),
        ("2149-06-07", DateType()),
        ("2023-07-10 10:10", DateTime64Type(6)),
    ],
)
def test_decode_invalid_value(value: str, data_type: DataType) -> None:
    with pytest.raises(ValueError):
        decode_partition_value(value, data_type)


@pytest.mark.parametrize(
    "data_type",
    [
        BooleanType(),
        DecimalType(10, 2),
        ArrayType(StringType()),
        MapType(StringType(), Int64Type()),
        TupleType(("a",), (Int32Type(),)),
        DateTime64Type(3),
    ],
)
def test_decode_unsupported_type(data_type: DataType) -> None:
    with pytest.raises(UnsupportedTypeError):
        decode_partition_value("1", data_type)
