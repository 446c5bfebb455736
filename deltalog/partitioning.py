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
"""Decoding of the string partition values recorded in `add` actions.

The Delta log stores every partition value as text, for example
`{"partitionValues": {"date": "2023-01-01", "country": "NL"}}`. The text is decoded
against the internal type of the matching schema column. Partition columns are
scalar by definition, so complex column types are rejected.
"""

from __future__ import annotations

import struct
import re
from functools import singledispatch
from typing import Any, Optional, Union

from deltalog.exceptions import UnsupportedTypeError
from deltalog.types import (
    DataType,
    Date32Type,
    DateTime64Type,
    DateType,
    FixedStringType,
    Float32Type,
    FloatingType,
    IntegralType,
    StringType,
    remove_nullable,
)
from deltalog.utils.datetime import date_str_to_days, timestamp_str_to_micros

INTEGER_REGEX = re.compile(r"[+-]?\d+", re.ASCII)
FLOAT_REGEX = re.compile(r"[+-]?((\d+\.?\d*|\.\d+)([eE][+-]?\d+)?|inf|infinity|nan)", re.IGNORECASE | re.ASCII)
DATE_DAY_NUMBER_LIMIT = 65535
MICROS_PRECISION = 6

PartitionValueType = Optional[Union[str, int, float]]


def decode_partition_value(value: Optional[str], data_type: DataType) -> PartitionValueType:
    """Decode the text of a partition value against the type of its column.

    Args:
        value: The text from `partitionValues`; None when the log recorded a null.
        data_type: The resolved type of the partition column, possibly Nullable.

    Returns:
        The verbatim text for string columns, an int for integers, dates (day numbers)
        and timestamps (microseconds), a float for floating point columns,
        or None for a null partition.

    Raises:
        ValueError: When the text does not fit the column type.
        UnsupportedTypeError: When the column type cannot be a partition column.
    """
    if value is None:
        return None
    nested = remove_nullable(data_type)
    # The protocol writes null partitions of non-string columns as an empty string
    if value == "" and not isinstance(nested, (StringType, FixedStringType)):
        return None
    return _decode(nested, value)


@singledispatch
def _decode(data_type: DataType, value: str) -> Any:
    raise UnsupportedTypeError(f"Unsupported DeltaLake type for {data_type}")


@_decode.register(StringType)
@_decode.register(FixedStringType)
def _(data_type: DataType, value: str) -> str:
    return value


@_decode.register(IntegralType)
def _(data_type: IntegralType, value: str) -> int:
    if not INTEGER_REGEX.fullmatch(value):
        raise ValueError(f"Cannot parse {value!r} as {data_type}")
    number = int(value)
    if not data_type.min_value <= number <= data_type.max_value:
        raise ValueError(f"Value {value} is out of range for {data_type}")
    return number


@_decode.register(FloatingType)
def _(data_type: FloatingType, value: str) -> float:
    if not FLOAT_REGEX.fullmatch(value):
        raise ValueError(f"Cannot parse {value!r} as {data_type}")
    number = float(value)
    if isinstance(data_type, Float32Type):
        try:
            # Packing rounds to the nearest float32 and fails when that rounding overflows
            struct.pack("<f", number)
        except OverflowError as e:
            raise ValueError(f"Value {value} is out of range for {data_type}") from e
    return number



@_decode.register(DateType)
def _(data_type: DateType, value: str) -> int:
    days = date_str_to_days(value)
    if not 0 <= days <= DATE_DAY_NUMBER_LIMIT:
        raise ValueError(f"Date {value} is out of range for {data_type}")
    return days


@_decode.register(Date32Type)
def _(data_type: Date32Type, value: str) -> int:
    return date_str_to_days(value)


@_decode.register(DateTime64Type)
def _(data_type: DateTime64Type, value: str) -> int:
    if data_type.precision != MICROS_PRECISION:
        raise UnsupportedTypeError(f"Unsupported DeltaLake type for {data_type}")
    return timestamp_str_to_micros(value, data_type.timezone)
