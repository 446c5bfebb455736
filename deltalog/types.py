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
"""Internal type system that Delta column types are mapped onto.

The types are frozen pydantic models: two instances with the same parameters are
equal and hash the same, so resolved schemas can be compared structurally. Each
type renders to a canonical string, for example:

    >>> str(NullableType(DecimalType(10, 2)))
    'Nullable(Decimal(10, 2))'
    >>> str(MapType(StringType(), Int64Type()))
    'Map(String, Int64)'
"""

from __future__ import annotations

from typing import ClassVar, Optional, Tuple

from pydantic import Field, model_validator

from deltalog.typedef import DeltaBaseModel

MAX_DECIMAL_PRECISION = 76


class DataType(DeltaBaseModel):
    """Base type for all internal types."""

    @property
    def is_primitive(self) -> bool:
        return isinstance(self, PrimitiveType)

    @property
    def is_nullable(self) -> bool:
        return False

    def __repr__(self) -> str:
        """Return the string representation of the type."""
        return f"{type(self).__name__}({str(self)!r})"


class PrimitiveType(DataType):
    """Base class for all scalar types."""

    type_name: ClassVar[str] = ""

    def __str__(self) -> str:
        """Return the canonical name of the type."""
        return self.type_name


class StringType(PrimitiveType):
    type_name: ClassVar[str] = "String"


class FixedStringType(PrimitiveType):
    length: int = Field(gt=0)

    def __init__(self, length: int) -> None:
        super().__init__(length=length)

    def __str__(self) -> str:
        """Return the canonical name of the type."""
        return f"FixedString({self.length})"


class IntegralType(PrimitiveType):
    bits: ClassVar[int] = 64
    signed: ClassVar[bool] = True

    @property
    def min_value(self) -> int:
        return -(1 << (self.bits - 1)) if self.signed else 0

    @property
    def max_value(self) -> int:
        return (1 << (self.bits - 1)) - 1 if self.signed else (1 << self.bits) - 1


class Int8Type(IntegralType):
    type_name: ClassVar[str] = "Int8"
    bits: ClassVar[int] = 8


class Int16Type(IntegralType):
    type_name: ClassVar[str] = "Int16"
    bits: ClassVar[int] = 16


class Int32Type(IntegralType):
    type_name: ClassVar[str] = "Int32"
    bits: ClassVar[int] = 32


class Int64Type(IntegralType):
    type_name: ClassVar[str] = "Int64"
    bits: ClassVar[int] = 64


class UInt8Type(IntegralType):
    type_name: ClassVar[str] = "UInt8"
    bits: ClassVar[int] = 8
    signed: ClassVar[bool] = False


class UInt16Type(IntegralType):
    type_name: ClassVar[str] = "UInt16"
    bits: ClassVar[int] = 16
    signed: ClassVar[bool] = False


class UInt32Type(IntegralType):
    type_name: ClassVar[str] = "UInt32"
    bits: ClassVar[int] = 32
    signed: ClassVar[bool] = False


class UInt64Type(IntegralType):
    type_name: ClassVar[str] = "UInt64"
    bits: ClassVar[int] = 64
    signed: ClassVar[bool] = False


class FloatingType(PrimitiveType):
    bits: ClassVar[int] = 64


class Float32Type(FloatingType):
    """Single precision floating point; finite values that round beyond +-3.4028235e38 do not fit."""

    type_name: ClassVar[str] = "Float32"
    bits: ClassVar[int] = 32


class Float64Type(FloatingType):
    type_name: ClassVar[str] = "Float64"
    bits: ClassVar[int] = 64


class BooleanType(PrimitiveType):
    type_name: ClassVar[str] = "Bool"


class DateType(PrimitiveType):
    """Days since 1970-01-01 stored in 16 unsigned bits, so 1970-01-01 up to 2149-06-06."""

    type_name: ClassVar[str] = "Date"


class Date32Type(PrimitiveType):
    """Days since 1970-01-01 stored in 32 signed bits, dates before the epoch are negative."""

    type_name: ClassVar[str] = "Date32"


class DateTime64Type(PrimitiveType):
    """A point in time as ticks since the epoch with `precision` fractional second digits.

    Text without an explicit offset is interpreted in `timezone`, or UTC when it is not set.
    """

    precision: int = Field(default=6, ge=0, le=9)
    timezone: Optional[str] = Field(default=None)

    def __init__(self, precision: int = 6, timezone: Optional[str] = None) -> None:
        super().__init__(precision=precision, timezone=timezone)

    def __str__(self) -> str:
        """Return the canonical name of the type."""
        if self.timezone:
            return f"DateTime64({self.precision}, '{self.timezone}')"
        return f"DateTime64({self.precision})"


class DecimalType(PrimitiveType):
    """Fixed point decimal; the storage width follows from the precision.

    Example:
        >>> DecimalType(10, 2).bit_width
        64
    """

    precision: int = Field()
    scale: int = Field()

    def __init__(self, precision: int, scale: int) -> None:
        super().__init__(precision=precision, scale=scale)

    @model_validator(mode="after")
    def check_precision_and_scale(self) -> DecimalType:
        if not 1 <= self.precision <= MAX_DECIMAL_PRECISION:
            raise ValueError(f"Decimal precision must be in range [1, {MAX_DECIMAL_PRECISION}], got {self.precision}")
        if not 0 <= self.scale <= self.precision:
            raise ValueError(f"Decimal scale must be in range [0, {self.precision}], got {self.scale}")
        return self

    @property
    def bit_width(self) -> int:
        if self.precision <= 9:
            return 32
        if self.precision <= 18:
            return 64
        if self.precision <= 38:
            return 128
        return 256

    def __str__(self) -> str:
        """Return the canonical name of the type."""
        return f"Decimal({self.precision}, {self.scale})"


class NullableType(DataType):
    """Marks a scalar type as able to hold NULL."""

    nested: DataType = Field()

    def __init__(self, nested: DataType) -> None:
        super().__init__(nested=nested)

    @model_validator(mode="after")
    def check_nested(self) -> NullableType:
        if not self.nested.is_primitive:
            raise ValueError(f"Nested type {self.nested} cannot be inside Nullable type")
        return self

    @property
    def is_nullable(self) -> bool:
        return True

    def __str__(self) -> str:
        """Return the canonical name of the type."""
        return f"Nullable({self.nested})"


class ArrayType(DataType):
    element: DataType = Field()

    def __init__(self, element: DataType) -> None:
        super().__init__(element=element)

    def __str__(self) -> str:
        """Return the canonical name of the type."""
        return f"Array({self.element})"


class MapType(DataType):
    key: DataType = Field()
    value: DataType = Field()

    def __init__(self, key: DataType, value: DataType) -> None:
        super().__init__(key=key, value=value)

    def __str__(self) -> str:
        """Return the canonical name of the type."""
        return f"Map({self.key}, {self.value})"


class TupleType(DataType):
    """Ordered named elements, the target of a struct."""

    names: Tuple[str, ...] = Field()
    types: Tuple[DataType, ...] = Field()

    def __init__(self, names: Tuple[str, ...], types: Tuple[DataType, ...]) -> None:
        super().__init__(names=tuple(names), types=tuple(types))

    @model_validator(mode="after")
    def check_elements(self) -> TupleType:
        if len(self.names) != len(self.types):
            raise ValueError(f"Got {len(self.names)} names for {len(self.types)} tuple elements")
        return self

    def __len__(self) -> int:
        """Return the number of elements."""
        return len(self.types)

    def __str__(self) -> str:
        """Return the canonical name of the type."""
        return "Tuple(" + ", ".join(f"{name} {element}" for name, element in zip(self.names, self.types)) + ")"


def remove_nullable(data_type: DataType) -> DataType:
    """Return the nested type of a Nullable, or the type itself."""
    return data_type.nested if isinstance(data_type, NullableType) else data_type
