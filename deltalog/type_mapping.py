"""Type mapping from Delta Lake type descriptors onto the internal types.

## Delta Lake
The Delta protocol describes column types as JSON, either as a primitive type name or
as a nested `struct`, `array` or `map` object:

- [Primitive types](https://github.com/delta-io/delta/blob/master/PROTOCOL.md#primitive-types)

- [Schema serialization format](https://github.com/delta-io/delta/blob/master/PROTOCOL.md#schema-serialization-format)

### Delta to internal type mapping

| Delta type                      | Internal type                       | Notes                                  |
|---------------------------------|-------------------------------------|----------------------------------------|
| `string`                        | `StringType`                        |                                        |
| `binary`                        | `StringType`                        | Raw bytes are kept as a string         |
| `long`                          | `Int64Type`                         |                                        |
| `integer`                       | `Int32Type`                         |                                        |
| `short`                         | `Int16Type`                         |                                        |
| `byte`                          | `Int8Type`                          |                                        |
| `float`                         | `Float32Type`                       |                                        |
| `double`                        | `Float64Type`                       |                                        |
| `boolean`                       | `BooleanType`                       |                                        |
| `date`                          | `Date32Type`                        |                                        |
| `timestamp`                     | `DateTime64Type(6)`                 | Microsecond precision                  |
| `decimal(P, S)`                 | `DecimalType(P, S)`                 | Width follows from the precision       |
| `struct`                        | `TupleType`                         | Element names are the field names      |
| `array`                         | `ArrayType`                         | Element nullability from `containsNull`|
| `map`                           | `MapType`                           | Keys are never nullable                |

---

### Notes
- A scalar is wrapped in `NullableType` when the field, array element or map value
that declares it is nullable. Struct, array and map types are never wrapped themselves,
every nested level carries its own nullability instead.
- Any other primitive name, for example `timestamp_ntz` or `void`, is unsupported.
"""
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
from functools import singledispatch
from typing import Dict

from pydantic import ValidationError

from deltalog.exceptions import UnsupportedTypeError
from deltalog.descriptors import (
    ArrayDescriptor,
    DecimalDescriptor,
    MapDescriptor,
    PrimitiveDescriptor,
    StructDescriptor,
    TypeDescriptor,
)
from deltalog.types import (
    ArrayType,
    BooleanType,
    DataType,
    Date32Type,
    DateTime64Type,
    DecimalType,
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
)

TIMESTAMP_PRECISION = 6

PRIMITIVE_TYPES: Dict[str, DataType] = {
    "string": StringType(),
    "binary": StringType(),
    "long": Int64Type(),
    "integer": Int32Type(),
    "short": Int16Type(),
    "byte": Int8Type(),
    "float": Float32Type(),
    "double": Float64Type(),
    "boolean": BooleanType(),
    "date": Date32Type(),
    "timestamp": DateTime64Type(precision=TIMESTAMP_PRECISION),
}


def map_type(descriptor: TypeDescriptor, nullable: bool = False) -> DataType:
    """Map a Delta type descriptor onto an internal type.

    Args:
        descriptor: The parsed type descriptor.
        nullable: Whether the field that declares this type may hold NULL.

    Returns:
        DataType: The internal type.

    Raises:
        UnsupportedTypeError: When the descriptor holds a type that cannot be mapped.
    """
    return _map_type(descriptor, nullable)


@singledispatch
def _map_type(descriptor: TypeDescriptor, nullable: bool) -> DataType:
    raise UnsupportedTypeError(f"Unsupported DeltaLake type: {descriptor}")


@_map_type.register(PrimitiveDescriptor)
def _(descriptor: PrimitiveDescriptor, nullable: bool) -> DataType:
    if (data_type := PRIMITIVE_TYPES.get(descriptor.name)) is None:
        raise UnsupportedTypeError(f"Unsupported DeltaLake type: {descriptor.name}")
    return NullableType(data_type) if nullable else data_type


@_map_type.register(DecimalDescriptor)
def _(descriptor: DecimalDescriptor, nullable: bool) -> DataType:
    try:
        data_type = DecimalType(descriptor.precision, descriptor.scale)
    except ValidationError as e:
        raise UnsupportedTypeError(f"Unsupported DeltaLake type: decimal({descriptor.precision},{descriptor.scale})") from e
    return NullableType(data_type) if nullable else data_type


@_map_type.register(StructDescriptor)
def _(descriptor: StructDescriptor, nullable: bool) -> DataType:
    return TupleType(
        names=tuple(field.name for field in descriptor.fields),
        types=tuple(_map_type(field.type, field.nullable) for field in descriptor.fields),
    )


@_map_type.register(ArrayDescriptor)
def _(descriptor: ArrayDescriptor, nullable: bool) -> DataType:
    return ArrayType(_map_type(descriptor.element_type, descriptor.contains_null))


@_map_type.register(MapDescriptor)
def _(descriptor: MapDescriptor, nullable: bool) -> DataType:
    return MapType(
        _map_type(descriptor.key_type, False),
        _map_type(descriptor.value_type, descriptor.value_contains_null),
    )
