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
"""Type descriptors as they appear in the `schemaString` of a metaData action.

More information can be found on here:
https://github.com/delta-io/delta/blob/master/PROTOCOL.md#schema-serialization-format

A descriptor is either a bare string (`"long"`, `"decimal(10,2)"`) or an object
tagged with `type` (`struct`, `array` or `map`). The raw JSON is parsed once into
the classes below, so the mapping onto internal types never has to inspect
untyped dictionaries.
"""

from __future__ import annotations

import json
import re
from typing import Any, Dict, Tuple, Union

from pydantic import Field

from deltalog.exceptions import MalformedLogError, UnexpectedShapeError, UnsupportedTypeError
from deltalog.typedef import DeltaBaseModel

COLUMN_MAPPING_PHYSICAL_NAME = "delta.columnMapping.physicalName"
DECIMAL_PREFIX = "decimal("
DECIMAL_REGEX = re.compile(r"decimal\(\s*(\d+)\s*,\s*(\d+)\s*\)", re.ASCII)


class PrimitiveDescriptor(DeltaBaseModel):
    name: str = Field()


class DecimalDescriptor(DeltaBaseModel):
    precision: int = Field()
    scale: int = Field()


class StructFieldDescriptor(DeltaBaseModel):
    name: str = Field()
    type: TypeDescriptor = Field()
    nullable: bool = Field()
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @property
    def physical_name(self) -> str:
        """Name of the column in the data files, which column mapping may override."""
        return self.metadata.get(COLUMN_MAPPING_PHYSICAL_NAME) or self.name


class StructDescriptor(DeltaBaseModel):
    fields: Tuple[StructFieldDescriptor, ...] = Field(default_factory=tuple)


class ArrayDescriptor(DeltaBaseModel):
    element_type: TypeDescriptor = Field(alias="elementType")
    contains_null: bool = Field(alias="containsNull")


class MapDescriptor(DeltaBaseModel):
    key_type: TypeDescriptor = Field(alias="keyType")
    value_type: TypeDescriptor = Field(alias="valueType")
    value_contains_null: bool = Field(alias="valueContainsNull")


TypeDescriptor = Union[PrimitiveDescriptor, DecimalDescriptor, StructDescriptor, ArrayDescriptor, MapDescriptor]

StructFieldDescriptor.model_rebuild()
StructDescriptor.model_rebuild()
ArrayDescriptor.model_rebuild()
MapDescriptor.model_rebuild()


def _require(obj: Dict[str, Any], key: str, expected: type, context: str) -> Any:
    if key not in obj:
        raise UnexpectedShapeError(f"Missing '{key}' in {context}: {obj}")
    value = obj[key]
    # bool is a subclass of int, it never stands in for another shape
    if not isinstance(value, expected) or (expected is not bool and isinstance(value, bool)):
        raise UnexpectedShapeError(f"Expected '{key}' in {context} to be {expected.__name__}, got: {value!r}")
    return value


def parse_decimal(type_name: str) -> DecimalDescriptor:
    if match := DECIMAL_REGEX.fullmatch(type_name):
        return DecimalDescriptor(precision=int(match.group(1)), scale=int(match.group(2)))
    raise UnsupportedTypeError(f"Unsupported DeltaLake type: {type_name}")


def parse_struct_field(obj: Any) -> StructFieldDescriptor:
    if not isinstance(obj, dict):
        raise UnexpectedShapeError(f"Expected struct field to be an object, got: {obj!r}")

    name = _require(obj, "name", str, "struct field")
    if "nullable" in obj:
        nullable = _require(obj, "nullable", bool, f"field {name}")
    elif "required" in obj:
        nullable = not _require(obj, "required", bool, f"field {name}")
    else:
        raise UnexpectedShapeError(f"Missing 'nullable' in field {name}: {obj}")

    metadata = obj.get("metadata") or {}
    if not isinstance(metadata, dict):
        raise UnexpectedShapeError(f"Expected 'metadata' of field {name} to be an object, got: {metadata!r}")

    return StructFieldDescriptor(
        name=name,
        type=parse_type_descriptor(obj.get("type")),
        nullable=nullable,
        metadata=metadata,
    )


def parse_type_descriptor(value: Any) -> TypeDescriptor:
    """Parse a raw JSON type into a descriptor.

    Args:
        value: A type name such as `"integer"`, or a `struct`/`array`/`map` object.

    Returns:
        The matching descriptor.

    Raises:
        UnsupportedTypeError: When a decimal is malformed or the complex type tag is unknown.
        UnexpectedShapeError: When the value is neither a string nor an object, or misses a key.
    """
    if isinstance(value, str):
        if value.startswith(DECIMAL_PREFIX):
            return parse_decimal(value)
        return PrimitiveDescriptor(name=value)

    if not isinstance(value, dict):
        raise UnexpectedShapeError(f"Unexpected 'type' field: {value!r}")

    type_name = _require(value, "type", str, "complex type")
    if type_name == "struct":
        fields = _require(value, "fields", list, "struct type")
        return StructDescriptor(fields=tuple(parse_struct_field(field) for field in fields))
    if type_name == "array":
        return ArrayDescriptor(
            element_type=parse_type_descriptor(value.get("elementType")),
            contains_null=_require(value, "containsNull", bool, "array type"),
        )
    if type_name == "map":
        # the protocol names it valueContainsNull, some writers emit containsNull
        contains_null_key = "valueContainsNull" if "valueContainsNull" in value else "containsNull"
        return MapDescriptor(
            key_type=parse_type_descriptor(value.get("keyType")),
            value_type=parse_type_descriptor(value.get("valueType")),
            value_contains_null=_require(value, contains_null_key, bool, "map type"),
        )

    raise UnsupportedTypeError(f"Unsupported DeltaLake type: {type_name}")


def parse_schema_string(schema_string: str) -> StructDescriptor:
    """Parse the JSON text of `metaData.schemaString` into the top level struct."""
    try:
        schema_json = json.loads(schema_string)
    except ValueError as e:
        raise MalformedLogError(f"Cannot parse schemaString as JSON: {e}") from e

    descriptor = parse_type_descriptor(schema_json)
    if not isinstance(descriptor, StructDescriptor):
        raise UnexpectedShapeError(f"Expected schemaString to describe a struct, got: {schema_string}")
    return descriptor
