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
from __future__ import annotations

from typing import Iterator, Optional, Tuple

from pydantic import Field, model_validator

from deltalog.typedef import DeltaBaseModel
from deltalog.types import DataType


class NameAndType(DeltaBaseModel):
    """A column of the resolved schema: its physical name and internal type."""

    name: str = Field()
    type: DataType = Field()

    def __init__(self, name: str, type: DataType) -> None:  # pylint: disable=redefined-builtin
        super().__init__(name=name, type=type)

    def __str__(self) -> str:
        """Return the column as `name Type`."""
        return f"{self.name} {self.type}"


class Schema(DeltaBaseModel):
    """An ordered list of uniquely named columns.

    Example:
        >>> from deltalog.types import Int64Type, StringType
        >>> schema = Schema(NameAndType("id", Int64Type()), NameAndType("name", StringType()))
        >>> str(schema)
        'id Int64, name String'
    """

    columns: Tuple[NameAndType, ...] = Field(default_factory=tuple)

    def __init__(self, *columns: NameAndType, **data: object) -> None:
        if columns:
            data["columns"] = tuple(columns)
        super().__init__(**data)

    @model_validator(mode="after")
    def check_unique_names(self) -> Schema:
        seen = set()
        for column in self.columns:
            if column.name in seen:
                raise ValueError(f"Duplicate column name in schema: {column.name}")
            seen.add(column.name)
        return self

    def find(self, name: str) -> Optional[NameAndType]:
        """Return the column with the given name, or None when the schema does not declare it."""
        return next((column for column in self.columns if column.name == name), None)

    @property
    def names(self) -> Tuple[str, ...]:
        return tuple(column.name for column in self.columns)

    def __iter__(self) -> Iterator[NameAndType]:  # type: ignore[override]
        """Iterate over the columns in declaration order."""
        return iter(self.columns)

    def __len__(self) -> int:
        """Return the number of columns."""
        return len(self.columns)

    def __bool__(self) -> bool:
        """Return whether the schema has any columns."""
        return len(self.columns) > 0

    def __str__(self) -> str:
        """Return the columns as a comma separated `name Type` list."""
        return ", ".join(str(column) for column in self.columns)
