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

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping, Tuple

from deltalog.partitioning import PartitionValueType
from deltalog.schema import NameAndType, Schema


@dataclass(frozen=True)
class PartitionValue:
    """The decoded value of one partition column of a data file."""

    column: NameAndType
    value: PartitionValueType

    def __str__(self) -> str:
        """Return the partition value as `column=value`."""
        return f"{self.column.name}={self.value!r}"


@dataclass(frozen=True)
class Snapshot:
    """The state of the table after replaying its transaction log.

    Attributes:
        schema: The columns of the table, in the order of the metaData action.
        data_files: Absolute locations of the live data files, sorted.
        partition_columns: Data file basename to the decoded values of its partition columns.
    """

    schema: Schema = field(default_factory=Schema)
    data_files: Tuple[str, ...] = field(default_factory=tuple)
    partition_columns: Mapping[str, Tuple[PartitionValue, ...]] = field(default_factory=dict, hash=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "partition_columns", MappingProxyType(dict(self.partition_columns)))

    def partition_values(self, file_name: str) -> Tuple[PartitionValue, ...]:
        """Return the partition values of a data file, by basename, or an empty tuple for an unpartitioned file."""
        return self.partition_columns.get(file_name, ())

    def __str__(self) -> str:
        """Return the string representation of the Snapshot class."""
        return f"Snapshot(files={len(self.data_files)}, partitioned_files={len(self.partition_columns)}, schema=[{self.schema}])"
