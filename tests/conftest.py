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
# pylint: disable=redefined-outer-name
"""Fixtures that write Delta tables to a temporary directory.

A table is written the way Delta writers lay it out:

    <tmp>/table/_delta_log/00000000000000000000.json
    <tmp>/table/_delta_log/00000000000000000010.checkpoint.parquet
    <tmp>/table/_delta_log/_last_checkpoint
"""

import json
import os
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

import pyarrow as pa
import pyarrow.parquet as pq
import pytest

from deltalog.io.pyarrow import PyArrowFileIO

CHECKPOINT_ADD_TYPE = pa.struct(
    [
        pa.field("path", pa.string()),
        pa.field("partitionValues", pa.map_(pa.string(), pa.string())),
        pa.field("size", pa.int64()),
        pa.field("modificationTime", pa.int64()),
        pa.field("dataChange", pa.bool_()),
    ]
)
CHECKPOINT_REMOVE_TYPE = pa.struct(
    [
        pa.field("path", pa.string()),
        pa.field("deletionTimestamp", pa.int64()),
        pa.field("dataChange", pa.bool_()),
    ]
)
CHECKPOINT_METADATA_TYPE = pa.struct([pa.field("id", pa.string()), pa.field("schemaString", pa.string())])


class DeltaLogWriter:
    """Writes the `_delta_log` of a table, one file at a time."""

    def __init__(self, location: str) -> None:
        self.location = location
        self.log_directory = os.path.join(location, "_delta_log")
        os.makedirs(self.log_directory, exist_ok=True)

    @staticmethod
    def field(name: str, type_: Any, nullable: bool = True, physical_name: Optional[str] = None) -> Dict[str, Any]:
        metadata = {"delta.columnMapping.physicalName": physical_name} if physical_name else {}
        return {"name": name, "type": type_, "nullable": nullable, "metadata": metadata}

    @staticmethod
    def metadata(*fields: Dict[str, Any], partition_columns: Iterable[str] = ()) -> Dict[str, Any]:
        return {
            "metaData": {
                "id": "bd11ad96-bc2c-40b0-be1c-b4b4a2f5b9c4",
                "format": {"provider": "parquet", "options": {}},
                "schemaString": json.dumps({"type": "struct", "fields": list(fields)}),
                "partitionColumns": list(partition_columns),
                "configuration": {},
                "createdTime": 1679424648981,
            }
        }

    @staticmethod
    def add(path: str, partition_values: Optional[Dict[str, Optional[str]]] = None) -> Dict[str, Any]:
        return {
            "add": {
                "path": path,
                "partitionValues": partition_values or {},
                "size": 452,
                "modificationTime": 1679424650000,
                "dataChange": True,
            }
        }

    @staticmethod
    def remove(path: str) -> Dict[str, Any]:
        return {"remove": {"path": path, "deletionTimestamp": 1679424650713, "dataChange": True}}

    @staticmethod
    def commit_info(operation: str = "WRITE") -> Dict[str, Any]:
        return {"commitInfo": {"timestamp": 1679424650713, "operation": operation}}

    def write(self, name: str, content: bytes) -> str:
        path = os.path.join(self.log_directory, name)
        with open(path, "wb") as f:
            f.write(content)
        return path

    def commit(self, version: int, *actions: Dict[str, Any]) -> str:
        """Write the log file of a version, one JSON object per line."""
        content = "\n".join(json.dumps(action) for action in (self.commit_info(), *actions)) + "\n"
        return self.write(f"{version:020d}.json", content.encode("utf-8"))

    def last_checkpoint(self, version: int, **extra: Any) -> str:
        return self.write("_last_checkpoint", json.dumps({"version": version, "size": 3, **extra}).encode("utf-8"))

    def checkpoint(self, version: int, add_paths: List[Optional[str]], remove_paths: Iterable[str] = ()) -> str:
        """Write a single file checkpoint, every row fills in one of the action columns, and point to it."""
        remove_paths = list(remove_paths)
        rows = len(add_paths) + len(remove_paths) + 1
        adds: List[Optional[Dict[str, Any]]] = [
            None if path is None else {"path": path, "partitionValues": [], "size": 452, "modificationTime": 0, "dataChange": False}
            for path in add_paths
        ]
        removes: List[Optional[Dict[str, Any]]] = [
            {"path": path, "deletionTimestamp": 0, "dataChange": False} for path in remove_paths
        ]
        table = pa.table(
            {
                "txn": pa.nulls(rows, pa.struct([pa.field("appId", pa.string())])),
                "add": pa.array(adds + [None] * (rows - len(adds)), type=CHECKPOINT_ADD_TYPE),
                "remove": pa.array([None] * len(adds) + removes + [None], type=CHECKPOINT_REMOVE_TYPE),
                "metaData": pa.array([None] * (rows - 1) + [{"id": "abc", "schemaString": "{}"}], type=CHECKPOINT_METADATA_TYPE),
            }
        )
        path = os.path.join(self.log_directory, f"{version:020d}.checkpoint.parquet")
        pq.write_table(table, path)
        self.last_checkpoint(version)
        return path


@pytest.fixture
def table_location(tmp_path: Path) -> str:
    return str(tmp_path / "table")


@pytest.fixture
def delta_log(table_location: str) -> DeltaLogWriter:
    return DeltaLogWriter(table_location)


@pytest.fixture
def file_io() -> PyArrowFileIO:
    return PyArrowFileIO()
