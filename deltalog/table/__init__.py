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
"""Reconstruct the state of a Delta table by replaying its transaction log.

The `_delta_log` directory of a table holds one JSON file per committed version and,
optionally, a checkpoint that summarizes all the versions up to and including its own:

    _delta_log/00000000000000000000.json
    _delta_log/00000000000000000001.json
    ...
    _delta_log/00000000000000000010.checkpoint.parquet
    _delta_log/00000000000000000011.json
    _delta_log/_last_checkpoint

When a checkpoint is present, its data files seed the replay and only the versions that
follow it are read, up to the first version that has not been written yet. Otherwise
every JSON file of the directory is replayed in order.
"""

from __future__ import annotations

import logging
import posixpath
import re
from typing import Dict, List, Mapping, Optional, Set, Tuple

from pydantic import ValidationError

from deltalog.descriptors import parse_schema_string
from deltalog.exceptions import DeltaLogError, InconsistentLogError, MalformedActionError, MalformedLogError, SchemaMismatchError
from deltalog.io import FileIO, InputFile, load_file_io
from deltalog.partitioning import decode_partition_value
from deltalog.schema import NameAndType, Schema
from deltalog.table.actions import DEFAULT_READ_CHUNK_SIZE, Action, AddFile, Metadata, RemoveFile, read_actions
from deltalog.table.checkpoint import log_directory, read_checkpoint, resolve_path, with_padding
from deltalog.table.snapshot import PartitionValue, Snapshot
from deltalog.type_mapping import map_type
from deltalog.typedef import EMPTY_DICT, Properties
from deltalog.utils.properties import property_as_bool, property_as_int

logger = logging.getLogger(__name__)

LOG_SUFFIX = ".json"
LOG_FILE_REGEX = re.compile(r"(\d+)\.json", re.ASCII)

LOG_USE_CHECKPOINT = "log.use-checkpoint"
LOG_USE_CHECKPOINT_DEFAULT = True
LOG_READ_CHUNK_SIZE = "log.read-chunk-size"

EMPTY_LOG_VERSION = -1


def version_file_name(version: int) -> str:
    """Return the name of the log file of a version.

    Example:
        >>> version_file_name(12)
        '00000000000000000012.json'
    """
    return f"{with_padding(version)}{LOG_SUFFIX}"


def schema_from_metadata(metadata: Metadata) -> Schema:
    """Resolve the columns of a metaData action, named by their physical name."""
    struct = parse_schema_string(metadata.schema_string)
    columns = []
    for field in struct.fields:
        column = NameAndType(field.physical_name, map_type(field.type, field.nullable))
        logger.debug("Found column: %s", column)
        columns.append(column)
    try:
        return Schema(*columns)
    except ValidationError as e:
        raise MalformedLogError(f"Invalid schema: {e}") from e


class _ReplayState:
    """Accumulates the effect of the actions, in log order."""

    table_location: str
    schema: Schema
    data_files: Set[str]
    partition_columns: Dict[str, Tuple[PartitionValue, ...]]

    def __init__(self, table_location: str, data_files: Set[str]) -> None:
        self.table_location = table_location
        self.schema = Schema()
        self.data_files = data_files
        self.partition_columns = {}

    def apply(self, action: Action) -> None:
        if isinstance(action, AddFile):
            self.apply_add(action)
        elif isinstance(action, RemoveFile):
            self.apply_remove(action)
        elif isinstance(action, Metadata):
            self.apply_metadata(action)

    def apply_add(self, add: AddFile) -> None:
        path = resolve_path(self.table_location, add.path)
        logger.debug("Adding %s", path)
        self.data_files.add(path)

        file_name = posixpath.basename(path)
        if file_name in self.partition_columns or not add.partition_values:
            return

        values = []
        for name, value in add.partition_values.items():
            column = self.schema.find(name)
            if column is None:
                raise InconsistentLogError(f"No such column in schema: {name} (partition of {add.path})")
            try:
                decoded = decode_partition_value(value, column.type)
            except ValueError as e:
                raise MalformedActionError(f"Cannot decode partition value {value!r} of column {name} for {add.path}: {e}") from e
            logger.debug("Partition value of %s: %s=%r", file_name, name, decoded)
            values.append(PartitionValue(column, decoded))
        self.partition_columns[file_name] = tuple(values)

    def apply_remove(self, remove: RemoveFile) -> None:
        path = resolve_path(self.table_location, remove.path)
        logger.debug("Removing %s", path)
        self.data_files.discard(path)

    def apply_metadata(self, metadata: Metadata) -> None:
        schema = schema_from_metadata(metadata)
        if self.schema and self.schema != schema:
            raise SchemaMismatchError(
                f"Reading from files with different schema is not possible ({self.schema} is different from {schema})"
            )
        self.schema = schema

    def to_snapshot(self) -> Snapshot:
        return Snapshot(
            schema=self.schema,
            data_files=tuple(sorted(self.data_files)),
            partition_columns=self.partition_columns,
        )


class LogReplayer:
    """Replays the transaction log of one table into a Snapshot.

    Args:
        table_location: Root of the table, the parent of `_delta_log`.
        io: The FileIO to read the log with.
        properties: Options of the replay, `log.use-checkpoint` and `log.read-chunk-size`.
    """

    table_location: str
    io: FileIO
    use_checkpoint: bool
    read_chunk_size: int
    version: int

    def __init__(self, table_location: str, io: FileIO, properties: Properties = EMPTY_DICT) -> None:
        self.table_location = table_location.rstrip("/")
        self.io = io
        self.use_checkpoint = property_as_bool(properties, LOG_USE_CHECKPOINT, LOG_USE_CHECKPOINT_DEFAULT)
        self.read_chunk_size = property_as_int(properties, LOG_READ_CHUNK_SIZE, DEFAULT_READ_CHUNK_SIZE)  # type: ignore
        self.version = EMPTY_LOG_VERSION

    @property
    def log_directory(self) -> str:
        return log_directory(self.table_location)

    def replay(self) -> Snapshot:
        """Read the checkpoint and the log files that follow it.

        Returns:
            Snapshot: The state of the table at the last version in the log.

        Raises:
            DeltaLogError: When the log cannot be interpreted, with the offending file in the message.
        """
        if self.use_checkpoint:
            checkpoint_version, seed_files = read_checkpoint(self.io, self.table_location)
        else:
            checkpoint_version, seed_files = 0, set()

        state = _ReplayState(self.table_location, seed_files)
        if checkpoint_version > 0:
            self.version = checkpoint_version
            while (input_file := self.io.new_input(f"{self.log_directory}/{version_file_name(self.version + 1)}")).exists():
                self._process(input_file, state)
                self.version += 1
            logger.info("Processed metadata files from checkpoint %d to %d", checkpoint_version, self.version)
        else:
            for location in self._list_log_files():
                self._process(self.io.new_input(location), state)
                if match := LOG_FILE_REGEX.fullmatch(posixpath.basename(location)):
                    self.version = max(self.version, int(match.group(1)))
            logger.info("Processed metadata files up to version %d", self.version)

        snapshot = state.to_snapshot()
        logger.info(
            "Found %d data files, %d partition files, schema: %s",
            len(snapshot.data_files),
            len(snapshot.partition_columns),
            snapshot.schema,
        )
        return snapshot

    def _list_log_files(self) -> List[str]:
        # The zero padding makes the lexicographic order the version order
        return sorted(location for location in self.io.list_directory(self.log_directory) if location.endswith(LOG_SUFFIX))

    def _process(self, input_file: InputFile, state: _ReplayState) -> None:
        logger.debug("Reading %s", input_file.location)
        try:
            with input_file.open(seekable=False) as stream:
                for action in read_actions(stream, input_file.location, self.read_chunk_size):
                    state.apply(action)
        except DeltaLogError as e:
            raise type(e)(f"{e} (while reading {input_file.location})") from e


class DeltaTable:
    """A Delta table, loaded by replaying its transaction log when it is constructed.

    Args:
        location: Root of the table.
        io: The FileIO to read the log with, inferred from the location when omitted.
        properties: Properties for the FileIO and the replay.

    Raises:
        DeltaLogError: When the log is malformed, inconsistent, or uses an unsupported feature.
    """

    location: str
    io: FileIO
    properties: Properties
    snapshot: Snapshot
    version: int

    def __init__(self, location: str, io: Optional[FileIO] = None, properties: Properties = EMPTY_DICT) -> None:
        self.location = location.rstrip("/")
        self.properties = properties
        self.io = io if io is not None else load_file_io(properties=properties, location=location)

        replayer = LogReplayer(self.location, self.io, properties)
        self.snapshot = replayer.replay()
        self.version = replayer.version

    @classmethod
    def from_location(cls, location: str, properties: Properties = EMPTY_DICT) -> DeltaTable:
        io = load_file_io(properties=properties, location=location)
        return cls(location, io=io, properties=properties)

    @property
    def schema(self) -> Schema:
        return self.snapshot.schema

    @property
    def data_files(self) -> Tuple[str, ...]:
        return self.snapshot.data_files

    @property
    def partition_columns(self) -> Mapping[str, Tuple[PartitionValue, ...]]:
        return self.snapshot.partition_columns

    def __repr__(self) -> str:
        """Return the string representation of the DeltaTable class."""
        schema_str = ",\n  ".join(str(column) for column in self.schema)
        return (
            f"{self.location}(\n  {schema_str}\n),\n"
            f"version: {self.version},\n"
            f"data files: {len(self.data_files)},\n"
            f"partitioned files: {len(self.partition_columns)}"
        )
