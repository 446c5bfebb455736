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
"""Checkpoints of the Delta transaction log.

Checkpoints in delta-lake are created every 10 commits by default. The latest checkpoint
is referenced by the `_delta_log/_last_checkpoint` pointer file:

    {"version":20,"size":23,"sizeInBytes":14057,"numOfAddFiles":21,"checkpointSchema":{...}}

The file name of the checkpoint takes one of two forms:

1. A single checkpoint file for version n of the table is named n.checkpoint.parquet:
       00000000000000000010.checkpoint.parquet
2. A multi-part checkpoint for version n is fragmented into p files, fragment o of p is
   named n.checkpoint.o.p.parquet:
       00000000000000000010.checkpoint.0000000001.0000000003.parquet
       00000000000000000010.checkpoint.0000000002.0000000003.parquet

Only the first form is supported, a table that uses the second one fails to load.

The checkpoint is a Parquet file with one column per action type (`txn`, `add`, `remove`,
`metaData`, `protocol`), each row fills in exactly one of them. Only the `add` column
contributes to the file set: the `remove` entries of a checkpoint never intersect with
its own `add` entries.
"""

from __future__ import annotations

import logging
import posixpath
import re
from typing import Any, Dict, Optional, Set, Tuple
from urllib.parse import unquote, urlparse

from pydantic import Field, ValidationError

from deltalog.exceptions import MalformedLogError, UnsupportedFeatureError
from deltalog.io import FileIO
from deltalog.io.pyarrow import read_struct_field
from deltalog.typedef import DeltaBaseModel

logger = logging.getLogger(__name__)

DELTA_LOG_DIRECTORY = "_delta_log"
LAST_CHECKPOINT = "_last_checkpoint"
CHECKPOINT_SUFFIX = ".checkpoint.parquet"
CHECKPOINT_COLUMNS = ("add", "remove")
CHECKPOINT_PATH_FIELD = "path"
VERSION_PADDING = 20
MULTI_PART_CHECKPOINT_REGEX = re.compile(r"(\d{20})\.checkpoint\.(\d+)\.(\d+)\.parquet", re.ASCII)


class LastCheckpoint(DeltaBaseModel):
    """Content of the `_last_checkpoint` pointer file."""

    version: int = Field(ge=0)
    """The version of the table when the last checkpoint was made"""
    size: Optional[int] = Field(default=None)
    """The number of actions that are stored in the checkpoint"""
    size_in_bytes: Optional[int] = Field(alias="sizeInBytes", default=None)
    num_of_add_files: Optional[int] = Field(alias="numOfAddFiles", default=None)
    parts: Optional[int] = Field(default=None)
    """The number of fragments if the last checkpoint was written in multiple parts"""
    checkpoint_schema: Optional[Dict[str, Any]] = Field(alias="checkpointSchema", default=None)


def with_padding(version: int) -> str:
    """File names are zero-padded to 20 digits."""
    return str(version).zfill(VERSION_PADDING)


def log_directory(table_location: str) -> str:
    return f"{table_location.rstrip('/')}/{DELTA_LOG_DIRECTORY}"


def resolve_path(table_location: str, path: str) -> str:
    """Resolve the path of a data file, as recorded in the log, against the table root.

    Relative paths are percent-encoded URIs in the log; absolute paths and URIs are kept as they are.
    """
    if urlparse(path).scheme or path.startswith("/"):
        return path
    return posixpath.join(table_location.rstrip("/"), unquote(path))


def read_last_checkpoint(io: FileIO, table_location: str) -> Optional[LastCheckpoint]:
    """Read `_last_checkpoint`, or return None when the table has no checkpoint."""
    input_file = io.new_input(f"{log_directory(table_location)}/{LAST_CHECKPOINT}")
    if not input_file.exists():
        return None

    with input_file.open(seekable=False) as stream:
        content = stream.read()

    try:
        last_checkpoint = LastCheckpoint.model_validate_json(content)
    except ValidationError as e:
        raise MalformedLogError(f"Invalid checkpoint pointer {input_file.location}: {e}") from e

    logger.info("Last checkpoint file version: %d", last_checkpoint.version)
    logger.debug("Checkpoint pointer: %s", last_checkpoint.model_dump_json())
    return last_checkpoint


def _check_single_part(io: FileIO, table_location: str, last_checkpoint: LastCheckpoint, checkpoint_location: str) -> None:
    if last_checkpoint.parts is not None and last_checkpoint.parts > 1:
        raise UnsupportedFeatureError(
            f"Multi-part checkpoints are not supported: version {last_checkpoint.version} has {last_checkpoint.parts} parts"
        )

    if io.new_input(checkpoint_location).exists():
        return

    prefix = with_padding(last_checkpoint.version)
    fragments = [
        location
        for location in io.list_directory(log_directory(table_location))
        if (match := MULTI_PART_CHECKPOINT_REGEX.fullmatch(posixpath.basename(location))) and match.group(1) == prefix
    ]
    if fragments:
        raise UnsupportedFeatureError(
            f"Multi-part checkpoints are not supported: version {last_checkpoint.version} is stored in {len(fragments)} parts"
        )
    raise MalformedLogError(f"Checkpoint file does not exist: {checkpoint_location}")


def read_checkpoint(io: FileIO, table_location: str) -> Tuple[int, Set[str]]:
    """Return the version of the last checkpoint and the data files it holds.

    Args:
        io: The FileIO to read the log with.
        table_location: Root of the table.

    Returns:
        Tuple[int, Set[str]]: The checkpoint version and the absolute paths of its data files,
            or `(0, set())` when the table has no checkpoint.

    Raises:
        MalformedLogError: When the pointer or the checkpoint cannot be decoded, or a file is listed twice.
        UnsupportedFeatureError: When the checkpoint is split into multiple parts.
    """
    last_checkpoint = read_last_checkpoint(io, table_location)
    if last_checkpoint is None or last_checkpoint.version == 0:
        return 0, set()

    version = last_checkpoint.version
    checkpoint_location = f"{log_directory(table_location)}/{with_padding(version)}{CHECKPOINT_SUFFIX}"
    _check_single_part(io, table_location, last_checkpoint, checkpoint_location)

    logger.info("Using checkpoint file: %s", checkpoint_location)

    try:
        columns = read_struct_field(io.new_input(checkpoint_location), CHECKPOINT_COLUMNS, CHECKPOINT_PATH_FIELD)
    except KeyError as e:
        raise MalformedLogError(f"Unexpected columns in checkpoint {checkpoint_location}: {e}") from e
    except ValueError as e:
        # pyarrow raises ArrowInvalid on a corrupt footer or page
        raise MalformedLogError(f"Cannot decode checkpoint {checkpoint_location}: {e}") from e

    data_files: Set[str] = set()
    for path in columns["add"]:
        if not path:
            continue
        logger.debug("Adding %s", path)
        resolved = resolve_path(table_location, path)
        if resolved in data_files:
            raise MalformedLogError(f"File already exists {path} (in checkpoint {checkpoint_location})")
        data_files.add(resolved)

    return version, data_files
