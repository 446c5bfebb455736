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
"""Actions of the Delta transaction log and the reader that streams them from a log file.

A log file `n.json` is not a single JSON document, it is a sequence of independent
objects, one per action:

    {"commitInfo":{"timestamp":1679424650713,"operation":"WRITE", ...}}
    {"protocol":{"minReaderVersion":2,"minWriterVersion":5}}
    {"metaData":{"id":"bd11ad96-...","schemaString":"{...}","partitionColumns":[], ...}}
    {"add":{"path":"part-00000-ecf8ed08-...-c000.parquet","partitionValues":{}, ...}}

More information can be found on here:
https://github.com/delta-io/delta/blob/master/PROTOCOL.md#actions
"""

from __future__ import annotations

import codecs
import json
import logging
from typing import Any, Dict, Iterator, List, Optional, Tuple, Union

from pydantic import Field, ValidationError

from deltalog.exceptions import MalformedActionError, MalformedLogError
from deltalog.io import InputStream
from deltalog.typedef import UTF8, DeltaBaseModel

logger = logging.getLogger(__name__)

ADD = "add"
REMOVE = "remove"
METADATA = "metaData"
DEFAULT_READ_CHUNK_SIZE = 64 * 1024


class AddFile(DeltaBaseModel):
    """A data file that becomes part of the table."""

    path: str = Field()
    """URI of the data file, relative to the table root unless it is absolute"""
    partition_values: Dict[str, Optional[str]] = Field(alias="partitionValues", default_factory=dict)
    """Partition column name to the text of its value, null for a null partition"""
    size: Optional[int] = Field(default=None)
    modification_time: Optional[int] = Field(alias="modificationTime", default=None)
    data_change: Optional[bool] = Field(alias="dataChange", default=None)
    stats: Optional[str] = Field(default=None)


class RemoveFile(DeltaBaseModel):
    """A data file that is no longer part of the table."""

    path: str = Field()
    deletion_timestamp: Optional[int] = Field(alias="deletionTimestamp", default=None)
    data_change: Optional[bool] = Field(alias="dataChange", default=None)


class Format(DeltaBaseModel):
    provider: str = Field(default="parquet")
    options: Dict[str, str] = Field(default_factory=dict)


class Metadata(DeltaBaseModel):
    """The table schema, partitioning and configuration."""

    id: Optional[str] = Field(default=None)
    format: Optional[Format] = Field(default=None)
    schema_string: str = Field(alias="schemaString")
    """The struct type descriptor of the table, itself serialized as JSON"""
    partition_columns: List[str] = Field(alias="partitionColumns", default_factory=list)
    configuration: Dict[str, Optional[str]] = Field(default_factory=dict)
    created_time: Optional[int] = Field(alias="createdTime", default=None)


class Ignored(DeltaBaseModel):
    """Any action that does not change the file set or the schema, such as commitInfo, protocol or txn."""

    keys: Tuple[str, ...] = Field(default_factory=tuple)


Action = Union[AddFile, RemoveFile, Metadata, Ignored]


def parse_actions(obj: Dict[str, Any]) -> List[Action]:
    """Turn one JSON object of a log file into the actions it carries.

    An object holds a single action in practice. When it carries several, `add` takes
    precedence over `remove`, and `metaData` is returned in addition to either.

    Raises:
        MalformedActionError: When a recognized action does not have the expected shape.
    """
    actions: List[Action] = []
    try:
        if ADD in obj:
            actions.append(AddFile.model_validate(obj[ADD]))
        elif REMOVE in obj:
            actions.append(RemoveFile.model_validate(obj[REMOVE]))
        if METADATA in obj:
            actions.append(Metadata.model_validate(obj[METADATA]))
    except ValidationError as e:
        raise MalformedActionError(f"Invalid action {list(obj.keys())}: {e}") from e

    return actions or [Ignored(keys=tuple(obj.keys()))]


class JsonObjectReader:
    """Reads a stream of concatenated JSON objects, one object at a time.

    Any bytes before the opening brace of an object are skipped. The stream is consumed
    in chunks of `chunk_size` bytes and only the text of the object under construction is
    buffered. Braces inside JSON strings are ignored when finding the end of an object.

    Example:
        >>> import io
        >>> list(JsonObjectReader(io.BytesIO(b'{"a": 1}\\n{"b": "}"}')))
        [{'a': 1}, {'b': '}'}]
    """

    _stream: InputStream
    _location: str
    _chunk_size: int

    def __init__(self, stream: InputStream, location: str = "<stream>", chunk_size: int = DEFAULT_READ_CHUNK_SIZE):
        if chunk_size <= 0:
            raise ValueError(f"Chunk size should be positive, got: {chunk_size}")
        self._stream = stream
        self._location = location
        self._chunk_size = chunk_size

    def _chunks(self) -> Iterator[str]:
        decoder = codecs.getincrementaldecoder(UTF8)()
        try:
            while chunk := self._stream.read(self._chunk_size):
                if text := decoder.decode(chunk):
                    yield text
            if tail := decoder.decode(b"", final=True):
                yield tail
        except UnicodeDecodeError as e:
            raise MalformedLogError(f"Invalid UTF-8 in {self._location}: {e}") from e

    def __iter__(self) -> Iterator[Dict[str, Any]]:
        """Yield every JSON object of the stream, in order."""
        pieces: List[str] = []
        depth = 0
        in_string = False
        escaped = False

        for text in self._chunks():
            start = 0 if depth > 0 else None
            for pos, char in enumerate(text):
                if depth == 0:
                    # Outside of an object everything up to the next brace is ignored
                    if char == "{":
                        depth, start = 1, pos
                    continue
                if in_string:
                    if escaped:
                        escaped = False
                    elif char == "\\":
                        escaped = True
                    elif char == '"':
                        in_string = False
                elif char == '"':
                    in_string = True
                elif char == "{":
                    depth += 1
                elif char == "}":
                    depth -= 1
                    if depth == 0:
                        pieces.append(text[start : pos + 1])
                        yield self._parse("".join(pieces))
                        pieces = []
                        start = None
            if depth > 0 and start is not None:
                pieces.append(text[start:])

        if depth > 0:
            raise MalformedLogError(f"Unexpected end of {self._location} inside a JSON object: {''.join(pieces)[:100]}")

    def _parse(self, json_str: str) -> Dict[str, Any]:
        try:
            obj = json.loads(json_str)
        except ValueError as e:
            raise MalformedLogError(f"Cannot parse JSON object in {self._location}: {e}") from e
        logger.debug("Metadata: %s", json_str)
        return obj


def read_actions(stream: InputStream, location: str = "<stream>", chunk_size: int = DEFAULT_READ_CHUNK_SIZE) -> Iterator[Action]:
    """Stream the actions of a single log file."""
    for obj in JsonObjectReader(stream, location, chunk_size):
        if not obj:
            continue
        yield from parse_actions(obj)
