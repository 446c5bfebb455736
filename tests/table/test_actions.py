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
import io
from typing import Any, Dict, List

import pytest

from deltalog.exceptions import MalformedActionError, MalformedLogError
from deltalog.table.actions import (
    AddFile,
    Ignored,
    JsonObjectReader,
    Metadata,
    RemoveFile,
    parse_actions,
    read_actions,
)

COMMIT = (
    b'{"commitInfo":{"timestamp":1679424650713,"operation":"WRITE","operationParameters":{"mode":"Append"}}}\n'
    b'{"protocol":{"minReaderVersion":1,"minWriterVersion":2}}\n'
    b'{"metaData":{"id":"bd11ad96-bc2c-40b0-be1c-b4b4a2f5b9c4","format":{"provider":"parquet","options":{}},'
    b'"schemaString":"{\\"type\\":\\"struct\\",\\"fields\\":[{\\"name\\":\\"id\\",\\"type\\":\\"long\\",'
    b'\\"nullable\\":true,\\"metadata\\":{}}]}","partitionColumns":[],"configuration":{},"createdTime":1679424648981}}\n'
    b'{"add":{"path":"part-00000-ecf8ed08-d04a-4a71-a5ec-57d8bb2ab4ee-c000.snappy.parquet","partitionValues":{},'
    b'"size":452,"modificationTime":1679424650000,"dataChange":true}}\n'
)


def read_objects(data: bytes, chunk_size: int = 1024) -> List[Dict[str, Any]]:
    return list(JsonObjectReader(io.BytesIO(data), "00000000000000000000.json", chunk_size))


def test_read_commit() -> None:
    actions = list(read_actions(io.BytesIO(COMMIT)))
    assert [type(action) for action in actions] == [Ignored, Ignored, Metadata, AddFile]
    assert actions[0] == Ignored(keys=("commitInfo",))

    metadata = actions[2]
    assert isinstance(metadata, Metadata)
    assert metadata.id == "bd11ad96-bc2c-40b0-be1c-b4b4a2f5b9c4"
    assert metadata.partition_columns == []
    assert metadata.format is not None and metadata.format.provider == "parquet"
    assert metadata.schema_string.startswith('{"type":"struct"')

    add = actions[3]
    assert isinstance(add, AddFile)
    assert add.path == "part-00000-ecf8ed08-d04a-4a71-a5ec-57d8bb2ab4ee-c000.snappy.parquet"
    assert add.partition_values == {}
    assert add.size == 452
    assert add.data_change is True


def test_dump_add_by_alias() -> None:
    add = AddFile(path="date=2023-01-01/part-0.parquet", partition_values={"date": "2023-01-01"}, size=452, data_change=True)

    assert add.model_dump() == {
        "path": "date=2023-01-01/part-0.parquet",
        "partitionValues": {"date": "2023-01-01"},
        "size": 452,
        "dataChange": True,
    }
    assert add.model_dump_json() == (
        '{"path":"date=2023-01-01/part-0.parquet","partitionValues":{"date":"2023-01-01"},"size":452,"dataChange":true}'
    )
    assert list(parse_actions({"add": add.model_dump()})) == [add]



@pytest.mark.parametrize("chunk_size", [1, 2, 3, 7, 64, 1 << 16])
def test_chunk_size_does_not_matter(chunk_size: int) -> None:
    assert read_objects(COMMIT, chunk_size) == read_objects(COMMIT)
    assert len(read_objects(COMMIT, chunk_size)) == 4


def test_skip_leading_junk() -> None:
    assert read_objects(b'garbage \x00\n{"a": 1}]]\n,{"b": 2}  trailing') == [{"a": 1}, {"b": 2}]


def test_objects_without_separator() -> None:
    assert read_objects(b'{"a": 1}{"b": {"c": [1, 2]}}') == [{"a": 1}, {"b": {"c": [1, 2]}}]


@pytest.mark.parametrize("chunk_size", [1, 5, 1024])
def test_braces_inside_strings(chunk_size: int) -> None:
    data = b'{"a": "}{"}\n{"b": "\\"}"}\n{"c": "\\\\"}\n'
    assert read_objects(data, chunk_size) == [{"a": "}{"}, {"b": '"}'}, {"c": "\\"}]


@pytest.mark.parametrize("chunk_size", [1, 2, 1024])
def test_multibyte_characters(chunk_size: int) -> None:
    data = '{"city": "Zürich"}{"emoji": "\U0001f600"}'.encode()
    assert read_objects(data, chunk_size) == [{"city": "Zürich"}, {"emoji": "\U0001f600"}]


def test_empty_stream() -> None:
    assert read_objects(b"") == []
    assert read_objects(b"\n\n  ") == []


def test_empty_object_is_skipped() -> None:
    assert list(read_actions(io.BytesIO(b'{}\n{"remove":{"path":"a.parquet"}}'))) == [RemoveFile(path="a.parquet")]


def test_truncated_object() -> None:
    with pytest.raises(MalformedLogError, match="Unexpected end of 00000000000000000000.json inside a JSON object"):
        read_objects(b'{"a": 1}\n{"add": {"path": "a.parquet"')


def test_malformed_json() -> None:
    with pytest.raises(MalformedLogError, match="Cannot parse JSON object in 00000000000000000000.json"):
        read_objects(b'{"a": 1,}')


def test_invalid_utf8() -> None:
    with pytest.raises(MalformedLogError, match="Invalid UTF-8 in 00000000000000000000.json"):
        read_objects(b'{"a": "\xff"}')


def test_invalid_chunk_size() -> None:
    with pytest.raises(ValueError, match="Chunk size should be positive, got: 0"):
        JsonObjectReader(io.BytesIO(b""), chunk_size=0)


def test_parse_add_with_partition_values() -> None:
    (add,) = parse_actions(
        {"add": {"path": "date=2023-01-01/part-0.parquet", "partitionValues": {"date": "2023-01-01", "country": None}}}
    )
    assert add == AddFile(path="date=2023-01-01/part-0.parquet", partition_values={"date": "2023-01-01", "country": None})


def test_parse_remove() -> None:
    (remove,) = parse_actions({"remove": {"path": "part-0.parquet", "deletionTimestamp": 1679424650713, "dataChange": True}})
    assert remove == RemoveFile(path="part-0.parquet", deletion_timestamp=1679424650713, data_change=True)


def test_add_takes_precedence_over_remove() -> None:
    actions = parse_actions({"remove": {"path": "b.parquet"}, "add": {"path": "a.parquet"}})
    assert actions == [AddFile(path="a.parquet")]


def test_metadata_is_applied_in_addition() -> None:
    actions = parse_actions({"add": {"path": "a.parquet"}, "metaData": {"schemaString": "{}"}})
    assert actions == [AddFile(path="a.parquet"), Metadata(schema_string="{}")]


@pytest.mark.parametrize("key", ["protocol", "txn", "commitInfo", "cdc", "domainMetadata"])
def test_other_actions_are_ignored(key: str) -> None:
    assert parse_actions({key: {}}) == [Ignored(keys=(key,))]


@pytest.mark.parametrize(
    "obj",
    [
        {"add": {"partitionValues": {}}},
        {"add": {"path": ["a.parquet"]}},
        {"add": "a.parquet"},
        {"add": {"path": "a.parquet", "partitionValues": ["a"]}},
        {"remove": {}},
        {"metaData": {"id": "abc"}},
    ],
)
def test_malformed_action(obj: Dict[str, Any]) -> None:
    with pytest.raises(MalformedActionError, match="Invalid action"):
        parse_actions(obj)
