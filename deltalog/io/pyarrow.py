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
# pylint: disable=redefined-outer-name,arguments-renamed,fixme
"""FileIO implementation for reading table files that uses pyarrow.fs.

This file contains a FileIO implementation that relies on the filesystem interface provided
by PyArrow. It relies on PyArrow's `from_uri` method that infers the correct filesystem
type to use. Theoretically, this allows the supported storage types to grow naturally
with the pyarrow library.

It also holds the two places where the log replay meets Arrow: decoding the struct
columns of a checkpoint file, and converting a resolved schema into an Arrow schema.
"""

from __future__ import annotations

import logging
import os
from copy import copy
from functools import lru_cache, singledispatch
from typing import (
    Any,
    Callable,
    Dict,
    Iterable,
    List,
    Optional,
    Tuple,
    Union,
)
from urllib.parse import urlparse

import pyarrow as pa
import pyarrow.parquet as pq
from pyarrow.fs import (
    FileInfo,
    FileSelector,
    FileSystem,
    FileType,
)

from deltalog.io import (
    AWS_ACCESS_KEY_ID,
    AWS_REGION,
    AWS_SECRET_ACCESS_KEY,
    AWS_SESSION_TOKEN,
    GCS_DEFAULT_LOCATION,
    GCS_ENDPOINT,
    GCS_TOKEN,
    HDFS_HOST,
    HDFS_KERB_TICKET,
    HDFS_PORT,
    HDFS_USER,
    S3_ACCESS_KEY_ID,
    S3_CONNECT_TIMEOUT,
    S3_ENDPOINT,
    S3_PROXY_URI,
    S3_REGION,
    S3_SECRET_ACCESS_KEY,
    S3_SESSION_TOKEN,
    FileIO,
    InputFile,
    InputStream,
)
from deltalog.schema import Schema
from deltalog.typedef import EMPTY_DICT, Properties
from deltalog.types import (
    ArrayType,
    BooleanType,
    DataType,
    Date32Type,
    DateTime64Type,
    DateType,
    DecimalType,
    FixedStringType,
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
    UInt8Type,
    UInt16Type,
    UInt32Type,
    UInt64Type,
)
from deltalog.utils.properties import get_first_property_value, property_as_int

logger = logging.getLogger(__name__)

ONE_MEGABYTE = 1024 * 1024
BUFFER_SIZE = "buffer-size"
LIST_ELEMENT_NAME = "element"
MAP_KEY_NAME = "key"
MAP_VALUE_NAME = "value"
DATETIME_UNITS = {0: "s", 3: "ms", 6: "us", 9: "ns"}


class PyArrowFile(InputFile):
    """An InputFile implementation that uses a pyarrow filesystem to generate pyarrow.lib.NativeFile instances.

    Args:
        location (str): A URI or a path to a local file.

    Attributes:
        location(str): The URI or path to a local file for a PyArrowFile instance.

    Examples:
        >>> from deltalog.io.pyarrow import PyArrowFileIO
        >>> # input_file = PyArrowFileIO().new_input("s3://foo/_delta_log/00000000000000000000.json")
        >>> # Read the contents of the PyArrowFile instance
        >>> # Make sure that you have permissions to read
        >>> # file_content = input_file.open().read()
    """

    _filesystem: FileSystem
    _path: str
    _buffer_size: int

    def __init__(self, location: str, path: str, fs: FileSystem, buffer_size: int = ONE_MEGABYTE):
        self._filesystem = fs
        self._path = path
        self._buffer_size = buffer_size
        super().__init__(location=location)

    def _file_info(self) -> FileInfo:
        """Retrieve a pyarrow.fs.FileInfo object for the location.

        Raises:
            PermissionError: If the file at self.location cannot be accessed due to a permission error such as
                an AWS error code 15.
        """
        try:
            file_info = self._filesystem.get_file_info(self._path)
        except OSError as e:
            if e.errno == 13 or "AWS Error [code 15]" in str(e):
                raise PermissionError(f"Cannot get file info, access denied: {self.location}") from e
            raise  # pragma: no cover - If some other kind of OSError, raise the raw error

        if file_info.type == FileType.NotFound:
            raise FileNotFoundError(f"Cannot get file info, file not found: {self.location}")
        return file_info

    def __len__(self) -> int:
        """Return the total length of the file, in bytes."""
        file_info = self._file_info()
        return file_info.size

    def exists(self) -> bool:
        """Check whether the location exists."""
        try:
            self._file_info()  # raises FileNotFoundError if it does not exist
            return True
        except FileNotFoundError:
            return False

    def open(self, seekable: bool = True) -> InputStream:
        """Open the location using a PyArrow FileSystem inferred from the location.

        Args:
            seekable: If the stream should support seek, or if it is consumed sequential.

        Returns:
            pyarrow.lib.NativeFile: A NativeFile instance for the file located at `self.location`.

        Raises:
            FileNotFoundError: If the file at self.location does not exist.
            PermissionError: If the file at self.location cannot be accessed due to a permission error such as
                an AWS error code 15.
        """
        try:
            if seekable:
                input_file = self._filesystem.open_input_file(self._path)
            else:
                input_file = self._filesystem.open_input_stream(self._path, buffer_size=self._buffer_size)
        except FileNotFoundError:
            raise
        except PermissionError:
            raise
        except OSError as e:
            if e.errno == 2 or "Path does not exist" in str(e):
                raise FileNotFoundError(f"Cannot open file, does not exist: {self.location}") from e
            elif e.errno == 13 or "AWS Error [code 15]" in str(e):
                raise PermissionError(f"Cannot open file, access denied: {self.location}") from e
            raise  # pragma: no cover - If some other kind of OSError, raise the raw error
        return input_file


class PyArrowFileIO(FileIO):
    fs_by_scheme: Callable[[str, Optional[str]], FileSystem]

    def __init__(self, properties: Properties = EMPTY_DICT):
        self.fs_by_scheme: Callable[[str, Optional[str]], FileSystem] = lru_cache(self._initialize_fs)
        super().__init__(properties=properties)

    @staticmethod
    def parse_location(location: str) -> Tuple[str, str, str]:
        """Return the path without the scheme."""
        uri = urlparse(location)
        if not uri.scheme:
            return "file", uri.netloc, os.path.abspath(location)
        elif uri.scheme in ("hdfs", "viewfs"):
            return uri.scheme, uri.netloc, uri.path
        else:
            return uri.scheme, uri.netloc, f"{uri.netloc}{uri.path}"

    def _initialize_fs(self, scheme: str, netloc: Optional[str] = None) -> FileSystem:
        if scheme in {"s3", "s3a", "s3n"}:
            from pyarrow.fs import S3FileSystem

            client_kwargs: Dict[str, Any] = {
                "endpoint_override": self.properties.get(S3_ENDPOINT),
                "access_key": get_first_property_value(self.properties, S3_ACCESS_KEY_ID, AWS_ACCESS_KEY_ID),
                "secret_key": get_first_property_value(self.properties, S3_SECRET_ACCESS_KEY, AWS_SECRET_ACCESS_KEY),
                "session_token": get_first_property_value(self.properties, S3_SESSION_TOKEN, AWS_SESSION_TOKEN),
                "region": get_first_property_value(self.properties, S3_REGION, AWS_REGION),
            }

            if proxy_uri := self.properties.get(S3_PROXY_URI):
                client_kwargs["proxy_options"] = proxy_uri

            if connect_timeout := self.properties.get(S3_CONNECT_TIMEOUT):
                client_kwargs["connect_timeout"] = float(connect_timeout)

            return S3FileSystem(**client_kwargs)
        elif scheme in ("hdfs", "viewfs"):
            from pyarrow.fs import HadoopFileSystem

            hdfs_kwargs: Dict[str, Any] = {}
            if netloc:
                return HadoopFileSystem.from_uri(f"{scheme}://{netloc}")
            if host := self.properties.get(HDFS_HOST):
                hdfs_kwargs["host"] = host
            if port := self.properties.get(HDFS_PORT):
                # port should be an integer type
                hdfs_kwargs["port"] = int(port)
            if user := self.properties.get(HDFS_USER):
                hdfs_kwargs["user"] = user
            if kerb_ticket := self.properties.get(HDFS_KERB_TICKET):
                hdfs_kwargs["kerb_ticket"] = kerb_ticket

            return HadoopFileSystem(**hdfs_kwargs)
        elif scheme in {"gs", "gcs"}:
            from pyarrow.fs import GcsFileSystem

            gcs_kwargs: Dict[str, Any] = {}
            if access_token := self.properties.get(GCS_TOKEN):
                gcs_kwargs["access_token"] = access_token
            if bucket_location := self.properties.get(GCS_DEFAULT_LOCATION):
                gcs_kwargs["default_bucket_location"] = bucket_location
            if endpoint := self.properties.get(GCS_ENDPOINT):
                url_parts = urlparse(endpoint)
                gcs_kwargs["scheme"] = url_parts.scheme
                gcs_kwargs["endpoint_override"] = url_parts.netloc

            return GcsFileSystem(**gcs_kwargs)
        elif scheme == "file":
            from pyarrow.fs import LocalFileSystem

            return LocalFileSystem()
        else:
            raise ValueError(f"Unrecognized filesystem type in URI: {scheme}")

    def new_input(self, location: str) -> PyArrowFile:
        """Get a PyArrowFile instance to read bytes from the file at the given location.

        Args:
            location (str): A URI or a path to a local file.

        Returns:
            PyArrowFile: A PyArrowFile instance for the given location.
        """
        scheme, netloc, path = self.parse_location(location)
        return PyArrowFile(
            fs=self.fs_by_scheme(scheme, netloc),
            location=location,
            path=path,
            buffer_size=property_as_int(self.properties, BUFFER_SIZE, ONE_MEGABYTE),  # type: ignore
        )

    def list_directory(self, location: str) -> List[str]:
        """List the files directly under the directory at the given location.

        Args:
            location (str): A URI or a path to a local directory.

        Returns:
            List[str]: The sorted locations of the files; sub-directories are left out.

        Raises:
            PermissionError: If the directory cannot be accessed due to a permission error such as
                an AWS error code 15.
        """
        scheme, netloc, path = self.parse_location(location)
        fs = self.fs_by_scheme(scheme, netloc)

        try:
            file_infos = fs.get_file_info(FileSelector(path, recursive=False, allow_not_found=True))
        except OSError as e:
            if e.errno == 13 or "AWS Error [code 15]" in str(e):
                raise PermissionError(f"Cannot list directory, access denied: {location}") from e
            raise  # pragma: no cover - If some other kind of OSError, raise the raw error

        prefix = location.rstrip("/")
        return sorted(f"{prefix}/{file_info.base_name}" for file_info in file_infos if file_info.type == FileType.File)

    def __getstate__(self) -> Dict[str, Any]:
        """Create a dictionary of the PyArrowFileIO fields used when pickling."""
        fileio_copy = copy(self.__dict__)
        fileio_copy["fs_by_scheme"] = None
        return fileio_copy

    def __setstate__(self, state: Dict[str, Any]) -> None:
        """Deserialize the state into a PyArrowFileIO instance."""
        self.__dict__ = state
        self.fs_by_scheme = lru_cache(self._initialize_fs)


def read_struct_field(input_file: InputFile, columns: Iterable[str], field_name: str) -> Dict[str, List[Optional[Any]]]:
    """Read one sub-field of the given struct columns of a Parquet file.

    Only the requested top level columns are decoded. A row where the struct itself is NULL
    yields None, as does a NULL sub-field; the embedded Parquet schema is not trusted to
    declare nullability correctly.

    Args:
        input_file: The Parquet file.
        columns: Names of the top level struct columns to read.
        field_name: The sub-field to extract from every struct column.

    Returns:
        Dict[str, List[Optional[Any]]]: Per column name, the sub-field value of every row.

    Raises:
        KeyError: When a requested column or its sub-field is not present in the file.
    """
    columns = list(columns)
    logger.debug("Reading %s.%s from %s", columns, field_name, input_file.location)
    with input_file.open() as stream:
        parquet_file = pq.ParquetFile(stream)
        file_schema = parquet_file.schema_arrow
        if missing := [name for name in columns if file_schema.get_field_index(name) < 0]:
            raise KeyError(f"Columns {missing} not found, file has: {file_schema.names}")
        table = parquet_file.read(columns=columns)

    result: Dict[str, List[Optional[Any]]] = {}
    for name in columns:
        column = table.column(name)
        if not pa.types.is_struct(column.type):
            raise KeyError(f"Column {name} is not a struct: {column.type}")
        if (field_index := column.type.get_field_index(field_name)) < 0:
            raise KeyError(f"Column {name} has no field {field_name}: {column.type}")
        values: List[Optional[Any]] = []
        for chunk in column.chunks:
            # flatten() folds the validity of the struct into its children
            values.extend(chunk.flatten()[field_index].to_pylist())
        result[name] = values
    return result


def schema_to_pyarrow(schema: Union[Schema, DataType]) -> Union[pa.Schema, pa.DataType]:
    """Convert a resolved schema, or a single internal type, to its Arrow counterpart.

    Nullable scalars become nullable Arrow fields; every other field is declared non-nullable.
    """
    if isinstance(schema, Schema):
        return pa.schema([_to_field(column.name, column.type) for column in schema])
    return _to_arrow(schema)


def _to_field(name: str, data_type: DataType) -> pa.Field:
    if isinstance(data_type, NullableType):
        return pa.field(name, _to_arrow(data_type.nested), nullable=True)
    return pa.field(name, _to_arrow(data_type), nullable=False)


@singledispatch
def _to_arrow(data_type: DataType) -> pa.DataType:
    raise TypeError(f"Cannot convert {data_type} to an Arrow type")


@_to_arrow.register(NullableType)
def _(data_type: NullableType) -> pa.DataType:
    return _to_arrow(data_type.nested)


@_to_arrow.register(StringType)
def _(_: StringType) -> pa.DataType:
    return pa.large_string()


@_to_arrow.register(FixedStringType)
def _(data_type: FixedStringType) -> pa.DataType:
    return pa.binary(data_type.length)


@_to_arrow.register(BooleanType)
def _(_: BooleanType) -> pa.DataType:
    return pa.bool_()


@_to_arrow.register(Int8Type)
def _(_: Int8Type) -> pa.DataType:
    return pa.int8()


@_to_arrow.register(Int16Type)
def _(_: Int16Type) -> pa.DataType:
    return pa.int16()


@_to_arrow.register(Int32Type)
def _(_: Int32Type) -> pa.DataType:
    return pa.int32()


@_to_arrow.register(Int64Type)
def _(_: Int64Type) -> pa.DataType:
    return pa.int64()


@_to_arrow.register(UInt8Type)
def _(_: UInt8Type) -> pa.DataType:
    return pa.uint8()


@_to_arrow.register(UInt16Type)
def _(_: UInt16Type) -> pa.DataType:
    return pa.uint16()


@_to_arrow.register(UInt32Type)
def _(_: UInt32Type) -> pa.DataType:
    return pa.uint32()


@_to_arrow.register(UInt64Type)
def _(_: UInt64Type) -> pa.DataType:
    return pa.uint64()


@_to_arrow.register(Float32Type)
def _(_: Float32Type) -> pa.DataType:
    return pa.float32()


@_to_arrow.register(Float64Type)
def _(_: Float64Type) -> pa.DataType:
    return pa.float64()


@_to_arrow.register(DateType)
@_to_arrow.register(Date32Type)
def _(_: DataType) -> pa.DataType:
    return pa.date32()


@_to_arrow.register(DateTime64Type)
def _(data_type: DateTime64Type) -> pa.DataType:
    if (unit := DATETIME_UNITS.get(data_type.precision)) is None:
        raise TypeError(f"Cannot convert {data_type} to an Arrow type")
    return pa.timestamp(unit, tz=data_type.timezone or "UTC")


@_to_arrow.register(DecimalType)
def _(data_type: DecimalType) -> pa.DataType:
    if data_type.bit_width <= 128:
        return pa.decimal128(data_type.precision, data_type.scale)
    return pa.decimal256(data_type.precision, data_type.scale)


@_to_arrow.register(TupleType)
def _(data_type: TupleType) -> pa.DataType:
    return pa.struct([_to_field(name, element) for name, element in zip(data_type.names, data_type.types)])


@_to_arrow.register(ArrayType)
def _(data_type: ArrayType) -> pa.DataType:
    return pa.large_list(value_type=_to_field(LIST_ELEMENT_NAME, data_type.element))


@_to_arrow.register(MapType)
def _(data_type: MapType) -> pa.DataType:
    return pa.map_(
        key_type=_to_field(MAP_KEY_NAME, data_type.key),
        item_type=_to_field(MAP_VALUE_NAME, data_type.value),
    )
