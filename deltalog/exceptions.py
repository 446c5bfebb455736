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
"""Errors raised while reconstructing a table from its transaction log.

Every error aborts the whole load; no partially replayed state is returned.
"""


class DeltaLogError(Exception):
    """Base class for all errors raised while reading a Delta transaction log."""


class MalformedLogError(DeltaLogError):
    """Raised when a log file, pointer file or checkpoint cannot be decoded."""


class MalformedActionError(MalformedLogError):
    """Raised when a JSON action does not have the shape the table format prescribes."""


class UnexpectedShapeError(DeltaLogError):
    """Raised when a JSON value is not a string, object or array where one is required."""


class UnsupportedFeatureError(DeltaLogError):
    """Raised when the log uses a table-format feature that is not supported."""


class UnsupportedTypeError(UnsupportedFeatureError):
    """Raised when a type descriptor or a partition column type cannot be handled."""


class SchemaMismatchError(UnsupportedFeatureError):
    """Raised when two metaData actions describe different schemas."""


class InconsistentLogError(DeltaLogError):
    """Raised when an action references state that no earlier action established."""
