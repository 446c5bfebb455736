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
"""Read the metadata of Delta Lake tables from their transaction log.

Usage:

    from deltalog import load_table

    table = load_table("s3://warehouse/events", **{"s3.region": "eu-west-1"})
    print(table.schema, table.data_files)
"""

from typing import Any

from deltalog.table import DeltaTable
from deltalog.typedef import Properties
from deltalog.utils.config import Config

__version__ = "0.1.0"

LOG_SECTION = "log"


def _properties_from_config(config: Config) -> Properties:
    properties = config.get_io_config()
    for key, value in config.get_section(LOG_SECTION).items():
        properties[f"{LOG_SECTION}.{key}"] = value
    return properties


def load_table(location: str, **properties: Any) -> DeltaTable:
    """Load the Delta table at the given location.

    The properties of the `io` and `log` sections of the configuration are merged with the
    given properties, where the latter take precedence.

    Args:
        location: Root of the table, the directory that contains `_delta_log`.
        properties: Properties for the FileIO and the log replay.

    Returns:
        DeltaTable: The table as of the last version of its log.
    """
    conf = _properties_from_config(Config())
    return DeltaTable.from_location(location, {**conf, **properties})
