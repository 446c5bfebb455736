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

from typing import (
    Any,
    Dict,
    Union,
)

from pydantic import BaseModel, ConfigDict

EMPTY_DICT: Dict[str, str] = {}

UTF8 = "utf-8"

Properties = Dict[str, Any]
RecursiveDict = Dict[str, Union[str, "RecursiveDict"]]


class FrozenDict(Dict[Any, Any]):
    def __setitem__(self, instance: Any, value: Any) -> None:
        """Assign a value to a FrozenDict."""
        raise AttributeError("FrozenDict does not support assignment")

    def update(self, *args: Any, **kwargs: Any) -> None:
        raise AttributeError("FrozenDict does not support .update()")


class DeltaBaseModel(BaseModel):
    """
    This class extends the Pydantic BaseModel to set default values by overriding them.

    This is because we always want to set by_alias to True. In the Delta log the
    keys are camelCase, while the fields are snake_case. By default we also leave
    out the None values.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    def model_dump(self, exclude_none: bool = True, exclude: Any = None, by_alias: bool = True, **kwargs: Any) -> Dict[str, Any]:
        return super().model_dump(exclude_none=exclude_none, exclude=exclude, by_alias=by_alias, **kwargs)

    def model_dump_json(
        self, exclude_none: bool = True, exclude: Any = None, by_alias: bool = True, **kwargs: Any
    ) -> str:
        return super().model_dump_json(exclude_none=exclude_none, exclude=exclude, by_alias=by_alias, **kwargs)

