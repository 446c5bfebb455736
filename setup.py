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

import os

from setuptools import find_packages, setup
from setuptools.command.sdist import sdist as _sdist


class sdist(_sdist):
    """Custom sdist that excludes .egg-info and setup.cfg."""

    def make_release_tree(self, base_dir: str, files: list[str]) -> None:
        # Filter egg-info from the file manifest
        files = [f for f in files if ".egg-info" not in f]

        super().make_release_tree(base_dir, files)

        # Remove setup.cfg after setuptools creates it
        setup_cfg = os.path.join(base_dir, "setup.cfg")
        if os.path.exists(setup_cfg):
            os.remove(setup_cfg)


setup(
    name="deltalog",
    version="0.1.0",
    description="Reconstructs the schema, data files and partition values of a Delta Lake table from its transaction log",
    license="Apache License 2.0",
    python_requires=">=3.9",
    packages=find_packages(include=["deltalog*"]),
    include_package_data=True,
    install_requires=[
        "pydantic>=2.0,<3.0",
        "pyarrow>=17.0.0",
        "strictyaml>=1.7.0,<2.0.0",
        "tzdata>=2023.3; platform_system == 'Windows'",
    ],
    extras_require={
        "test": [
            "pytest>=7.4",
            "pytz>=2023.3",
        ],
    },
    cmdclass={"sdist": sdist},
)
