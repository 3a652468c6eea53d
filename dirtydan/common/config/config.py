#
# Copyright 2022 European Centre for Medium-Range Weather Forecasts (ECMWF)
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
#
# In applying this licence, ECMWF does not waive the privileges and immunities
# granted to it by virtue of its status as an intergovernmental organisation nor
# does it submit to any jurisdiction.
#

"""
Configuration for dirtydan.

The configuration is the merge, in order, of built-in defaults,
``/etc/dirtydan/config.yaml``, every file listed in ``$DIRTYDAN_CONFIG``
(separated like ``PATH``) and the files handed to :meth:`ConfigParser.read`.
Later files win; a ``null`` value removes the key. ``$VARS`` and ``~`` in
string values are expanded before validation against ``schema.yaml``.
"""

import copy
import logging
import os

import pykwalify
import yaml
from pykwalify.core import Core
from pykwalify.errors import SchemaError

from .. import config as dirtydan_config
from ..exceptions import InvalidConfig

SYSTEM_CONFIG_FILE = "/etc/dirtydan/config.yaml"
CONFIG_ENV_VAR = "DIRTYDAN_CONFIG"
SCHEMA_FILE = os.path.join(os.path.dirname(os.path.abspath(__file__)), "schema.yaml")

DEFAULT_CONFIG = {
    "logging": {"mode": "json", "level": "INFO"},
    "tracking": {"thread_safe": False},
}


def _merge(a, b):
    """Return a copy of a with b merged in; dicts merge, lists extend, None deletes"""
    if not isinstance(a, dict) or not isinstance(b, dict):
        if isinstance(a, list) and isinstance(b, list):
            return a + copy.deepcopy(b)
        return copy.deepcopy(b)

    merged = copy.deepcopy(a)
    for key, value in b.items():
        if value is None:
            merged.pop(key, None)
        elif key in merged:
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def merge(*configs):
    new = {}
    for c in configs:
        new = _merge(new, c)
    return new


def config_files(additional_yaml=None):
    """Configuration files to read, lowest precedence first"""
    files = []
    if os.path.isfile(SYSTEM_CONFIG_FILE):
        files.append(SYSTEM_CONFIG_FILE)
    files.extend(path for path in os.environ.get(CONFIG_ENV_VAR, "").split(os.pathsep) if path)
    files.extend(additional_yaml or [])
    return files


class ConfigParser:
    def __init__(self):
        self.yaml_files = []
        self.config = None

    def read(self, additional_yaml=None):
        """Read, merge and validate the configuration, then publish it as ``global_config``"""
        self.yaml_files = config_files(additional_yaml)
        documents = [DEFAULT_CONFIG]
        for path in self.yaml_files:
            documents.extend(self._load(path))

        self.config = self._interpolate_env_vars(merge(*documents))
        self._check_schema()
        dirtydan_config.global_config = self.config
        return self.config

    def list_config_files(self):
        """List the files that were used by read()"""
        return self.yaml_files

    def dump(self):
        """The merged configuration as YAML"""
        return yaml.safe_dump(self.config, default_flow_style=False)

    @staticmethod
    def _load(path):
        try:
            with open(path, "r") as f:
                return [doc for doc in yaml.safe_load_all(f) if doc is not None]
        except (OSError, yaml.YAMLError) as e:
            raise InvalidConfig(f"Could not read configuration file {path}: {e}") from e

    def _check_schema(self):
        if self.config.get("developer", {}).get("disable_schema_check", False):
            return

        schema_check = Core(source_data=self.config, schema_files=[SCHEMA_FILE], extensions=[])
        try:
            pykwalify.init_logging(0)
            schema_check.validate(raise_exception=True)
        except SchemaError as e:
            errors = "\n - ".join(schema_check.validation_errors)
            logging.error("Configuration did not validate against schema:\n - %s", errors)
            raise InvalidConfig(f"Configuration did not validate against schema: {errors}") from e

    def _interpolate_env_vars(self, config):
        """Expand environment variables and ~ in every string value, in place"""
        for k, v in config.items() if isinstance(config, dict) else enumerate(config):
            if isinstance(v, (list, dict)):
                config[k] = self._interpolate_env_vars(v)
            elif isinstance(v, str):
                config[k] = os.path.expanduser(os.path.expandvars(v))
        return config
