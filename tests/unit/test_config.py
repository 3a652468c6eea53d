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

import os

import pytest
import yaml

import dirtydan.common.config as dirtydan_config
from dirtydan.common.exceptions import InvalidConfig


def write_config(tmp_path, name, content):
    path = tmp_path / name
    path.write_text(yaml.dump(content))
    return str(path)


@pytest.mark.usefixtures("restore_global_config")
class Test:
    def setup_method(self, method):

        parser = dirtydan_config.ConfigParser()
        self.config = parser.read(pytest.basic_config)

    def test_config_exists(self):
        assert self.config is not None
        assert dirtydan_config.global_config is self.config

    def test_config_set_pragmatically(self):
        self.config["dummy"] = "hello_world"
        assert self.config["dummy"] == "hello_world"

    def test_config_reset(self):
        self.config["test_reset"] = "test"
        self.config["tracking"]["hello"] = "world"
        self.config = dirtydan_config.ConfigParser().read(pytest.basic_config)
        assert "test_reset" not in self.config
        assert "hello" not in self.config["tracking"]

    def test_access_by_attribute_does_not_fail_silently(self):
        with pytest.raises(AttributeError):
            assert self.config.tracking is None

    def test_config_get_non_existant_key_fails(self):
        with pytest.raises(KeyError):
            assert self.config["_i_do_not_exist_"]

    def test_config_merge(self):
        merge = dirtydan_config.merge

        a = {"hello": "world"}
        b = {"hello": "world2"}
        c = {"bonjour": "le monde"}

        assert merge(a, b) == b
        assert merge(a, b) != a
        assert "bonjour" in merge(a, b, c)
        assert "hello" in merge(a, b, c)

        d = {"hello": ["world"]}
        e = {"hello": ["le monde"]}

        assert merge(d, e)["hello"] == ["world", "le monde"]

        f = {"one": {"two": {"three": 123}}}
        g = {"one": {"two": {"four": 456}}}

        assert merge(f, g)["one"]["two"] == {"three": 123, "four": 456}

    def test_config_merge_none_removes_key(self):
        merge = dirtydan_config.merge
        assert merge({"a": 1, "b": 2}, {"a": None}) == {"b": 2}

    def test_files_are_merged_in_order(self, tmp_path):
        first = write_config(tmp_path, "first.yaml", {"tracking": {"thread_safe": False}, "logging": {"level": "INFO"}})
        second = write_config(tmp_path, "second.yaml", {"tracking": {"thread_safe": True}})
        parser = dirtydan_config.ConfigParser()
        config = parser.read([first, second])
        assert config["tracking"]["thread_safe"] is True
        assert config["logging"]["level"] == "INFO"
        assert parser.list_config_files()[-2:] == [first, second]

    def test_env_vars_are_interpolated(self, tmp_path, monkeypatch):
        monkeypatch.setenv("DIRTYDAN_TEST_APP", "my-app")
        path = write_config(tmp_path, "env.yaml", {"logging": {"defaults": {"app": "$DIRTYDAN_TEST_APP"}}})
        config = dirtydan_config.ConfigParser().read([path])
        assert config["logging"]["defaults"]["app"] == "my-app"

    def test_schema_rejects_bad_tracking_option(self, tmp_path):
        path = write_config(tmp_path, "bad.yaml", {"tracking": {"thread_safe": 3}})
        with pytest.raises(InvalidConfig):
            dirtydan_config.ConfigParser().read([path])

    @pytest.mark.parametrize("mode", ["xml", "logserver", "prettyprint"])
    def test_schema_rejects_unknown_logging_mode(self, tmp_path, mode):
        path = write_config(tmp_path, "bad.yaml", {"logging": {"mode": mode}})
        with pytest.raises(InvalidConfig):
            dirtydan_config.ConfigParser().read([path])

    def test_missing_file(self, tmp_path):
        with pytest.raises(InvalidConfig):
            dirtydan_config.ConfigParser().read([str(tmp_path / "absent.yaml")])

    def test_dump(self):
        parser = dirtydan_config.ConfigParser()
        parser.read(pytest.basic_config)
        assert yaml.safe_load(parser.dump()) == parser.config

    def test_defaults_without_files(self, monkeypatch):
        monkeypatch.delenv("DIRTYDAN_CONFIG", raising=False)
        monkeypatch.setattr(dirtydan_config.config, "SYSTEM_CONFIG_FILE", "/nonexistent/dirtydan.yaml")
        parser = dirtydan_config.ConfigParser()
        config = parser.read()
        assert parser.list_config_files() == []
        assert config["tracking"]["thread_safe"] is False
        assert config["logging"]["mode"] == "json"

    def test_files_from_environment(self, tmp_path, monkeypatch):
        first = write_config(tmp_path, "first.yaml", {"logging": {"level": "DEBUG"}})
        second = write_config(tmp_path, "second.yaml", {"tracking": {"thread_safe": True}})
        monkeypatch.setenv("DIRTYDAN_CONFIG", os.pathsep.join([first, second]))
        config = dirtydan_config.ConfigParser().read()
        assert config["logging"]["level"] == "DEBUG"
        assert config["tracking"]["thread_safe"] is True

    def test_explicit_files_override_environment(self, tmp_path, monkeypatch):
        from_env = write_config(tmp_path, "env.yaml", {"logging": {"level": "DEBUG"}})
        explicit = write_config(tmp_path, "explicit.yaml", {"logging": {"level": "ERROR"}})
        monkeypatch.setenv("DIRTYDAN_CONFIG", from_env)
        parser = dirtydan_config.ConfigParser()
        config = parser.read([explicit])
        assert config["logging"]["level"] == "ERROR"
        assert parser.list_config_files()[-2:] == [from_env, explicit]

    def test_merge_does_not_modify_inputs(self):
        a = {"one": {"two": [1]}}
        b = {"one": {"two": [2]}}
        assert dirtydan_config.merge(a, b) == {"one": {"two": [1, 2]}}
        assert a == {"one": {"two": [1]}}
        assert b == {"one": {"two": [2]}}
