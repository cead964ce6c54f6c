# Copyright 2024-2025 NetCracker Technology Corporation
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

"""Unit tests for configuration loading."""

import logging
import os
import tempfile
import unittest

from pyhocon import ConfigFactory

from pg_backrest import configs
from pg_backrest.configs import ConfigKey
from pg_backrest.exceptions import ConfigLoadError

SAMPLE = """
"global:backup" {
  path = "/var/lib/backup"
  thread-max = 4
  compress = "y"
}
"global:command" {
  compress = "gzip --stdout %option%"
}
"global:command:option" {
  compress = "-6"
}
"db:backup" {
  path = "/srv/db-backup"
}
db {
  path = "/var/lib/pgsql/data"
  user = "postgres"
}
"""


class TestSectionNames(unittest.TestCase):

    def test_parse_section_name(self) -> None:
        self.assertEqual(configs.parse_section_name("global:backup"), ("global", "backup"))
        self.assertEqual(configs.parse_section_name("db:command:option"), ("db", "command:option"))
        self.assertEqual(configs.parse_section_name("db"), ("db", "stanza"))
        self.assertEqual(configs.parse_section_name('"db:archive"'), ("db", "archive"))


class TestBuildStore(unittest.TestCase):

    def setUp(self) -> None:
        self.store = configs.build_store(ConfigFactory.parse_string(SAMPLE))

    def test_values_are_keyed_by_scope_section_key(self) -> None:
        self.assertEqual(self.store.get("global", "backup", "path"), "/var/lib/backup")
        self.assertEqual(self.store.get("db", "backup", "path"), "/srv/db-backup")
        self.assertEqual(self.store.get("db", "stanza", "user"), "postgres")
        self.assertEqual(self.store.get("global", "command:option", "compress"), "-6")

    def test_integers_keep_their_type(self) -> None:
        self.assertEqual(self.store.get("global", "backup", "thread-max"), 4)

    def test_absent_value(self) -> None:
        self.assertIsNone(self.store.get("db", "archive", "path"))
        self.assertNotIn(ConfigKey("db", "archive", "path"), self.store)

    def test_scopes(self) -> None:
        self.assertEqual(self.store.scopes(), ["db", "global"])

    def test_non_section_entry_is_rejected(self) -> None:
        with self.assertRaises(ConfigLoadError):
            configs.build_store(ConfigFactory.parse_string('path = "/tmp"'))

    def test_nested_value_is_rejected(self) -> None:
        with self.assertRaises(ConfigLoadError):
            configs.build_store(ConfigFactory.parse_string('"global:backup" { path { a = 1 } }'))


class TestLoadConfigs(unittest.TestCase):

    def setUp(self) -> None:
        self.tmp = tempfile.TemporaryDirectory()

    def tearDown(self) -> None:
        self.tmp.cleanup()

    def test_load_file(self) -> None:
        path = os.path.join(self.tmp.name, "pg_backrest.conf")
        with open(path, "w") as f:
            f.write(SAMPLE)
        store = configs.load_configs(path)
        self.assertEqual(store.get("db", "backup", "path"), "/srv/db-backup")

    def test_missing_file(self) -> None:
        path = os.path.join(self.tmp.name, "absent.conf")
        with self.assertRaises(ConfigLoadError) as ctx:
            configs.load_configs(path)
        self.assertEqual(ctx.exception.path, path)
        self.assertIn(path, str(ctx.exception))

    def test_unparsable_file(self) -> None:
        path = os.path.join(self.tmp.name, "broken.conf")
        with open(path, "w") as f:
            f.write('"global:backup" { path = ')
        with self.assertRaises(ConfigLoadError):
            configs.load_configs(path)


class TestLogFile(unittest.TestCase):

    def setUp(self) -> None:
        self.tmp = tempfile.TemporaryDirectory()
        self.handlers = list(logging.getLogger().handlers)

    def tearDown(self) -> None:
        root = logging.getLogger()
        for handler in list(root.handlers):
            if handler not in self.handlers:
                root.removeHandler(handler)
                handler.close()
        self.tmp.cleanup()

    def test_log_file_is_created_under_prefix(self) -> None:
        prefix = os.path.join(self.tmp.name, "log", "db")
        log_file = configs.set_log_file(prefix)
        self.assertTrue(log_file.startswith(prefix + "-"))
        self.assertTrue(log_file.endswith(".log"))
        self.assertTrue(os.path.isfile(log_file))


if __name__ == "__main__":
    unittest.main()
