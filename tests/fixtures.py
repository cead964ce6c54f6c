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

import logging
import os
import tempfile
import unittest

BASE_CONFIG = """
"global:backup" {
  path = "{root}/backup"
  thread-max = 2
}
"global:command" {
  checksum = "sha1sum"
  compress = "gzip --stdout %option%"
  decompress = "gzip -dc"
  manifest = "pg_manifest"
  psql = "psql %option%"
}
"global:command:option" {
  compress = "-6"
  psql = "-X"
}
"global:retention" {
  full_retention = 2
  differential_retention = 3
  archive_retention_type = "full"
  archive_retention = 2
}
db {
  path = "/var/lib/pgsql/data"
  user = "postgres"
}
"""

ARCHIVE_CONFIG = """
"global:archive" {
  path = "{root}/archive"
  compress-async = "y"
}
"""

BACKUP_HOST_CONFIG = """
"db:backup" {
  host = "backup.example.com"
  user = "backrest"
}
"""

STANZA_HOST_CONFIG = """
db {
  host = "db.example.com"
}
"""


class ConfigFileTestCase(unittest.TestCase):
    """Gives every test a scratch directory, a config file inside it and a clean root logger."""

    def setUp(self) -> None:
        self.tmp = tempfile.TemporaryDirectory()
        self.root = self.tmp.name
        self.config_path = os.path.join(self.root, "pg_backrest.conf")
        self.handlers = list(logging.getLogger().handlers)

    def tearDown(self) -> None:
        root_logger = logging.getLogger()
        for handler in list(root_logger.handlers):
            if handler not in self.handlers:
                root_logger.removeHandler(handler)
                handler.close()
        self.tmp.cleanup()

    def write_config(self, *parts):
        text = "\n".join(part.replace("{root}", self.root)
                         for part in (BASE_CONFIG,) + parts)
        with open(self.config_path, "w") as f:
            f.write(text)
        return self.config_path
