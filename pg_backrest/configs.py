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
import logging.config
import os
from collections import namedtuple
from datetime import datetime
from types import MappingProxyType

from pyhocon import ConfigFactory, ConfigTree

from pg_backrest.exceptions import ConfigLoadError

GLOBAL_CONFIG_FILE_PATH = '/etc/pg_backrest.conf'
LOGGING_CONFIG_FILE_PATH = '/etc/pg_backrest/logging.conf'
LOG_FORMAT = '[%(asctime)s][%(levelname)-5s][%(name)s] %(message)s'

GLOBAL_SCOPE = 'global'

SECTION_COMMAND = 'command'
SECTION_COMMAND_OPTION = 'command:option'
SECTION_BACKUP = 'backup'
SECTION_ARCHIVE = 'archive'
SECTION_RETENTION = 'retention'
SECTION_STANZA = 'stanza'

SECTIONS = (SECTION_COMMAND, SECTION_COMMAND_OPTION, SECTION_BACKUP,
            SECTION_ARCHIVE, SECTION_RETENTION)

KEY_USER = 'user'
KEY_HOST = 'host'
KEY_PATH = 'path'
KEY_ENGINE = 'engine'

KEY_THREAD_MAX = 'thread-max'
KEY_HARDLINK = 'hardlink'
KEY_ARCHIVE_REQUIRED = 'archive-required'

KEY_COMPRESS = 'compress'
KEY_COMPRESS_ASYNC = 'compress-async'
KEY_DECOMPRESS = 'decompress'
KEY_CHECKSUM = 'checksum'
KEY_MANIFEST = 'manifest'
KEY_PSQL = 'psql'

KEY_FULL_RETENTION = 'full_retention'
KEY_DIFFERENTIAL_RETENTION = 'differential_retention'
KEY_ARCHIVE_RETENTION_TYPE = 'archive_retention_type'
KEY_ARCHIVE_RETENTION = 'archive_retention'

log = logging.getLogger("BackRestConfiguration")

ConfigKey = namedtuple('ConfigKey', ['scope', 'section', 'key'])


class ConfigStore:
    """
    Read-only view of the configuration file, keyed by ConfigKey.
    """

    def __init__(self, values=None):
        self.__values = MappingProxyType(dict(values or {}))

    def get(self, scope, section, key):
        return self.__values.get(ConfigKey(scope, section, key))

    def scopes(self):
        return sorted({k.scope for k in self})

    def __contains__(self, config_key):
        return config_key in self.__values

    def __len__(self):
        return len(self.__values)

    def __iter__(self):
        return iter(self.__values)


def parse_section_name(name):
    """
    "global:backup" -> ("global", "backup"), "db:command:option" -> ("db", "command:option"),
    bare "db" -> ("db", "stanza").
    """
    name = name.strip('"')
    if ':' not in name:
        return name, SECTION_STANZA
    scope, section = name.split(':', 1)
    return scope, section


def build_store(tree, source='<memory>'):
    values = {}
    for name, body in tree.items():
        if not isinstance(body, ConfigTree):
            raise ConfigLoadError(source, "top-level entry '%s' is not a section" % name)
        scope, section = parse_section_name(name)
        if section != SECTION_STANZA and section not in SECTIONS:
            log.warning("Unknown config section %s in %s" % (name, source))
        for key, value in body.items():
            key = key.strip('"')
            if value is None:
                continue
            if isinstance(value, (ConfigTree, list)):
                raise ConfigLoadError(source, "value %s->%s must be a scalar" % (name, key))
            values[ConfigKey(scope, section, key)] = value
    return ConfigStore(values)


def load_configs(path=None):
    path = path or GLOBAL_CONFIG_FILE_PATH
    if not os.path.isfile(path):
        raise ConfigLoadError(path, "file not found")
    try:
        tree = ConfigFactory.parse_file(path)
    except Exception as e:
        raise ConfigLoadError(path, e) from e

    store = build_store(tree, path)
    log.info("Loaded configuration %s: %d values, scopes %s" % (path, len(store), ", ".join(store.scopes())))
    return store


def load_logging_configs(path=None):
    path = path or LOGGING_CONFIG_FILE_PATH
    if os.path.exists(path):
        logging.config.fileConfig(path, disable_existing_loggers=False)
    else:
        logging.basicConfig(level=logging.INFO, format=LOG_FORMAT)


def set_log_file(prefix):
    """
    Attaches a file handler writing to <prefix>-<YYYYMMDD>.log and returns the file name.
    """
    log_file = "%s-%s.log" % (prefix, datetime.now().strftime("%Y%m%d"))
    log_dir = os.path.dirname(log_file)
    if log_dir:
        os.makedirs(log_dir, exist_ok=True)

    handler = logging.FileHandler(log_file)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logging.getLogger().addHandler(handler)
    log.info("Logging to %s" % log_file)
    return log_file
