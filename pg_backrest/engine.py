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

import abc
import importlib
import logging
import os

from pg_backrest.exceptions import BackRestException

BACKUP_TYPE_FULL = 'full'
BACKUP_TYPE_DIFFERENTIAL = 'differential'
BACKUP_TYPE_INCREMENTAL = 'incremental'

log = logging.getLogger("Engine")


class FileSettings:
    """
    Where backups live and which external commands move the files.
    Mirrors what the copy engine needs to know before any push, pull or backup.
    """

    def __init__(self, stanza, no_compression, backup_path,
                 backup_user=None, backup_host=None,
                 db_user=None, db_host=None,
                 command_checksum=None, command_compress=None, command_decompress=None,
                 command_manifest=None, command_psql=None):
        self.stanza = stanza
        self.no_compression = no_compression
        self.backup_path = backup_path
        self.backup_user = backup_user
        self.backup_host = backup_host
        self.db_user = db_user
        self.db_host = db_host
        self.command_checksum = command_checksum
        self.command_compress = command_compress
        self.command_decompress = command_decompress
        self.command_manifest = command_manifest
        self.command_psql = command_psql

    @property
    def backup_cluster_path(self):
        return os.path.join(self.backup_path, "backup", self.stanza)

    def __repr__(self):
        return "FileSettings(%s)" % ", ".join("%s=%r" % kv for kv in sorted(vars(self).items()))


class DbSettings:
    def __init__(self, db_user=None, db_host=None, command_psql=None):
        self.db_user = db_user
        self.db_host = db_host
        self.command_psql = command_psql

    def __repr__(self):
        return "DbSettings(user=%r, host=%r)" % (self.db_user, self.db_host)


class EngineSettings:
    """
    Everything handed to Engine.init(). `db` and `backup_type` are only set for backup/expire.
    """

    def __init__(self, file, db=None, backup_type=None, hardlink=False, no_checksum=False,
                 thread_max=None, archive_required=True):
        self.file = file
        self.db = db
        self.backup_type = backup_type
        self.hardlink = hardlink
        self.no_checksum = no_checksum
        self.thread_max = thread_max
        self.archive_required = archive_required

    def __repr__(self):
        return "EngineSettings(type=%r, hardlink=%r, no_checksum=%r, thread_max=%r, archive_required=%r, %r)" % (
            self.backup_type, self.hardlink, self.no_checksum, self.thread_max, self.archive_required, self.file)


class Engine(metaclass=abc.ABCMeta):
    """
    File-copy, compression and pruning engine. Implementations live outside this package.
    """

    @abc.abstractmethod
    def init(self, settings):
        """
        :type settings: EngineSettings
        """
        raise NotImplementedError()

    @abc.abstractmethod
    def archive_push(self, path):
        """
        Pushes one WAL segment. Returns True on success.
        """
        raise NotImplementedError()

    @abc.abstractmethod
    def archive_pull(self, archive_dir, compress_async):
        """
        Moves one batch of queued segments.

        :return: True while more segments are waiting
        """
        raise NotImplementedError()

    @abc.abstractmethod
    def backup(self, stanza_path):
        raise NotImplementedError()

    @abc.abstractmethod
    def backup_expire(self, cluster_path, full_retention, differential_retention,
                      archive_retention_type, archive_retention):
        raise NotImplementedError()


def load_engine(reference):
    """
    :param reference: "package.module:ClassName"
    :rtype: Engine
    """
    module_name, sep, class_name = str(reference).partition(':')
    if not sep or not module_name or not class_name:
        raise BackRestException("engine must be given as module:Class, got '%s'" % reference)

    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise BackRestException("unable to import engine module %s: %s" % (module_name, e)) from e

    engine_class = getattr(module, class_name, None)
    if engine_class is None:
        raise BackRestException("engine class %s not found in %s" % (class_name, module_name))

    engine = engine_class()
    if not isinstance(engine, Engine):
        raise BackRestException("%s is not an Engine implementation" % reference)
    log.info("Using engine %s" % reference)
    return engine
