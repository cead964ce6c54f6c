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

from pg_backrest import configs
from pg_backrest import daemon
from pg_backrest import engine as engines
from pg_backrest import locks
from pg_backrest.exceptions import BackRestException, EngineFailure, InvariantViolation, UsageError

OP_ARCHIVE_PUSH = 'archive-push'
OP_ARCHIVE_PULL = 'archive-pull'
OP_BACKUP = 'backup'
OP_EXPIRE = 'expire'

OPERATIONS = (OP_ARCHIVE_PUSH, OP_ARCHIVE_PULL, OP_BACKUP, OP_EXPIRE)

BACKUP_TYPE_ALIASES = {
    engines.BACKUP_TYPE_FULL: engines.BACKUP_TYPE_FULL,
    engines.BACKUP_TYPE_DIFFERENTIAL: engines.BACKUP_TYPE_DIFFERENTIAL,
    engines.BACKUP_TYPE_INCREMENTAL: engines.BACKUP_TYPE_INCREMENTAL,
    'diff': engines.BACKUP_TYPE_DIFFERENTIAL,
    'incr': engines.BACKUP_TYPE_INCREMENTAL,
}


def validate_operation(operation, backup_type=None):
    if not operation:
        raise UsageError("operation is not defined")
    if operation not in OPERATIONS:
        raise UsageError("invalid operation %s" % operation)
    if backup_type is not None and operation != OP_BACKUP:
        raise UsageError("type can only be specified for the backup operation")


def normalize_backup_type(backup_type):
    if backup_type is None:
        return engines.BACKUP_TYPE_INCREMENTAL
    try:
        return BACKUP_TYPE_ALIASES[backup_type]
    except KeyError:
        raise UsageError("backup type must be full, differential (diff), incremental (incr), got '%s'"
                         % backup_type)


def configured_engine(resolver):
    return engines.load_engine(resolver.resolve(configs.SECTION_BACKUP, configs.KEY_ENGINE, True))


class OperationDispatcher:
    """
    Runs one operation for one stanza.

    archive-push may hand over to a detached archive-pull, backup always continues with expire.
    Every fatal condition is raised as BackRestException, lock contention is not one of them.
    """

    def __init__(self, resolver, engine=None, config_path=None, log_config=None, spawn=daemon.spawn_archive_pull,
                 poll_interval=daemon.PULL_INTERVAL_SECONDS, engine_factory=None):
        self.__log = logging.getLogger(self.__class__.__name__)
        self.resolver = resolver
        self.__engine = engine
        self.__engine_factory = engine_factory or configured_engine
        self.config_path = config_path or configs.GLOBAL_CONFIG_FILE_PATH
        self.log_config = log_config
        self.spawn = spawn
        self.poll_interval = poll_interval
        self.lock = None

    @property
    def stanza(self):
        return self.resolver.stanza

    @property
    def engine(self):
        # created on first use, after the run-location and lock checks
        if self.__engine is None:
            self.__engine = self.__engine_factory(self.resolver)
        return self.__engine

    def run(self, operation, archive_file=None, backup_type=None):
        self.__log.info("[stanza=%s] Start %s" % (self.stanza, operation))

        if operation == OP_ARCHIVE_PUSH:
            if self.archive_push(archive_file):
                # the successor re-reads the configuration and runs archive-pull on its own
                try:
                    self.spawn(self.config_path, self.stanza, log_config=self.log_config)
                except OSError as e:
                    # the segment is already pushed
                    self.__log.warning("[stanza=%s] unable to start archive-pull in background: %s - pulling in foreground"
                                       % (self.stanza, e))
                    self.archive_pull()
                    return
                self.__log.info("[stanza=%s] archive-pull handed over to background process" % self.stanza)
            return

        if operation == OP_ARCHIVE_PULL:
            self.archive_pull()
            return

        if operation in (OP_BACKUP, OP_EXPIRE):
            settings = self.init_backup(backup_type)
            if operation == OP_BACKUP:
                self.backup()
            self.expire(settings)
            return

        raise InvariantViolation("invalid operation %s - missing handler block" % operation)

    # archive

    def archive_section(self):
        """
        The archive section wins when it defines a path, so archiving can stay local
        without a full backup-host configuration.
        """
        if self.resolver.is_defined(configs.SECTION_ARCHIVE, configs.KEY_PATH):
            return configs.SECTION_ARCHIVE
        return configs.SECTION_BACKUP

    def compress_async(self, section):
        return self.resolver.flag(section, configs.KEY_COMPRESS_ASYNC, False)

    def ensure_db_host(self, operation):
        if self.resolver.is_defined(configs.SECTION_STANZA, configs.KEY_HOST):
            raise InvariantViolation("stanza host cannot be set on %s - must be run locally on db server"
                                     % operation)

    def archive_push(self, archive_file):
        """
        :return: True when an archive-pull has to follow in the background.
        """
        section = self.archive_section()
        compress_async = self.compress_async(section)

        self.ensure_db_host(OP_ARCHIVE_PUSH)

        # compress-async wins over compress, both may be set
        compress = False if compress_async else self.resolver.flag(section, configs.KEY_COMPRESS, True)
        checksum = self.resolver.flag(section, configs.KEY_CHECKSUM, True)

        file_settings = engines.FileSettings(
            stanza=self.stanza,
            no_compression=not compress,
            backup_user=self.resolver.resolve(section, configs.KEY_USER),
            backup_host=self.resolver.resolve(section, configs.KEY_HOST),
            backup_path=self.resolver.resolve(section, configs.KEY_PATH, True),
            command_checksum=self.resolver.resolve(configs.SECTION_COMMAND, configs.KEY_CHECKSUM, checksum),
            command_compress=self.resolver.resolve(configs.SECTION_COMMAND, configs.KEY_COMPRESS, compress),
            command_decompress=self.resolver.resolve(configs.SECTION_COMMAND, configs.KEY_DECOMPRESS, compress))

        self.__engine_call("init", self.engine.init, engines.EngineSettings(file_settings, no_checksum=not checksum))

        if not archive_file:
            raise UsageError("source archive file not provided")

        self.__log.info("[stanza=%s] Push %s from section %s (compress=%s, compress-async=%s, checksum=%s)"
                        % (self.stanza, archive_file, section, compress, compress_async, checksum))
        self.__checked_call(OP_ARCHIVE_PUSH, self.engine.archive_push, archive_file)

        return section == configs.SECTION_ARCHIVE and \
            self.resolver.is_defined(configs.SECTION_BACKUP, configs.KEY_HOST)

    def archive_pull(self):
        """
        :return: number of pulled batches, None when another archive-pull holds the lock.
        """
        compress_async = self.compress_async(self.archive_section())

        self.ensure_db_host(OP_ARCHIVE_PULL)

        archive_path = self.resolver.resolve(configs.SECTION_ARCHIVE, configs.KEY_PATH, True)
        self.lock = locks.ArchivePullLock(archive_path, self.stanza)
        if not self.lock.acquire():
            self.__log.info("archive-pull process is already running - exiting")
            return None

        configs.set_log_file(os.path.join(archive_path, "log", "%s-archive" % self.stanza))

        compress = self.resolver.flag(configs.SECTION_BACKUP, configs.KEY_COMPRESS, True)
        checksum = self.resolver.flag(configs.SECTION_BACKUP, configs.KEY_CHECKSUM, True)

        file_settings = engines.FileSettings(
            stanza=self.stanza,
            no_compression=not compress,
            backup_user=self.resolver.resolve(configs.SECTION_BACKUP, configs.KEY_USER),
            backup_host=self.resolver.resolve(configs.SECTION_BACKUP, configs.KEY_HOST),
            backup_path=self.resolver.resolve(configs.SECTION_BACKUP, configs.KEY_PATH, True),
            command_checksum=self.resolver.resolve(configs.SECTION_COMMAND, configs.KEY_CHECKSUM, checksum),
            command_compress=self.resolver.resolve(configs.SECTION_COMMAND, configs.KEY_COMPRESS, compress),
            command_decompress=self.resolver.resolve(configs.SECTION_COMMAND, configs.KEY_DECOMPRESS, compress),
            command_manifest=self.resolver.resolve(configs.SECTION_COMMAND, configs.KEY_MANIFEST))

        self.__engine_call("init", self.engine.init, engines.EngineSettings(
            file_settings,
            no_checksum=not checksum,
            thread_max=self.resolver.integer(configs.SECTION_BACKUP, configs.KEY_THREAD_MAX)))

        puller = daemon.ArchivePuller(self.engine,
                                      os.path.join(archive_path, "archive", self.stanza),
                                      compress_async,
                                      poll_interval=self.poll_interval)
        return puller.run()

    # backup and expire

    def init_backup(self, backup_type):
        if self.resolver.is_defined(configs.SECTION_BACKUP, configs.KEY_HOST):
            raise InvariantViolation("backup/expire operations must be performed locally on the backup server")

        backup_path = self.resolver.resolve(configs.SECTION_BACKUP, configs.KEY_PATH, True)
        configs.set_log_file(os.path.join(backup_path, "log", self.stanza))

        backup_type = normalize_backup_type(backup_type)

        compress = self.resolver.flag(configs.SECTION_BACKUP, configs.KEY_COMPRESS, True)
        checksum = self.resolver.flag(configs.SECTION_BACKUP, configs.KEY_CHECKSUM, True)

        db_user = self.resolver.resolve(configs.SECTION_STANZA, configs.KEY_USER)
        db_host = self.resolver.resolve(configs.SECTION_STANZA, configs.KEY_HOST)
        command_psql = self.resolver.resolve(configs.SECTION_COMMAND, configs.KEY_PSQL)

        file_settings = engines.FileSettings(
            stanza=self.stanza,
            no_compression=not compress,
            backup_user=self.resolver.resolve(configs.SECTION_BACKUP, configs.KEY_USER),
            backup_host=self.resolver.resolve(configs.SECTION_BACKUP, configs.KEY_HOST),
            backup_path=backup_path,
            db_user=db_user,
            db_host=db_host,
            command_checksum=self.resolver.resolve(configs.SECTION_COMMAND, configs.KEY_CHECKSUM, checksum),
            command_compress=self.resolver.resolve(configs.SECTION_COMMAND, configs.KEY_COMPRESS, compress),
            command_decompress=self.resolver.resolve(configs.SECTION_COMMAND, configs.KEY_DECOMPRESS, compress),
            command_manifest=self.resolver.resolve(configs.SECTION_COMMAND, configs.KEY_MANIFEST),
            command_psql=command_psql)

        settings = engines.EngineSettings(
            file_settings,
            db=engines.DbSettings(db_user=db_user, db_host=db_host, command_psql=command_psql),
            backup_type=backup_type,
            hardlink=self.resolver.flag(configs.SECTION_BACKUP, configs.KEY_HARDLINK, False),
            no_checksum=not checksum,
            thread_max=self.resolver.integer(configs.SECTION_BACKUP, configs.KEY_THREAD_MAX),
            archive_required=self.resolver.flag(configs.SECTION_BACKUP, configs.KEY_ARCHIVE_REQUIRED, True))

        self.__log.debug("Engine settings: %r" % settings)
        self.__engine_call("init", self.engine.init, settings)
        return settings

    def backup(self):
        stanza_path = self.resolver.resolve(configs.SECTION_STANZA, configs.KEY_PATH)
        self.__log.info("[stanza=%s] Start backup of %s" % (self.stanza, stanza_path))
        self.__checked_call(OP_BACKUP, self.engine.backup, stanza_path)
        self.__log.info("[stanza=%s] Backup has been successfully finished" % self.stanza)

    def expire(self, settings):
        retention = [self.resolver.resolve(configs.SECTION_RETENTION, key) for key in (
            configs.KEY_FULL_RETENTION,
            configs.KEY_DIFFERENTIAL_RETENTION,
            configs.KEY_ARCHIVE_RETENTION_TYPE,
            configs.KEY_ARCHIVE_RETENTION)]
        cluster_path = settings.file.backup_cluster_path
        self.__log.info("[stanza=%s] Expire backups in %s by policy %s" % (self.stanza, cluster_path, retention))
        self.__checked_call(OP_EXPIRE, self.engine.backup_expire, cluster_path, *retention)

    # engine calls

    def __engine_call(self, operation, func, *args):
        try:
            return func(*args)
        except BackRestException:
            raise
        except Exception as e:
            self.__log.debug("Engine %s raised" % operation, exc_info=True)
            raise EngineFailure(operation, e) from e

    def __checked_call(self, operation, func, *args):
        if not self.__engine_call(operation, func, *args):
            raise EngineFailure(operation)
