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
import subprocess
import sys

from retrying import Retrying

from pg_backrest.exceptions import BackRestException, EngineFailure

PULL_INTERVAL_SECONDS = 5


def _never_on_exception(exception):
    return False


def _more_work(result):
    return bool(result)


class ArchivePuller:
    """
    Calls engine.archive_pull() until it reports that nothing is queued,
    waiting a fixed interval between batches.
    """

    def __init__(self, engine, archive_dir, compress_async, poll_interval=PULL_INTERVAL_SECONDS):
        self.__log = logging.getLogger(self.__class__.__name__)
        self.__engine = engine
        self.__archive_dir = archive_dir
        self.__compress_async = compress_async
        self.__poll_interval = poll_interval
        self.batches = 0

    def run(self):
        self.__log.info("Start pulling archive %s (compress-async=%s)" % (self.__archive_dir, self.__compress_async))
        retrying = Retrying(retry_on_result=_more_work,
                            retry_on_exception=_never_on_exception,
                            wait_fixed=int(self.__poll_interval * 1000))
        retrying.call(self.__pull_batch)
        self.__log.info("Nothing left to pull after %d batch(es)" % self.batches)
        return self.batches

    def __pull_batch(self):
        self.batches += 1
        try:
            return self.__engine.archive_pull(self.__archive_dir, self.__compress_async)
        except BackRestException:
            raise
        except Exception as e:
            raise EngineFailure("archive-pull", e) from e


def archive_pull_command(config_path, stanza, log_config=None):
    cmd = [sys.executable, "-m", "pg_backrest",
           "--config", config_path,
           "--stanza", stanza]
    if log_config:
        cmd.extend(["--log-config", log_config])
    cmd.append("archive-pull")
    return cmd


def spawn_archive_pull(config_path, stanza, log_config=None):
    """
    Starts a detached archive-pull successor in its own session. The successor reads the
    configuration again, nothing is inherited besides the command line.
    """
    log = logging.getLogger("ArchivePullSpawner")
    cmd = archive_pull_command(config_path, stanza, log_config)
    log.info("Spawn archive-pull: [%s]" % ", ".join(cmd))
    process = subprocess.Popen(cmd,
                               stdin=subprocess.DEVNULL,
                               stdout=subprocess.DEVNULL,
                               stderr=subprocess.DEVNULL,
                               close_fds=True,
                               start_new_session=True)
    log.info("archive-pull started with pid %s" % process.pid)
    return process.pid
