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

import errno
import fcntl
import logging
import os

from pg_backrest.exceptions import LockError


class ArchivePullLock:
    """
    Exclusive non-blocking flock on <archive root>/lock/archive-<stanza>.lock.

    The descriptor is kept open until the process exits, the kernel drops the lock then.
    """

    def __init__(self, archive_root, stanza):
        self.__log = logging.getLogger(self.__class__.__name__)
        self.__archive_root = archive_root
        self.__stanza = stanza
        self.__fd = None

    def get_lock_file_path(self):
        return lock_file_path(self.__archive_root, self.__stanza)

    def acquire(self):
        """
        :return: True when the lock is held by this process, False when somebody else holds it.
        """
        if self.__fd is not None:
            return True

        path = self.get_lock_file_path()
        try:
            os.makedirs(os.path.dirname(path), exist_ok=True)
            fd = os.open(path, os.O_WRONLY | os.O_CREAT, 0o640)
        except OSError as e:
            raise LockError("unable to open lock file %s: %s" % (path, e.strerror))

        try:
            fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
        except OSError as e:
            os.close(fd)
            if e.errno in (errno.EAGAIN, errno.EACCES, errno.EWOULDBLOCK):
                self.__log.debug("Lock %s is held by another process" % path)
                return False
            raise LockError("unable to lock %s: %s" % (path, e.strerror))

        self.__fd = fd
        self.__log.info("Lock %s has been acquired" % path)
        return True

    def is_held(self):
        return self.__fd is not None


def lock_file_path(archive_root, stanza):
    return os.path.join(archive_root, "lock", "archive-%s.lock" % stanza)
