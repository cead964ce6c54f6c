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


class BackRestException(Exception):
    """
    Base class for every fatal condition. The message is meant for the operator.
    """

    def __init__(self, *args):
        super(BackRestException, self).__init__(*args)


class UsageError(BackRestException):
    pass


class ConfigLoadError(BackRestException):
    def __init__(self, path, reason=None):
        msg = "unable to load config file %s" % path
        if reason:
            msg = "%s: %s" % (msg, reason)
        super(ConfigLoadError, self).__init__(msg)
        self.path = path


class ConfigMissing(BackRestException):
    def __init__(self, section, key):
        super(ConfigMissing, self).__init__("config value %s->%s is undefined" % (section, key))
        self.section = section
        self.key = key


class ConfigInvalid(BackRestException):
    def __init__(self, section, key, value, expected):
        super(ConfigInvalid, self).__init__(
            "config value %s->%s must be %s, got '%s'" % (section, key, expected, value))
        self.section = section
        self.key = key
        self.value = value


class InvariantViolation(BackRestException):
    pass


class LockError(BackRestException):
    pass


class EngineFailure(BackRestException):
    def __init__(self, operation, cause=None):
        msg = "%s failed" % operation
        if cause is not None:
            msg = "%s: %s" % (msg, cause)
        super(EngineFailure, self).__init__(msg)
        self.operation = operation
        self.cause = cause
