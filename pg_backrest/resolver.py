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

from pg_backrest import configs
from pg_backrest.exceptions import ConfigMissing, ConfigInvalid

OPTION_MACRO = '%option%'

FLAG_YES = 'y'
FLAG_NO = 'n'


class ConfigResolver:
    """
    Resolves (section, key) for one stanza.

    Stanza-scoped sections override the global ones, the bare stanza section is looked up
    directly. Values of the command section may embed %option%, which is replaced by the
    value of the same key in the command:option section.
    """

    def __init__(self, store, stanza):
        self.store = store
        self.stanza = stanza

    def resolve(self, section, key, required=False, default=None):
        if section == configs.SECTION_STANZA:
            value = self.store.get(self.stanza, configs.SECTION_STANZA, key)
        else:
            value = self.store.get(self.stanza, section, key)
            if value is None:
                value = self.store.get(configs.GLOBAL_SCOPE, section, key)

        if value is None and required:
            if default is not None:
                return default
            raise ConfigMissing(section, key)

        if section == configs.SECTION_COMMAND and value is not None:
            value = self.__substitute_option(key, value)

        return value

    def __substitute_option(self, key, value):
        # command:option values are taken as they are, no further expansion
        option = self.resolve(configs.SECTION_COMMAND_OPTION, key)
        if option is None:
            return value
        return str(value).replace(OPTION_MACRO, str(option))

    def flag(self, section, key, default):
        value = self.resolve(section, key, True, FLAG_YES if default else FLAG_NO)
        if isinstance(value, bool):
            return value
        if value == FLAG_YES:
            return True
        if value == FLAG_NO:
            return False
        raise ConfigInvalid(section, key, value, "'%s' or '%s'" % (FLAG_YES, FLAG_NO))

    def integer(self, section, key):
        value = self.resolve(section, key)
        if value is None or (isinstance(value, int) and not isinstance(value, bool)):
            return value
        try:
            return int(str(value))
        except ValueError:
            raise ConfigInvalid(section, key, value, "an integer")

    def is_defined(self, section, key):
        return self.resolve(section, key) is not None
