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

import argparse
import logging

from pg_backrest import configs
from pg_backrest import operations
from pg_backrest.exceptions import BackRestException, UsageError
from pg_backrest.resolver import ConfigResolver

EXIT_OK = 0
EXIT_FAILURE = 1


def build_parser():
    parser = argparse.ArgumentParser(prog='pg_backrest',
                                     description='PostgreSQL backup and WAL archiving')
    parser.add_argument('--config', dest='config', default=None,
                        help='configuration file (default: %s)' % configs.GLOBAL_CONFIG_FILE_PATH)
    parser.add_argument('--stanza', dest='stanza', default=None, help='stanza of the configuration to use')
    parser.add_argument('--type', dest='type', default=None,
                        help='backup type: full, differential (diff), incremental (incr)')
    parser.add_argument('--log-config', dest='log_config', default=None,
                        help='logging configuration file (default: %s)' % configs.LOGGING_CONFIG_FILE_PATH)
    parser.add_argument('operation', nargs='?', default=None, help=', '.join(operations.OPERATIONS))
    parser.add_argument('archive_file', nargs='?', default=None,
                        help='WAL segment to push, archive-push only')
    return parser


def run(args, engine_factory=None, **dispatcher_options):
    operations.validate_operation(args.operation, args.type)

    config_path = args.config or configs.GLOBAL_CONFIG_FILE_PATH
    store = configs.load_configs(config_path)

    if not args.stanza:
        raise UsageError("a backup stanza must be specified")

    resolver = ConfigResolver(store, args.stanza)
    dispatcher = operations.OperationDispatcher(resolver,
                                                config_path=config_path,
                                                log_config=args.log_config,
                                                engine_factory=engine_factory,
                                                **dispatcher_options)
    dispatcher.run(args.operation, archive_file=args.archive_file, backup_type=args.type)


def main(argv=None, engine_factory=None, **dispatcher_options):
    args = build_parser().parse_args(argv)
    configs.load_logging_configs(args.log_config)
    log = logging.getLogger("PgBackRest")

    try:
        run(args, engine_factory, **dispatcher_options)
    except BackRestException as e:
        log.debug("Operation %s failed" % args.operation, exc_info=True)
        log.error(str(e))
        return EXIT_FAILURE
    return EXIT_OK
