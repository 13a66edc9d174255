#!/bin/python3
import sys
import logging
from argparse import ArgumentParser

from pyovpnconf import import_file, do_export, ConversionError, SecretFlags


def print_result(result):
    vpn = result.settings
    print("id: %s" % vpn.id)
    for key in sorted(vpn):
        print("%s = %s" % (key, vpn[key]))
    for key in sorted(vpn.secret_flags):
        flags = vpn.secret_flags[key]
        owner = 'agent-owned' if flags & SecretFlags.AGENT_OWNED else 'saved'
        print("secret %s: %s" % (key, owner))
    for route in vpn.routes:
        print("route %s/%d via %s metric %s" % (route.dest, route.prefix,
                                                route.next_hop, route.metric))
    for d in result.diagnostics:
        print("warning: %s" % d)


def print_check(name, result):
    for d in result.diagnostics:
        print("warning: %s" % d)
    if result.diagnostics:
        print("%s: %d warning(s)" % (name, len(result.diagnostics)))
    else:
        print("%s: ok" % name)


def main(argv=None):
    parser = ArgumentParser(description="Import and export OpenVPN client configurations")
    parser.add_argument('-v', '--verbose', dest='verbose', action='store_true', help="debug logging")
    sub = parser.add_subparsers(dest='command', required=True)

    p = sub.add_parser('import', help="show the settings read from a configuration")
    p.add_argument('config_file', help="OpenVPN configuration file")
    p.add_argument('--cert-dir', dest='cert_dir', default=None,
                   help="where inline certificates are written (default: ~/.cert)")

    p = sub.add_parser('check', help="only report problems found in a configuration")
    p.add_argument('config_file', help="OpenVPN configuration file")
    p.add_argument('--cert-dir', dest='cert_dir', default=None,
                   help="where inline certificates are written (default: ~/.cert)")

    p = sub.add_parser('export', help="import a configuration and write it back")
    p.add_argument('config_file', help="OpenVPN configuration file")
    p.add_argument('dest', help="configuration file to write")
    p.add_argument('--cert-dir', dest='cert_dir', default=None,
                   help="where inline certificates are written (default: ~/.cert)")

    args = parser.parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO,
                        format="%(levelname)-5s:%(name)-8s: %(message)s")

    try:
        result = import_file(args.config_file, cert_dir=args.cert_dir)
        if args.command == 'import':
            print_result(result)
        elif args.command == 'check':
            print_check(args.config_file, result)
        else:
            do_export(args.dest, result.settings)
    except ConversionError as e:
        logging.getLogger("convert").error("%s: %s", args.config_file, e)
        return 1
    return 0


if __name__ == '__main__':
    sys.exit(main())
