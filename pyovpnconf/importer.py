"""
OpenVPN client configuration -> VpnSettings
"""
import os
import re
import locale
import logging

from .common import ArgumentsSyntaxError, FileNotReadable, FileNotOpenVPN
from .lexer import is_option, parse_line, strip_comment
from .blob import BlobExtractor, BlobError, match_start_tag, write_blob
from .crypto_utils import is_encrypted
from .validators import (parse_int, parse_port, parse_seconds, parse_protocol,
                         parse_ip, parse_direction, netmask_to_prefix,
                         MAX_RENEG_SECONDS)
from . import settings as s
from .settings import VpnSettings, Route, Diagnostic, SecretFlags

log = logging.getLogger("Importer")

PROXY_AUTH_NONE = ('stdin', 'auto', "'auto'")


class ParserState:
    """ Everything the line scan accumulates besides the settings. """

    def __init__(self, path, cert_dir):
        self.path = path
        self.cert_dir = cert_dir
        self.settings = VpnSettings()
        self.diagnostics = []

        # ca, cert, key files may live next to the configuration file
        if os.path.isabs(path):
            self.default_path = os.path.dirname(path)
        else:
            self.default_path = os.path.join(os.getcwd(), os.path.dirname(path))

        basename = os.path.basename(path)
        if '.' in basename:
            basename = basename[:basename.rindex('.')]
        self.basename = basename

        self.have_client = False
        self.have_remote = False
        self.have_pass = False
        self.have_sk = False
        self.proxy_set = False
        self.last_seen_key_direction = None
        # direction keys given on the directive line itself, valid or not
        self.explicit_directions = set()

        self.line_number = None

    def resolve_path(self, file):
        if os.path.isabs(file):
            return file
        return os.path.join(self.default_path, file)

    def warn(self, option, message, *args):
        if args:
            message = message % args
        d = Diagnostic(self.line_number, option, message)
        log.warning("%s", d)
        self.diagnostics.append(d)

    def set(self, key, value):
        self.settings.add_data_item(key, value)


class ImportResult:
    def __init__(self, settings, diagnostics):
        self.settings = settings
        self.diagnostics = diagnostics

    def __repr__(self):
        return "<ImportResult %r, %d warnings>" % (self.settings.id, len(self.diagnostics))


def _wrong_count(state, tag):
    state.warn(tag, "invalid number of arguments")


# Directive handlers: handler(state, tag, args), args without the tag.

def handle_client(state, tag, args):
    state.have_client = True


def handle_key_direction(state, tag, args):
    if len(args) != 1:
        return _wrong_count(state, tag)
    direction = parse_direction(args[0])
    if direction is None:
        state.warn(tag, "unknown direction %r", args[0])
        return
    state.last_seen_key_direction = direction


def handle_dev(state, tag, args):
    if len(args) != 1:
        return _wrong_count(state, tag)
    state.set(s.KEY_DEV, args[0])


def handle_dev_type(state, tag, args):
    if len(args) != 1:
        return _wrong_count(state, tag)
    if args[0] not in ('tun', 'tap'):
        state.warn(tag, "unknown device type %r", args[0])
        return
    state.set(s.KEY_DEV_TYPE, args[0])


def handle_proto(state, tag, args):
    if len(args) != 1:
        return _wrong_count(state, tag)
    # 'tcp' isn't technically valid but used to be accepted
    if args[0] == 'udp':
        pass
    elif args[0] in ('tcp-client', 'tcp-server', 'tcp'):
        state.set(s.KEY_PROTO_TCP, 'yes')
    else:
        state.warn(tag, "unknown protocol %r", args[0])


def flag_item(key):
    def handle_flag(state, tag, args):
        state.set(key, 'yes')
    return handle_flag


def int_item(key, minimum, maximum):
    def handle_int(state, tag, args):
        if len(args) != 1:
            return _wrong_count(state, tag)
        value = parse_int(args[0], minimum, maximum)
        if value is None:
            state.warn(tag, "invalid value %r, must be in [%d, %d]",
                       args[0], minimum, maximum)
            return
        state.set(key, value)
    return handle_int


def seconds_item(key):
    def handle_seconds(state, tag, args):
        if len(args) != 1:
            state.warn(tag, "invalid number of arguments, must be one integer")
            return
        secs = parse_seconds(args[0])
        if secs is None:
            state.warn(tag, "invalid number of seconds %r", args[0])
            return
        state.set(key, secs)
    return handle_seconds


def read_proxy_auth(state, file):
    """ (user, password) from the first two non-empty lines of an http-proxy
    authfile, (None, None) for the interactive pseudo-files.
    Raises OSError or ValueError.
    """
    if file in PROXY_AUTH_NONE:
        return None, None

    path = state.resolve_path(file)
    with open(path, encoding='utf-8', errors='replace') as f:
        contents = f.read()

    lines = [l.strip() for l in re.split(r'[\r\n]', contents)]
    lines = [l for l in lines if l]
    if len(lines) < 2:
        raise ValueError("%s: expected username and password lines" % path)
    return lines[0], lines[1]


def handle_proxy(state, tag, args):
    if state.proxy_set:
        log.debug("line %d: proxy already set, ignoring %s", state.line_number, tag)
        return

    proxy_type = 'http' if tag == 'http-proxy' else 'socks'
    if len(args) < 2:
        state.warn(tag, "invalid proxy option")
        return

    user = password = None
    if proxy_type == 'http' and len(args) >= 3:
        try:
            user, password = read_proxy_auth(state, args[2])
        except (OSError, ValueError) as e:
            state.warn(tag, "unable to read HTTP proxy authfile: %s", e)
            return

    port = parse_port(args[1])
    if port is None:
        state.warn(tag, "invalid proxy port %r", args[1])
        return

    state.set(s.KEY_PROXY_TYPE, proxy_type)
    state.set(s.KEY_PROXY_SERVER, args[0])
    state.set(s.KEY_PROXY_PORT, port)
    if user:
        state.set(s.KEY_HTTP_PROXY_USERNAME, user)
    if password:
        state.settings.add_secret(s.KEY_HTTP_PROXY_PASSWORD, password)
        state.settings.set_secret_flags(s.KEY_HTTP_PROXY_PASSWORD, SecretFlags.AGENT_OWNED)
    state.proxy_set = True


def handle_remote(state, tag, args):
    if not 1 <= len(args) <= 3:
        return _wrong_count(state, tag)

    entry = [args[0]]
    if len(args) >= 2:
        port = parse_port(args[1])
        if port is None:
            state.warn(tag, "invalid remote port %r", args[1])
            return
        entry.append(port)
    if len(args) == 3:
        if parse_protocol(args[2]) is None:
            state.warn(tag, "invalid protocol %r", args[2])
            return
        entry.append(args[2])

    remote = ':'.join(entry)
    prev = state.settings.get_data_item(s.KEY_REMOTE)
    if prev:
        remote = prev + ', ' + remote
    state.set(s.KEY_REMOTE, remote)
    state.have_remote = True


def handle_port(state, tag, args):
    if len(args) != 1:
        return _wrong_count(state, tag)
    port = parse_port(args[0])
    if port is None:
        state.warn(tag, "invalid port %r", args[0])
        return
    state.set(s.KEY_PORT, port)


def path_item(*keys):
    def handle_path(state, tag, args):
        if len(args) != 1:
            return _wrong_count(state, tag)
        path = state.resolve_path(args[0])
        for key in keys:
            state.set(key, path)
    return handle_path


def apply_direction(state, tag, key, direction):
    if direction is None:
        return
    value = parse_direction(direction)
    if value is None:
        state.warn(tag, "unknown direction %r", direction)
        return
    state.set(key, value)


def key_file_item(key, dir_key):
    """ secret / tls-auth: a path and an optional direction """
    def handle_key_file(state, tag, args):
        if not 1 <= len(args) <= 2:
            return _wrong_count(state, tag)
        state.set(key, state.resolve_path(args[0]))
        if len(args) == 2:
            state.explicit_directions.add(dir_key)
            apply_direction(state, tag, dir_key, args[1])
        else:
            state.explicit_directions.discard(dir_key)
            apply_direction(state, tag, dir_key, state.last_seen_key_direction)
        if key == s.KEY_STATIC_KEY:
            state.have_sk = True
    return handle_key_file


def word_item(key):
    def handle_word(state, tag, args):
        if len(args) != 1:
            return _wrong_count(state, tag)
        state.set(key, args[0])
    return handle_word


def handle_keepalive(state, tag, args):
    if len(args) != 2:
        state.warn(tag, "invalid number of arguments, must be two integers")
        return
    ping = parse_seconds(args[0])
    ping_restart = parse_seconds(args[1])
    if ping is None or ping_restart is None:
        state.warn(tag, "invalid arguments, must be two integers")
        return
    state.set(s.KEY_PING, ping)
    state.set(s.KEY_PING_RESTART, ping_restart)


def handle_remote_cert_tls(state, tag, args):
    if len(args) != 1:
        return _wrong_count(state, tag)
    if args[0] not in (s.REM_CERT_TLS_CLIENT, s.REM_CERT_TLS_SERVER):
        state.warn(tag, "unknown value %r", args[0])
        return
    state.set(s.KEY_REMOTE_CERT_TLS, args[0])


def handle_ifconfig(state, tag, args):
    if len(args) != 2:
        return _wrong_count(state, tag)
    local_ip = parse_ip(args[0])
    remote_ip = parse_ip(args[1])
    if local_ip is None or remote_ip is None:
        state.warn(tag, "invalid IP address")
        return
    state.set(s.KEY_LOCAL_IP, local_ip)
    state.set(s.KEY_REMOTE_IP, remote_ip)


def handle_auth_user_pass(state, tag, args):
    state.have_pass = True


def handle_route(state, tag, args):
    if not 1 <= len(args) <= 4:
        return _wrong_count(state, tag)

    dest = parse_ip(args[0])
    if dest is None:
        state.warn(tag, "invalid IP %r", args[0])
        return

    prefix = 32
    next_hop = s.DEFAULT_NEXT_HOP
    metric = 0
    if len(args) >= 2:
        if parse_ip(args[1]) is None:
            state.warn(tag, "invalid netmask %r", args[1])
            return
        prefix = netmask_to_prefix(args[1])
    if len(args) >= 3:
        next_hop = parse_ip(args[2])
        if next_hop is None:
            state.warn(tag, "invalid gateway %r", args[2])
            return
    if len(args) == 4:
        metric = parse_int(args[3], 0, 65535)
        if metric is None:
            state.warn(tag, "invalid metric %r", args[3])
            return

    state.settings.add_route(Route(dest, prefix, next_hop, metric))


# Matched in this order, the first tag matching a line handles it.
DIRECTIVES = (
    ('client', handle_client),
    ('tls-client', handle_client),
    ('key-direction', handle_key_direction),
    ('dev', handle_dev),
    ('dev-type', handle_dev_type),
    ('proto', handle_proto),
    ('mssfix', flag_item(s.KEY_MSSFIX)),
    ('tun-mtu', int_item(s.KEY_TUNNEL_MTU, 0, 0xfffe)),
    ('fragment', int_item(s.KEY_FRAGMENT_SIZE, 0, 0xfffe)),
    ('comp-lzo', flag_item(s.KEY_COMP_LZO)),
    ('float', flag_item(s.KEY_FLOAT)),
    ('reneg-sec', int_item(s.KEY_RENEG_SECONDS, 0, MAX_RENEG_SECONDS)),
    ('http-proxy-retry', flag_item(s.KEY_PROXY_RETRY)),
    ('socks-proxy-retry', flag_item(s.KEY_PROXY_RETRY)),
    ('http-proxy', handle_proxy),
    ('socks-proxy', handle_proxy),
    ('remote', handle_remote),
    ('remote-random', flag_item(s.KEY_REMOTE_RANDOM)),
    ('port', handle_port),
    ('rport', handle_port),
    ('ping', seconds_item(s.KEY_PING)),
    ('ping-exit', seconds_item(s.KEY_PING_EXIT)),
    ('ping-restart', seconds_item(s.KEY_PING_RESTART)),
    ('pkcs12', path_item(s.KEY_CA, s.KEY_CERT, s.KEY_KEY)),
    ('ca', path_item(s.KEY_CA)),
    ('cert', path_item(s.KEY_CERT)),
    ('key', path_item(s.KEY_KEY)),
    ('secret', key_file_item(s.KEY_STATIC_KEY, s.KEY_STATIC_KEY_DIRECTION)),
    ('tls-auth', key_file_item(s.KEY_TA, s.KEY_TA_DIR)),
    ('cipher', word_item(s.KEY_CIPHER)),
    ('keepalive', handle_keepalive),
    ('keysize', int_item(s.KEY_KEYSIZE, 1, 65535)),
    ('tls-remote', word_item(s.KEY_TLS_REMOTE)),
    ('remote-cert-tls', handle_remote_cert_tls),
    ('ifconfig', handle_ifconfig),
    ('auth-user-pass', handle_auth_user_pass),
    ('auth', word_item(s.KEY_AUTH)),
    ('route', handle_route),
)


def find_directive(line):
    for tag, handler in DIRECTIVES:
        if is_option(line, tag):
            return tag, handler
    return None, None


def decode_contents(contents):
    """ bytes -> text, best effort; drops the UTF-8 BOM """
    if isinstance(contents, bytes):
        try:
            text = contents.decode('utf-8')
        except UnicodeDecodeError:
            encoding = locale.getpreferredencoding(False)
            try:
                text = contents.decode(encoding)
                log.info("configuration isn't UTF-8, read as %s", encoding)
            except (UnicodeDecodeError, LookupError):
                text = contents.decode('utf-8', errors='replace')
    else:
        text = contents

    if text.startswith('\ufeff'):
        text = text[1:]
    return text


class Importer:
    def __init__(self, path, contents, cert_dir=None):
        self.path = path
        self.contents = contents
        self.cert_dir = cert_dir or s.DEFAULT_CERT_DIR
        self.state = None

    def run(self):
        """ Parse everything, returns an ImportResult.
        Raises FileNotReadable, FileNotOpenVPN or ArgumentsSyntaxError.
        """
        state = self.state = ParserState(self.path, self.cert_dir)

        lines = re.split(r'\r\n|\r|\n', decode_contents(self.contents))
        if len(lines) <= 1:
            raise FileNotReadable("not a valid OpenVPN configuration file")

        i = 0
        while i < len(lines):
            state.line_number = i + 1
            line = strip_comment(lines[i]).strip()
            if not line:
                i += 1
                continue

            name = match_start_tag(line)
            if name is not None:
                i = self.handle_blob(name, lines, i)
                continue
            i += 1

            tag, handler = find_directive(line)
            if handler is None:
                log.debug("line %d: ignoring %r", state.line_number, line)
                continue

            try:
                args = parse_line(line)
            except ArgumentsSyntaxError as e:
                raise e.with_line(state.line_number) from None
            handler(state, tag, args[1:])

        state.line_number = None
        self.finish()
        return ImportResult(state.settings, state.diagnostics)

    def handle_blob(self, name, lines, i):
        state = self.state
        extractor = BlobExtractor(name)
        content, next_i = extractor.extract(lines, i)
        if content is None:
            state.warn(extractor.start_tag, "missing %s", extractor.end_tag)
            return next_i

        try:
            path = write_blob(self.cert_dir, state.basename, extractor.key, content)
        except BlobError as e:
            state.warn(extractor.start_tag, "%s", e)
            return next_i

        state.set(extractor.key, path)
        if extractor.key == s.KEY_TA:
            state.explicit_directions.discard(s.KEY_TA_DIR)
            apply_direction(state, name, s.KEY_TA_DIR, state.last_seen_key_direction)
        return next_i

    def finish(self):
        """ Checks and connection type, once all lines are read. """
        state = self.state
        vpn = state.settings

        if not state.have_client and not state.have_sk:
            raise FileNotOpenVPN(
                "The file to import wasn't a valid OpenVPN client configuration.")
        if not state.have_remote:
            raise FileNotOpenVPN(
                "The file to import wasn't a valid OpenVPN configure (no remote).")

        # key-direction usually comes after the inline <tls-auth> block
        direction = state.last_seen_key_direction
        if direction is not None:
            for key, dir_key in ((s.KEY_TA, s.KEY_TA_DIR),
                                 (s.KEY_STATIC_KEY, s.KEY_STATIC_KEY_DIRECTION)):
                if (vpn.has_data_item(key) and not vpn.has_data_item(dir_key)
                        and dir_key not in state.explicit_directions):
                    vpn.add_data_item(dir_key, direction)

        have_ca = vpn.has_data_item(s.KEY_CA)
        have_certs = (have_ca and vpn.has_data_item(s.KEY_CERT)
                      and vpn.has_data_item(s.KEY_KEY))

        ctype = None
        if state.have_pass:
            if have_certs:
                ctype = s.CONTYPE_PASSWORD_TLS
            elif have_ca:
                ctype = s.CONTYPE_PASSWORD
        elif have_certs:
            ctype = s.CONTYPE_TLS
        elif state.have_sk:
            ctype = s.CONTYPE_STATIC_KEY
        if ctype is None:
            ctype = s.CONTYPE_TLS
        vpn.add_data_item(s.KEY_CONNECTION_TYPE, ctype)

        # Secrets default to being agent-owned
        if state.have_pass:
            vpn.set_secret_flags(s.KEY_PASSWORD, SecretFlags.AGENT_OWNED)
        key_path = vpn.get_data_item(s.KEY_KEY)
        if key_path and is_encrypted(key_path):
            vpn.set_secret_flags(s.KEY_CERTPASS, SecretFlags.AGENT_OWNED)

        vpn.id = state.basename
        log.info("imported %r (%s), %d warnings",
                 vpn.id, ctype, len(state.diagnostics))


def do_import(path, contents, cert_dir=None):
    return Importer(path, contents, cert_dir=cert_dir).run()


def import_file(path, cert_dir=None):
    try:
        with open(path, 'rb') as f:
            contents = f.read()
    except OSError as e:
        raise FileNotReadable("cannot read %s: %s" % (path, e)) from e
    return do_import(path, contents, cert_dir=cert_dir)
