"""
VpnSettings -> OpenVPN client configuration
"""
import os
import re
import logging

from .common import ExportError, FileNotOpenVPN
from .lexer import make_line, quote_arg
from .validators import parse_int, prefix_to_netmask
from . import settings as s

log = logging.getLogger("Exporter")


def split_remotes(remote):
    """ 'h1:1194:udp, h2' -> [('h1', '1194', 'udp'), ('h2', None, None)] """
    gateways = []
    for gw in re.split(r'[ ,]', remote):
        gw = gw.strip()
        if not gw:
            continue
        host, port, proto, *_ = gw.split(':', 2) + [None, None]
        gateways.append((host, port or None, proto or None))
    return gateways


class Exporter:
    def __init__(self, settings):
        self.settings = settings
        self.authfile = None
        self.authcontents = None

    def _get(self, key):
        value = self.settings.get_data_item(key)
        return value if value else None

    def _is_yes(self, key):
        return self._get(key) == 'yes'

    def _get_int(self, key):
        value = self._get(key)
        if value is None:
            return None
        number = parse_int(value)
        if number is None:
            log.warning("ignoring non-numeric %s value %r", key, value)
        return number

    def render(self, path):
        """ Returns the configuration text for a file written at path.
        The http-proxy authfile, if needed, is remembered in
        self.authfile / self.authcontents.
        """
        self.authfile = None
        self.authcontents = None

        gateways = self._get(s.KEY_REMOTE)
        if not gateways:
            raise FileNotOpenVPN("connection was incomplete (missing gateway)")

        connection_type = self._get(s.KEY_CONNECTION_TYPE)
        if connection_type not in s.CONTYPES:
            log.warning("unknown connection type %r, exporting as %s",
                        connection_type, s.CONTYPE_TLS)
            connection_type = s.CONTYPE_TLS
        is_tls = connection_type in s.TLS_CONTYPES

        cacert = user_cert = private_key = None
        if connection_type != s.CONTYPE_STATIC_KEY:
            cacert = self._get(s.KEY_CA)
        if is_tls:
            user_cert = self._get(s.KEY_CERT)
            private_key = self._get(s.KEY_KEY)

        lines = ['client']

        for host, port, proto in split_remotes(gateways):
            args = [host]
            if proto and not port:
                port = s.DEFAULT_PORTS['udp'] if proto == 'udp' else s.DEFAULT_PORTS['tcp']
            if port:
                args.append(port)
            if proto:
                args.append(proto)
            lines.append(make_line('remote', *args))

        if self._is_yes(s.KEY_REMOTE_RANDOM):
            lines.append('remote-random')

        # PKCS#12: all certs are the same file
        if cacert and cacert == user_cert == private_key:
            lines.append(make_line('pkcs12', cacert))
        else:
            if cacert:
                lines.append(make_line('ca', cacert))
            if user_cert:
                lines.append(make_line('cert', user_cert))
            if private_key:
                lines.append(make_line('key', private_key))

        if connection_type in (s.CONTYPE_PASSWORD, s.CONTYPE_PASSWORD_TLS):
            lines.append('auth-user-pass')

        if connection_type == s.CONTYPE_STATIC_KEY:
            static_key = self._get(s.KEY_STATIC_KEY)
            direction = self._get(s.KEY_STATIC_KEY_DIRECTION)
            if static_key:
                lines.append(make_line('secret', static_key, *([direction] if direction else [])))
            else:
                log.warning("invalid static key configuration (missing static key)")

        reneg = self._get_int(s.KEY_RENEG_SECONDS)
        if reneg is not None:
            lines.append('reneg-sec %d' % reneg)

        cipher = self._get(s.KEY_CIPHER)
        if cipher:
            lines.append(make_line('cipher', cipher))

        auth = self._get(s.KEY_AUTH)
        if auth:
            lines.append(make_line('auth', auth))

        keysize = self._get_int(s.KEY_KEYSIZE)
        if keysize is not None:
            lines.append('keysize %d' % keysize)

        if self._is_yes(s.KEY_COMP_LZO):
            lines.append('comp-lzo yes')

        if self._is_yes(s.KEY_FLOAT):
            lines.append('float')

        if self._is_yes(s.KEY_MSSFIX):
            lines.append('mssfix')

        tun_mtu = self._get_int(s.KEY_TUNNEL_MTU)
        if tun_mtu is not None:
            lines.append('tun-mtu %d' % tun_mtu)

        fragment = self._get_int(s.KEY_FRAGMENT_SIZE)
        if fragment is not None:
            lines.append('fragment %d' % fragment)

        device = self._get(s.KEY_DEV)
        device_type = self._get(s.KEY_DEV_TYPE)
        # legacy 'tap-dev' property
        device_default = 'tap' if self._is_yes(s.KEY_TAP_DEV) else 'tun'
        lines.append(make_line('dev', device or device_type or device_default))
        if device_type:
            lines.append(make_line('dev-type', device_type))
        lines.append('proto %s' % ('tcp' if self._is_yes(s.KEY_PROTO_TCP) else 'udp'))

        for key, tag in ((s.KEY_PORT, 'port'),
                         (s.KEY_PING, 'ping'),
                         (s.KEY_PING_EXIT, 'ping-exit'),
                         (s.KEY_PING_RESTART, 'ping-restart')):
            value = self._get(key)
            if value:
                lines.append(make_line(tag, value))

        local_ip = self._get(s.KEY_LOCAL_IP)
        remote_ip = self._get(s.KEY_REMOTE_IP)
        if local_ip and remote_ip:
            lines.append(make_line('ifconfig', local_ip, remote_ip))

        if is_tls:
            tls_remote = self._get(s.KEY_TLS_REMOTE)
            if tls_remote:
                lines.append('tls-remote ' + quote_arg(tls_remote, always=True))

            remote_cert_tls = self._get(s.KEY_REMOTE_CERT_TLS)
            if remote_cert_tls:
                lines.append(make_line('remote-cert-tls', remote_cert_tls))

            tls_auth = self._get(s.KEY_TA)
            tls_auth_dir = self._get(s.KEY_TA_DIR)
            if tls_auth:
                lines.append(make_line('tls-auth', tls_auth,
                                       *([tls_auth_dir] if tls_auth_dir else [])))

        lines += self._proxy_lines(path)

        for route in self.settings.routes:
            metric = route.metric
            if metric is None or metric < 0:
                metric = s.DEFAULT_ROUTE_METRIC
            lines.append('route %s %s %s %d' % (route.dest,
                                                prefix_to_netmask(route.prefix),
                                                route.next_hop or s.DEFAULT_NEXT_HOP,
                                                metric))

        lines += s.TRAILER
        return ''.join(line + '\n' for line in lines)

    def _proxy_lines(self, path):
        proxy_type = self._get(s.KEY_PROXY_TYPE)
        if not proxy_type:
            return []

        server = self._get(s.KEY_PROXY_SERVER)
        port = self._get(s.KEY_PROXY_PORT)
        retry = self._is_yes(s.KEY_PROXY_RETRY)
        if not server or not port:
            log.warning("incomplete %s proxy configuration, skipped", proxy_type)
            return []

        lines = []
        if proxy_type == 'http':
            username = self._get(s.KEY_HTTP_PROXY_USERNAME)
            password = self.settings.get_secret(s.KEY_HTTP_PROXY_PASSWORD)
            if username:
                self.authfile = os.path.join(os.path.dirname(path) or '.',
                                             os.path.basename(path) + '-httpauthfile')
                self.authcontents = '%s\n%s\n' % (username, password or '')
                lines.append(make_line('http-proxy', server, port, self.authfile))
            else:
                lines.append(make_line('http-proxy', server, port))
            if retry:
                lines.append('http-proxy-retry')
        elif proxy_type == 'socks':
            lines.append(make_line('socks-proxy', server, port))
            if retry:
                lines.append('socks-proxy-retry')
        else:
            log.warning("unknown proxy type %r, skipped", proxy_type)
        return lines

    def write(self, path):
        text = self.render(path)

        try:
            with open(path, 'w', encoding='utf-8') as f:
                f.write(text)
        except OSError as e:
            raise ExportError("could not open file for writing: %s" % e) from e

        if self.authfile:
            try:
                with open(self.authfile, 'w', encoding='utf-8') as f:
                    os.chmod(self.authfile, 0o600)
                    f.write(self.authcontents)
            except OSError as e:
                raise ExportError("could not write proxy authfile: %s" % e) from e

        log.info("exported %r to %s", self.settings.id, path)


def do_export(path, settings):
    Exporter(settings).write(path)
