
# Setting keys
KEY_AUTH = 'auth'
KEY_CA = 'ca'
KEY_CERT = 'cert'
KEY_CIPHER = 'cipher'
KEY_COMP_LZO = 'comp-lzo'
KEY_CONNECTION_TYPE = 'connection-type'
KEY_DEV = 'dev'
KEY_DEV_TYPE = 'dev-type'
KEY_FLOAT = 'float'
KEY_FRAGMENT_SIZE = 'fragment-size'
KEY_HTTP_PROXY_USERNAME = 'http-proxy-username'
KEY_KEY = 'key'
KEY_KEYSIZE = 'keysize'
KEY_LOCAL_IP = 'local-ip'
KEY_MSSFIX = 'mssfix'
KEY_PING = 'ping'
KEY_PING_EXIT = 'ping-exit'
KEY_PING_RESTART = 'ping-restart'
KEY_PORT = 'port'
KEY_PROTO_TCP = 'proto-tcp'
KEY_PROXY_PORT = 'proxy-port'
KEY_PROXY_RETRY = 'proxy-retry'
KEY_PROXY_SERVER = 'proxy-server'
KEY_PROXY_TYPE = 'proxy-type'
KEY_REMOTE = 'remote'
KEY_REMOTE_CERT_TLS = 'remote-cert-tls'
KEY_REMOTE_IP = 'remote-ip'
KEY_REMOTE_RANDOM = 'remote-random'
KEY_RENEG_SECONDS = 'reneg-seconds'
KEY_STATIC_KEY = 'static-key'
KEY_STATIC_KEY_DIRECTION = 'static-key-direction'
KEY_TA = 'ta'
KEY_TA_DIR = 'ta-dir'
KEY_TAP_DEV = 'tap-dev'
KEY_TLS_REMOTE = 'tls-remote'
KEY_TUNNEL_MTU = 'tunnel-mtu'

# Secret keys
KEY_PASSWORD = 'password'
KEY_CERTPASS = 'cert-pass'
KEY_HTTP_PROXY_PASSWORD = 'http-proxy-password'

CONTYPE_TLS = 'tls'
CONTYPE_PASSWORD = 'password'
CONTYPE_PASSWORD_TLS = 'password-tls'
CONTYPE_STATIC_KEY = 'static-key'

CONTYPES = (CONTYPE_TLS, CONTYPE_PASSWORD, CONTYPE_PASSWORD_TLS, CONTYPE_STATIC_KEY)
TLS_CONTYPES = (CONTYPE_TLS, CONTYPE_PASSWORD_TLS)

REM_CERT_TLS_CLIENT = 'client'
REM_CERT_TLS_SERVER = 'server'

DEFAULT_CERT_DIR = '~/.cert'
DEFAULT_NEXT_HOP = '0.0.0.0'
DEFAULT_ROUTE_METRIC = 50
DEFAULT_PORTS = {
    'udp': '1194',
    'tcp': '443',
}

# Always appended by the exporter
TRAILER = (
    'nobind',
    'auth-nocache',
    'script-security 2',
    'persist-key',
    'persist-tun',
    'user openvpn',
    'group openvpn',
)


class SecretFlags:
    NONE = 0x0
    AGENT_OWNED = 0x1
    NOT_SAVED = 0x2
    NOT_REQUIRED = 0x4


class Route:
    """ One IPv4 route: destination, prefix length, next hop, metric.
    next_hop and metric may be None (unset).
    """
    def __init__(self, dest, prefix=32, next_hop=None, metric=None):
        self.dest = dest
        self.prefix = prefix
        self.next_hop = next_hop
        self.metric = metric

    def _key(self):
        return (self.dest, self.prefix, self.next_hop, self.metric)

    def __eq__(self, other):
        if not isinstance(other, Route):
            return NotImplemented
        return self._key() == other._key()

    def __hash__(self):
        return hash(self._key())

    def __repr__(self):
        return "Route(%r, %r, %r, %r)" % self._key()


class Diagnostic:
    """ Non-fatal problem with one directive. """
    def __init__(self, line_number, option, message):
        self.line_number = line_number
        self.option = option
        self.message = message

    def __str__(self):
        if self.line_number is None:
            return "%s: %s" % (self.option, self.message)
        return "line %d: %s: %s" % (self.line_number, self.option, self.message)

    def __repr__(self):
        return "Diagnostic(%r, %r, %r)" % (self.line_number, self.option, self.message)


class VpnSettings(dict):
    """ VPN connection settings.
    The mapping itself holds the data items (str -> non-empty str);
    secrets, their flags and the routes are kept beside it.
    """

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.id = None
        self.secrets = {}
        self.secret_flags = {}
        self.routes = []

    def get_data_item(self, key):
        return self.get(key)

    def has_data_item(self, key):
        return bool(self.get(key))

    def add_data_item(self, key, value):
        if not key:
            raise ValueError("Empty setting key")
        if value is None or value == '':
            raise ValueError("Empty value for setting %r" % key)
        self[key] = str(value)

    def remove_data_item(self, key):
        self.pop(key, None)

    def add_secret(self, key, value):
        if not value:
            raise ValueError("Empty value for secret %r" % key)
        self.secrets[key] = value

    def get_secret(self, key):
        return self.secrets.get(key)

    def set_secret_flags(self, key, flags):
        self.secret_flags[key] = flags

    def get_secret_flags(self, key):
        return self.secret_flags.get(key, SecretFlags.NONE)

    def add_route(self, route):
        self.routes.append(route)

    def get_num_routes(self):
        return len(self.routes)

    def get_route(self, i):
        return self.routes[i]

    @property
    def connection_type(self):
        return self.get(KEY_CONNECTION_TYPE)

    def same_as(self, other):
        """ Key-for-key comparison, including secrets and routes. """
        return (dict(self) == dict(other)
                and self.secrets == other.secrets
                and self.secret_flags == other.secret_flags
                and self.routes == other.routes)
