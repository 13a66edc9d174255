import re
import ipaddress


MAX_SECONDS = 2 ** 31 - 1
MAX_RENEG_SECONDS = 604800

_INT_RE = re.compile(r'^[+-]?[0-9]+$')


def parse_int(s, minimum=None, maximum=None):
    """ Returns the integer value of s, or None if it isn't a (decimal)
    integer within [minimum, maximum].
    """
    s = s.strip()
    if not _INT_RE.match(s):
        return None
    value = int(s)
    if minimum is not None and value < minimum:
        return None
    if maximum is not None and value > maximum:
        return None
    return value


def parse_port(s):
    """ Port number in (0, 65536), as a string. """
    port = parse_int(s, 1, 65535)
    return None if port is None else str(port)


def parse_seconds(s, maximum=MAX_SECONDS):
    return parse_int(s, 0, maximum)


def parse_protocol(s):
    """ 'udp' or 'tcp', as accepted on a remote line. """
    if s in ('udp', 'tcp'):
        return s
    return None


def parse_ip(s):
    """ Dotted-quad IPv4 address, normalized. """
    try:
        return str(ipaddress.IPv4Address(s))
    except ValueError:
        return None


def parse_direction(s):
    """ Key direction, '0' or '1'. """
    direction = parse_int(s)
    if direction in (0, 1):
        return str(direction)
    return None


def netmask_to_prefix(netmask):
    """ Number of leading one bits of a dotted-quad netmask. """
    value = int(ipaddress.IPv4Address(netmask))
    prefix = 0
    while prefix < 32 and value & (0x80000000 >> prefix):
        prefix += 1
    return prefix


def prefix_to_netmask(prefix):
    prefix = max(0, min(32, int(prefix)))
    value = (0xffffffff << (32 - prefix)) & 0xffffffff
    return str(ipaddress.IPv4Address(value))
