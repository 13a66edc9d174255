import pytest

from pyovpnconf.validators import (netmask_to_prefix, parse_direction, parse_int, parse_ip,
                                   parse_port, parse_protocol, parse_seconds, prefix_to_netmask)


def test_parse_int_bounds():
    assert parse_int('10', 0, 10) == 10
    assert parse_int('11', 0, 10) is None
    assert parse_int('-1', 0) is None
    assert parse_int(' 7 ') == 7
    assert parse_int('12abc') is None
    assert parse_int('') is None


@pytest.mark.parametrize("value,expected", [
    ('1194', '1194'),
    ('1', '1'),
    ('65535', '65535'),
    ('0', None),
    ('65536', None),
    ('http', None),
    ('0443', '443'),
])
def test_parse_port(value, expected):
    assert parse_port(value) == expected


def test_parse_seconds():
    assert parse_seconds('0') == 0
    assert parse_seconds('2147483647') == 2147483647
    assert parse_seconds('2147483648') is None
    assert parse_seconds('-5') is None
    assert parse_seconds('700000', maximum=604800) is None


def test_parse_protocol():
    assert parse_protocol('udp') == 'udp'
    assert parse_protocol('tcp') == 'tcp'
    assert parse_protocol('tcp-client') is None


def test_parse_ip():
    assert parse_ip('10.0.0.1') == '10.0.0.1'
    assert parse_ip('10.0.0.256') is None
    assert parse_ip('vpn.example.com') is None
    assert parse_ip('::1') is None


@pytest.mark.parametrize("value,expected", [('0', '0'), ('1', '1'), ('2', None), ('x', None)])
def test_parse_direction(value, expected):
    assert parse_direction(value) == expected


@pytest.mark.parametrize("netmask,prefix", [
    ('255.255.255.255', 32),
    ('255.255.0.0', 16),
    ('255.255.255.128', 25),
    ('0.0.0.0', 0),
    ('255.0.255.0', 8),
])
def test_netmask_to_prefix(netmask, prefix):
    assert netmask_to_prefix(netmask) == prefix


def test_prefix_to_netmask():
    assert prefix_to_netmask(32) == '255.255.255.255'
    assert prefix_to_netmask(24) == '255.255.255.0'
    assert prefix_to_netmask(0) == '0.0.0.0'
