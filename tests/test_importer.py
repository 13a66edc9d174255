import os

import pytest

from pyovpnconf import (ArgumentsSyntaxError, ErrorCode, FileNotOpenVPN, FileNotReadable,
                        Route, SecretFlags, import_file)
from pyovpnconf.importer import DIRECTIVES, decode_contents, find_directive


TLS_CONFIG = """\
remote vpn.example.com 1194 udp
client
ca ca.pem
cert cert.pem
key key.pem
"""


def test_tls_client(import_text, tmp_path):
    result = import_text(TLS_CONFIG)
    vpn = result.settings
    assert vpn['remote'] == 'vpn.example.com:1194:udp'
    assert vpn.connection_type == 'tls'
    assert vpn['ca'] == os.path.join(str(tmp_path), 'ca.pem')
    assert vpn['cert'] == os.path.join(str(tmp_path), 'cert.pem')
    assert vpn['key'] == os.path.join(str(tmp_path), 'key.pem')
    assert vpn.id == 'client'
    assert result.diagnostics == []


def test_absolute_paths_kept(import_text):
    vpn = import_text("client\nremote a\nca /etc/openvpn/ca.crt\n").settings
    assert vpn['ca'] == '/etc/openvpn/ca.crt'


def test_quoted_path(import_text, tmp_path):
    vpn = import_text('client\nremote a\nca "my certs/ca.pem"\n').settings
    assert vpn['ca'] == os.path.join(str(tmp_path), 'my certs/ca.pem')


def test_remotes_accumulate(import_text):
    vpn = import_text("client\nremote h1\nremote h2 443 tcp\nremote h3 1195\n").settings
    assert vpn['remote'] == 'h1, h2:443:tcp, h3:1195'


def test_invalid_remote_skipped(import_text):
    result = import_text("client\nremote h1 99999\nremote h2 1194 icmp\nremote h3\n")
    assert result.settings['remote'] == 'h3'
    assert len(result.diagnostics) == 2
    assert result.diagnostics[0].line_number == 2
    assert result.diagnostics[0].option == 'remote'


def test_no_remote(import_text):
    with pytest.raises(FileNotOpenVPN) as e:
        import_text("client\nca ca.pem\nremote h1 0\n")
    assert "no remote" in str(e.value)
    assert e.value.code == ErrorCode.FILE_NOT_OPENVPN


def test_not_a_client(import_text):
    with pytest.raises(FileNotOpenVPN) as e:
        import_text("remote h1\nca ca.pem\n")
    assert "client configuration" in str(e.value)


@pytest.mark.parametrize("contents", [b"", b"client", "remote h1"])
def test_not_readable(import_text, contents):
    with pytest.raises(FileNotReadable) as e:
        import_text(contents)
    assert e.value.code == ErrorCode.FILE_NOT_READABLE


def test_tls_client_marker(import_text):
    vpn = import_text("tls-client\nremote h1\n").settings
    assert vpn.connection_type == 'tls'


def test_syntax_error_aborts(import_text):
    with pytest.raises(ArgumentsSyntaxError) as e:
        import_text('client\nremote h1\nsecret "abc\n')
    assert "unterminated double quote" in str(e.value)
    assert e.value.position == 7
    assert e.value.line_number == 3


def test_unknown_directives_ignored(import_text):
    result = import_text('client\nverb 3\nremote h1\nfoo "unterminated\nnobind\n')
    assert result.settings['remote'] == 'h1'
    assert result.diagnostics == []


def test_comments(import_text):
    vpn = import_text("# header\nclient ; marker\nremote h1 1194 # primary\n  ; indented\n").settings
    assert vpn['remote'] == 'h1:1194'


def test_bom_and_crlf(import_text):
    vpn = import_text(b'\xef\xbb\xbfclient\r\nremote h1\r\ndev tap0\r\n').settings
    assert vpn['remote'] == 'h1'
    assert vpn['dev'] == 'tap0'


def test_non_utf8_input(import_text):
    vpn = import_text(b'client\nremote h1\n# caf\xe9\ncipher AES-256-CBC\n').settings
    assert vpn['cipher'] == 'AES-256-CBC'


def test_decode_contents():
    assert decode_contents(b'\xef\xbb\xbfclient\n') == 'client\n'
    assert decode_contents('\ufeffclient\n') == 'client\n'
    assert decode_contents('client\n') == 'client\n'


def test_static_key(import_text, tmp_path):
    vpn = import_text("secret static.key 1\nremote h1\n").settings
    assert vpn.connection_type == 'static-key'
    assert vpn['static-key'] == os.path.join(str(tmp_path), 'static.key')
    assert vpn['static-key-direction'] == '1'


def test_invalid_direction_dropped(import_text):
    result = import_text("secret static.key 2\nremote h1\n")
    assert 'static-key-direction' not in result.settings
    assert 'static-key' in result.settings
    assert len(result.diagnostics) == 1


def test_key_direction_applies_to_following_tls_auth(import_text):
    vpn = import_text("client\nremote h1\nkey-direction 1\ntls-auth ta.key\n").settings
    assert vpn['ta-dir'] == '1'


def test_explicit_tls_auth_direction_wins(import_text):
    vpn = import_text("client\nremote h1\nkey-direction 1\ntls-auth ta.key 0\n").settings
    assert vpn['ta-dir'] == '0'


def test_invalid_key_direction(import_text):
    result = import_text("client\nremote h1\nkey-direction 3\ntls-auth ta.key\n")
    assert 'ta-dir' not in result.settings
    assert len(result.diagnostics) == 1


@pytest.mark.parametrize("line,dir_key", [
    ("tls-auth ta.key 5", 'ta-dir'),
    ("secret static.key 5", 'static-key-direction'),
])
def test_rejected_direction_not_filled_by_later_key_direction(import_text, line, dir_key):
    result = import_text("client\nremote h1\n%s\nkey-direction 1\n" % line)
    assert dir_key not in result.settings
    assert len(result.diagnostics) == 1


def test_inline_ca_keeps_blank_lines(import_text, cert_dir):
    import_text("client\nremote h1\n<ca>\nLINE1\n\nLINE2\n</ca>\n", name="office.ovpn")
    with open(os.path.join(cert_dir, 'office-ca.pem')) as f:
        assert f.read() == 'LINE1\n\nLINE2\n'


def test_inline_ca(import_text, cert_dir):
    result = import_text("client\nremote h1\n<ca>\nLINE1\nLINE2\n</ca>\n", name="office.ovpn")
    path = os.path.join(cert_dir, 'office-ca.pem')
    assert result.settings['ca'] == path
    with open(path) as f:
        assert f.read() == 'LINE1\nLINE2\n'


def test_inline_blocks_default_to_home(tmp_path, monkeypatch):
    from pyovpnconf import do_import
    monkeypatch.setenv('HOME', str(tmp_path))
    vpn = do_import(str(tmp_path / 'office.conf'),
                    "client\nremote h1\n<cert>\nC\n</cert>\n<key>\nK\n</key>\n").settings
    assert vpn['cert'] == str(tmp_path / '.cert' / 'office-cert.pem')
    assert vpn['key'] == str(tmp_path / '.cert' / 'office-key.pem')


def test_inline_tls_auth_with_trailing_key_direction(import_text, cert_dir):
    text = ("client\nremote h1\n"
            "<tls-auth>\n#\n# 2048 bit OpenVPN static key\n#\nabcdef\n</tls-auth>\n"
            "key-direction 1\n")
    vpn = import_text(text).settings
    assert vpn['ta'] == os.path.join(cert_dir, 'client-ta.pem')
    assert vpn['ta-dir'] == '1'


def test_inline_block_without_end(import_text):
    result = import_text("client\nremote h1\n<ca>\nLINE1\nLINE2\n")
    assert 'ca' not in result.settings
    assert len(result.diagnostics) == 1


def test_inline_block_unwritable(import_text, cert_dir):
    with open(cert_dir, 'w') as f:
        f.write('not a directory')
    result = import_text("client\nremote h1\n<ca>\nLINE1\n</ca>\ndev tun\n")
    assert 'ca' not in result.settings
    assert result.settings['dev'] == 'tun'
    assert len(result.diagnostics) == 1


def test_pkcs12_sets_triplet(import_text, tmp_path):
    vpn = import_text("client\nremote h1\npkcs12 bundle.p12\n").settings
    path = os.path.join(str(tmp_path), 'bundle.p12')
    assert vpn['ca'] == vpn['cert'] == vpn['key'] == path
    assert vpn.connection_type == 'tls'


def test_password(import_text):
    vpn = import_text("client\nremote h1\nca ca.pem\nauth-user-pass\n").settings
    assert vpn.connection_type == 'password'
    assert vpn.get_secret_flags('password') == SecretFlags.AGENT_OWNED


def test_password_tls(import_text):
    vpn = import_text(TLS_CONFIG + "auth-user-pass\n").settings
    assert vpn.connection_type == 'password-tls'


def test_password_without_ca_falls_back_to_tls(import_text):
    vpn = import_text("client\nremote h1\nauth-user-pass\n").settings
    assert vpn.connection_type == 'tls'


def test_numeric_directives(import_text):
    result = import_text(
        "client\nremote h1\n"
        "reneg-sec 604800\nkeysize 256\ntun-mtu 1500\nfragment 1300\n"
        "ping 10\nping-exit 60\nping-restart 120\nport 1195\n")
    vpn = result.settings
    assert vpn['reneg-seconds'] == '604800'
    assert vpn['keysize'] == '256'
    assert vpn['tunnel-mtu'] == '1500'
    assert vpn['fragment-size'] == '1300'
    assert vpn['ping'] == '10'
    assert vpn['ping-exit'] == '60'
    assert vpn['ping-restart'] == '120'
    assert vpn['port'] == '1195'
    assert result.diagnostics == []


def test_numeric_out_of_range(import_text):
    result = import_text(
        "client\nremote h1\n"
        "reneg-sec 604801\nkeysize 0\ntun-mtu 65535\nping -1\nrport 70000\nping-exit soon\n")
    vpn = result.settings
    for key in ('reneg-seconds', 'keysize', 'tunnel-mtu', 'ping', 'port', 'ping-exit'):
        assert key not in vpn
    assert len(result.diagnostics) == 6


def test_keepalive(import_text):
    vpn = import_text("client\nremote h1\nkeepalive 10 60\n").settings
    assert vpn['ping'] == '10'
    assert vpn['ping-restart'] == '60'


def test_keepalive_wrong_count(import_text):
    result = import_text("client\nremote h1\nkeepalive 10\n")
    assert 'ping' not in result.settings
    assert len(result.diagnostics) == 1


def test_flags_and_words(import_text):
    vpn = import_text(
        "client\nremote h1\nproto tcp-client\ndev tun0\ndev-type tun\nmssfix 1400\n"
        "comp-lzo\nfloat\nremote-random\ncipher BF-CBC\nauth SHA256\n"
        "tls-remote \"vpn server\"\nremote-cert-tls server\nifconfig 10.8.0.2 10.8.0.1\n").settings
    assert vpn['proto-tcp'] == 'yes'
    assert vpn['dev'] == 'tun0'
    assert vpn['dev-type'] == 'tun'
    assert vpn['mssfix'] == 'yes'
    assert vpn['comp-lzo'] == 'yes'
    assert vpn['float'] == 'yes'
    assert vpn['remote-random'] == 'yes'
    assert vpn['cipher'] == 'BF-CBC'
    assert vpn['auth'] == 'SHA256'
    assert vpn['tls-remote'] == 'vpn server'
    assert vpn['remote-cert-tls'] == 'server'
    assert vpn['local-ip'] == '10.8.0.2'
    assert vpn['remote-ip'] == '10.8.0.1'


def test_bad_keywords(import_text):
    result = import_text(
        "client\nremote h1\nproto icmp\ndev-type tunnel\nremote-cert-tls peer\n"
        "ifconfig 10.8.0.2 gateway\n")
    vpn = result.settings
    for key in ('proto-tcp', 'dev-type', 'remote-cert-tls', 'local-ip', 'remote-ip'):
        assert key not in vpn
    assert len(result.diagnostics) == 4


def test_udp_is_default(import_text):
    vpn = import_text("client\nremote h1\nproto udp\n").settings
    assert 'proto-tcp' not in vpn


def test_routes(import_text):
    result = import_text(
        "client\nremote h1\n"
        "route 10.0.0.0 255.255.0.0 10.0.0.1 5\n"
        "route 192.168.1.0\n"
        "route 172.16.0.0 255.240.0.0\n"
        "route nowhere\n"
        "route 10.1.0.0 255.255.0.0 10.0.0.1 70000\n")
    vpn = result.settings
    assert vpn.get_num_routes() == 3
    assert vpn.get_route(0) == Route('10.0.0.0', 16, '10.0.0.1', 5)
    assert vpn.get_route(1) == Route('192.168.1.0', 32, '0.0.0.0', 0)
    assert vpn.get_route(2) == Route('172.16.0.0', 12, '0.0.0.0', 0)
    assert len(result.diagnostics) == 2


def test_http_proxy_with_authfile(import_text, tmp_path):
    (tmp_path / 'proxy-auth.txt').write_text("alice\n\n  s3cret  \n")
    vpn = import_text(
        "client\nremote h1\nhttp-proxy proxy.example.com 8080 proxy-auth.txt\n"
        "http-proxy-retry\nsocks-proxy socks.example.com 1080\n").settings
    assert vpn['proxy-type'] == 'http'
    assert vpn['proxy-server'] == 'proxy.example.com'
    assert vpn['proxy-port'] == '8080'
    assert vpn['proxy-retry'] == 'yes'
    assert vpn['http-proxy-username'] == 'alice'
    assert vpn.get_secret('http-proxy-password') == 's3cret'
    assert vpn.get_secret_flags('http-proxy-password') == SecretFlags.AGENT_OWNED


@pytest.mark.parametrize("authfile", ["stdin", "auto", "\"'auto'\""])
def test_http_proxy_interactive_auth(import_text, authfile):
    vpn = import_text("client\nremote h1\nhttp-proxy proxy 3128 %s\n" % authfile).settings
    assert vpn['proxy-type'] == 'http'
    assert 'http-proxy-username' not in vpn


def test_http_proxy_unreadable_authfile(import_text):
    result = import_text("client\nremote h1\nhttp-proxy proxy 3128 missing.txt\n")
    assert 'proxy-type' not in result.settings
    assert len(result.diagnostics) == 1


def test_socks_proxy(import_text):
    result = import_text("client\nremote h1\nsocks-proxy socks 0\nsocks-proxy socks 1080\n")
    vpn = result.settings
    assert vpn['proxy-type'] == 'socks'
    assert vpn['proxy-port'] == '1080'
    assert len(result.diagnostics) == 1


def test_encrypted_key_is_agent_owned(import_text, tmp_path):
    from Crypto.PublicKey import RSA
    key = RSA.generate(1024)
    (tmp_path / 'key.pem').write_bytes(key.export_key(passphrase='secret'))
    vpn = import_text(TLS_CONFIG).settings
    assert vpn.get_secret_flags('cert-pass') == SecretFlags.AGENT_OWNED


def test_plain_key_has_no_secret(import_text, tmp_path):
    from Crypto.PublicKey import RSA
    key = RSA.generate(1024)
    (tmp_path / 'key.pem').write_bytes(key.export_key())
    vpn = import_text(TLS_CONFIG).settings
    assert 'cert-pass' not in vpn.secret_flags


def test_import_file(tmp_path, cert_dir):
    path = tmp_path / 'office.ovpn'
    path.write_text(TLS_CONFIG)
    result = import_file(str(path), cert_dir=cert_dir)
    assert result.settings.id == 'office'


def test_import_missing_file(tmp_path):
    with pytest.raises(FileNotReadable):
        import_file(str(tmp_path / 'missing.ovpn'))


def test_directive_order():
    tags = [tag for tag, _ in DIRECTIVES]
    assert tags.index('http-proxy-retry') < tags.index('http-proxy')
    assert find_directive('dev-type tap')[0] == 'dev-type'
    assert find_directive('auth-user-pass')[0] == 'auth-user-pass'
    assert find_directive('auth SHA1')[0] == 'auth'
    assert find_directive('verb 3') == (None, None)
