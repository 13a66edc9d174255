import pytest

from pyovpnconf import do_import


@pytest.fixture
def cert_dir(tmp_path):
    return str(tmp_path / "certs")


@pytest.fixture
def import_text(tmp_path, cert_dir):
    """ Import a configuration as if read from <tmp_path>/client.ovpn """
    def _import(text, name="client.ovpn"):
        return do_import(str(tmp_path / name), text, cert_dir=cert_dir)
    return _import
