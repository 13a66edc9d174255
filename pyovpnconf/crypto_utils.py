"""
Private key inspection
"""
import re
import logging

from Crypto.IO import PEM
from Crypto.Util.asn1 import DerSequence

log = logging.getLogger("crypto")

PEM_BLOCK_RE = re.compile(
    r'-----BEGIN ([A-Z0-9 ]+)-----.*?-----END \1-----', re.DOTALL)

PKCS12_VERSION = 3


def is_pkcs12(data):
    """ DER-encoded PFX: SEQUENCE { version INTEGER (3), authSafe, ... } """
    seq = DerSequence()
    try:
        seq.decode(data)
        return len(seq) >= 2 and seq[0] == PKCS12_VERSION
    except (ValueError, TypeError, IndexError) as e:
        log.debug("not a PKCS#12 bundle: %s", e)
        return False


def pem_is_encrypted(block):
    """ A single PEM block protected by a passphrase
    (legacy Proc-Type header or PKCS#8 EncryptedPrivateKeyInfo)
    """
    if 'Proc-Type: 4,ENCRYPTED' in block or 'Proc-Type:4,ENCRYPTED' in block:
        return True
    try:
        _der, marker, enc_flag = PEM.decode(block)
    except ValueError as e:
        log.debug("invalid PEM block: %s", e)
        return False
    return enc_flag or marker == 'ENCRYPTED PRIVATE KEY'


def is_encrypted(path):
    """ Guess whether the private key file at path needs a passphrase.
    PKCS#12 bundles always do.
    """
    try:
        with open(path, 'rb') as f:
            data = f.read()
    except OSError as e:
        log.debug("cannot read key %s: %s", path, e)
        return False

    text = data.decode('ascii', errors='replace')
    blocks = [m.group(0) for m in PEM_BLOCK_RE.finditer(text)
              if 'PRIVATE KEY' in m.group(1)]
    if blocks:
        return any(pem_is_encrypted(b) for b in blocks)

    return is_pkcs12(data)
