"""
Inline <ca>, <cert>, <key> and <tls-auth> blocks
"""
import os
import logging

from .settings import KEY_CA, KEY_CERT, KEY_KEY, KEY_TA

log = logging.getLogger("Blob")

# block tag -> setting key
BLOCK_TAGS = {
    'ca': KEY_CA,
    'cert': KEY_CERT,
    'key': KEY_KEY,
    'tls-auth': KEY_TA,
}


class State:
    SEEKING_START = 0
    ACCUMULATING = 1
    DONE = 2


class BlobError(Exception):
    pass


def match_start_tag(line):
    """ Returns the block name if line opens an inline block. """
    for name in BLOCK_TAGS:
        if line.startswith('<%s>' % name):
            return name
    return None


def is_skipped(line):
    return not line or line[0] in '#;'


class BlobExtractor:
    """ Reads one inline block from a list of lines.
    extract() returns (content, next_index); content is None when the
    end tag was never found.
    """

    def __init__(self, name):
        if name not in BLOCK_TAGS:
            raise ValueError("Invalid block key %r" % name)
        self.name = name
        self.key = BLOCK_TAGS[name]
        self.start_tag = '<%s>' % name
        self.end_tag = '</%s>' % name
        self.state = State.SEEKING_START
        self.lines = []

    def extract(self, lines, start):
        i = start
        while i < len(lines):
            raw = lines[i]
            line = raw.strip()
            i += 1

            if self.state == State.SEEKING_START:
                if not line.startswith(self.start_tag):
                    return None, start
                self.state = State.ACCUMULATING
            elif is_skipped(line):
                # blank and comment lines are content, never the end of the block
                self.lines.append(raw.rstrip('\r'))
            elif line == self.end_tag:
                self.state = State.DONE
                return self.content(), i
            else:
                self.lines.append(raw.rstrip('\r'))

        log.debug("%s: no %s before end of file", self.start_tag, self.end_tag)
        return None, i

    def content(self):
        return ''.join(line + '\n' for line in self.lines)


def blob_path(cert_dir, name, key):
    return os.path.join(cert_dir, "%s-%s.pem" % (name, key))


def write_blob(cert_dir, name, key, content):
    """ Write content to <cert_dir>/<name>-<key>.pem and return that path.
    Raises BlobError on any filesystem problem.
    """
    cert_dir = os.path.expanduser(cert_dir)
    if not os.path.isdir(cert_dir):
        if os.path.exists(cert_dir):
            raise BlobError("%s exists and is not a directory" % cert_dir)
        try:
            os.mkdir(cert_dir, 0o755)
        except OSError as e:
            raise BlobError("cannot create %s: %s" % (cert_dir, e)) from e

    path = blob_path(cert_dir, name, key)
    try:
        with open(path, 'w', encoding='utf-8') as f:
            f.write(content)
    except OSError as e:
        raise BlobError("cannot write %s: %s" % (path, e)) from e

    log.info("wrote inline %s to %s", key, path)
    return path
