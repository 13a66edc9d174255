"""
OpenVPN config line splitting and quoting
"""
from .common import ArgumentsSyntaxError


WHITESPACE = ' \t\n\r\v\f'
COMMENT_CHARS = '#;'


def is_option(line, tag):
    """ True if line starts with tag, followed by whitespace or nothing. """
    tag = tag.rstrip(WHITESPACE)
    if not tag or not line.startswith(tag):
        return False
    return len(line) == len(tag) or line[len(tag)] in WHITESPACE


def strip_comment(line):
    """ Cut the line at the first '#' or ';' that isn't quoted or escaped. """
    quote = None
    i = 0
    while i < len(line):
        c = line[i]
        if quote:
            if c == '\\' and quote == '"':
                i += 1
            elif c == quote:
                quote = None
        elif c == '\\':
            i += 1
        elif c in '"\'':
            quote = c
        elif c in COMMENT_CHARS:
            return line[:i]
        i += 1
    return line


def parse_line(line):
    """ Split one line into its arguments, following openvpn's parse_line().

    - arguments are separated by whitespace
    - "..." quotes, with \\ escaping the next character
    - '...' quotes, nothing escaped inside
    - outside of quotes, \\ escapes the next character
    - a line starting with ';' or '#' is a comment

    Raises ArgumentsSyntaxError on an unterminated quote or a trailing
    backslash; position is the offset of the argument's first character.
    """
    if line.endswith('\r'):
        line = line[:-1]

    n = len(line)
    i = 0
    while i < n and line[i] in WHITESPACE:
        i += 1

    if i == n or line[i] in COMMENT_CHARS:
        return []

    args = []
    while i < n:
        word_start = i
        word = []

        while i < n:
            c = line[i]
            i += 1
            if c in '"\'':
                quote = c
                while i < n and line[i] != quote:
                    if quote == '"' and line[i] == '\\':
                        i += 1
                        if i >= n:
                            break
                    word.append(line[i])
                    i += 1
                if i >= n:
                    raise ArgumentsSyntaxError(
                        "unterminated %s at position %d" %
                        ("double quote" if quote == '"' else "single quote", word_start),
                        word_start)
                # closing quote
                i += 1
            elif c == '\\':
                if i >= n:
                    raise ArgumentsSyntaxError(
                        "trailing escaping backslash at position %d" % word_start,
                        word_start)
                word.append(line[i])
                i += 1
            elif c in WHITESPACE:
                break
            else:
                word.append(c)

        args.append(''.join(word))
        while i < n and line[i] in WHITESPACE:
            i += 1

    return args


def quote_arg(value, always=False):
    """ Escape a single value so that parse_line() gives it back unchanged. """
    value = str(value)
    escaped = value.replace('\\', '\\\\')
    if always or value == '' or any(c in WHITESPACE or c in '"\'#;' for c in value):
        return '"%s"' % escaped.replace('"', '\\"')
    return escaped


def make_line(*values):
    return ' '.join(quote_arg(v) for v in values)
