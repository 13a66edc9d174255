class ErrorCode:
    FILE_NOT_READABLE = 'file-not-readable'
    FILE_NOT_OPENVPN = 'file-not-openvpn'


class ConversionError(Exception):
    code = ErrorCode.FILE_NOT_OPENVPN


class FileNotReadable(ConversionError):
    """ Input that cannot be a configuration file at all. """
    code = ErrorCode.FILE_NOT_READABLE


class FileNotOpenVPN(ConversionError):
    """ Readable, but not an OpenVPN client configuration
    (no client/secret marker, no remote, missing gateway on export...)
    """
    pass


class ArgumentsSyntaxError(ConversionError, ValueError):
    """ A line that cannot be split into arguments. """

    def __init__(self, message, position, line_number=None):
        self.message = message
        self.position = position
        self.line_number = line_number
        super().__init__(str(self))

    def with_line(self, line_number):
        return ArgumentsSyntaxError(self.message, self.position, line_number)

    def __str__(self):
        if self.line_number is None:
            return self.message
        return "line %d: %s" % (self.line_number, self.message)


class ExportError(ConversionError):
    pass
