
from .settings import VpnSettings, Route, Diagnostic, SecretFlags
from .importer import Importer, ImportResult, do_import, import_file
from .exporter import Exporter, do_export
from .lexer import parse_line, quote_arg
from .common import (ErrorCode, ConversionError, FileNotReadable, FileNotOpenVPN,
                     ArgumentsSyntaxError, ExportError)
