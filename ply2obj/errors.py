"""
Exceptions raised while converting PLY files
"""


class PlyError(Exception):
    """Base class for conversion failures"""


class PlyFormatError(PlyError, ValueError):
    """The header or payload does not follow a supported PLY layout"""


class PlyReadError(PlyError, RuntimeError):
    """The stream ended before a record was complete"""
