# Copyright (c) 2021 Jeff Irion and contributors
#
# This file is part of the fastboot-usb package.

"""Functions and classes for encoding fastboot commands and decoding fastboot responses.

.. rubric:: Contents

* :class:`Status`
* :class:`FastbootResponse`
* :func:`download_command`
* :func:`encode_command`
* :func:`get_status`
* :func:`parse_download_command`
* :func:`payload_text`

"""


from collections import namedtuple
from enum import Enum
import re

from . import constants
from . import exceptions


_DOWNLOAD_RE = re.compile(br'download:([0-9A-F]{8})')


class Status(Enum):
    """The status encoded in the header of a response packet.

    """
    FAIL = constants.FAIL
    OKAY = constants.OKAY
    DATA = constants.DATA
    INFO = constants.INFO
    UNKNOWN = None


_HEADER_TO_STATUS = {status.value: status for status in Status if status.value is not None}


#: The result of a command exchange.
#:
#: * ``status`` -- the :class:`Status` of the last packet that was received
#: * ``payload`` -- the text of every packet after its header, one packet per line, without ``'\r'`` and ``'\0'``
#: * ``raw_data`` -- the raw bytes of the last packet that was received
FastbootResponse = namedtuple('FastbootResponse', ['status', 'payload', 'raw_data'])


def get_status(data):
    """Get the status from the header of a response packet.

    Parameters
    ----------
    data : bytes, bytearray
        A response packet

    Returns
    -------
    Status
        The status that corresponds to the first :const:`~fastboot_usb.constants.HEADER_SIZE` bytes of ``data``, or
        ``Status.UNKNOWN`` if the header is not recognized or ``data`` is too short to contain one

    """
    if len(data) < constants.HEADER_SIZE:
        return Status.UNKNOWN

    return _HEADER_TO_STATUS.get(bytes(data[:constants.HEADER_SIZE]), Status.UNKNOWN)


def payload_text(data):
    """Decode the part of a response packet that follows the header.

    Parameters
    ----------
    data : bytes, bytearray
        A response packet

    Returns
    -------
    str
        The decoded text (empty if ``data`` is no longer than the header)

    """
    return bytes(data[constants.HEADER_SIZE:]).decode('ascii', 'replace')


def encode_command(command):
    """Convert a command to the bytes that are sent to the device.

    Parameters
    ----------
    command : str, bytes, bytearray
        The command

    Returns
    -------
    bytes
        The ASCII-encoded command

    Raises
    ------
    fastboot_usb.exceptions.InvalidCommandError
        ``command`` contains non-ASCII characters or is not a string

    """
    if isinstance(command, (bytes, bytearray)):
        return bytes(command)

    if not isinstance(command, str):
        raise exceptions.InvalidCommandError("Commands must be `str` or `bytes`, not `{}`".format(type(command).__name__))

    try:
        return command.encode('ascii')
    except UnicodeEncodeError as e:
        raise exceptions.InvalidCommandError("Command '{}' is not ASCII: {}".format(command, e))


def download_command(size):
    """Build the command that asks the device to receive ``size`` bytes.

    Parameters
    ----------
    size : int
        The number of bytes that will be uploaded

    Returns
    -------
    bytes
        ``b'download:'`` followed by ``size`` as 8 uppercase, zero-padded hex digits

    Raises
    ------
    fastboot_usb.exceptions.InvalidCommandError
        ``size`` does not fit in 8 hex digits

    """
    if size < 0 or size >= 16 ** constants.DOWNLOAD_SIZE_DIGITS:
        raise exceptions.InvalidCommandError("Download size {} cannot be encoded in {} hex digits".format(size, constants.DOWNLOAD_SIZE_DIGITS))

    return constants.DOWNLOAD + b'%08X' % size


def parse_download_command(command):
    """Get the size from a ``download`` command.

    Parameters
    ----------
    command : str, bytes, bytearray
        A command produced by :func:`download_command`

    Returns
    -------
    int
        The number of bytes announced by ``command``

    Raises
    ------
    fastboot_usb.exceptions.InvalidCommandError
        ``command`` is not a well-formed ``download`` command

    """
    match = _DOWNLOAD_RE.fullmatch(encode_command(command))
    if not match:
        raise exceptions.InvalidCommandError("Not a download command: {!r}".format(command))

    return int(match.group(1), 16)
