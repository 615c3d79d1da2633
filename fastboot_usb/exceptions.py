# Copyright (c) 2021 Jeff Irion and contributors
#
# This file is part of the fastboot-usb package.

"""Fastboot-related exceptions.

"""


class DataSourceError(Exception):
    """The data source ended before the number of bytes announced to the device could be read.

    """


class DiscoveryTimeoutError(Exception):
    """No fastboot device appeared within the allotted time.

    """


class FastbootConnectionError(Exception):
    """Fastboot command not sent because a connection to the device has not been established.

    """


class InvalidCommandError(Exception):
    """The command could not be encoded or parsed.

    """


class InvalidTransportError(Exception):
    """The provided transport does not implement the necessary methods: ``close``, ``connect``, ``bulk_read``, and ``bulk_write``.

    """


class NoDeviceAvailableError(Exception):
    """No fastboot device is attached.

    """


class TransportWriteError(Exception):
    """The transport wrote a different number of bytes than requested.

    """


class ShortWriteError(TransportWriteError):
    """A data block was not written in full during an upload.

    """


class UnexpectedResponseError(Exception):
    """The device responded with a status that the protocol does not allow at this point.

    """


class TransportTimeoutError(Exception):
    """A bulk read or write did not complete within the session timeout.

    Parameters
    ----------
    msg : str
        The error message
    usb_error : usb1.USBError, None
        An exception from ``libusb1``

    Attributes
    ----------
    usb_error : usb1.USBError, None
        An exception from ``libusb1``

    """
    def __init__(self, msg, usb_error):
        super(TransportTimeoutError, self).__init__(msg, usb_error)
        self.usb_error = usb_error

    def __str__(self):
        return '%s: %s' % self.args


class UsbReadFailedError(Exception):
    """:meth:`fastboot_usb.transport.usb_transport.UsbTransport.bulk_read` failed.

    Parameters
    ----------
    msg : str
        The error message
    usb_error : usb1.USBError, None
        An exception from ``libusb1``

    Attributes
    ----------
    usb_error : usb1.USBError, None
        An exception from ``libusb1``

    """
    def __init__(self, msg, usb_error):
        super(UsbReadFailedError, self).__init__(msg, usb_error)
        self.usb_error = usb_error

    def __str__(self):
        return '%s: %s' % self.args


class UsbWriteFailedError(Exception):
    """:meth:`fastboot_usb.transport.usb_transport.UsbTransport.bulk_write` failed.

    Parameters
    ----------
    msg : str
        The error message
    usb_error : usb1.USBError, None
        An exception from ``libusb1``

    Attributes
    ----------
    usb_error : usb1.USBError, None
        An exception from ``libusb1``

    """
    def __init__(self, msg, usb_error):
        super(UsbWriteFailedError, self).__init__(msg, usb_error)
        self.usb_error = usb_error

    def __str__(self):
        return '%s: %s' % self.args
