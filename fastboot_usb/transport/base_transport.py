# Copyright (c) 2020 Jeff Irion and contributors
#
# This file is part of the fastboot-usb package.

"""The interface that :class:`~fastboot_usb.fastboot_device.FastbootDevice` uses to reach a device in fastboot mode.

A fastboot device has one bulk OUT endpoint (``0x01``) that takes commands and upload blocks, and one bulk IN
endpoint (``0x81``) that returns response packets of at most 64 bytes.  A transport only moves bytes over these
two pipes; framing, status headers, and chunking are handled by the caller.

* :class:`BaseTransport`

    * :meth:`BaseTransport.bulk_read`
    * :meth:`BaseTransport.bulk_write`
    * :meth:`BaseTransport.close`
    * :meth:`BaseTransport.connect`
    * :attr:`BaseTransport.serial_number`

"""


from abc import ABC, abstractmethod


class BaseTransport(ABC):
    """A pair of bulk pipes to a single fastboot device.

    """

    @abstractmethod
    def close(self):
        """Release the device.  Closing a transport that is not connected does nothing.

        """

    @abstractmethod
    def connect(self, transport_timeout_s=None):
        """Acquire the device so that :meth:`bulk_read` and :meth:`bulk_write` can be used.

        Parameters
        ----------
        transport_timeout_s : float, None
            The session timeout, for transports that need one to open the device

        """

    @abstractmethod
    def bulk_read(self, numbytes, transport_timeout_s=None):
        """Read one response packet from the IN endpoint.

        Parameters
        ----------
        numbytes : int
            The size of the read request; the caller always asks for a full 64-byte packet
        transport_timeout_s : float, None
            The session timeout in seconds

        Returns
        -------
        bytes
            The packet as sent by the device, which may be shorter than ``numbytes``

        Raises
        ------
        fastboot_usb.exceptions.TransportTimeoutError
            No packet arrived within the timeout

        """

    @abstractmethod
    def bulk_write(self, data, transport_timeout_s=None):
        """Write a command or an upload block to the OUT endpoint.

        Parameters
        ----------
        data : bytes, bytearray, memoryview
            A command, or an upload block of at most 512 KiB
        transport_timeout_s : float, None
            The session timeout in seconds

        Returns
        -------
        int
            The number of bytes the device accepted; a value below ``len(data)`` is reported as a short write by the caller

        Raises
        ------
        fastboot_usb.exceptions.TransportTimeoutError
            The device did not accept the data within the timeout

        """

    @property
    def serial_number(self):
        """The USB serial number of the device, or ``None`` if the transport cannot tell.

        Returns
        -------
        str, None
            The serial number

        """
        return None
