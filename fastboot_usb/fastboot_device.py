# Copyright (c) 2021 Jeff Irion and contributors
#
# This file is part of the fastboot-usb package.

"""Implement the :class:`FastbootDevice` class, which can connect to a device in fastboot mode, send commands, and upload data.

.. rubric:: Contents

* :func:`_open_stream`
* :func:`discover`

* :class:`FastbootDevice`

    * :meth:`FastbootDevice._connect`
    * :meth:`FastbootDevice._execute`
    * :meth:`FastbootDevice._read_packet`
    * :meth:`FastbootDevice._transfer_block`
    * :meth:`FastbootDevice._upload`
    * :attr:`FastbootDevice.available`
    * :meth:`FastbootDevice.boot`
    * :meth:`FastbootDevice.close`
    * :meth:`FastbootDevice.connect`
    * :meth:`FastbootDevice.continue_`
    * :meth:`FastbootDevice.disconnect`
    * :meth:`FastbootDevice.erase`
    * :meth:`FastbootDevice.execute`
    * :meth:`FastbootDevice.flash`
    * :meth:`FastbootDevice.get_serial_number`
    * :meth:`FastbootDevice.getvar`
    * :meth:`FastbootDevice.reboot`
    * :meth:`FastbootDevice.reboot_bootloader`
    * :attr:`FastbootDevice.serial_number`
    * :meth:`FastbootDevice.upload_data`

* :class:`FastbootDeviceUsb`

    * :meth:`FastbootDeviceUsb.connect`
    * :meth:`FastbootDeviceUsb.wait`

"""


from contextlib import contextmanager
from io import BytesIO
import logging
import os
from threading import Lock
import time

from . import constants
from . import exceptions
from .fastboot_message import FastbootResponse, Status, download_command, encode_command, get_status, payload_text
from .transport.base_transport import BaseTransport

try:
    from .transport.usb_transport import UsbTransport
except (ImportError, OSError):
    UsbTransport = None


_LOGGER = logging.getLogger(__name__)


@contextmanager
def _open_stream(source):
    """Open ``source`` for reading if it is a path, wrap it in a stream if it is in-memory data, or yield it unchanged.

    Parameters
    ----------
    source : str, os.PathLike, bytes, bytearray, file-like
        A path to a file, the data itself, or a seekable binary stream.  ``bytes`` are always data, never a path.

    Yields
    ------
    file-like
        A seekable binary stream; it is closed on exit only if it was opened here

    """
    if isinstance(source, (str, os.PathLike)):
        with open(source, 'rb') as stream:
            yield stream
    elif isinstance(source, (bytes, bytearray, memoryview)):
        with BytesIO(source) as stream:
            yield stream
    else:
        yield source


def discover(debug_level=None):
    """Get the serial numbers of the fastboot devices that are attached via USB.

    Parameters
    ----------
    debug_level : int, None
        A libusb log level (e.g. ``usb1.LOG_LEVEL_DEBUG``), or ``None`` to keep the libusb default

    Returns
    -------
    list[str]
        The serial numbers

    Raises
    ------
    fastboot_usb.exceptions.InvalidTransportError
        Raised if package was not installed with the "usb" extras option (``pip install fastboot-usb[usb]``)

    """
    if UsbTransport is None:
        raise exceptions.InvalidTransportError("To enable USB support you must install this package via `pip install fastboot-usb[usb]`")

    return UsbTransport.list_serial_numbers(debug_level)


class FastbootDevice(object):
    """A class with methods for connecting to a device in fastboot mode and sending it commands and data.

    Only one command or upload is in flight at a time; concurrent calls on the same instance are serialized.

    Parameters
    ----------
    transport : BaseTransport, None
        A user-provided transport for communicating with the device; must be an instance of a subclass of
        :class:`~fastboot_usb.transport.base_transport.BaseTransport`.  ``None`` is only allowed for subclasses
        that find their transport in :meth:`connect`.
    default_timeout_ms : int
        The initial value of :attr:`timeout_ms`

    Raises
    ------
    fastboot_usb.exceptions.InvalidTransportError
        The passed ``transport`` is not an instance of a subclass of :class:`~fastboot_usb.transport.base_transport.BaseTransport`

    Attributes
    ----------
    timeout_ms : int
        The timeout in milliseconds for every bulk read and write; it is read each time the transport is used, so
        a change takes effect with the next read or write
    _available : bool
        Whether a connection to the device has been established
    _lock : Lock
        Held for the duration of a command exchange, an upload, a connect, or a close
    _transport : BaseTransport, None
        The transport that is used to communicate with the device

    """

    def __init__(self, transport, default_timeout_ms=constants.DEFAULT_TIMEOUT_MS):
        if transport is not None and not isinstance(transport, BaseTransport):
            raise exceptions.InvalidTransportError("`transport` must be an instance of a subclass of `BaseTransport`")

        self._transport = transport
        self._available = False
        self._lock = Lock()
        self.timeout_ms = default_timeout_ms

    # ======================================================================= #
    #                                                                         #
    #                       Properties & simple methods                       #
    #                                                                         #
    # ======================================================================= #
    @property
    def available(self):
        """Whether or not a connection to the device has been established.

        Returns
        -------
        bool
            ``self._available``

        """
        return self._available

    @property
    def serial_number(self):
        """The serial number of the device.

        Returns
        -------
        str, None
            The serial number reported by the transport

        """
        if self._transport is None:
            raise exceptions.FastbootConnectionError("The serial number is not known because a transport has not been found.  (Did you call `FastbootDevice.connect()`?)")

        return self._transport.serial_number

    def get_serial_number(self):
        """Get the serial number of the device.

        Returns
        -------
        str, None
            :attr:`serial_number`

        """
        return self.serial_number

    def _transport_timeout_s(self):
        """Convert :attr:`timeout_ms` to the seconds that the transport expects.

        Returns
        -------
        float
            The current timeout in seconds

        """
        return self.timeout_ms / 1000.

    def _check_available(self):
        """Raise an exception if a connection to the device has not been established.

        Raises
        ------
        fastboot_usb.exceptions.FastbootConnectionError
            :meth:`connect` has not been called

        """
        if not self.available:
            raise exceptions.FastbootConnectionError("Fastboot command not sent because a connection to the device has not been established.  (Did you call `FastbootDevice.connect()`?)")

    # ======================================================================= #
    #                                                                         #
    #                             Close & Connect                             #
    #                                                                         #
    # ======================================================================= #
    def close(self):
        """Close the connection via the provided transport's ``close()`` method.

        Waits for a command or upload that is in progress to finish.

        """
        with self._lock:
            self._available = False
            if self._transport is not None:
                self._transport.close()

    def disconnect(self):
        """Close the connection; see :meth:`close`.

        """
        self.close()

    def connect(self):
        """Establish a connection to the device.

        Any previous connection is closed first.

        Returns
        -------
        bool
            Whether the connection was established (:attr:`FastbootDevice.available`)

        """
        if self._transport is None:
            raise exceptions.FastbootConnectionError("No transport is available for the device.")

        with self._lock:
            return self._connect()

    # ======================================================================= #
    #                                                                         #
    #                                 Commands                                #
    #                                                                         #
    # ======================================================================= #
    def execute(self, command):
        """Send a command to the device and read its response.

        Packets are read until one of them has a status other than ``INFO``.

        Parameters
        ----------
        command : str, bytes, bytearray
            The command; strings are sent as ASCII

        Returns
        -------
        FastbootResponse
            The status and raw bytes of the last packet and the text of all packets

        Raises
        ------
        fastboot_usb.exceptions.FastbootConnectionError
            :meth:`connect` has not been called
        fastboot_usb.exceptions.TransportWriteError
            The command was not written in full
        fastboot_usb.exceptions.TransportTimeoutError
            A read or write timed out

        """
        command = encode_command(command)
        with self._lock:
            self._check_available()
            return self._execute(command)

    def getvar(self, name):
        """Read a bootloader variable (``getvar:<name>``).

        Parameters
        ----------
        name : str
            The name of the variable, e.g. ``'product'`` or ``'all'``

        Returns
        -------
        FastbootResponse
            The response; the value is in its ``payload``

        """
        return self.execute('getvar:' + name)

    def flash(self, partition):
        """Write the uploaded data to a partition (``flash:<partition>``).

        Parameters
        ----------
        partition : str
            The name of the partition

        Returns
        -------
        FastbootResponse
            The response

        """
        return self.execute('flash:' + partition)

    def erase(self, partition):
        """Erase a partition (``erase:<partition>``).

        Parameters
        ----------
        partition : str
            The name of the partition

        Returns
        -------
        FastbootResponse
            The response

        """
        return self.execute('erase:' + partition)

    def boot(self):
        """Boot the uploaded image."""
        return self.execute('boot')

    def continue_(self):
        """Continue the regular boot process."""
        return self.execute('continue')

    def reboot(self):
        """Reboot the device."""
        return self.execute('reboot')

    def reboot_bootloader(self):
        """Reboot the device into the bootloader."""
        return self.execute('reboot-bootloader')

    # ======================================================================= #
    #                                                                         #
    #                                  Upload                                 #
    #                                                                         #
    # ======================================================================= #
    def upload_data(self, source, progress_callback=None):
        """Upload data to the device's staging buffer.

        1. Send ``download:<size>`` and expect a ``DATA`` response
        2. Send the data in blocks of :const:`~fastboot_usb.constants.BLOCK_SIZE` bytes; the last block holds the remainder
        3. Read one packet and expect an ``OKAY`` response

        Parameters
        ----------
        source : str, os.PathLike, bytes, bytearray, file-like
            A path to a file, the data itself, or a seekable binary stream; everything from the stream's current position to its end is uploaded
        progress_callback : function, None
            Callback method that accepts ``bytes_written`` and ``total_bytes``

        Raises
        ------
        fastboot_usb.exceptions.FastbootConnectionError
            :meth:`connect` has not been called
        fastboot_usb.exceptions.UnexpectedResponseError
            The device did not respond with ``DATA`` to the download command, or did not respond with ``OKAY`` after the data
        fastboot_usb.exceptions.ShortWriteError
            A block was not written in full
        fastboot_usb.exceptions.DataSourceError
            ``source`` ended early
        fastboot_usb.exceptions.TransportTimeoutError
            A read or write timed out

        """
        with self._lock:
            self._check_available()

            with _open_stream(source) as stream:
                start = stream.tell()
                size = stream.seek(0, os.SEEK_END) - start
                stream.seek(start)

                self._upload(stream, size, progress_callback)

    # ======================================================================= #
    #                                                                         #
    #                              Hidden Methods                             #
    #                                                                         #
    # ======================================================================= #
    def _connect(self):
        """Close and reopen ``self._transport``.

        The caller must hold ``self._lock``.

        Returns
        -------
        bool
            Whether the connection was established (:attr:`FastbootDevice.available`)

        """
        self._available = False
        self._transport.close()
        self._transport.connect(self._transport_timeout_s())

        self._available = True
        return self._available

    def _execute(self, command):
        """Send a command and read packets until one does not have an ``INFO`` status.

        The caller must hold ``self._lock``.

        Parameters
        ----------
        command : bytes
            The command that will be sent

        Returns
        -------
        FastbootResponse
            The response to the command

        Raises
        ------
        fastboot_usb.exceptions.TransportWriteError
            The command was not written in full

        """
        _LOGGER.debug("bulk_write(%d): %r", len(command), command)
        written = self._transport.bulk_write(command, self._transport_timeout_s())
        if written != len(command):
            raise exceptions.TransportWriteError("Failed to write command {!r}: transferred {} of {} bytes".format(command, written, len(command)))

        lines = []
        while True:
            packet = self._read_packet()
            status = get_status(packet)
            lines.append(payload_text(packet))

            if status != Status.INFO:
                break

        payload = ''.join(line + '\n' for line in lines).replace('\r', '').replace('\0', '')
        return FastbootResponse(status, payload, packet)

    def _read_packet(self):
        """Read one response packet from the device.

        Returns
        -------
        bytes
            Up to :const:`~fastboot_usb.constants.PACKET_SIZE` bytes

        """
        packet = self._transport.bulk_read(constants.PACKET_SIZE, self._transport_timeout_s())
        _LOGGER.debug("bulk_read(%d): %r", len(packet), packet)
        return bytes(packet)

    def _upload(self, stream, size, progress_callback):
        """Announce ``size`` bytes, send them from ``stream``, and check the final response.

        The caller must hold ``self._lock``.

        Parameters
        ----------
        stream : file-like
            A binary stream positioned at the first byte to upload
        size : int
            The number of bytes to upload
        progress_callback : function, None
            Callback method that accepts ``bytes_written`` and ``total_bytes``

        Raises
        ------
        fastboot_usb.exceptions.UnexpectedResponseError
            The device did not respond with ``DATA`` or ``OKAY`` where required

        """
        status = self._execute(download_command(size)).status
        if status != Status.DATA:
            raise exceptions.UnexpectedResponseError("Invalid response from device: {} (data size: {})".format(status.name, size))

        remaining = size
        buffer = bytearray(constants.BLOCK_SIZE)
        while remaining >= constants.BLOCK_SIZE:
            self._transfer_block(stream, buffer)
            remaining -= constants.BLOCK_SIZE
            if progress_callback:
                progress_callback(size - remaining, size)

        if remaining > 0:
            # The device checks the total number of bytes, so the last block must not be padded
            buffer = bytearray(remaining)
            self._transfer_block(stream, buffer)
            if progress_callback:
                progress_callback(size, size)

        packet = self._read_packet()
        if len(packet) < constants.HEADER_SIZE:
            raise exceptions.UnexpectedResponseError("Invalid response from device: {!r}".format(packet))

        if get_status(packet) != Status.OKAY:
            raise exceptions.UnexpectedResponseError("Invalid status: {}".format(packet.decode('ascii', 'replace')))

    def _transfer_block(self, stream, buffer):
        """Fill ``buffer`` from ``stream`` and send it to the device.

        Parameters
        ----------
        stream : file-like
            The binary stream that is being uploaded
        buffer : bytearray
            The buffer to fill and send; its length is the size of the block

        Raises
        ------
        fastboot_usb.exceptions.DataSourceError
            ``stream`` ended before ``buffer`` was filled
        fastboot_usb.exceptions.ShortWriteError
            The block was not written in full

        """
        view = memoryview(buffer)
        filled = 0
        while filled < len(buffer):
            num = stream.readinto(view[filled:])
            if not num:
                raise exceptions.DataSourceError("The data source ended after {} of {} bytes of the current block".format(filled, len(buffer)))
            filled += num

        _LOGGER.debug("bulk_write(%d): <data block>", len(buffer))
        written = self._transport.bulk_write(buffer, self._transport_timeout_s())
        if written != len(buffer):
            raise exceptions.ShortWriteError("Failed to transfer block (sent {} of {} bytes)".format(written, len(buffer)))


class FastbootDeviceUsb(FastbootDevice):
    """A class with methods for connecting to a device in fastboot mode via USB.

    The device is looked up each time :meth:`connect` is called.

    Parameters
    ----------
    serial : str, None
        The USB device serial ID, or ``None`` to use the first fastboot device
    default_timeout_ms : int
        The initial value of :attr:`~FastbootDevice.timeout_ms`
    debug_level : int, None
        A libusb log level (e.g. ``usb1.LOG_LEVEL_DEBUG``) for device lookups, or ``None`` to keep the libusb default

    Raises
    ------
    fastboot_usb.exceptions.InvalidTransportError
        Raised if package was not installed with the "usb" extras option (``pip install fastboot-usb[usb]``)

    Attributes
    ----------
    _debug_level : int, None
        The libusb log level
    _serial : str, None
        The USB device serial ID

    """

    def __init__(self, serial=None, default_timeout_ms=constants.DEFAULT_TIMEOUT_MS, debug_level=None):
        if UsbTransport is None:
            raise exceptions.InvalidTransportError("To enable USB support you must install this package via `pip install fastboot-usb[usb]`")

        super(FastbootDeviceUsb, self).__init__(None, default_timeout_ms)
        self._serial = serial
        self._debug_level = debug_level

    def wait(self, timeout_s=constants.DEFAULT_WAIT_TIMEOUT_S, interval_s=constants.DEFAULT_WAIT_INTERVAL_S):
        """Wait until a matching fastboot device is attached.

        Parameters
        ----------
        timeout_s : float
            The total time in seconds to wait
        interval_s : float
            The time in seconds between checks

        Raises
        ------
        fastboot_usb.exceptions.DiscoveryTimeoutError
            No device appeared within ``timeout_s`` seconds

        """
        start = time.time()

        while True:
            if next(UsbTransport.find_devices(self._serial, debug_level=self._debug_level), None) is not None:
                return

            if time.time() - start >= timeout_s:
                raise exceptions.DiscoveryTimeoutError("No fastboot device appeared within {} seconds".format(timeout_s))

            time.sleep(interval_s)

    def connect(self):
        """Find the device and establish a connection to it.

        Returns
        -------
        bool
            Whether the connection was established (:attr:`FastbootDevice.available`)

        Raises
        ------
        fastboot_usb.exceptions.NoDeviceAvailableError
            No matching device is attached

        """
        with self._lock:
            self._available = False
            if self._transport is not None:
                self._transport.close()

            self._transport = UsbTransport.find_first(self._serial, self._transport_timeout_s(), self._debug_level)
            return self._connect()
