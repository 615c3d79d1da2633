# Copyright (c) 2020 Jeff Irion and contributors
#
# This file is part of the fastboot-usb package.  It incorporates work
# covered by the following license notice:
#
#
#   Copyright 2014 Google Inc. All rights reserved.
#
#   Licensed under the Apache License, Version 2.0 (the "License");
#   you may not use this file except in compliance with the License.
#   You may obtain a copy of the License at
#
#       http://www.apache.org/licenses/LICENSE-2.0
#
#   Unless required by applicable law or agreed to in writing, software
#   distributed under the License is distributed on an "AS IS" BASIS,
#   WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
#   See the License for the specific language governing permissions and
#   limitations under the License.

"""A class for creating a USB connection with a device in fastboot mode and sending and receiving data.

* :func:`fastboot_matcher`
* :class:`UsbTransport`

    * :meth:`UsbTransport._serial_matcher`
    * :meth:`UsbTransport._timeout_ms`
    * :meth:`UsbTransport.bulk_read`
    * :meth:`UsbTransport.bulk_write`
    * :meth:`UsbTransport.close`
    * :meth:`UsbTransport.connect`
    * :meth:`UsbTransport.find_devices`
    * :meth:`UsbTransport.find_first`
    * :meth:`UsbTransport.list_serial_numbers`
    * :attr:`UsbTransport.serial_number`
    * :attr:`UsbTransport.usb_info`

"""


import logging
import platform
import warnings

import usb1

from .base_transport import BaseTransport

from .. import constants
from .. import exceptions


#: Default timeout
DEFAULT_TIMEOUT_S = constants.DEFAULT_TIMEOUT_MS / 1000.

_LOGGER = logging.getLogger(__name__)


def fastboot_matcher(device):
    """Return the setting to use for a device in fastboot mode.

    Parameters
    ----------
    device : usb1.USBDevice
        A device from ``usb1.USBContext.getDeviceList``

    Returns
    -------
    usb1.USBInterfaceSetting, None
        The first setting of the first interface of the first configuration, or ``None`` if ``device``
        is not a fastboot device

    """
    if device.getVendorID() != constants.VENDOR_ID or device.getProductID() != constants.PRODUCT_ID:
        return None

    for setting in device.iterSettings():
        return setting
    return None


class UsbTransport(BaseTransport):
    """USB communication object. Not thread-safe.

    Handles reading and writing over USB with the fastboot endpoints, exceptions,
    and interface claiming.

    Parameters
    ----------
    device : usb1.USBDevice
        libusb_device to connect to.
    setting : usb1.USBInterfaceSetting
        libusb setting whose interface will be claimed.
    usb_info : str, None
        String describing the usb path/serial/device, for debugging.
    default_transport_timeout_s : float, None
        Timeout in seconds for I/O when no timeout is passed.
    context : usb1.USBContext, None
        The context that ``device`` belongs to; it is kept alive as long as this transport.

    Attributes
    ----------
    _context : usb1.USBContext, None
        The context that ``_device`` belongs to
    _default_transport_timeout_s : float
        Timeout in seconds for I/O when no timeout is passed.
    _device : usb1.USBDevice
        libusb_device to connect to.
    _interface_number : int, None
        The number of the claimed interface
    _setting : usb1.USBInterfaceSetting
        libusb setting whose interface will be claimed.
    _transport : usb1.USBDeviceHandle, None
        The open device handle
    _usb_info : str
        String describing the usb path/serial/device, for debugging.

    """
    def __init__(self, device, setting, usb_info=None, default_transport_timeout_s=None, context=None):
        self._setting = setting
        self._device = device
        self._context = context
        self._transport = None
        self._interface_number = None

        self._usb_info = usb_info or ''
        self._default_transport_timeout_s = default_transport_timeout_s if default_transport_timeout_s is not None else DEFAULT_TIMEOUT_S

    def close(self):
        """Release the interface and close the USB handle.

        """
        if self._transport is None:
            return
        try:
            if self._interface_number is not None:
                self._transport.releaseInterface(self._interface_number)
        except usb1.USBError:
            _LOGGER.info('USBError while releasing the interface of %s: ', self.usb_info, exc_info=True)
        finally:
            try:
                self._transport.close()
            except usb1.USBError:
                _LOGGER.info('USBError while closing transport %s: ', self.usb_info, exc_info=True)
            finally:
                self._transport = None
                self._interface_number = None

    def connect(self, transport_timeout_s=None):
        """Open the device and claim its interface.

        Parameters
        ----------
        transport_timeout_s : float, None
            Unused; libusb opens devices without a timeout

        """
        transport = self._device.open()
        iface_number = self._setting.getNumber()
        try:
            try:
                if platform.system() != 'Windows' and transport.kernelDriverActive(iface_number):
                    transport.detachKernelDriver(iface_number)
            except usb1.USBErrorNotFound:  # pylint: disable=no-member
                warnings.warn('Kernel driver not found for interface: {}.'.format(iface_number))
            except usb1.USBErrorNotSupported:  # pylint: disable=no-member
                _LOGGER.debug('Kernel driver queries are not supported for interface %d', iface_number)

            transport.claimInterface(iface_number)
        except usb1.USBError:
            transport.close()
            raise

        self._transport = transport
        self._interface_number = iface_number

    def bulk_read(self, numbytes, transport_timeout_s=None):
        """Receive data from the USB device.

        Parameters
        ----------
        numbytes : int
            The maximum amount of data to be received
        transport_timeout_s : float, None
            Timeout in seconds, or ``None`` to use the default timeout

        Returns
        -------
        bytes
            The received data

        Raises
        ------
        fastboot_usb.exceptions.TransportTimeoutError
            The read timed out
        fastboot_usb.exceptions.UsbReadFailedError
            Could not receive data

        """
        if self._transport is None:
            raise exceptions.UsbReadFailedError('This transport has not been connected or has been closed.', None)

        timeout_ms = self._timeout_ms(transport_timeout_s)
        try:
            # python-libusb1 returns a bytearray
            return bytes(self._transport.bulkRead(constants.READ_ENDPOINT, numbytes, timeout=timeout_ms))
        except usb1.USBErrorTimeout as e:  # pylint: disable=no-member
            raise exceptions.TransportTimeoutError('Timed out receiving data from %s (timeout %sms)' % (self.usb_info, timeout_ms), e)
        except usb1.USBError as e:
            raise exceptions.UsbReadFailedError('Could not receive data from %s (timeout %sms)' % (self.usb_info, timeout_ms), e)

    def bulk_write(self, data, transport_timeout_s=None):
        """Send data to the USB device.

        Parameters
        ----------
        data : bytes, bytearray, memoryview
            The data to be sent
        transport_timeout_s : float, None
            Timeout in seconds, or ``None`` to use the default timeout

        Returns
        -------
        int
            The number of bytes sent

        Raises
        ------
        fastboot_usb.exceptions.TransportTimeoutError
            The write timed out
        fastboot_usb.exceptions.UsbWriteFailedError
            Could not send data

        """
        if self._transport is None:
            raise exceptions.UsbWriteFailedError('This transport has not been connected or has been closed.', None)

        timeout_ms = self._timeout_ms(transport_timeout_s)
        try:
            return self._transport.bulkWrite(constants.WRITE_ENDPOINT, data, timeout=timeout_ms)
        except usb1.USBErrorTimeout as e:  # pylint: disable=no-member
            raise exceptions.TransportTimeoutError('Timed out sending data to %s (timeout %sms)' % (self.usb_info, timeout_ms), e)
        except usb1.USBError as e:
            raise exceptions.UsbWriteFailedError('Could not send data to %s (timeout %sms)' % (self.usb_info, timeout_ms), e)

    def _timeout_ms(self, transport_timeout_s):
        """Convert a timeout in seconds to the milliseconds that libusb expects.

        Parameters
        ----------
        transport_timeout_s : float, None
            Timeout in seconds, or ``None`` to use the default timeout

        Returns
        -------
        int
            The timeout in milliseconds

        """
        return int(round(transport_timeout_s * 1000 if transport_timeout_s is not None else self._default_transport_timeout_s * 1000))

    # ======================================================================= #
    #                                                                         #
    #                               Properties                                #
    #                                                                         #
    # ======================================================================= #
    @property
    def serial_number(self):
        """The serial number of the device.

        Returns
        -------
        str
            The serial number reported by the device

        """
        if self._transport is not None:
            return self._transport.getSerialNumber()
        return self._device.getSerialNumber()

    @property
    def usb_info(self):
        """A description of the device for log and error messages.

        Returns
        -------
        str
            ``self._usb_info``, followed by the serial number when it is known and differs

        """
        try:
            sn = self.serial_number
        except usb1.USBError:
            sn = ''
        if sn and sn != self._usb_info:
            return '%s %s' % (self._usb_info, sn)
        return self._usb_info

    # ======================================================================= #
    #                                                                         #
    #                                 Finders                                 #
    #                                                                         #
    # ======================================================================= #
    @classmethod
    def _serial_matcher(cls, serial):
        """Returns a device matcher for the given serial.

        Parameters
        ----------
        serial : str
            The serial number to match

        Returns
        -------
        function
            A function that returns ``True`` if a :class:`UsbTransport` has the serial number ``serial``

        """
        def matcher(transport):
            try:
                return transport.serial_number == serial
            except usb1.USBError:
                _LOGGER.info('USBError while reading the serial number of %s', transport.usb_info, exc_info=True)
                return False

        return matcher

    @classmethod
    def find_devices(cls, serial=None, default_transport_timeout_s=None, debug_level=None):
        """Find and yield the attached fastboot devices.

        Parameters
        ----------
        serial : str, None
            Only yield the device with this serial number; ``None`` to yield every fastboot device.
        default_transport_timeout_s : float, None
            Default timeout of I/O in seconds.
        debug_level : int, None
            A libusb log level (e.g. ``usb1.LOG_LEVEL_DEBUG``) for the USB context, or ``None`` to keep the libusb default.

        Yields
        ------
        UsbTransport
            A transport for each matching device

        """
        device_matcher = cls._serial_matcher(serial) if serial else None
        usb_info = serial or ''

        ctx = usb1.USBContext()
        if debug_level is not None:
            ctx.setDebug(debug_level)
        for device in ctx.getDeviceList(skip_on_error=True):
            setting = fastboot_matcher(device)
            if setting is None:
                continue

            transport = cls(device, setting, usb_info=usb_info, default_transport_timeout_s=default_transport_timeout_s, context=ctx)
            if device_matcher is None or device_matcher(transport):
                yield transport

    @classmethod
    def find_first(cls, serial=None, default_transport_timeout_s=None, debug_level=None):
        """Find and return the first fastboot device, optionally with the given serial number.

        Parameters
        ----------
        serial : str, None
            The serial number of the device, or ``None`` to use the first device found
        default_transport_timeout_s : float, None
            Default timeout of I/O in seconds.
        debug_level : int, None
            A libusb log level for the USB context; see :meth:`find_devices`

        Returns
        -------
        UsbTransport
            A transport for the device

        Raises
        ------
        fastboot_usb.exceptions.NoDeviceAvailableError
            Raised if no device is available.

        """
        try:
            return next(cls.find_devices(serial, default_transport_timeout_s, debug_level))
        except StopIteration:
            raise exceptions.NoDeviceAvailableError('No fastboot device available ({}).'.format(serial or 'first'))

    @classmethod
    def list_serial_numbers(cls, debug_level=None):
        """Get the serial numbers of the attached fastboot devices.

        Devices whose serial number cannot be read (e.g., because another process holds them) are skipped.

        Parameters
        ----------
        debug_level : int, None
            A libusb log level for the USB context; see :meth:`find_devices`

        Returns
        -------
        list[str]
            The serial numbers

        """
        serial_numbers = []
        for transport in cls.find_devices(debug_level=debug_level):
            try:
                serial_numbers.append(transport.serial_number)
            except usb1.USBError:
                _LOGGER.info('Skipping device %s: could not read its serial number', transport.usb_info, exc_info=True)

        return serial_numbers
