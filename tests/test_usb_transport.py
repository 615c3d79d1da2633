"""Tests for the `UsbTransport` class."""

import unittest

from unittest.mock import MagicMock, patch

from fastboot_usb import constants, exceptions

try:
    import usb1
    from fastboot_usb.transport.usb_transport import UsbTransport, fastboot_matcher
except (ImportError, OSError):
    UsbTransport = None


def make_usb_device(vendor_id=constants.VENDOR_ID, product_id=constants.PRODUCT_ID, serial_number='FAKE1234'):
    setting = MagicMock()
    setting.getNumber.return_value = 0

    device = MagicMock()
    device.getVendorID.return_value = vendor_id
    device.getProductID.return_value = product_id
    device.iterSettings.side_effect = lambda: iter([setting])
    if isinstance(serial_number, Exception):
        device.getSerialNumber.side_effect = serial_number
    else:
        device.getSerialNumber.return_value = serial_number
    return device, setting


# pylint: disable=missing-class-docstring, missing-function-docstring
@unittest.skipIf(UsbTransport is None, "UsbTransport could not be imported")
class TestUsbTransport(unittest.TestCase):
    def setUp(self):
        """Create a ``UsbTransport`` for a mocked device and connect it.

        """
        self.device, self.setting = make_usb_device()
        self.handle = self.device.open.return_value
        self.handle.getSerialNumber.return_value = 'FAKE1234'
        self.handle.kernelDriverActive.return_value = False

        self.transport = UsbTransport(self.device, self.setting)
        self.transport.connect()

    def tearDown(self):
        """Close the USB connection."""
        self.transport.close()

    def test_fastboot_matcher(self):
        self.assertIs(fastboot_matcher(self.device), self.setting)

        device, _ = make_usb_device(vendor_id=0x1234)
        self.assertIsNone(fastboot_matcher(device))

        device, _ = make_usb_device(product_id=0x4EE7)
        self.assertIsNone(fastboot_matcher(device))

        device, _ = make_usb_device()
        device.iterSettings.side_effect = lambda: iter([])
        self.assertIsNone(fastboot_matcher(device))

    def test_connect(self):
        self.handle.claimInterface.assert_called_once_with(0)
        self.handle.detachKernelDriver.assert_not_called()

    def test_connect_detach_kernel_driver(self):
        self.transport.close()
        self.handle.kernelDriverActive.return_value = True

        with patch('platform.system', return_value='Linux'):
            self.transport.connect()

        self.handle.detachKernelDriver.assert_called_once_with(0)

    def test_close(self):
        self.transport.close()
        self.handle.releaseInterface.assert_called_once_with(0)
        self.handle.close.assert_called_once_with()

        # Closing again does nothing
        self.transport.close()
        self.handle.close.assert_called_once_with()

    def test_close_usb_error(self):
        self.handle.releaseInterface.side_effect = usb1.USBErrorNoDevice()
        self.transport.close()
        self.handle.close.assert_called_once_with()

        with self.assertRaises(exceptions.UsbWriteFailedError):
            self.transport.bulk_write(b'reboot')

    def test_close_handle_usb_error(self):
        self.handle.close.side_effect = usb1.USBErrorNoDevice()
        self.transport.close()
        self.handle.releaseInterface.assert_called_once_with(0)

        with self.assertRaises(exceptions.UsbReadFailedError):
            self.transport.bulk_read(constants.PACKET_SIZE)

    def test_connect_claim_fails(self):
        self.transport.close()
        self.handle.reset_mock()
        self.handle.claimInterface.side_effect = usb1.USBErrorBusy()

        with self.assertRaises(usb1.USBErrorBusy):
            self.transport.connect()

        self.handle.close.assert_called_once_with()
        with self.assertRaises(exceptions.UsbReadFailedError):
            self.transport.bulk_read(constants.PACKET_SIZE)

        # Nothing is left to release
        self.transport.close()
        self.handle.releaseInterface.assert_not_called()
        self.handle.close.assert_called_once_with()

    def test_bulk_write(self):
        self.handle.bulkWrite.return_value = 6
        self.assertEqual(self.transport.bulk_write(b'reboot'), 6)
        self.handle.bulkWrite.assert_called_once_with(constants.WRITE_ENDPOINT, b'reboot', timeout=constants.DEFAULT_TIMEOUT_MS)

    def test_bulk_write_timeout(self):
        self.handle.bulkWrite.side_effect = usb1.USBErrorTimeout()
        with self.assertRaises(exceptions.TransportTimeoutError) as cm:
            self.transport.bulk_write(b'reboot', 0.25)

        self.assertIsInstance(cm.exception.usb_error, usb1.USBErrorTimeout)
        self.assertIn('250ms', str(cm.exception))

    def test_bulk_write_failed(self):
        self.handle.bulkWrite.side_effect = usb1.USBErrorIO()
        with self.assertRaises(exceptions.UsbWriteFailedError):
            self.transport.bulk_write(b'reboot')

    def test_bulk_read(self):
        self.handle.bulkRead.return_value = bytearray(b'OKAY')
        data = self.transport.bulk_read(constants.PACKET_SIZE, 1.5)
        self.assertEqual(data, b'OKAY')
        self.assertIsInstance(data, bytes)
        self.handle.bulkRead.assert_called_once_with(constants.READ_ENDPOINT, constants.PACKET_SIZE, timeout=1500)

    def test_bulk_read_timeout(self):
        self.handle.bulkRead.side_effect = usb1.USBErrorTimeout()
        with self.assertRaises(exceptions.TransportTimeoutError):
            self.transport.bulk_read(constants.PACKET_SIZE)

    def test_bulk_read_failed(self):
        self.handle.bulkRead.side_effect = usb1.USBErrorPipe()
        with self.assertRaises(exceptions.UsbReadFailedError):
            self.transport.bulk_read(constants.PACKET_SIZE)

    def test_bulk_read_closed(self):
        self.transport.close()
        with self.assertRaises(exceptions.UsbReadFailedError):
            self.transport.bulk_read(constants.PACKET_SIZE)

    def test_default_timeout(self):
        transport = UsbTransport(self.device, self.setting, default_transport_timeout_s=10)
        transport.connect()
        self.handle.bulkRead.return_value = bytearray(b'OKAY')
        transport.bulk_read(constants.PACKET_SIZE)
        self.handle.bulkRead.assert_called_once_with(constants.READ_ENDPOINT, constants.PACKET_SIZE, timeout=10000)

    def test_serial_number(self):
        self.assertEqual(self.transport.serial_number, 'FAKE1234')

        self.transport.close()
        self.assertEqual(self.transport.serial_number, 'FAKE1234')
        self.device.getSerialNumber.assert_called_once_with()

    def test_usb_info(self):
        self.assertEqual(self.transport.usb_info, ' FAKE1234')

        self.handle.getSerialNumber.side_effect = usb1.USBErrorAccess()
        self.assertEqual(self.transport.usb_info, '')


@unittest.skipIf(UsbTransport is None, "UsbTransport could not be imported")
class TestUsbTransportFinders(unittest.TestCase):
    def setUp(self):
        self.other, _ = make_usb_device(vendor_id=0x1234, serial_number='OTHER')
        self.first, _ = make_usb_device(serial_number='FIRST')
        self.second, _ = make_usb_device(serial_number='SECOND')
        self.denied, _ = make_usb_device(serial_number=usb1.USBErrorAccess())

    def patch_context(self, *devices):
        context = MagicMock()
        context.getDeviceList.return_value = list(devices)
        return patch('usb1.USBContext', return_value=context)

    def test_find_devices(self):
        with self.patch_context(self.other, self.first, self.second):
            transports = list(UsbTransport.find_devices())

        self.assertEqual([transport._device for transport in transports], [self.first, self.second])

    def test_find_first(self):
        with self.patch_context(self.other, self.first, self.second):
            self.assertIs(UsbTransport.find_first()._device, self.first)

    def test_find_first_serial(self):
        with self.patch_context(self.denied, self.first, self.second):
            transport = UsbTransport.find_first('SECOND', 1.)

        self.assertIs(transport._device, self.second)
        self.assertEqual(transport._default_transport_timeout_s, 1.)

    def test_find_first_no_device(self):
        with self.patch_context(self.other):
            with self.assertRaises(exceptions.NoDeviceAvailableError):
                UsbTransport.find_first()

        with self.patch_context(self.first):
            with self.assertRaises(exceptions.NoDeviceAvailableError):
                UsbTransport.find_first('SECOND')

    def test_list_serial_numbers(self):
        with self.patch_context(self.other, self.first, self.denied, self.second):
            self.assertEqual(UsbTransport.list_serial_numbers(), ['FIRST', 'SECOND'])

        with self.patch_context():
            self.assertEqual(UsbTransport.list_serial_numbers(), [])

    def test_debug_level(self):
        with self.patch_context(self.first) as context_cls:
            UsbTransport.find_first(debug_level=usb1.LOG_LEVEL_DEBUG)
            context_cls.return_value.setDebug.assert_called_once_with(usb1.LOG_LEVEL_DEBUG)

        with self.patch_context(self.first) as context_cls:
            self.assertEqual(UsbTransport.list_serial_numbers(usb1.LOG_LEVEL_WARNING), ['FIRST'])
            context_cls.return_value.setDebug.assert_called_once_with(usb1.LOG_LEVEL_WARNING)

        with self.patch_context(self.first) as context_cls:
            UsbTransport.find_first()
            context_cls.return_value.setDebug.assert_not_called()
