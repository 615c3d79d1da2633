# Copyright (c) 2021 Jeff Irion and contributors
#
# This file is part of the fastboot-usb package.

"""Constants used throughout the code.

"""


#: USB vendor ID of a device in fastboot mode
VENDOR_ID = 0x18D1

#: USB product ID of a device in fastboot mode
PRODUCT_ID = 0xD00D

#: Bulk OUT endpoint used for commands and data
WRITE_ENDPOINT = 0x01

#: Bulk IN endpoint used for responses
READ_ENDPOINT = 0x81

#: Every response packet starts with a 4 byte ASCII header.
HEADER_SIZE = 4

#: Responses are read in fixed-size packets.
PACKET_SIZE = 64

#: Size of the blocks in which :meth:`fastboot_usb.fastboot_device.FastbootDevice.upload_data` sends data
BLOCK_SIZE = 512 * 1024

FAIL = b'FAIL'
OKAY = b'OKAY'
DATA = b'DATA'
INFO = b'INFO'

#: The command that allocates a staging buffer on the device; followed by 8 uppercase hex digits
DOWNLOAD = b'download:'

#: Number of hex digits that encode the size in a ``download`` command
DOWNLOAD_SIZE_DIGITS = 8

#: Default timeout in milliseconds for every bulk read and write
DEFAULT_TIMEOUT_MS = 3000

#: Default total time in seconds for :meth:`fastboot_usb.fastboot_device.FastbootDeviceUsb.wait`
DEFAULT_WAIT_TIMEOUT_S = 25.

#: Default polling interval in seconds for :meth:`fastboot_usb.fastboot_device.FastbootDeviceUsb.wait`
DEFAULT_WAIT_INTERVAL_S = 0.5
