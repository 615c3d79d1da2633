# Copyright (c) 2021 Jeff Irion and contributors
#
# This file is part of the fastboot-usb package.

"""Fastboot communication over USB.

"""


__version__ = '0.1.0'
