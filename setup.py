from setuptools import setup

with open('README.rst') as f:
    readme = f.read()

setup(
    name='fastboot_usb',
    version='0.1.0',
    description='A Python implementation of the fastboot protocol over USB.',
    long_description=readme,
    keywords=['fastboot', 'android', 'bootloader'],
    packages=['fastboot_usb', 'fastboot_usb.transport'],
    install_requires=[],
    tests_require=['libusb1>=1.0.16'],
    extras_require={'usb': ['libusb1>=1.0.16'], 'test': ['libusb1>=1.0.16', 'pytest']},
    python_requires='>=3.6',
    classifiers=['Operating System :: OS Independent',
                 'License :: OSI Approved :: Apache Software License',
                 'Programming Language :: Python :: 3'],
    test_suite='tests'
)
