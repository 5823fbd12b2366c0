# Copyright 2026 The mtkbootimg authors
#
# SPDX-License-Identifier: Apache-2.0
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""
Vendor partition sub-headers.

MediaTek bootloaders expect the kernel and the ramdisk to carry their own
512 byte descriptor in front of the payload, in addition to the boot image
header.  The descriptor holds a fixed magic, the size of the unwrapped
payload and a tag naming the partition content.
"""

import logging
import os
import struct

from .errors import BootImageError, ImageWriteError, ValidationError

logger = logging.getLogger(__name__)

VENDOR_MAGIC = bytes([0x88, 0x16, 0x88, 0x58])
VENDOR_HEADER_SIZE = 512
TYPE_MAGIC_SIZE = 8
ZERO_SIZE = 24
FF_SIZE = 472
ARTIFACT_SUFFIX = "-mt"
MAX_PAYLOAD_SIZE = 0xffffffff

# Content tags, zero padded to TYPE_MAGIC_SIZE on disk.
VENDOR_TYPES = {
        'KERNEL':   b'KERNEL',
        'ROOTFS':   b'ROOTFS',
        'RECOVERY': b'RECOVERY',
}

VENDOR_NAMES = {v.ljust(TYPE_MAGIC_SIZE, b'\0'): k
                for k, v in VENDOR_TYPES.items()}

# Ramdisk tag selected by the --ot option.
OUTPUT_TYPES = {
        'boot':     'ROOTFS',
        'recovery': 'RECOVERY',
}

_FMT = ('<' +
        # struct vendor_hdr {
        '4s' +    # magic         u8[4]
        'I' +     # payload_size  u32
        '8s' +    # type_magic    u8[8]
        '24s' +   # zero          u8[24]
        '472s'    # ff            u8[472]
        )  # }


class VendorHeader:
    def __init__(self, kind, payload_size):
        if kind not in VENDOR_TYPES:
            raise ValueError("Unknown vendor header type: {}".format(kind))
        if not 0 <= payload_size <= MAX_PAYLOAD_SIZE:
            raise ValidationError(
                "{} payload too large ({} bytes)".format(kind, payload_size))
        self.kind = kind
        self.payload_size = payload_size

    def __repr__(self):
        return "<VendorHeader kind={}, payload_size=0x{:x}>".format(
            self.kind, self.payload_size)

    def __eq__(self, other):
        return (isinstance(other, VendorHeader) and
                (self.kind, self.payload_size) ==
                (other.kind, other.payload_size))

    def pack(self):
        assert struct.calcsize(_FMT) == VENDOR_HEADER_SIZE
        return struct.pack(_FMT,
                           VENDOR_MAGIC,
                           self.payload_size,
                           VENDOR_TYPES[self.kind],
                           bytes(ZERO_SIZE),
                           bytes([0xff] * FF_SIZE))

    @classmethod
    def unpack(cls, buf):
        """Parse a sub-header from the start of buf."""
        if len(buf) < VENDOR_HEADER_SIZE:
            raise BootImageError("Truncated vendor header ({} bytes)"
                                 .format(len(buf)))
        magic, size, type_magic, _, _ = struct.unpack_from(_FMT, buf)
        if magic != VENDOR_MAGIC:
            raise BootImageError("Invalid vendor header magic: {}"
                                 .format(magic.hex()))
        if type_magic not in VENDOR_NAMES:
            raise BootImageError("Unknown vendor header type: {!r}"
                                 .format(type_magic.rstrip(b'\0')))
        return cls(VENDOR_NAMES[type_magic], size)


def artifact_path(path):
    """Path of the wrapped artifact derived from an input path."""
    return os.fspath(path) + ARTIFACT_SUFFIX


def wrap(payload, kind):
    return VendorHeader(kind, len(payload)).pack() + bytes(payload)


def write_artifact(path, payload, kind):
    """Wrap payload and store it next to path.

    Returns the path of the artifact.  A failed write is fatal; whatever
    was written is left on disk.
    """
    out = artifact_path(path)
    wrapped = wrap(payload, kind)
    try:
        with open(out, 'wb') as f:
            f.write(wrapped)
    except OSError as e:
        raise ImageWriteError(out, e)
    logger.info("Wrapped %s payload (0x%x bytes) into %s",
                kind, len(payload), out)
    return out
