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
Boot image assembly.

Layout of the generated image, every item starting on a page boundary:

    +-----------------+
    | boot header     | 1 page
    +-----------------+
    | kernel          | n pages   (vendor header + raw kernel)
    +-----------------+
    | ramdisk         | m pages   (vendor header + raw ramdisk)
    +-----------------+
    | second stage    | o pages   (optional, raw)
    +-----------------+
"""

import hashlib
import logging
import os
import os.path
import struct
from collections import namedtuple
from enum import Enum

from intelhex import HexReaderError, IntelHex

from . import vendor
from .errors import (BootImageError, ImageWriteError, InputLoadError,
                     ValidationError)

logger = logging.getLogger(__name__)

BOOT_MAGIC = b'ANDROID!'
BOOT_MAGIC_SIZE = 8
BOOT_NAME_SIZE = 16
BOOT_ARGS_SIZE = 512
BOOT_ID_SIZE = 32
BOOT_HEADER_SIZE = 608
DEFAULT_PAGE_SIZE = 2048
DEFAULT_BASE = 0x10000000
MAX_ADDR = 0xffffffff
RAMDISK_NONE = "NONE"
INTEL_HEX_EXT = "hex"

# Load addresses relative to the base address.
ADDR_OFFSETS = {
        'kernel':  0x00008000,
        'ramdisk': 0x01000000,
        'second':  0x00f00000,
        'tags':    0x00000100,
}

_HDR_FMT = ('<' +
            # struct boot_img_hdr {
            '8s' +    # magic         u8[BOOT_MAGIC_SIZE]
            'I' +     # kernel_size   u32
            'I' +     # kernel_addr   u32
            'I' +     # ramdisk_size  u32
            'I' +     # ramdisk_addr  u32
            'I' +     # second_size   u32
            'I' +     # second_addr   u32
            'I' +     # tags_addr     u32
            'I' +     # page_size     u32
            'II' +    # unused        u32[2]
            '16s' +   # name          u8[BOOT_NAME_SIZE]
            '512s' +  # cmdline       u8[BOOT_ARGS_SIZE]
            '32s'     # id            u32[8]
            )  # }

ImageState = Enum('ImageState',
                  ['IDLE', 'INPUTS_LOADED', 'PAYLOADS_WRAPPED',
                   'HEADER_BUILT', 'HASHED', 'WRITTEN', 'FAILED'])

VerifyResult = Enum('VerifyResult',
                    ['OK', 'INVALID_MAGIC', 'TRUNCATED',
                     'INVALID_VENDOR_HEADER', 'INVALID_HASH'])

Section = namedtuple('Section', ['name', 'offset', 'data'])


def align_up(num, align):
    assert (align & (align - 1) == 0) and align != 0
    return (num + (align - 1)) & ~(align - 1)


def padding_size(num, page_size):
    """Number of zero bytes needed to bring num to a page boundary."""
    return align_up(num, page_size) - num


def encode_field(text, capacity, what):
    """Encode a text field, leaving room for the null terminator."""
    data = text.encode('utf-8') if isinstance(text, str) else bytes(text)
    if len(data) >= capacity:
        raise ValidationError("{} too large ({} bytes, at most {})".format(
            what, len(data), capacity - 1))
    return data


def load_addresses(base):
    return {k: (base + off) & MAX_ADDR for k, off in ADDR_OFFSETS.items()}


def load_payload(path, kind):
    """Read a payload file, flattening Intel HEX input to binary."""
    ext = os.path.splitext(os.fspath(path))[1][1:].lower()
    try:
        if ext == INTEL_HEX_EXT:
            data = bytes(IntelHex(os.fspath(path)).tobinarray())
        else:
            with open(path, 'rb') as f:
                data = f.read()
    except OSError as e:
        raise InputLoadError(kind, path, e.strerror)
    except HexReaderError as e:
        raise InputLoadError(kind, path, str(e))
    logger.debug("Loaded %s '%s' (0x%x bytes)", kind, path, len(data))
    return data


def compute_id(kernel, kernel_size, ramdisk, ramdisk_size,
               second=b'', second_size=0):
    """Digest identifying the image contents.

    Each payload is followed by its size field, also when the payload is
    empty, so images differing only in payload bytes get different ids.
    The SHA-1 digest is zero padded (or truncated) to the id field.
    """
    sha = hashlib.sha1()
    sha.update(kernel)
    sha.update(struct.pack('<I', kernel_size))
    sha.update(ramdisk)
    sha.update(struct.pack('<I', ramdisk_size))
    sha.update(second or b'')
    sha.update(struct.pack('<I', second_size))
    digest = sha.digest()[:BOOT_ID_SIZE]
    return digest + bytes(BOOT_ID_SIZE - len(digest))


class BootHeader:

    def __init__(self, kernel_size=0, kernel_addr=0, ramdisk_size=0,
                 ramdisk_addr=0, second_size=0, second_addr=0, tags_addr=0,
                 page_size=DEFAULT_PAGE_SIZE, name=b'', cmdline=b'',
                 image_id=None, magic=BOOT_MAGIC):
        self.magic = magic
        self.kernel_size = kernel_size
        self.kernel_addr = kernel_addr
        self.ramdisk_size = ramdisk_size
        self.ramdisk_addr = ramdisk_addr
        self.second_size = second_size
        self.second_addr = second_addr
        self.tags_addr = tags_addr
        self.page_size = page_size
        self.name = name
        self.cmdline = cmdline
        self.id = bytes(BOOT_ID_SIZE) if image_id is None else image_id

    def __repr__(self):
        return "<BootHeader kernel=0x{:x}@0x{:08x}, \
                ramdisk=0x{:x}@0x{:08x}, second=0x{:x}@0x{:08x}, \
                tags=0x{:08x}, page_size={}, name={!r}>".format(
                    self.kernel_size, self.kernel_addr,
                    self.ramdisk_size, self.ramdisk_addr,
                    self.second_size, self.second_addr,
                    self.tags_addr, self.page_size, self.board)

    @classmethod
    def build(cls, kernel_size, ramdisk_size, second_size=0, base=None,
              board="", cmdline="", page_size=DEFAULT_PAGE_SIZE):
        """Create a header for payloads of the given (wrapped) sizes.

        The id field is left zeroed.
        """
        name = encode_field(board, BOOT_NAME_SIZE, "board name")
        args = encode_field(cmdline, BOOT_ARGS_SIZE, "kernel commandline")
        addrs = load_addresses(DEFAULT_BASE if base is None else base)
        for what, size in (('kernel', kernel_size),
                           ('ramdisk', ramdisk_size),
                           ('second', second_size)):
            if size > MAX_ADDR:
                raise ValidationError(
                    "{} too large ({} bytes)".format(what, size))
        return cls(kernel_size=kernel_size,
                   kernel_addr=addrs['kernel'],
                   ramdisk_size=ramdisk_size,
                   ramdisk_addr=addrs['ramdisk'],
                   second_size=second_size,
                   second_addr=addrs['second'],
                   tags_addr=addrs['tags'],
                   page_size=page_size,
                   name=name,
                   cmdline=args)

    @property
    def board(self):
        return self.name.decode('utf-8', errors='replace')

    @property
    def command_line(self):
        return self.cmdline.decode('utf-8', errors='replace')

    def pack(self):
        assert struct.calcsize(_HDR_FMT) == BOOT_HEADER_SIZE
        return struct.pack(_HDR_FMT,
                           self.magic,
                           self.kernel_size,
                           self.kernel_addr,
                           self.ramdisk_size,
                           self.ramdisk_addr,
                           self.second_size,
                           self.second_addr,
                           self.tags_addr,
                           self.page_size,
                           0, 0,  # unused
                           self.name,
                           self.cmdline,
                           self.id)

    @classmethod
    def unpack(cls, buf):
        if len(buf) < BOOT_HEADER_SIZE:
            raise BootImageError("Truncated boot header ({} bytes)"
                                 .format(len(buf)))
        (magic, kernel_size, kernel_addr, ramdisk_size, ramdisk_addr,
         second_size, second_addr, tags_addr, page_size, _, _,
         name, cmdline, image_id) = struct.unpack_from(_HDR_FMT, buf)
        if magic != BOOT_MAGIC:
            raise BootImageError("Invalid boot image magic: {!r}"
                                 .format(magic))
        return cls(kernel_size=kernel_size, kernel_addr=kernel_addr,
                   ramdisk_size=ramdisk_size, ramdisk_addr=ramdisk_addr,
                   second_size=second_size, second_addr=second_addr,
                   tags_addr=tags_addr, page_size=page_size,
                   name=name.split(b'\0', 1)[0],
                   cmdline=cmdline.split(b'\0', 1)[0],
                   image_id=image_id, magic=magic)

    def to_dict(self):
        return {"magic": self.magic.decode('ascii', errors='replace'),
                "kernel_size": self.kernel_size,
                "kernel_addr": self.kernel_addr,
                "ramdisk_size": self.ramdisk_size,
                "ramdisk_addr": self.ramdisk_addr,
                "second_size": self.second_size,
                "second_addr": self.second_addr,
                "tags_addr": self.tags_addr,
                "page_size": self.page_size,
                "name": self.board,
                "cmdline": self.command_line,
                "id": self.id.hex()}


def parse_image(data):
    """Split image bytes into its header and page aligned sections."""
    hdr = BootHeader.unpack(data)
    page_size = hdr.page_size
    if page_size == 0 or page_size & (page_size - 1):
        raise BootImageError("Invalid page size in header: {}"
                             .format(page_size))
    sections = []
    off = align_up(BOOT_HEADER_SIZE, page_size)
    for name, size in (('kernel', hdr.kernel_size),
                       ('ramdisk', hdr.ramdisk_size),
                       ('second', hdr.second_size)):
        if name == 'second' and size == 0:
            break
        if off + size > len(data):
            raise BootImageError(
                "Truncated image: {} section at 0x{:x} needs 0x{:x} bytes"
                .format(name, off, size))
        sections.append(Section(name, off, data[off:off + size]))
        off = align_up(off + size, page_size)
    return hdr, sections


class BootImage:
    """Assembles kernel, ramdisk and second stage into a boot image.

    The stages run in a fixed order: load(), wrap_payloads(),
    build_header(), compute_id() and save().  create() runs all of them.
    """

    def __init__(self, output_type, board="", cmdline="", base=None,
                 page_size=DEFAULT_PAGE_SIZE):
        if output_type not in vendor.OUTPUT_TYPES:
            raise ValidationError(
                "output type must be one of: {}".format(
                    ', '.join(vendor.OUTPUT_TYPES)))
        if page_size == 0 or page_size & (page_size - 1):
            raise ValidationError(
                "page size must be a power of two: {}".format(page_size))
        if base is not None and not 0 <= base <= MAX_ADDR:
            raise ValidationError(
                "base address does not fit 32 bits: 0x{:x}".format(base))
        self.output_type = output_type
        self.board = board
        self.cmdline = cmdline
        self.base = DEFAULT_BASE if base is None else base
        self.page_size = page_size
        # Checked up front so nothing is written for an invalid header.
        encode_field(board, BOOT_NAME_SIZE, "board name")
        encode_field(cmdline, BOOT_ARGS_SIZE, "kernel commandline")

        self.state = ImageState.IDLE
        self.kernel_path = None
        self.ramdisk_path = None
        self.second_path = None
        self.kernel = None
        self.ramdisk = None
        self.second = None
        self.artifacts = []
        self.header = None

    def __repr__(self):
        return "<BootImage output_type={}, base=0x{:08x}, page_size={}, \
                state={}>".format(
                    self.output_type, self.base, self.page_size,
                    self.state.name)

    def _require(self, expected, action):
        if self.state != expected:
            raise BootImageError("Cannot {} in state {}".format(
                action, self.state.name))

    def load(self, kernel, ramdisk, second=None):
        """Read the raw payloads; ramdisk may be RAMDISK_NONE."""
        self._require(ImageState.IDLE, "load inputs")
        self.kernel_path = kernel
        self.kernel = load_payload(kernel, 'kernel')
        self.ramdisk_path = ramdisk
        if os.fspath(ramdisk) == RAMDISK_NONE:
            self.ramdisk = b''
        else:
            self.ramdisk = load_payload(ramdisk, 'ramdisk')
        if second is not None:
            self.second_path = second
            self.second = load_payload(second, 'secondstage')
        self.state = ImageState.INPUTS_LOADED

    def wrap_payloads(self):
        """Prepend the vendor headers and reload the wrapped artifacts."""
        self._require(ImageState.INPUTS_LOADED, "wrap payloads")
        kind = vendor.OUTPUT_TYPES[self.output_type]
        kernel_mt = vendor.write_artifact(self.kernel_path, self.kernel,
                                          'KERNEL')
        self.artifacts.append(kernel_mt)
        # Reload before the ramdisk artifact is written, the two may share
        # a path.
        self.kernel = load_payload(kernel_mt, 'kernel')
        ramdisk_mt = vendor.write_artifact(self.ramdisk_path, self.ramdisk,
                                           kind)
        self.artifacts.append(ramdisk_mt)
        self.ramdisk = load_payload(ramdisk_mt, 'ramdisk')
        self.state = ImageState.PAYLOADS_WRAPPED

    def build_header(self):
        self._require(ImageState.PAYLOADS_WRAPPED, "build header")
        self.header = BootHeader.build(
            len(self.kernel), len(self.ramdisk),
            len(self.second) if self.second is not None else 0,
            base=self.base, board=self.board, cmdline=self.cmdline,
            page_size=self.page_size)
        logger.debug("Built %r", self.header)
        self.state = ImageState.HEADER_BUILT

    def compute_id(self):
        self._require(ImageState.HEADER_BUILT, "hash image")
        hdr = self.header
        hdr.id = compute_id(self.kernel, hdr.kernel_size,
                            self.ramdisk, hdr.ramdisk_size,
                            self.second, hdr.second_size)
        logger.info("Image id: %s", hdr.id.hex())
        self.state = ImageState.HASHED

    def sections(self):
        """Items written to the image, each followed by page padding."""
        items = [('header', self.header.pack()),
                 ('kernel', self.kernel),
                 ('ramdisk', self.ramdisk)]
        if self.second is not None:
            items.append(('second', self.second))
        return items

    def _write_padding(self, f, itemsize):
        count = padding_size(itemsize, self.page_size)
        if count:
            f.write(bytes(count))
        return count

    def _write_sections(self, f):
        off = 0
        for name, data in self.sections():
            logger.debug("Writing %s at 0x%x (0x%x bytes)",
                         name, off, len(data))
            f.write(data)
            off += len(data) + self._write_padding(f, len(data))
        return off

    def save(self, path):
        """Write the image; a partially written file is removed."""
        self._require(ImageState.HASHED, "save image")
        try:
            f = open(path, 'wb')
        except OSError as e:
            self.state = ImageState.FAILED
            raise ImageWriteError(path, e)
        try:
            with f:
                size = self._write_sections(f)
        except OSError as e:
            self.state = ImageState.FAILED
            self._remove_output(path)
            raise ImageWriteError(path, e)
        logger.info("Wrote %s (0x%x bytes)", path, size)
        self.state = ImageState.WRITTEN

    @staticmethod
    def _remove_output(path):
        try:
            os.remove(path)
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning("Could not remove '%s': %s", path, e.strerror)

    def create(self, kernel, ramdisk, outfile, second=None):
        """Run the whole pipeline."""
        try:
            self.load(kernel, ramdisk, second)
            self.wrap_payloads()
            self.build_header()
            self.compute_id()
            self.save(outfile)
        except BootImageError:
            self.state = ImageState.FAILED
            raise

    @staticmethod
    def verify(imgfile):
        """Check magics, vendor headers and the id digest of an image.

        Returns the result and the parsed header (None when unreadable).
        """
        try:
            with open(imgfile, 'rb') as f:
                b = f.read()
        except FileNotFoundError:
            raise BootImageError("Image file {} not found".format(imgfile))
        except OSError as e:
            raise BootImageError("Could not read image file {}: {}".format(
                imgfile, e.strerror))

        if b[:BOOT_MAGIC_SIZE] != BOOT_MAGIC:
            return VerifyResult.INVALID_MAGIC, None
        try:
            hdr, sections = parse_image(b)
        except BootImageError:
            return VerifyResult.TRUNCATED, None

        payloads = {s.name: s.data for s in sections}
        allowed = {'kernel': ('KERNEL',),
                   'ramdisk': tuple(vendor.OUTPUT_TYPES.values())}
        for name, kinds in allowed.items():
            try:
                vhdr = vendor.VendorHeader.unpack(payloads[name])
            except BootImageError:
                return VerifyResult.INVALID_VENDOR_HEADER, hdr
            if (vhdr.kind not in kinds or
                    vhdr.payload_size + vendor.VENDOR_HEADER_SIZE !=
                    len(payloads[name])):
                return VerifyResult.INVALID_VENDOR_HEADER, hdr

        digest = compute_id(payloads['kernel'], hdr.kernel_size,
                            payloads['ramdisk'], hdr.ramdisk_size,
                            payloads.get('second', b''), hdr.second_size)
        if digest != hdr.id:
            return VerifyResult.INVALID_HASH, hdr
        return VerifyResult.OK, hdr
