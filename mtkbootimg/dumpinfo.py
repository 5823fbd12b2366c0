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
Parse and print header, vendor headers and section layout of a boot image.
"""
import os.path

import click
import yaml

from mtkbootimg import image, vendor
from mtkbootimg.errors import BootImageError

ADDR_ITEMS = ("kernel_addr", "ramdisk_addr", "second_addr", "tags_addr")
_LINE_LENGTH = 60


def parse_size(size):
    return hex(size) + " decimal: " + str(size)


def print_in_frame(header_text, content):
    sepc = " "
    header = "#### " + header_text + sepc
    post_header = "#" * (_LINE_LENGTH - len(header))
    print(header + post_header)

    print("|", sepc * (_LINE_LENGTH - 2), "|", sep="")
    offset = (_LINE_LENGTH - len(content)) // 2
    pre = "|" + (sepc * (offset - 1))
    post = sepc * (_LINE_LENGTH - len(pre) - len(content) - 1) + "|"
    print(pre, content, post, sep="")
    print("|", sepc * (_LINE_LENGTH - 2), "|", sep="")
    print("#" * _LINE_LENGTH)


def print_in_row(row_text):
    row_text = "#### " + row_text + " "
    fill = "#" * (_LINE_LENGTH - len(row_text))
    print(row_text + fill)


def dump_imginfo(imgfile, outfile=None, silent=False):
    """Parse a boot image and print/save the available information."""
    try:
        with open(imgfile, "rb") as f:
            b = f.read()
    except FileNotFoundError:
        raise click.UsageError("Image file not found ({})".format(imgfile))
    except OSError as e:
        raise click.UsageError("Could not read image file {}: {}".format(
            imgfile, e.strerror))

    hdr, sections = image.parse_image(b)

    vendor_hdrs = {}
    for section in sections:
        if section.name == "second":
            continue
        try:
            vendor_hdrs[section.name] = vendor.VendorHeader.unpack(
                section.data)
        except BootImageError as e:
            print("Warning: {} section: {}".format(section.name,
                                                     e.format_message()))

    # Generating output yaml file
    if outfile is not None:
        imgdata = {"header": hdr.to_dict(),
                   "sections": []}
        for section in sections:
            entry = {"name": section.name,
                     "offset": section.offset,
                     "size": len(section.data)}
            vhdr = vendor_hdrs.get(section.name)
            if vhdr is not None:
                entry["vendor_header"] = {"type": vhdr.kind,
                                          "payload_size": vhdr.payload_size}
            imgdata["sections"].append(entry)
        with open(outfile, "w") as outf:
            yaml.dump(imgdata, outf, sort_keys=False)

    if silent:
        return

    print("Printing content of boot image:", os.path.basename(imgfile), "\n")

    print_in_row("Boot header (offset: 0x0)")
    for key, value in hdr.to_dict().items():
        if key in ADDR_ITEMS:
            value = "0x{:08x}".format(value)
        elif key.endswith("_size"):
            value = parse_size(value)
        elif not isinstance(value, str):
            value = hex(value)
        print(key, ":", " " * (19 - len(key)), value, sep="")
    print("#" * _LINE_LENGTH)

    for section in sections:
        vhdr = vendor_hdrs.get(section.name)
        frame_header_text = "{} (offset: {})".format(
            section.name.capitalize(), hex(section.offset))
        if vhdr is not None:
            frame_content = "{} (payload: {} Bytes)".format(
                vhdr.kind, hex(vhdr.payload_size))
        else:
            frame_content = "raw (size: {} Bytes)".format(
                hex(len(section.data)))
        print_in_frame(frame_header_text, frame_content)

    footer = "End of Image "
    print_in_row(footer)
