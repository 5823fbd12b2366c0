#! /usr/bin/env python3
#
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

import logging
import sys

import click

from mtkbootimg import image, mtkbootimg_version, vendor
from mtkbootimg.dumpinfo import dump_imginfo

MIN_PYTHON_VERSION = (3, 8)
if sys.version_info < MIN_PYTHON_VERSION:
    sys.exit("Python %s.%s or newer is required by mtkbootimg."
             % MIN_PYTHON_VERSION)

logger = logging.getLogger(__name__)

LOG_LEVELS = [logging.WARNING, logging.INFO, logging.DEBUG]


def set_verbosity(ctx, param, value):
    if not value:
        return
    level = LOG_LEVELS[min(value, len(LOG_LEVELS) - 1)]
    logging.basicConfig(format="%(levelname)s: %(message)s")
    logging.getLogger("mtkbootimg").setLevel(level)


verbose_option = click.option(
    '-v', '--verbose', count=True, expose_value=False, is_eager=True,
    callback=set_verbosity,
    help='Increase logging output (-v for info, -vv for debug)')


class ExitStatusMixin:
    """Exit with status 1 on any failure, usage errors included."""

    def main(self, *args, standalone_mode=True, **kwargs):
        if not standalone_mode:
            return super().main(*args, standalone_mode=False, **kwargs)
        try:
            rv = super().main(*args, standalone_mode=False, **kwargs)
        except click.ClickException as e:
            e.show()
            sys.exit(1)
        except click.Abort:
            click.echo("Aborted!", err=True)
            sys.exit(1)
        sys.exit(rv if isinstance(rv, int) else 0)


class ImageCommand(ExitStatusMixin, click.Command):
    pass


class HexIntParamType(click.ParamType):
    name = 'address'

    def convert(self, value, param, ctx):
        if isinstance(value, int):
            return value
        try:
            addr = int(value, 16)
        except ValueError:
            self.fail('%s is not a valid hexadecimal address' % value,
                      param, ctx)
        if not 0 <= addr <= image.MAX_ADDR:
            self.fail('%s does not fit in 32 bits' % value, param, ctx)
        return addr


@click.option('-o', '--output', metavar='filename', required=True,
              help='Boot image to create')
@click.option('--ot', 'output_type', required=True,
              type=click.Choice(list(vendor.OUTPUT_TYPES)),
              help='Image type, selects the ramdisk vendor header: {}'
                   .format(', '.join(vendor.OUTPUT_TYPES)))
@click.option('--ramdiskaddr', type=HexIntParamType(),
              help='Accepted for compatibility, ignored on MT65xx')
@click.option('--pagesize', type=int,
              help='Accepted for compatibility, the page size is fixed '
                   'at {} on MT65xx'.format(image.DEFAULT_PAGE_SIZE))
@click.option('--base', type=HexIntParamType(),
              default='{:#x}'.format(image.DEFAULT_BASE), show_default=True,
              help='Base address the load addresses are derived from')
@click.option('--board', default='',
              help='Board name, at most {} bytes'
                   .format(image.BOOT_NAME_SIZE - 1))
@click.option('--cmdline', default='',
              help='Kernel command line, at most {} bytes'
                   .format(image.BOOT_ARGS_SIZE - 1))
@click.option('--second', metavar='filename',
              help='Second stage bootloader')
@click.option('--ramdisk', metavar='filename', required=True,
              help='Ramdisk image, or {} for an empty ramdisk'
                   .format(image.RAMDISK_NONE))
@click.option('--kernel', metavar='filename', required=True,
              help='Kernel image')
@verbose_option
@click.command(cls=ImageCommand,
               context_settings=dict(help_option_names=['-h', '--help']),
               help='''Create a boot image\n
               Kernel and ramdisk are wrapped in MT65xx vendor headers,
               stored next to the inputs with a "{}" suffix. Inputs with a
               .hex extension are parsed as Intel HEX.'''
               .format(vendor.ARTIFACT_SUFFIX))
def create(kernel, ramdisk, second, cmdline, board, base, pagesize,
           ramdiskaddr, output_type, output):
    if pagesize is not None:
        logger.warning("page size input ignored on MT65xx")
    if ramdiskaddr is not None:
        logger.warning("ramdisk addr input ignored on MT65xx")
    img = image.BootImage(output_type, board=board, cmdline=cmdline,
                          base=base)
    img.create(kernel, ramdisk, output, second=second)


@click.argument('imgfile')
@click.option('-o', '--outfile', metavar='filename', required=False,
              help='Save image information to outfile in YAML format')
@click.option('-s', '--silent', default=False, is_flag=True,
              help='Do not print image information to output')
@click.command(help='Print header, vendor headers and section layout '
                    'of a boot image')
def dumpinfo(imgfile, outfile, silent):
    dump_imginfo(imgfile, outfile, silent)
    print("dumpinfo has run successfully")


@click.argument('imgfile')
@click.command(help='Check the magics and the id digest of a boot image')
def verify(imgfile):
    ret, hdr = image.BootImage.verify(imgfile)
    if ret == image.VerifyResult.OK:
        print("Image was correctly validated")
        print("Image id: {}".format(hdr.id.hex()))
        return
    elif ret == image.VerifyResult.INVALID_MAGIC:
        print("Invalid image magic; is this a boot image?")
    elif ret == image.VerifyResult.TRUNCATED:
        print("Image is truncated or has an invalid page size")
    elif ret == image.VerifyResult.INVALID_VENDOR_HEADER:
        print("Kernel or ramdisk vendor header is invalid")
    elif ret == image.VerifyResult.INVALID_HASH:
        print("Image has an invalid id digest")
    else:
        print("Unknown return code: {}".format(ret))
    sys.exit(1)


class AliasesGroup(ExitStatusMixin, click.Group):

    _aliases = {
        "mkbootimg": "create",
    }

    def list_commands(self, ctx):
        cmds = [k for k in self.commands]
        aliases = [k for k in self._aliases]
        return sorted(cmds + aliases)

    def get_command(self, ctx, cmd_name):
        rv = click.Group.get_command(self, ctx, cmd_name)
        if rv is not None:
            return rv
        if cmd_name in self._aliases:
            return click.Group.get_command(self, ctx, self._aliases[cmd_name])
        return None


@click.command(help='Print mtkbootimg version information')
def version():
    print(mtkbootimg_version)


@verbose_option
@click.command(cls=AliasesGroup,
               context_settings=dict(help_option_names=['-h', '--help']))
def mtkbootimg():
    pass


mtkbootimg.add_command(create)
mtkbootimg.add_command(dumpinfo)
mtkbootimg.add_command(verify)
mtkbootimg.add_command(version)


if __name__ == '__main__':
    mtkbootimg()
