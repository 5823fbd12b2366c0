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

import errno
import logging
import os

import pytest
from click.testing import CliRunner

from mtkbootimg import image, vendor
from mtkbootimg.main import create, mtkbootimg
from tests.constants import (OUTPUT_TYPES, PAGE_SIZE, DEFAULT_KERNEL_ADDR,
                             DEFAULT_RAMDISK_ADDR, tmp_name)


def assert_image_created(result, image_file):
    assert result.exit_code == 0
    assert image_file.exists()
    assert image_file.stat().st_size % PAGE_SIZE == 0

    runner = CliRunner()
    result = runner.invoke(mtkbootimg, ["verify", str(image_file)])
    assert result.exit_code == 0


class TestCreate:
    runner = CliRunner()

    @pytest.fixture(autouse=True)
    def setup(self, tmp_path, make_payload):
        self.tmp_path = tmp_path
        self.kernel = make_payload("kernel", 10)
        self.ramdisk = make_payload("ramdisk", 10, seed=1)
        self.image = tmp_name(tmp_path, "boot", ".img")

    def invoke(self, *extra, ot="boot", kernel=None, ramdisk=None):
        args = [
            "create",
            "--kernel", str(kernel or self.kernel),
            "--ramdisk", str(ramdisk or self.ramdisk),
            "--ot", ot,
            "-o", str(self.image),
        ]
        return self.runner.invoke(mtkbootimg, args + list(extra))


class TestCreateBasic(TestCreate):

    @pytest.mark.parametrize("ot", OUTPUT_TYPES)
    def test_create_basic(self, ot):
        result = self.invoke(ot=ot)
        assert_image_created(result, self.image)

    def test_recovery_scenario(self):
        """Small payloads with the recovery ramdisk header"""
        result = self.invoke(ot="recovery")
        assert_image_created(result, self.image)

        data = self.image.read_bytes()
        hdr, sections = image.parse_image(data)
        assert hdr.kernel_size == 522
        assert hdr.ramdisk_size == 522
        assert hdr.kernel_addr == DEFAULT_KERNEL_ADDR
        assert hdr.ramdisk_addr == DEFAULT_RAMDISK_ADDR
        assert len(data) == 3 * PAGE_SIZE

        ramdisk_hdr = vendor.VendorHeader.unpack(sections[1].data)
        assert ramdisk_hdr.kind == "RECOVERY"
        assert ramdisk_hdr.payload_size == 10
        assert sections[1].data[8:16] == b"RECOVERY"

    def test_empty_ramdisk_scenario(self, make_payload, monkeypatch):
        """--ramdisk NONE still carries a wrapped, empty ramdisk"""
        monkeypatch.chdir(self.tmp_path)
        kernel = make_payload("zimage", 4096)

        result = self.invoke(kernel=kernel, ramdisk="NONE")
        assert_image_created(result, self.image)

        data = self.image.read_bytes()
        hdr, sections = image.parse_image(data)
        assert hdr.kernel_size == 4096 + 512
        assert hdr.ramdisk_size == 512
        # header page, three kernel pages, one ramdisk page
        assert len(data) == 5 * PAGE_SIZE

        ramdisk_off = 4 * PAGE_SIZE
        assert sections[1].offset == ramdisk_off
        rootfs = vendor.VendorHeader.unpack(data[ramdisk_off:])
        assert rootfs == vendor.VendorHeader("ROOTFS", 0)
        assert data[ramdisk_off + 512:] == bytes(PAGE_SIZE - 512)
        assert (self.tmp_path / "NONE-mt").exists()

    def test_second_stage(self, make_payload):
        second = make_payload("second", 3000, seed=9)

        result = self.invoke("--second", str(second))
        assert_image_created(result, self.image)

        hdr, sections = image.parse_image(self.image.read_bytes())
        assert hdr.second_size == 3000
        assert sections[2].data == second.read_bytes()
        assert self.image.stat().st_size == 3 * PAGE_SIZE + 2 * PAGE_SIZE

    def test_board_and_cmdline(self):
        result = self.invoke("--board", "mt6516_phone",
                             "--cmdline", "console=ttyMT3,921600n1")
        assert_image_created(result, self.image)

        hdr = image.BootHeader.unpack(self.image.read_bytes())
        assert hdr.board == "mt6516_phone"
        assert hdr.command_line == "console=ttyMT3,921600n1"

    @pytest.mark.parametrize("base, kernel_addr, tags_addr", [
        ("0x20000000", 0x20008000, 0x20000100),
        ("20000000", 0x20008000, 0x20000100),
        ("0", 0x8000, 0x100),
    ])
    def test_base(self, base, kernel_addr, tags_addr):
        result = self.invoke("--base", base)
        assert_image_created(result, self.image)

        hdr = image.BootHeader.unpack(self.image.read_bytes())
        assert hdr.kernel_addr == kernel_addr
        assert hdr.tags_addr == tags_addr

    @pytest.mark.parametrize("base", ("0xzz", "100000000"))
    def test_base_invalid(self, base):
        result = self.invoke("--base", base)

        assert result.exit_code == 1
        assert not self.image.exists()

    def test_ignored_options(self, caplog):
        with caplog.at_level(logging.WARNING):
            result = self.invoke("--pagesize", "4096",
                                 "--ramdiskaddr", "0x12000000")
        assert_image_created(result, self.image)

        assert "page size input ignored" in caplog.text
        assert "ramdisk addr input ignored" in caplog.text
        hdr = image.BootHeader.unpack(self.image.read_bytes())
        assert hdr.page_size == PAGE_SIZE
        assert hdr.ramdisk_addr == DEFAULT_RAMDISK_ADDR

    def test_pagesize_default_value_warns(self, caplog):
        with caplog.at_level(logging.WARNING):
            result = self.invoke("--pagesize", str(PAGE_SIZE))
        assert_image_created(result, self.image)

        assert "page size input ignored" in caplog.text

    def test_verbose(self, caplog):
        args = ["-vv", "create",
                "--kernel", str(self.kernel),
                "--ramdisk", str(self.ramdisk),
                "--ot", "boot",
                "-o", str(self.image)]
        try:
            result = self.runner.invoke(mtkbootimg, args)
        finally:
            logging.getLogger("mtkbootimg").setLevel(logging.NOTSET)
        assert_image_created(result, self.image)

        assert "Writing kernel at 0x800" in caplog.text

    def test_idempotent(self):
        first = self.invoke()
        assert_image_created(first, self.image)
        data = self.image.read_bytes()

        os.remove(str(self.kernel) + "-mt")
        os.remove(str(self.ramdisk) + "-mt")
        os.remove(str(self.image))

        second = self.invoke()
        assert_image_created(second, self.image)
        assert self.image.read_bytes() == data

    def test_payload_change_changes_id(self):
        result = self.invoke()
        assert_image_created(result, self.image)
        first_id = image.BootHeader.unpack(self.image.read_bytes()).id

        payload = bytearray(self.ramdisk.read_bytes())
        payload[-1] ^= 0xff
        self.ramdisk.write_bytes(bytes(payload))
        result = self.invoke()
        assert_image_created(result, self.image)

        assert image.BootHeader.unpack(self.image.read_bytes()).id != first_id

    def test_standalone_entry_point(self):
        result = self.runner.invoke(create, [
            "--kernel", str(self.kernel),
            "--ramdisk", str(self.ramdisk),
            "--ot", "boot",
            "--output", str(self.image),
        ])
        assert_image_created(result, self.image)

    def test_alias(self):
        result = self.runner.invoke(mtkbootimg, [
            "mkbootimg",
            "--kernel", str(self.kernel),
            "--ramdisk", str(self.ramdisk),
            "--ot", "recovery",
            "-o", str(self.image),
        ])
        assert_image_created(result, self.image)


class TestCreateErrors(TestCreate):

    def assert_failed(self, result):
        assert result.exit_code == 1
        assert not self.image.exists()

    def test_board_at_capacity(self):
        """A board name filling the whole field leaves no terminator"""
        result = self.invoke("--board", "b" * image.BOOT_NAME_SIZE)

        self.assert_failed(result)
        assert "board name too large" in result.output
        assert not os.path.exists(str(self.kernel) + "-mt")

    def test_board_below_capacity(self):
        result = self.invoke("--board", "b" * (image.BOOT_NAME_SIZE - 1))
        assert_image_created(result, self.image)

    def test_cmdline_at_capacity(self):
        result = self.invoke("--cmdline", "c" * image.BOOT_ARGS_SIZE)

        self.assert_failed(result)
        assert "kernel commandline too large" in result.output

    def test_invalid_output_type(self):
        result = self.invoke(ot="factory")

        self.assert_failed(result)

    @pytest.mark.parametrize("missing", ("--kernel", "--ramdisk", "--ot",
                                         "-o"))
    def test_missing_required(self, missing):
        args = {
            "--kernel": str(self.kernel),
            "--ramdisk": str(self.ramdisk),
            "--ot": "boot",
            "-o": str(self.image),
        }
        del args[missing]
        flat = [item for pair in args.items() for item in pair]

        result = self.runner.invoke(create, flat)
        self.assert_failed(result)

    def test_missing_kernel_file(self):
        missing = self.tmp_path / "no-kernel"
        result = self.invoke(kernel=missing)

        self.assert_failed(result)
        assert "could not load kernel '{}'".format(missing) in result.output

    def test_missing_ramdisk_file(self):
        missing = self.tmp_path / "no-ramdisk"
        result = self.invoke(ramdisk=missing)

        self.assert_failed(result)
        assert "could not load ramdisk" in result.output

    def test_write_failure(self, monkeypatch):
        """Disk full after the header: the output must not survive"""
        def no_space(self, f, itemsize):
            raise OSError(errno.ENOSPC, os.strerror(errno.ENOSPC))

        monkeypatch.setattr(image.BootImage, "_write_padding", no_space)
        result = self.invoke()

        self.assert_failed(result)
        assert "failed writing '{}'".format(self.image) in result.output
        assert os.strerror(errno.ENOSPC) in result.output

    def test_artifact_write_failure(self, monkeypatch):
        real_open = open

        def failing_open(path, mode="r", *args, **kwargs):
            if str(path).endswith(vendor.ARTIFACT_SUFFIX) and "w" in mode:
                raise OSError(errno.EACCES, os.strerror(errno.EACCES))
            return real_open(path, mode, *args, **kwargs)

        monkeypatch.setattr("builtins.open", failing_open)
        result = self.invoke()

        self.assert_failed(result)
        assert "failed writing" in result.output
