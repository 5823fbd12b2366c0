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
Errors raised while building or parsing a boot image.

All of them are click exceptions, so the command line reports them with
a plain "Error: ..." line and exit status 1.
"""

import click


class BootImageError(click.ClickException):
    """Base class for boot image failures."""


class ValidationError(BootImageError):
    """An option value does not fit the image format."""


class InputLoadError(BootImageError):
    """A payload file could not be opened or read."""

    def __init__(self, kind, path, reason=None):
        msg = "could not load {} '{}'".format(kind, path)
        if reason:
            msg += ": {}".format(reason)
        super().__init__(msg)
        self.kind = kind
        self.path = path


class ImageWriteError(BootImageError):
    """Writing an intermediate artifact or the output image failed."""

    def __init__(self, path, error):
        reason = error.strerror or str(error)
        super().__init__("failed writing '{}': {}".format(path, reason))
        self.path = path
        self.errno = error.errno
