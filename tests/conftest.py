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

import pytest


def pattern(size, seed=0):
    return bytes((i * 7 + seed) & 0xff for i in range(size))


@pytest.fixture
def make_payload(tmp_path):
    """Write a payload of the given size under tmp_path."""
    def make(name, size, seed=0):
        path = tmp_path / name
        path.write_bytes(pattern(size, seed))
        return path
    return make
