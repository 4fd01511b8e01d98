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

from tests.constants import (DESTINATION, GBL_MAGIC, make_element,
                             make_image, tmp_name, upgrade_image)


@pytest.fixture
def plain_image():
    return upgrade_image()


@pytest.fixture
def full_image():
    """Image carrying every optional header field."""
    return upgrade_image(security=0x01, destination=DESTINATION,
                         hw_versions=(0x0001, 0x0005))


@pytest.fixture
def image_file(tmp_path, plain_image):
    path = tmp_name(tmp_path, "plain")
    path.write_bytes(plain_image)
    return path


@pytest.fixture
def signed_image_file(tmp_path):
    path = tmp_name(tmp_path, "signed")
    path.write_bytes(make_image([
        make_element(0x0000, GBL_MAGIC + bytes(28)),
        make_element(0x0001, bytes(42)),
        make_element(0x0002, bytes(48)),
    ]))
    return path
