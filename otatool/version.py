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
Zigbee file version segments

The 32 bit OTA file version is conventionally split into an application
release (two nibbles), an application build (one byte), a stack release
(two nibbles) and a stack build (one byte), most significant first.
"""
import re
import sys
from collections import namedtuple

FileVersionSegments = namedtuple('FileVersionSegments', ['app_release',
                                                         'app_build',
                                                         'stack_release',
                                                         'stack_build'])

release_re = re.compile(r"^([0-9A-Fa-f])\.([0-9A-Fa-f])$")

segments_re = re.compile(
    r"""^([0-9A-Fa-f]\.[0-9A-Fa-f])\+(\d+)/([0-9A-Fa-f]\.[0-9A-Fa-f])\+(\d+)$""")


def file_version_to_segments(version):
    digits = "{:08x}".format(int(version) & 0xffffffff)
    return FileVersionSegments(
            "{}.{}".format(digits[0], digits[1]),
            int(digits[2:4], 16),
            "{}.{}".format(digits[4], digits[5]),
            int(digits[6:8], 16))


def segments_to_version(app_release, app_build, stack_release, stack_build):
    """Build the numeric file version from its segments.

    Releases are "X.Y" with hexadecimal digits, builds are 0-255.
    """
    app = release_re.match(app_release)
    stack = release_re.match(stack_release)
    if not app or not stack:
        raise ValueError("Releases should be of the form A.B with "
                         "hexadecimal digits")
    app_build = int(app_build)
    stack_build = int(stack_build)
    if not (0 <= app_build <= 255 and 0 <= stack_build <= 255):
        raise ValueError("Builds should be between 0 and 255")
    return int("{}{}{:02x}{}{}{:02x}".format(
        app.group(1), app.group(2), app_build,
        stack.group(1), stack.group(2), stack_build), 16)


def format_version_descriptor(version):
    seg = file_version_to_segments(version)
    return "App {} build {} | Stack {} build {}".format(
        seg.app_release, seg.app_build, seg.stack_release, seg.stack_build)


def format_segments(version):
    """Text form accepted by decode_file_version, e.g. 1.0+3/4.5+6"""
    return "{}+{}/{}+{}".format(*file_version_to_segments(version))


def decode_file_version(text):
    """Decode a file version given either as an integer literal or as
    app_release+app_build/stack_release+stack_build
    """
    m = segments_re.match(text.strip())
    if m:
        return segments_to_version(m.group(1), m.group(2), m.group(3),
                                   m.group(4))
    try:
        value = int(text, 0)
    except ValueError:
        msg = "Invalid file version, should be an integer or "
        msg += "A.B+build/C.D+build"
        raise ValueError(msg)
    if not 0 <= value <= 0xffffffff:
        raise ValueError("File version does not fit in 32 bits")
    return value


if __name__ == '__main__':
    if len(sys.argv) > 1:
        print(file_version_to_segments(decode_file_version(sys.argv[1])))
    else:
        print("Requires an argument, e.g. '0x10034506'")
