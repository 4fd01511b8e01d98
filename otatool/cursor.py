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
Bounds-checked little-endian access to image buffers.
"""
import struct


class OTAImageError(Exception):
    pass


class TruncationError(OTAImageError):
    pass


class ByteCursor():
    """Sequential little-endian reader over a byte buffer.

    Every read checks that the requested span fits inside the buffer and
    raises TruncationError naming the field otherwise.
    """

    def __init__(self, buf, off=0):
        self.buf = buf
        self.off = off

    def remaining(self):
        return max(len(self.buf) - self.off, 0)

    def _bounds_check(self, size, what):
        if self.off + size > len(self.buf):
            raise TruncationError(
                "Unexpected end of buffer while reading {} "
                "(need {} bytes at offset {}, buffer is {} bytes)".format(
                    what, size, self.off, len(self.buf)))

    def _unpack(self, fmt, what):
        size = struct.calcsize(fmt)
        self._bounds_check(size, what)
        value = struct.unpack_from(fmt, self.buf, self.off)[0]
        self.off += size
        return value

    def read_u8(self, what="u8"):
        return self._unpack('<B', what)

    def read_u16(self, what="u16"):
        return self._unpack('<H', what)

    def read_u32(self, what="u32"):
        return self._unpack('<I', what)

    def read_bytes(self, size, what="bytes"):
        self._bounds_check(size, what)
        value = bytes(self.buf[self.off:self.off + size])
        self.off += size
        return value

    def skip(self, size):
        self.off += size


def read_u16(buf, off):
    return struct.unpack_from('<H', buf, off)[0]


def read_u32(buf, off):
    return struct.unpack_from('<I', buf, off)[0]


def read_u16_be(buf, off):
    """Big-endian u16 at off, or None when the buffer is too short."""
    if off + 2 > len(buf):
        return None
    return struct.unpack_from('>H', buf, off)[0]


def read_u32_be(buf, off):
    if off + 4 > len(buf):
        return None
    return struct.unpack_from('>I', buf, off)[0]


def write_u8(buf, off, value):
    struct.pack_into('<B', buf, off, value)


def write_u16(buf, off, value):
    struct.pack_into('<H', buf, off, value)


def write_u32(buf, off, value):
    struct.pack_into('<I', buf, off, value)


def decode_fixed_string(buf, start, end):
    """Decode a NUL padded UTF-8 slot, dropping the padding and any
    trailing whitespace."""
    text = bytes(buf[start:end]).decode('utf-8', errors='replace')
    return text.rstrip('\0').rstrip()


def encode_fixed_string(text, size):
    encoded = text.encode('utf-8')[:size]
    return encoded + bytes(size - len(encoded))


def fit_fixed_string(text, size):
    """Cut text so that it fits a size byte slot and survives an
    encode_fixed_string/decode_fixed_string round trip unchanged."""
    encoded = text.encode('utf-8')[:size]
    # A multi-byte character split by the cut is dropped whole.
    text = encoded.decode('utf-8', errors='ignore')
    while text != text.rstrip('\0').rstrip():
        text = text.rstrip('\0').rstrip()
    return text


def find_bytes(haystack, needle):
    return bytes(haystack).find(needle)


def starts_with(haystack, needle):
    return bytes(haystack[:len(needle)]) == needle


def equals_at(haystack, needle, off):
    if off < 0 or off + len(needle) > len(haystack):
        return False
    return bytes(haystack[off:off + len(needle)]) == needle
