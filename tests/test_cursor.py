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

from otatool import cursor


def test_sequential_reads():
    c = cursor.ByteCursor(bytes([0x01, 0x34, 0x12, 0x78, 0x56, 0x34, 0x12,
                                 0xaa, 0xbb]))
    assert c.read_u8() == 0x01
    assert c.read_u16() == 0x1234
    assert c.read_u32() == 0x12345678
    assert c.read_bytes(2) == b'\xaa\xbb'
    assert c.remaining() == 0


def test_read_past_end():
    c = cursor.ByteCursor(b'\x01\x02\x03', off=2)
    with pytest.raises(cursor.TruncationError, match="hardware version"):
        c.read_u16("hardware version")
    # A failed read leaves the cursor where it was
    assert c.off == 2
    assert c.read_u8() == 0x03


def test_big_endian_helpers():
    assert cursor.read_u16_be(b'\xfb\x05', 0) == 0xfb05
    assert cursor.read_u32_be(b'\x00\xeb\x17\xa6\x03', 1) == 0xeb17a603
    assert cursor.read_u16_be(b'\xfb', 0) is None
    assert cursor.read_u32_be(b'\xeb\x17\xa6', 0) is None


def test_writes():
    buf = bytearray(7)
    cursor.write_u8(buf, 0, 0xff)
    cursor.write_u16(buf, 1, 0x0100)
    cursor.write_u32(buf, 3, 0x0beef11e)
    assert bytes(buf) == b'\xff\x00\x01\x1e\xf1\xee\x0b'


def test_fixed_string():
    assert cursor.decode_fixed_string(b'xxhello \0\0\0yy', 2, 11) == "hello"
    assert cursor.decode_fixed_string(bytes(32), 0, 32) == ""
    assert cursor.encode_fixed_string("hi", 4) == b'hi\0\0'
    assert cursor.encode_fixed_string("toolong", 4) == b'tool'
    assert len(cursor.encode_fixed_string("é" * 20, 32)) == 32


def test_byte_search():
    assert cursor.find_bytes(b'abcKNLT', b'KNLT') == 3
    assert cursor.find_bytes(b'abc', b'KNLT') == -1
    assert cursor.starts_with(b'CC26x2R1xx', b'CC26x2R1')
    assert not cursor.starts_with(b'CC26', b'CC26x2R1')
    assert cursor.equals_at(b'01234567KNLT', b'KNLT', 8)
    assert not cursor.equals_at(b'01234567KNL', b'KNLT', 8)
    assert not cursor.equals_at(b'KNLT', b'KNLT', -1)


def test_fit_fixed_string():
    assert cursor.fit_fixed_string("trailing ", 32) == "trailing"
    assert cursor.fit_fixed_string("é" * 20, 32) == "é" * 16
    assert cursor.fit_fixed_string("a" + "é" * 20, 32) == "a" + "é" * 15
    assert cursor.fit_fixed_string("x\0 \0", 32) == "x"
    assert cursor.fit_fixed_string("", 32) == ""
