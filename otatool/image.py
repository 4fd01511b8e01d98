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
Zigbee OTA image parsing, header normalization and serialization.
"""

from collections import namedtuple
import os.path

import click
from intelhex import IntelHex

from .cursor import (ByteCursor, OTAImageError, TruncationError,
                     decode_fixed_string, encode_fixed_string, find_bytes,
                     fit_fixed_string, read_u16, read_u32, write_u8,
                     write_u16, write_u32)
from .stack import TELINK_AES_TAG_ID, identify_stack

IMAGE_MAGIC = bytes([0x1e, 0xf1, 0xee, 0x0b])
IMAGE_HEADER_MIN_SIZE = 56
HEADER_STRING_OFF = 20
HEADER_STRING_SIZE = 32
DEFAULT_HEADER_VERSION = 0x0100
UPGRADE_FILE_DESTINATION_SIZE = 8
ELEMENT_HEADER_SIZE = 6
TELINK_AES_META_SIZE = 2
INTEL_HEX_EXT = "hex"

# Header field control bits, in wire order of the optional fields.
FIELD_CONTROL = {
        'SECURITY_CREDENTIAL_VERSION': 0x0001,
        'UPGRADE_FILE_DESTINATION':    0x0002,
        'HARDWARE_VERSIONS':           0x0004,
}

OPTIONAL_FIELD_SIZES = {
        'SECURITY_CREDENTIAL_VERSION': 1,
        'UPGRADE_FILE_DESTINATION':    UPGRADE_FILE_DESTINATION_SIZE,
        'HARDWARE_VERSIONS':           4,
}

HEADER_FIELDS = ['file_identifier', 'header_version', 'header_length',
                 'field_control', 'manufacturer_code', 'image_type',
                 'file_version', 'stack_version', 'header_string',
                 'total_image_size', 'security_credential_version',
                 'upgrade_file_destination', 'minimum_hardware_version',
                 'maximum_hardware_version']

ImageHeader = namedtuple('ImageHeader', HEADER_FIELDS, defaults=(
    IMAGE_MAGIC, DEFAULT_HEADER_VERSION, IMAGE_HEADER_MIN_SIZE, 0, 0, 0, 0,
    0, "", 0, None, None, None, None))

ImageElement = namedtuple('ImageElement', ['tag_id', 'length', 'tag_meta',
                                           'data'])

ParsedImage = namedtuple('ParsedImage', ['header', 'elements', 'raw',
                                         'stack'])


class FormatError(OTAImageError):
    pass


class ConstraintError(OTAImageError):
    pass


def clamp(value, lo, hi):
    return min(max(value, lo), hi)


def find_image_start(buf):
    """Return the offset of the upgrade file identifier inside buf.

    Images are sometimes shipped with leading padding, so the magic is
    searched for instead of being expected at offset 0.
    """
    off = find_bytes(buf, IMAGE_MAGIC)
    if off == -1:
        raise FormatError("Invalid OTA file: upgrade file identifier "
                          "{} not found".format(IMAGE_MAGIC.hex(' ')))
    return off


def decode_header(buf):
    if len(buf) < IMAGE_HEADER_MIN_SIZE:
        raise TruncationError(
            "Buffer too small to contain header ({} < {} bytes)".format(
                len(buf), IMAGE_HEADER_MIN_SIZE))

    c = ByteCursor(buf)
    file_identifier = c.read_bytes(4, "upgrade file identifier")
    header_version = c.read_u16("header version")
    header_length = c.read_u16("header length")
    field_control = c.read_u16("header field control")
    manufacturer_code = c.read_u16("manufacturer code")
    image_type = c.read_u16("image type")
    file_version = c.read_u32("file version")
    stack_version = c.read_u16("stack version")
    header_string = decode_fixed_string(
        buf, HEADER_STRING_OFF, HEADER_STRING_OFF + HEADER_STRING_SIZE)
    c.skip(HEADER_STRING_SIZE)
    total_image_size = c.read_u32("total image size")

    security_credential_version = None
    upgrade_file_destination = None
    minimum_hardware_version = None
    maximum_hardware_version = None

    if field_control & FIELD_CONTROL['SECURITY_CREDENTIAL_VERSION']:
        security_credential_version = c.read_u8(
            "security credential version")
    if field_control & FIELD_CONTROL['UPGRADE_FILE_DESTINATION']:
        upgrade_file_destination = c.read_bytes(
            UPGRADE_FILE_DESTINATION_SIZE, "upgrade file destination")
    if field_control & FIELD_CONTROL['HARDWARE_VERSIONS']:
        minimum_hardware_version = c.read_u16("minimum hardware version")
        maximum_hardware_version = c.read_u16("maximum hardware version")

    return ImageHeader(
        file_identifier=file_identifier,
        header_version=header_version,
        header_length=header_length,
        field_control=field_control,
        manufacturer_code=manufacturer_code,
        image_type=image_type,
        file_version=file_version,
        stack_version=stack_version,
        header_string=header_string,
        total_image_size=total_image_size,
        security_credential_version=security_credential_version,
        upgrade_file_destination=upgrade_file_destination,
        minimum_hardware_version=minimum_hardware_version,
        maximum_hardware_version=maximum_hardware_version)


def encode_header(header):
    """Encode an already normalized header.

    field_control decides which optional fields are written; a flagged
    field without a value is written as zeros.
    """
    buf = bytearray(IMAGE_HEADER_MIN_SIZE)
    identifier = bytes(header.file_identifier or IMAGE_MAGIC)[:4]
    buf[0:len(identifier)] = identifier
    write_u16(buf, 4, header.header_version)
    write_u16(buf, 6, header.header_length)
    write_u16(buf, 8, header.field_control)
    write_u16(buf, 10, header.manufacturer_code)
    write_u16(buf, 12, header.image_type)
    write_u32(buf, 14, header.file_version)
    write_u16(buf, 18, header.stack_version)
    buf[HEADER_STRING_OFF:HEADER_STRING_OFF + HEADER_STRING_SIZE] = \
        encode_fixed_string(header.header_string or "", HEADER_STRING_SIZE)
    write_u32(buf, 52, header.total_image_size)

    fc = header.field_control
    if fc & FIELD_CONTROL['SECURITY_CREDENTIAL_VERSION']:
        field = bytearray(1)
        write_u8(field, 0, header.security_credential_version or 0)
        buf += field
    if fc & FIELD_CONTROL['UPGRADE_FILE_DESTINATION']:
        dest = header.upgrade_file_destination
        if dest is None:
            dest = bytes(UPGRADE_FILE_DESTINATION_SIZE)
        buf += bytes(dest)
    if fc & FIELD_CONTROL['HARDWARE_VERSIONS']:
        field = bytearray(4)
        write_u16(field, 0, header.minimum_hardware_version or 0)
        write_u16(field, 2, header.maximum_hardware_version or 0)
        buf += field
    return bytes(buf)


def decode_elements(buf, header, strict=False):
    """Decode the element stream that follows the header.

    Parsing stops once fewer than ELEMENT_HEADER_SIZE bytes are left
    before the end of the image. A payload that runs past the end of buf
    is cut short unless strict is set.
    """
    elements = []
    off = header.header_length
    limit = min(header.total_image_size, len(buf))

    while off + ELEMENT_HEADER_SIZE <= limit:
        tag_id = read_u16(buf, off)
        length = read_u32(buf, off + 2)
        data_off = off + ELEMENT_HEADER_SIZE
        tag_meta = None
        if tag_id == TELINK_AES_TAG_ID:
            # OTA_FLAG_IMAGE_ELEM_INFO1 and OTA_FLAG_IMAGE_ELEM_INFO2
            tag_meta = bytes(buf[data_off:data_off + TELINK_AES_META_SIZE])
            data_off += TELINK_AES_META_SIZE
        data = bytes(buf[data_off:data_off + length])
        if strict and tag_meta is not None and \
                len(tag_meta) < TELINK_AES_META_SIZE:
            raise TruncationError(
                "Element 0x{:04x} at offset {} is missing its {} byte "
                "meta block".format(tag_id, off, TELINK_AES_META_SIZE))
        if strict and len(data) < length:
            raise TruncationError(
                "Element 0x{:04x} at offset {} declares {} bytes, only {} "
                "available".format(tag_id, off, length, len(data)))
        elements.append(ImageElement(tag_id, length, tag_meta, data))
        off = data_off + length

    return elements


def normalize_header(header, reference):
    """Recompute the derived header fields.

    reference is the image the header will be written into (or its
    length) and bounds total_image_size. field_control and header_length
    are rebuilt from the optional values actually present; the hardware
    versions only count as present when both are set. The header string
    is cut to what the 32 byte slot holds and decodes back to.
    """
    ref_len = reference if isinstance(reference, int) else len(reference)

    header_string = fit_fixed_string(
        (header.header_string or "")[:HEADER_STRING_SIZE], HEADER_STRING_SIZE)
    total_image_size = clamp(header.total_image_size or ref_len,
                             IMAGE_HEADER_MIN_SIZE, ref_len)

    has_security = header.security_credential_version is not None

    dest = header.upgrade_file_destination
    if dest is not None and len(dest) > 0:
        dest = bytes(dest)
        if len(dest) != UPGRADE_FILE_DESTINATION_SIZE:
            raise ConstraintError(
                "upgrade file destination must be {} bytes, got {}".format(
                    UPGRADE_FILE_DESTINATION_SIZE, len(dest)))
    else:
        dest = None
    has_upgrade = dest is not None

    has_hw_range = (header.minimum_hardware_version is not None and
                    header.maximum_hardware_version is not None)

    field_control = 0
    header_length = IMAGE_HEADER_MIN_SIZE
    for name, present in (('SECURITY_CREDENTIAL_VERSION', has_security),
                          ('UPGRADE_FILE_DESTINATION', has_upgrade),
                          ('HARDWARE_VERSIONS', has_hw_range)):
        if present:
            field_control |= FIELD_CONTROL[name]
            header_length += OPTIONAL_FIELD_SIZES[name]

    return header._replace(
        file_identifier=bytes(header.file_identifier or IMAGE_MAGIC),
        header_version=header.header_version or DEFAULT_HEADER_VERSION,
        header_length=header_length,
        field_control=field_control,
        header_string=header_string,
        total_image_size=total_image_size,
        security_credential_version=(header.security_credential_version
                                     if has_security else None),
        upgrade_file_destination=dest,
        minimum_hardware_version=(header.minimum_hardware_version
                                  if has_hw_range else None),
        maximum_hardware_version=(header.maximum_hardware_version
                                  if has_hw_range else None))


def splice_elements(output, image, header):
    """Copy the element region of image into output after the new header.

    The region is taken verbatim from the original image and placed at
    header.header_length; it is cut at the end of output. Returns the
    number of element bytes that did not fit.
    """
    region = image.raw[image.header.header_length:
                       image.header.total_image_size]
    off = header.header_length
    room = max(len(output) - off, 0)
    chunk = region[:room]
    output[off:off + len(chunk)] = chunk
    return len(region) - len(chunk)


def serialize_image(header, image):
    """Build a new image from an edited header and the parsed original.

    The output is exactly total_image_size bytes long and must have room
    for the whole header, otherwise ConstraintError is raised. Bytes not
    covered by the new header or the copied element region keep the
    content of the original image at the same offset.
    """
    header = normalize_header(header, image.raw)
    if header.total_image_size < header.header_length:
        raise ConstraintError(
            "total image size {} is smaller than the header length {}".format(
                header.total_image_size, header.header_length))
    output = bytearray(image.raw[:header.total_image_size])
    splice_elements(output, image, header)
    encoded = encode_header(header)
    output[:len(encoded)] = encoded
    return bytes(output)


def parse_image(buf, strict=False):
    start = find_image_start(buf)
    ota = bytes(buf[start:])
    header = decode_header(ota)
    elements = decode_elements(ota, header, strict=strict)
    raw = ota[:header.total_image_size]
    return ParsedImage(header, elements, raw, identify_stack(elements))


def load_image_file(path):
    """Load an image from a binary or Intel HEX file.

    Returns the image bytes and the base address (None for binaries).
    """
    ext = os.path.splitext(path)[1][1:].lower()
    try:
        if ext == INTEL_HEX_EXT:
            ih = IntelHex(path)
            return ih.tobinstr(), ih.minaddr()
        with open(path, 'rb') as f:
            return f.read(), None
    except FileNotFoundError:
        raise click.UsageError("Image file not found ({})".format(path))


def save_image_file(path, data, hex_addr=None):
    ext = os.path.splitext(path)[1][1:].lower()
    if ext == INTEL_HEX_EXT:
        if hex_addr is None:
            raise click.UsageError("No address exists in input file "
                                   "neither was it provided by user")
        h = IntelHex()
        h.frombytes(data, offset=hex_addr)
        h.tofile(path, 'hex')
    else:
        with open(path, 'wb') as f:
            f.write(data)
