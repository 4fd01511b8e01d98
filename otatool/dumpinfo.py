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
Parse and print header, element and stack information of an OTA image.
"""
import os.path

import click
import yaml

from otatool import image, stack
from otatool.version import format_version_descriptor

HEADER_ITEMS = ("file_identifier", "header_version", "header_length",
                "field_control", "manufacturer_code", "image_type",
                "file_version", "stack_version", "header_string",
                "total_image_size", "security_credential_version",
                "upgrade_file_destination", "minimum_hardware_version",
                "maximum_hardware_version")
_LINE_LENGTH = 60
_DATA_PREVIEW = 16


def format_hex(data):
    return " ".join("{:02x}".format(b) for b in data)


def parse_hex_input(text):
    """Parse whitespace separated hex bytes, e.g. '00 0d 6f ff'.

    Returns None for an empty string so that the field is treated as
    absent.
    """
    clean = text.strip()
    if not clean:
        return None
    try:
        return bytes(int(p, 16) for p in clean.split())
    except ValueError:
        raise ValueError("Invalid hex byte list: {}".format(text))


def print_in_row(row_text):
    row_text = "#### " + row_text + " "
    fill = "#" * (_LINE_LENGTH - len(row_text))
    print(row_text + fill)


def print_element_records(elements, first_off):
    indent = _LINE_LENGTH // 8
    off = first_off
    for idx, element in enumerate(elements):
        print(" " * indent, "-" * 45)
        print(" " * indent, "element {} (offset: {})".format(idx, hex(off)))
        print(" " * indent, "tag: {} ({})".format(
            stack.tag_name(element.tag_id), stack.format_tag_id(element.tag_id)))
        print(" " * indent, "len: ", hex(element.length))
        if element.tag_meta is not None:
            print(" " * indent, "meta:", format_hex(element.tag_meta))
        preview = element.data[:_DATA_PREVIEW]
        print(" " * indent, "data:", format_hex(preview),
              "..." if len(element.data) > len(preview) else "")
        if len(element.data) < element.length:
            print(" " * indent, "Warning: payload truncated to",
                  hex(len(element.data)))
        off += image.ELEMENT_HEADER_SIZE + element.length
        if element.tag_meta is not None:
            off += image.TELINK_AES_META_SIZE


def header_to_dict(header):
    info = {}
    for key in HEADER_ITEMS:
        value = getattr(header, key)
        if isinstance(value, bytes):
            value = format_hex(value)
        info[key] = value
    return info


def format_field_control(value):
    if not value:
        return hex(value)
    flags = []
    for flag, bit in image.FIELD_CONTROL.items():
        if value & bit:
            flags.append("{} ({})".format(flag, hex(bit)))
    return ("\n" + " " * 29).join(flags)


def dump_imginfo(imgfile, outfile=None, silent=False):
    """Parse an OTA image file and print/save the available information."""
    b, _ = image.load_image_file(imgfile)
    try:
        img = image.parse_image(b)
    except image.OTAImageError as e:
        raise click.UsageError("Invalid image: {}".format(e))
    start = image.find_image_start(b)
    protection_tags = stack.detect_protection_tags(img.elements)

    if outfile is not None:
        imgdata = {"header": header_to_dict(img.header),
                   "elements": [{"tag": e.tag_id,
                                 "len": e.length,
                                 "meta": (format_hex(e.tag_meta)
                                          if e.tag_meta is not None
                                          else None)}
                                for e in img.elements],
                   "stack": img.stack,
                   "protection_tags": protection_tags}
        with open(outfile, "w") as outf:
            yaml.dump(imgdata, outf, sort_keys=False)

    if silent:
        return img

    print("Printing content of OTA image:", os.path.basename(imgfile), "\n")
    if start:
        print("Warning: {} bytes of padding before the upgrade file "
              "identifier\n".format(start))

    print_in_row("OTA header (offset: {})".format(hex(start)))
    for key, value in header_to_dict(img.header).items():
        if key == "field_control":
            value = format_field_control(value)
        elif key == "file_version":
            value = "{} ({})".format(hex(value),
                                     format_version_descriptor(value))
        elif value is None:
            value = "-"
        elif not isinstance(value, str):
            value = hex(value)
        print(key, ":", " " * (28 - len(key)), value, sep="")
    print("#" * _LINE_LENGTH)

    print_in_row("Elements (offset: {})".format(
        hex(start + img.header.header_length)))
    print("count:    ", len(img.elements))
    print_element_records(img.elements, start + img.header.header_length)
    print("#" * _LINE_LENGTH)

    print_in_row("Stack")
    print("identified stack:", img.stack)
    warning = stack.protection_warning(img.elements)
    if warning is not None:
        print("Warning:", warning)
    print()

    print_in_row("End of Image")
    return img
