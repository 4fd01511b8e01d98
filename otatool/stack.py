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
Zigbee stack fingerprinting and protection tag detection.

The classifier looks for the container magic that each vendor toolchain
puts at the start of the upgrade image element. Note that these magics
are compared big-endian, unlike the OTA header itself.
"""

from .cursor import (equals_at, find_bytes, read_u16_be, read_u32_be,
                     starts_with)

TELINK_AES_TAG_ID = 0xf000
MANUFACTURER_TAG_MIN = 0xf000

ZIGBEE_SPEC_TAGS = {
        0x0000: "Upgrade Image",
        0x0001: "ECDSA Signature (Crypto Suite 1)",
        0x0002: "ECDSA Signing Certificate (Crypto Suite 1)",
        0x0003: "Image Integrity Code",
        0x0004: "Picture Data",
        0x0005: "ECDSA Signature (Crypto Suite 2)",
        0x0006: "ECDSA Signing Certificate (Crypto Suite 2)",
}

PROTECTION_TAG_IDS = frozenset([0x0001, 0x0002, 0x0003, 0x0005, 0x0006,
                                TELINK_AES_TAG_ID])

SI_GBL_HEADER_TAG = 0xeb17a603
SI_EBL_TAG_HEADER = 0x0000
SI_EBL_IMAGE_SIGNATURE = 0xe350
SI_EBL_TAG_ENC_HEADER = 0xfb05

TI_OAD_IMG_IDS = [
        b"CC26x2R1",
        b"CC13x2R1",
        b"CC13x4  ",
        b"CC26x3  ",
        b"CC26x4  ",
        b"OAD IMG ",
        b"CC23x0R2",
]

TL_START_UP_FLAG = b"KNLT"
TL_START_UP_FLAG_OFF = 8
TL_SR_TAG = b"TLSR"
TL_SR_NAME_SIZE = 8

ZBOSS_MARKERS = [b"nRF", b"nrf5", b"nrf_"]

UNKNOWN_STACK = "Unknown"


def _telink_aes(element):
    if element.tag_id == TELINK_AES_TAG_ID:
        return "Telink (Encrypted)"


def _ember_gbl(element):
    if read_u32_be(element.data, 0) == SI_GBL_HEADER_TAG:
        return "EmberZNet (GBL)"


def _ember_ebl(element):
    if len(element.data) < 8:
        return None
    if (read_u16_be(element.data, 0) == SI_EBL_TAG_HEADER and
            read_u16_be(element.data, 6) == SI_EBL_IMAGE_SIGNATURE):
        return "EmberZNet (EBL)"


def _ember_ebl_enc(element):
    if read_u16_be(element.data, 0) == SI_EBL_TAG_ENC_HEADER:
        return "EmberZNet (EBL ENC)"


def _ti_oad(element):
    for img_id in TI_OAD_IMG_IDS:
        if starts_with(element.data, img_id):
            return "zStack ({})".format(img_id.decode('ascii').strip())


def _telink(element):
    data = element.data
    if not equals_at(data, TL_START_UP_FLAG, TL_START_UP_FLAG_OFF):
        return None
    off = find_bytes(data, TL_SR_TAG)
    if off == -1:
        return "Telink"
    name = data[off:off + TL_SR_NAME_SIZE].decode('utf-8', errors='replace')
    return "Telink ({})".format(name.strip())


def _zboss(element):
    if any(find_bytes(element.data, m) != -1 for m in ZBOSS_MARKERS):
        return "ZBOSS (Nordic - fuzzy matching)"


# Evaluated in this order for every element; the first hit wins.
STACK_SIGNATURES = [
        _telink_aes,
        _ember_gbl,
        _ember_ebl,
        _ember_ebl_enc,
        _ti_oad,
        _telink,
        _zboss,
]


def identify_stack(elements):
    """Guess the Zigbee stack that produced an image from its elements.

    Elements are visited in image order and every signature is tried on
    one element before moving on, so a weak match in an early element
    beats a strong match in a later one.
    """
    for element in elements:
        for signature in STACK_SIGNATURES:
            label = signature(element)
            if label is not None:
                return label
    return UNKNOWN_STACK


def detect_protection_tags(elements):
    """Tag IDs carrying signature, integrity or encryption data, in
    first-seen order."""
    matched = []
    for element in elements:
        if element.tag_id in PROTECTION_TAG_IDS and \
                element.tag_id not in matched:
            matched.append(element.tag_id)
    return matched


def format_tag_id(tag_id):
    return "0x{:04x}".format(tag_id)


def tag_name(tag_id):
    if tag_id >= MANUFACTURER_TAG_MIN:
        return "Manufacturer-specific"
    return ZIGBEE_SPEC_TAGS.get(tag_id, "Unknown")


def protection_tag_name(tag_id):
    if tag_id == TELINK_AES_TAG_ID:
        return "Telink AES encryption ({})".format(format_tag_id(tag_id))
    return "{} ({})".format(ZIGBEE_SPEC_TAGS.get(tag_id, "Protected tag"),
                            format_tag_id(tag_id))


def protection_warning(elements):
    """Advisory text for images whose protection data an edit may break,
    or None when there is nothing to warn about."""
    tags = detect_protection_tags(elements)
    if not tags:
        return None
    return ("This image includes signature, integrity, or encryption "
            "data: {}. Editing header fields may invalidate these checks "
            "and the device could reject the image.".format(
                ", ".join(protection_tag_name(t) for t in tags)))
