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
Index metadata for publishing an OTA image.

The record layout matches the index.json entries consumed by Zigbee OTA
providers: one object per image, keyed in camelCase.
"""
import json
import os.path

from .digest import compute_digest


def build_index_metadata(header, raw, file_name):
    return {
        "fileName": file_name,
        "fileVersion": header.file_version,
        "fileSize": header.total_image_size,
        "url": "./{}".format(file_name),
        "imageType": header.image_type,
        "manufacturerCode": header.manufacturer_code,
        "sha512": compute_digest(raw, 'sha512'),
        "otaHeaderString": header.header_string.replace("\0", ""),
    }


def image_index_metadata(image, file_name):
    return build_index_metadata(image.header, image.raw,
                                os.path.basename(file_name))


def dump_index(metadata, outfile=None):
    text = json.dumps(metadata, indent=2)
    if outfile is None:
        print(text)
    else:
        with open(outfile, "w") as f:
            f.write(text + "\n")
    return text
