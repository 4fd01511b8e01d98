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
Digest of a finished image buffer.
"""
import hashlib

DIGEST_ALGORITHMS = {
    'sha256': hashlib.sha256,
    'sha384': hashlib.sha384,
    'sha512': hashlib.sha512,
}
DEFAULT_DIGEST = 'sha512'


def compute_digest(buf, algorithm=DEFAULT_DIGEST):
    """Return the lowercase hex digest of buf."""
    sha = DIGEST_ALGORITHMS[algorithm]()
    sha.update(buf)
    return sha.hexdigest()
