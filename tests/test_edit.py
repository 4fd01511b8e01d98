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

import hashlib

import pytest
from click.testing import CliRunner

from otatool import image
from otatool.main import otatool
from tests.constants import (DESTINATION, GBL_MAGIC, make_element,
                             make_image, tmp_name, upgrade_image)


class TestEdit:
    runner = CliRunner()

    def edit(self, tmp_path, infile, *args):
        outfile = tmp_name(tmp_path, "out")
        result = self.runner.invoke(
            otatool, ["edit", *args, str(infile), str(outfile)])
        return result, outfile

    def test_edit_fields(self, tmp_path, image_file):
        result, outfile = self.edit(
            tmp_path, image_file,
            "-m", "0x115f", "-t", "0x1234", "-v", "2.0+1/4.3+9",
            "--stack-version", "3", "-s", "new string")
        assert result.exit_code == 0, result.output

        out = outfile.read_bytes()
        assert "Image digest: {}".format(
            hashlib.sha512(out).hexdigest()) in result.output
        hdr = image.parse_image(out).header
        assert hdr.manufacturer_code == 0x115f
        assert hdr.image_type == 0x1234
        assert hdr.file_version == 0x20014309
        assert hdr.stack_version == 3
        assert hdr.header_string == "new string"
        assert len(out) == len(image_file.read_bytes())

    def test_edit_no_changes(self, tmp_path, image_file):
        result, outfile = self.edit(tmp_path, image_file)
        assert result.exit_code == 0
        assert outfile.read_bytes() == image_file.read_bytes()

    def test_edit_strips_padding(self, tmp_path):
        infile = tmp_name(tmp_path, "padded")
        infile.write_bytes(b'\x00' * 9 + upgrade_image() + b'\xff' * 3)

        result, outfile = self.edit(tmp_path, infile)
        assert result.exit_code == 0
        assert outfile.read_bytes() == upgrade_image()

    def test_edit_add_and_clear_optional_fields(self, tmp_path):
        payload = GBL_MAGIC + bytes(12)
        infile = tmp_name(tmp_path, "full")
        infile.write_bytes(upgrade_image(payload, security=1,
                                         destination=DESTINATION,
                                         hw_versions=(1, 2)))

        result, outfile = self.edit(tmp_path, infile, "--clear-security",
                                    "--clear-destination", "-S", "0x52")
        assert result.exit_code == 0, result.output
        img = image.parse_image(outfile.read_bytes())
        assert img.header.field_control == 0x4
        assert img.header.header_length == 60
        assert img.header.total_image_size == 0x52
        assert img.header.minimum_hardware_version == 1
        assert img.elements[0].data == payload
        assert "Warning" not in result.output

    def test_edit_add_destination(self, tmp_path, image_file):
        result, outfile = self.edit(tmp_path, image_file, "-d",
                                    "00 0d 6f ff fe 01 02 03")
        assert result.exit_code == 0
        assert "Warning: element data truncated by 8 bytes" in result.output
        img = image.parse_image(outfile.read_bytes())
        assert img.header.upgrade_file_destination == DESTINATION
        assert img.header.field_control == 0x2

    def test_edit_bad_destination(self, tmp_path, image_file):
        result, _ = self.edit(tmp_path, image_file, "-d", "00 0d 6f")
        assert result.exit_code != 0
        assert "must be 8 bytes" in result.output

        result, _ = self.edit(tmp_path, image_file, "-d", "zz")
        assert result.exit_code != 0

    def test_edit_half_hw_range(self, tmp_path, image_file):
        result, outfile = self.edit(tmp_path, image_file,
                                    "--min-hw-version", "1")
        assert result.exit_code == 0
        assert "the pair was dropped" in result.output
        assert image.parse_image(outfile.read_bytes()).header.field_control == 0

    @pytest.mark.parametrize("args", [
        ("-m", "0x10000"),
        ("--security-credential-version", "256"),
        ("-v", "1.0+3"),
        ("-t", "twelve"),
    ])
    def test_edit_invalid_values(self, tmp_path, image_file, args):
        result, _ = self.edit(tmp_path, image_file, *args)
        assert result.exit_code != 0

    @pytest.mark.parametrize("args", [
        ("--clear-security", "--security-credential-version", "1"),
        ("--clear-destination", "-d", "00 00 00 00 00 00 00 00"),
        ("--clear-hw-versions", "--max-hw-version", "1"),
    ])
    def test_edit_set_and_clear(self, tmp_path, image_file, args):
        result, _ = self.edit(tmp_path, image_file, *args)
        assert result.exit_code != 0
        assert "at the same time" in result.output

    def test_edit_protected_image(self, tmp_path, signed_image_file):
        result, _ = self.edit(tmp_path, signed_image_file, "-m", "1")
        assert result.exit_code == 0
        assert "Warning: This image includes signature" in result.output

    def test_edit_hex_output(self, tmp_path, image_file):
        outfile = tmp_name(tmp_path, "out", ".hex")
        result = self.runner.invoke(
            otatool, ["edit", "--hex-addr", "0x1000", str(image_file),
                      str(outfile)])
        assert result.exit_code == 0
        data, base_addr = image.load_image_file(str(outfile))
        assert base_addr == 0x1000
        assert data == image_file.read_bytes()

    def test_edit_hex_output_needs_address(self, tmp_path, image_file):
        outfile = tmp_name(tmp_path, "out", ".hex")
        result = self.runner.invoke(
            otatool, ["edit", str(image_file), str(outfile)])
        assert result.exit_code != 0
        assert "No address exists" in result.output

    def test_edit_not_found(self, tmp_path):
        result, _ = self.edit(tmp_path, tmp_path / "missing.ota")
        assert result.exit_code != 0
        assert "Image file not found" in result.output

    def test_edit_keeps_elements(self, tmp_path):
        infile = tmp_name(tmp_path, "multi")
        infile.write_bytes(make_image([
            make_element(0x0000, b'CC26x2R1' + bytes(8)),
            make_element(0xf000, b'secret', meta=b'\x00\x01'),
            make_element(0x0003, bytes(16)),
        ], security=2))

        result, outfile = self.edit(tmp_path, infile, "--clear-security",
                                    "-S", "0")
        assert result.exit_code == 0
        before = image.parse_image(infile.read_bytes())
        after = image.parse_image(outfile.read_bytes())
        assert after.elements == before.elements
        assert after.stack == "zStack (CC26x2R1)"

    def test_edit_total_size_below_header_length(self, tmp_path, image_file):
        result, outfile = self.edit(tmp_path, image_file, "-S", "56",
                                    "--security-credential-version", "1")
        assert result.exit_code != 0
        assert "smaller than the header length" in result.output
        assert not outfile.exists()
