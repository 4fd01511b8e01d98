#! /usr/bin/env python3
#
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

import sys

import click

from otatool import image, otatool_version, stack
from otatool.digest import compute_digest, DEFAULT_DIGEST, DIGEST_ALGORITHMS
from otatool.dumpinfo import dump_imginfo, parse_hex_input
from otatool.index import dump_index, image_index_metadata
from otatool.version import (decode_file_version, format_segments,
                             format_version_descriptor)

MIN_PYTHON_VERSION = (3, 8)
if sys.version_info < MIN_PYTHON_VERSION:
    sys.exit("Python %s.%s or newer is required by otatool."
             % MIN_PYTHON_VERSION)


class BasedIntParamType(click.ParamType):
    name = 'integer'

    def __init__(self, bits=None):
        self.bits = bits

    def convert(self, value, param, ctx):
        if isinstance(value, int):
            result = value
        else:
            try:
                result = int(value, 0)
            except ValueError:
                self.fail('%s is not a valid integer. Please use code '
                          'literals prefixed with 0b/0B, 0o/0O, or 0x/0X as '
                          'necessary.' % value, param, ctx)
        if self.bits is not None and not 0 <= result < (1 << self.bits):
            self.fail('%s does not fit in %d bits' % (value, self.bits),
                      param, ctx)
        return result


def validate_file_version(ctx, param, value):
    if value is None:
        return None
    try:
        return decode_file_version(value)
    except ValueError as e:
        raise click.BadParameter("{}".format(e))


def validate_destination(ctx, param, value):
    if value is None:
        return None
    try:
        dest = parse_hex_input(value)
    except ValueError as e:
        raise click.BadParameter("{}".format(e))
    if dest is not None and len(dest) != image.UPGRADE_FILE_DESTINATION_SIZE:
        raise click.BadParameter(
            "Upgrade file destination must be {} bytes".format(
                image.UPGRADE_FILE_DESTINATION_SIZE))
    return dest


def load_parsed_image(imgfile):
    data, base_addr = image.load_image_file(imgfile)
    try:
        return image.parse_image(data), base_addr
    except image.OTAImageError as e:
        raise click.UsageError("Invalid image: {}".format(e))


@click.argument('imgfile')
@click.option('-o', '--outfile', metavar='filename', required=False,
              help='Save image information to outfile in YAML format')
@click.option('-s', '--silent', default=False, is_flag=True,
              help='Do not print image information to output')
@click.command(help='Print header, element and stack information '
                    'of an OTA image')
def dumpinfo(imgfile, outfile, silent):
    dump_imginfo(imgfile, outfile, silent)
    if not silent:
        print("dumpinfo has run successfully")


@click.argument('outfile')
@click.argument('infile')
@click.option('--hex-addr', type=BasedIntParamType(), required=False,
              help='Adjust address in hex output file.')
@click.option('--clear-hw-versions', default=False, is_flag=True,
              help='Remove the minimum/maximum hardware versions')
@click.option('--clear-destination', default=False, is_flag=True,
              help='Remove the upgrade file destination')
@click.option('--clear-security', default=False, is_flag=True,
              help='Remove the security credential version')
@click.option('--max-hw-version', type=BasedIntParamType(16),
              help='Maximum hardware version, requires --min-hw-version '
                   'unless the image already has one')
@click.option('--min-hw-version', type=BasedIntParamType(16),
              help='Minimum hardware version, requires --max-hw-version '
                   'unless the image already has one')
@click.option('-d', '--destination', metavar='hexbytes',
              callback=validate_destination,
              help='Upgrade file destination (IEEE address) as 8 hex '
                   'bytes, e.g. "00 0d 6f ff fe 01 02 03"')
@click.option('--security-credential-version', type=BasedIntParamType(8))
@click.option('-S', '--total-size', type=BasedIntParamType(32),
              help='Total image size, clamped to the size of the input '
                   'image')
@click.option('-s', '--header-string', metavar='text',
              help='OTA header string (at most 32 bytes are kept)')
@click.option('--stack-version', type=BasedIntParamType(16))
@click.option('-v', '--file-version', callback=validate_file_version,
              help='File version as an integer or as '
                   'app_release+app_build/stack_release+stack_build, '
                   'e.g. 1.0+3/4.5+6')
@click.option('-t', '--image-type', type=BasedIntParamType(16))
@click.option('-m', '--manufacturer-code', type=BasedIntParamType(16))
@click.command(help='Edit the header of an OTA image')
def edit(manufacturer_code, image_type, file_version, stack_version,
         header_string, total_size, security_credential_version,
         destination, min_hw_version, max_hw_version, clear_security,
         clear_destination, clear_hw_versions, hex_addr, infile, outfile):
    if clear_security and security_credential_version is not None:
        raise click.UsageError("Can not set and clear the security "
                               "credential version at the same time")
    if clear_destination and destination is not None:
        raise click.UsageError("Can not set and clear the upgrade file "
                               "destination at the same time")
    if clear_hw_versions and (min_hw_version is not None or
                              max_hw_version is not None):
        raise click.UsageError("Can not set and clear the hardware "
                               "versions at the same time")

    img, base_addr = load_parsed_image(infile)
    changes = {
        'manufacturer_code': manufacturer_code,
        'image_type': image_type,
        'file_version': file_version,
        'stack_version': stack_version,
        'header_string': header_string,
        'total_image_size': total_size,
        'security_credential_version': security_credential_version,
        'upgrade_file_destination': destination,
        'minimum_hardware_version': min_hw_version,
        'maximum_hardware_version': max_hw_version,
    }
    header = img.header._replace(
        **{k: v for k, v in changes.items() if v is not None})
    if clear_security:
        header = header._replace(security_credential_version=None)
    if clear_destination:
        header = header._replace(upgrade_file_destination=None)
    if clear_hw_versions:
        header = header._replace(minimum_hardware_version=None,
                                 maximum_hardware_version=None)

    try:
        header = image.normalize_header(header, img.raw)
    except image.ConstraintError as e:
        raise click.BadParameter("{}".format(e), param_hint='--destination')

    try:
        out = image.serialize_image(header, img)
    except image.ConstraintError as e:
        raise click.UsageError("{}".format(e))

    if (header.minimum_hardware_version is None and
            (min_hw_version is not None or max_hw_version is not None)):
        print("Warning: hardware versions need both a minimum and a "
              "maximum, the pair was dropped")

    region = len(img.raw) - min(img.header.header_length, len(img.raw))
    room = header.total_image_size - header.header_length
    if region > room:
        print("Warning: element data truncated by {} bytes".format(
            region - room))

    warning = stack.protection_warning(img.elements)
    if warning is not None:
        print("Warning:", warning)

    image.save_image_file(outfile, out,
                          hex_addr if hex_addr is not None else base_addr)
    print("Header length: {}".format(header.header_length))
    print("Total image size: {}".format(header.total_image_size))
    print("Image digest: {}".format(compute_digest(out)))


@click.argument('imgfile')
@click.option('-n', '--name', metavar='filename', required=False,
              help='File name to publish the image under, defaults to the '
                   'name of imgfile')
@click.option('-o', '--outfile', metavar='filename', required=False,
              help='Save the index entry to outfile instead of stdout')
@click.command(help='Print the JSON index entry of an OTA image')
def index(imgfile, outfile, name):
    img, _ = load_parsed_image(imgfile)
    dump_index(image_index_metadata(img, name or imgfile), outfile)


@click.argument('imgfile')
@click.option('-a', '--algorithm', default=DEFAULT_DIGEST,
              type=click.Choice(sorted(DIGEST_ALGORITHMS)),
              help='Digest algorithm')
@click.command(help='Print the digest of the image bytes')
def digest(imgfile, algorithm):
    img, _ = load_parsed_image(imgfile)
    print(compute_digest(img.raw, algorithm))


@click.argument('file_version')
@click.command(help='Show a file version as number and as '
                    'release/build segments')
def segments(file_version):
    value = validate_file_version(None, None, file_version)
    print("number:     {} ({})".format(value, hex(value)))
    print("segments:   {}".format(format_segments(value)))
    print("descriptor: {}".format(format_version_descriptor(value)))


class AliasesGroup(click.Group):

    _aliases = {
        "info": "dumpinfo",
    }

    def list_commands(self, ctx):
        cmds = [k for k in self.commands]
        aliases = [k for k in self._aliases]
        return sorted(cmds + aliases)

    def get_command(self, ctx, cmd_name):
        rv = click.Group.get_command(self, ctx, cmd_name)
        if rv is not None:
            return rv
        if cmd_name in self._aliases:
            return click.Group.get_command(self, ctx, self._aliases[cmd_name])
        return None


@click.command(help='Print otatool version information')
def version():
    print(otatool_version)


@click.command(cls=AliasesGroup,
               context_settings=dict(help_option_names=['-h', '--help']))
def otatool():
    pass


otatool.add_command(dumpinfo)
otatool.add_command(edit)
otatool.add_command(index)
otatool.add_command(digest)
otatool.add_command(segments)
otatool.add_command(version)


if __name__ == '__main__':
    otatool()
