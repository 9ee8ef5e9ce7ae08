import struct

from typing import Sequence, Tuple


BANNER = b'Copyright (c) 1997 Ensemble Studios.\x1a'


def make_drs(
    tables: Sequence[Tuple[bytes, Sequence[Tuple[int, bytes]]]],
    banner: bytes = BANNER, version: bytes = b'1.00', password: bytes = b'tribe'
) -> bytes:
    """
    Builds a well-formed DRS archive with the directory laid out contiguously, followed by the resource contents in
    table order.
    """

    dictionary_offset = 64 + 12 * len(tables)
    directory_size = dictionary_offset + 12 * sum(len(resources) for _, resources in tables)

    descriptors = bytearray()
    dictionaries = bytearray()
    contents = bytearray()

    for tag, resources in tables:
        descriptors += struct.pack('<4sII', tag, dictionary_offset, len(resources))
        dictionary_offset += 12 * len(resources)

        for resource_id, data in resources:
            dictionaries += struct.pack('<III', resource_id, directory_size + len(contents), len(data))
            contents += data

    header = struct.pack('<40s4s12sII', banner, version, password, len(tables), directory_size)

    return header + bytes(descriptors) + bytes(dictionaries) + bytes(contents)


def make_hello_drs() -> bytes:
    """
    One table of type ``b'BIN\\0'`` with resource 100 = ``b'hello'`` at offset 200 and resource 101 = ``b'hi!'`` at
    offset 205.
    """

    data = struct.pack('<40s4s12sII', BANNER, b'1.00', b'tribe', 1, 100)
    data += struct.pack('<4sII', b'BIN\x00', 76, 2)
    data += struct.pack('<III', 100, 200, 5)
    data += struct.pack('<III', 101, 205, 3)
    data = data.ljust(200, b'\x00')

    return data + b'hello' + b'hi!'
