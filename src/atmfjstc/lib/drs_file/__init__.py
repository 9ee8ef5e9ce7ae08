"""
This package provides an interface for reading DRS resource archives, as used by the Genie engine (Age of Empires 1/2,
Star Wars: Galactic Battlegrounds and related games).

A DRS archive groups numbered binary resources (graphics, sounds, palettes etc.) into tables, one table per resource
type. Each type is identified by a 4-byte tag. The main class of interest is `DRSFile`. We can open an archive like so::

    drs_file = DRSFile('path/to/interfac.drs')

and enumerate the tables and the metadata of the resources in them::

    for table in drs_file.tables:
        for resource in table.resources:
            print(table.type_name, resource.id, resource.size)

To read the content of a resource, we can use::

    data = drs_file.read_resource(b' pls', 50500)

Type tags are always handled as raw `bytes`, exactly as they are stored in the file, and are never compared as text.
Note that by convention the tags are displayed reversed (e.g. the tag stored as ``b' pls'`` is known as ``'slp '``).
Use `type_tag_from_name` to convert such a name to the stored form.

More details are available in the `DRSFile` docs.
"""

import logging

from dataclasses import dataclass, field, replace
from typing import ContextManager, BinaryIO, AnyStr, Union, Optional, Tuple, Iterator
from os import PathLike, SEEK_SET
from io import IOBase, BufferedIOBase

from atmfjstc.lib.binary_utils.BinaryReader import BinaryReader, BinaryReaderFormatError
from atmfjstc.lib.file_utils.fileobj import FileObjSliceReader


__version__ = '1.0.0'


LOG = logging.getLogger(__name__)


TYPE_TAG_SIZE = 4

TypeTag = bytes


class DRSFile(ContextManager['DRSFile']):
    """
    This class provides access to a DRS archive stored in a file or file object.

    A `DRSFile` reads the entire archive directory (header, table descriptors and resource entries) as soon as it is
    constructed. If any part of the directory cannot be read, the constructor fails and no object is produced.
    Afterwards, data about the archive is available in the following attributes:

    - `header`: A `DRSHeader` object with the data in the archive prologue.
    - `tables`: A tuple of `DRSTable` objects, in the order they occur in the file. Each table holds the metadata for
      its resources as a tuple of `DRSResource` objects.

    Resource contents are never loaded in advance. They are read from the file every time `read_resource` or
    `open_resource` is called.

    A `DRSFile` can be either open and closed manually::

        drs = DRSFile("graphics.drs")
        print(drs.tables)
        drs.close()

    or used as a context manager::

        with DRSFile("graphics.drs") as drs:
            print(drs.tables)

    This class does not offer functionality for writing DRS archives.

    Warning: reading resources moves the position of the underlying file object. Do not read resources from the same
    `DRSFile` in multiple threads simultaneously. Either guard it with a lock, or open a separate `DRSFile` for each
    thread.
    """

    _fileobj: BinaryIO
    _fileobj_owned: bool = False

    _reader: BinaryReader

    _header: 'DRSHeader'
    _tables: Tuple['DRSTable', ...] = ()

    def __init__(self, path_or_fileobj: Union[PathLike, AnyStr, BinaryIO], trust_table_offsets: bool = False):
        """
        Opens a DRS archive for reading.

        Args:
            path_or_fileobj: Either a filename, or an open file object containing the archive.
            trust_table_offsets: By default, the resource entries for each table are read sequentially, immediately
                after the table directory, as the game engine does. The offsets declared in the table descriptors
                are ignored, and a warning is logged if they disagree with the actual position. Set this to True to
                seek to the declared offset of each table instead.

        Raises:
            DRSFileCorruptError: If the archive directory is truncated or could not be read.

        There are several caveats if a file object is passed:

        - The archive header will be read from the current position in the fileobj. It is not automatically rewound!
          However, all the offsets declared in the archive are absolute positions in the file object.
        - The data in the file object should not be changed during the lifetime of the `DRSFile`. It only reads the
          directory once and does not expect any changes.
        - The file object should be kept open for the lifetime of the `DRSFile` if we need to read resources.
        - The `DRSFile` will not close the file object itself when the context ends.
        """

        if isinstance(path_or_fileobj, IOBase):
            if not path_or_fileobj.seekable():
                raise ValueError("File object must be seekable")

            self._fileobj = path_or_fileobj
        else:
            self._fileobj = open(path_or_fileobj, 'rb')
            self._fileobj_owned = True

        try:
            self._read_archive(trust_table_offsets)
        except Exception:
            if self._fileobj_owned:
                self._fileobj.close()

            raise

    @property
    def header(self) -> 'DRSHeader':
        """
        The archive header.
        """
        return self._header

    @property
    def tables(self) -> Tuple['DRSTable', ...]:
        """
        The tables in the archive, in the order they appear.
        """
        return self._tables

    def __iter__(self) -> Iterator['DRSTable']:
        return iter(self._tables)

    def __len__(self) -> int:
        return len(self._tables)

    def iter_resources(self) -> Iterator[Tuple['DRSTable', 'DRSResource']]:
        """
        Iterates through all the resources in the archive, in file order.

        Returns:
            An iterator of (table, resource) tuples.
        """
        for table in self._tables:
            for resource in table.resources:
                yield table, resource

    def table(self, resource_type: TypeTag) -> 'DRSTable':
        """
        Gets the table for a given resource type.

        Args:
            resource_type: The raw 4-byte type tag, as stored in the file.

        Returns:
            The first table (in file order) with that type tag.

        Raises:
            DRSTableNotFoundError: If there is no table of this type in the archive.
        """

        resource_type = _check_type_tag(resource_type)

        for table in self._tables:
            if table.resource_type == resource_type:
                return table

        raise DRSTableNotFoundError(resource_type)

    def resource(self, resource_type: TypeTag, resource_id: int) -> 'DRSResource':
        """
        Gets the metadata for a resource identified by its type and ID.

        Raises:
            DRSTableNotFoundError: If there is no table of this type in the archive.
            DRSResourceNotFoundError: If the table does not contain a resource with this ID.
        """
        return self.table(resource_type).resource(resource_id)

    def resource_type_of(self, resource_id: int) -> Optional[TypeTag]:
        """
        Finds the type of a resource given only its ID.

        IDs are only guaranteed to be unique within a table. If several tables contain the same ID, the type of the
        first such table (in file order) is returned.

        Returns:
            The raw type tag, or None if no table contains a resource with this ID.
        """

        for table in self._tables:
            if table.has_resource(resource_id):
                return table.resource_type

        return None

    def read_resource(self, resource_type: TypeTag, resource_id: int) -> bytes:
        """
        Reads the content of a resource identified by its type and ID.

        The data is read from the file every time, it is not cached.

        Returns:
            The content of the resource, as a `bytes` object exactly `size` bytes in length.

        Raises:
            DRSTableNotFoundError: If there is no table of this type in the archive.
            DRSResourceNotFoundError: If the table does not contain a resource with this ID.
            DRSResourceReadError: If the content could not be read (e.g. it extends past the end of the file).
        """

        table = self.table(resource_type)

        return self._read_content(table.resource(resource_id), table.resource_type)

    def read_resource_data(self, resource: 'DRSResource') -> bytes:
        """
        Like `read_resource`, but for a resource whose metadata has already been retrieved.

        This is the way to read resources from every table when several tables share the same type tag, as
        `read_resource` only looks in the first of them.

        Raises:
            ValueError: If the resource does not belong to this archive.
            DRSResourceReadError: If the content could not be read (e.g. it extends past the end of the file).
        """

        for table in self._tables:
            if resource in table.resources:
                return self._read_content(resource, table.resource_type)

        raise ValueError("Resource does not belong to this DRS file!")

    def open_resource(self, resource_type: TypeTag, resource_id: int) -> BufferedIOBase:
        """
        Opens the content of a resource as a read-only file object.

        This is more convenient than `read_resource` for large resources that are to be processed in a streaming
        manner. The `DRSFile` must still be open while the returned file object is used.

        Returns:
            An open file object, in binary mode, that covers exactly the content of the resource.

        Raises:
            DRSTableNotFoundError: If there is no table of this type in the archive.
            DRSResourceNotFoundError: If the table does not contain a resource with this ID.
            DRSResourceReadError: If the content extends past the end of the file.
        """

        self._require_open()

        table = self.table(resource_type)
        resource = table.resource(resource_id)

        try:
            return FileObjSliceReader(self._fileobj, resource.offset, resource.size)
        except ValueError as e:
            raise DRSResourceReadError(table.resource_type, resource.id, resource.offset, resource.size) from e

    def close(self):
        """
        Closes the underlying file object.

        Once the file is closed, you can still read the metadata for the tables and resources, but you won't be able to
        read their contents.

        Note that this method closes the file object regardless of whether it was created by `DRSFile` or received from
        elsewhere!
        """

        if self._fileobj is not None:
            self._fileobj.close()

    def __enter__(self) -> 'DRSFile':
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if (not self._fileobj_owned) or (self._fileobj is None) or self._fileobj.closed:
            return

        self._fileobj.close()

    def _require_open(self):
        if self._fileobj.closed:
            raise ValueError("Cannot read resources because the underlying file object has been closed")

    def _read_archive(self, trust_table_offsets: bool):
        self._reader = BinaryReader(self._fileobj, big_endian=False)

        try:
            header = DRSHeader.read_from_binary(self._reader)

            LOG.debug(
                "Read DRS header: version %r, %d tables, directory size %d",
                header.version, header.num_resource_types, header.directory_size
            )

            descriptors = [DRSTable.read_from_binary(self._reader) for _ in range(header.num_resource_types)]
            tables = tuple(self._read_table_resources(table, trust_table_offsets) for table in descriptors)
        except (BinaryReaderFormatError, OSError) as e:
            raise DRSFileCorruptError(self._reader.name()) from e

        self._header = header
        self._tables = tables

    def _read_table_resources(self, table: 'DRSTable', trust_table_offsets: bool) -> 'DRSTable':
        if trust_table_offsets:
            self._reader.seek(table.offset, SEEK_SET)
        elif self._reader.tell() != table.offset:
            LOG.warning(
                "Table %r declares its resources at offset %d, but they are read sequentially from offset %d",
                table.type_name, table.offset, self._reader.tell()
            )

        resources = tuple(DRSResource.read_from_binary(self._reader) for _ in range(table.num_resources))

        LOG.debug("Read %d resource entries for table %r", len(resources), table.type_name)

        return replace(table, resources=resources)

    def _read_content(self, resource: 'DRSResource', resource_type: Optional[TypeTag]) -> bytes:
        self._require_open()

        try:
            if resource.offset + resource.size > self._reader.total_size():
                raise ValueError("Resource extends past the end of the file")

            self._reader.seek(resource.offset, SEEK_SET)

            return self._reader.read_amount(resource.size, f"content of resource {resource.id}")
        except (BinaryReaderFormatError, OSError, ValueError) as e:
            raise DRSResourceReadError(resource_type, resource.id, resource.offset, resource.size) from e


@dataclass(frozen=True)
class DRSHeader:
    """
    The prologue of a DRS archive.

    None of the text fields are validated. They are kept as the raw bytes found in the file; use the ``*_text``
    properties for a display version.

    Attributes:
        banner_msg: A copyright message, 40 bytes.
        version: The file version, 4 bytes. This is always ``b'1.00'`` in practice.
        password: The archive password/identifier, 12 bytes (e.g. ``b'tribe'`` padded with NULs).
        num_resource_types: The number of tables in the archive.
        directory_size: The size of the header and all the tables, in bytes. Resource contents start at this offset.
    """

    banner_msg: bytes
    version: bytes
    password: bytes
    num_resource_types: int
    directory_size: int

    @property
    def banner_text(self) -> str:
        return _decode_text(self.banner_msg)

    @property
    def version_text(self) -> str:
        return _decode_text(self.version)

    @property
    def password_text(self) -> str:
        return _decode_text(self.password)

    @staticmethod
    def read_from_binary(reader: BinaryReader) -> 'DRSHeader':
        banner_msg, version, password, num_resource_types, directory_size = \
            reader.read_struct('40s4s12sII', 'DRS header')

        return DRSHeader(
            banner_msg=banner_msg,
            version=version,
            password=password,
            num_resource_types=num_resource_types,
            directory_size=directory_size,
        )


@dataclass(frozen=True)
class DRSTable:
    """
    A table in a DRS archive, i.e. a group of resources of the same type.

    Note that objects of this type are just inert data containers. They can be copied from their originating `DRSFile`
    object and are unaffected by its closure.

    Attributes:
        resource_type: The raw 4-byte type tag, as stored in the file.
        offset: The offset at which the table declares its resource entries to be.
        num_resources: The number of resources in the table, as declared by the table descriptor.
        resources: The metadata for the resources, as a tuple of `DRSResource` objects in file order.
    """

    resource_type: TypeTag
    offset: int
    num_resources: int
    resources: Tuple['DRSResource', ...] = field(default=(), repr=False)

    @property
    def type_name(self) -> str:
        """
        The type tag in its conventional display form (e.g. ``'slp '`` for the tag ``b' pls'``).
        """
        return type_name_from_tag(self.resource_type)

    def resource(self, resource_id: int) -> 'DRSResource':
        """
        Gets the metadata for the resource with a given ID in this table.

        Raises:
            DRSResourceNotFoundError: If the table does not contain a resource with this ID.
        """

        for resource in self.resources:
            if resource.id == resource_id:
                return resource

        raise DRSResourceNotFoundError(self.resource_type, resource_id)

    def has_resource(self, resource_id: int) -> bool:
        return any(resource.id == resource_id for resource in self.resources)

    @staticmethod
    def read_from_binary(reader: BinaryReader) -> 'DRSTable':
        resource_type, offset, num_resources = reader.read_struct('4sII', 'DRS table descriptor')

        return DRSTable(resource_type=resource_type, offset=offset, num_resources=num_resources)


@dataclass(frozen=True)
class DRSResource:
    """
    The metadata for a resource in a DRS archive.

    Attributes:
        id: The resource ID. It is unique within its table, but not necessarily within the whole archive.
        offset: The offset at which the resource content is found.
        size: The size of the resource content, in bytes.
    """

    id: int
    offset: int
    size: int

    @staticmethod
    def read_from_binary(reader: BinaryReader) -> 'DRSResource':
        resource_id, offset, size = reader.read_struct('III', 'DRS resource entry')

        return DRSResource(id=resource_id, offset=offset, size=size)


def type_name_from_tag(resource_type: TypeTag) -> str:
    """
    Converts a raw type tag to its conventional display form, which has the bytes in reverse order.
    """
    return bytes(reversed(resource_type)).decode('latin-1')


def type_tag_from_name(name: str) -> TypeTag:
    """
    Converts a type name in display form (e.g. ``'slp '`` or ``'wav'``) to the raw tag that is stored in the file.

    Names shorter than 4 characters are padded with spaces, as is customary in DRS archives.
    """

    raw_name = name.encode('latin-1')
    if len(raw_name) > TYPE_TAG_SIZE:
        raise ValueError(f"Type name must be at most {TYPE_TAG_SIZE} characters long, got {name!r}")

    return bytes(reversed(raw_name.ljust(TYPE_TAG_SIZE, b' ')))


def _check_type_tag(resource_type: TypeTag) -> TypeTag:
    if not isinstance(resource_type, (bytes, bytearray, memoryview)):
        raise TypeError(f"Resource type must be given as a raw bytes tag, not {type(resource_type).__name__}")

    resource_type = bytes(resource_type)

    if len(resource_type) != TYPE_TAG_SIZE:
        raise ValueError(f"Resource type tag must be exactly {TYPE_TAG_SIZE} bytes long, got {resource_type!r}")

    return resource_type


def _decode_text(raw_text: bytes) -> str:
    # 0x1a is the DOS end-of-file marker that often ends the banner
    return raw_text.decode('latin-1').rstrip('\x00\x1a ')


class DRSFileError(Exception):
    pass


class DRSFileIOError(DRSFileError):
    """
    Base class for errors caused by the archive data being missing or unreadable.
    """


class DRSFileCorruptError(DRSFileIOError):
    def __init__(self, file_name: Optional[str]):
        quoted_name = f" '{file_name}'" if file_name is not None else ''
        super().__init__(f"DRS file{quoted_name} is truncated or malformed")


class DRSResourceReadError(DRSFileIOError):
    resource_type: Optional[TypeTag]
    resource_id: int
    offset: int
    size: int

    def __init__(self, resource_type: Optional[TypeTag], resource_id: int, offset: int, size: int):
        self.resource_type = resource_type
        self.resource_id = resource_id
        self.offset = offset
        self.size = size

        type_part = f" of type '{type_name_from_tag(resource_type)}'" if resource_type is not None else ''

        super().__init__(f"Could not read {size} bytes at offset {offset} for resource {resource_id}{type_part}")


class DRSNotFoundError(DRSFileError, LookupError):
    """
    Base class for errors signaling that a queried table or resource does not exist in the archive.
    """


class DRSTableNotFoundError(DRSNotFoundError):
    resource_type: TypeTag

    def __init__(self, resource_type: TypeTag):
        self.resource_type = resource_type

        super().__init__(f"There is no table of type '{type_name_from_tag(resource_type)}' in the archive")


class DRSResourceNotFoundError(DRSNotFoundError):
    resource_type: TypeTag
    resource_id: int

    def __init__(self, resource_type: TypeTag, resource_id: int):
        self.resource_type = resource_type
        self.resource_id = resource_id

        super().__init__(
            f"There is no resource with ID {resource_id} in the table of type '{type_name_from_tag(resource_type)}'"
        )
