"""
Command-line tool for inspecting DRS archives and extracting their resources.

Usage::

    drs-tool info interfac.drs
    drs-tool list interfac.drs
    drs-tool extract interfac.drs -o out/ -t 'slp ' --id 50500
"""

import logging

from argparse import ArgumentParser, ArgumentTypeError, Namespace
from pathlib import Path
from collections import Counter
from typing import Optional, Sequence, Iterator, Tuple

from atmfjstc.lib.cli_utils.console import console
from atmfjstc.lib.cli_utils.errors import pretty_unhandled, descriptive_errors

from atmfjstc.lib.drs_file import DRSFile, DRSFileError, DRSTable, TypeTag, type_tag_from_name


@pretty_unhandled()
def main(argv: Optional[Sequence[str]] = None):
    args = _make_argument_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        style='{',
        format='[{asctime}] {levelname}: {message}',
    )

    with descriptive_errors(DRSFileError, OSError):
        with DRSFile(args.file, trust_table_offsets=args.trust_table_offsets) as drs_file:
            args.handler(drs_file, args)


def _make_argument_parser() -> ArgumentParser:
    parser = ArgumentParser(prog='drs-tool', description="Inspect DRS resource archives and extract their contents")
    parser.add_argument('-v', '--verbose', action='store_true', help="Show debug messages")
    parser.add_argument(
        '--trust-table-offsets', action='store_true',
        help="Read each table's resource entries from its declared offset instead of sequentially"
    )

    subparsers = parser.add_subparsers(dest='command', required=True)

    info_parser = subparsers.add_parser('info', help="Show the archive header and tables")
    info_parser.add_argument('file', help="The DRS archive")
    info_parser.set_defaults(handler=_cmd_info)

    list_parser = subparsers.add_parser('list', help="List all resources, one per line")
    list_parser.add_argument('file', help="The DRS archive")
    list_parser.set_defaults(handler=_cmd_list)

    extract_parser = subparsers.add_parser('extract', help="Extract resources to files")
    extract_parser.add_argument('file', help="The DRS archive")
    extract_parser.add_argument('-o', '--output-dir', default='.', help="Directory to extract to (default: current)")
    extract_parser.add_argument(
        '-t', '--type', dest='types', action='append', type=_type_tag_arg, metavar='NAME',
        help="Only extract resources of this type, given by display name (e.g. 'slp'). Can be repeated."
    )
    extract_parser.add_argument(
        '--id', dest='ids', action='append', type=int, metavar='ID',
        help="Only extract the resource(s) with this ID. Can be repeated."
    )
    extract_parser.set_defaults(handler=_cmd_extract)

    return parser


def _type_tag_arg(value: str) -> TypeTag:
    try:
        return type_tag_from_name(value)
    except (ValueError, UnicodeEncodeError) as e:
        raise ArgumentTypeError(str(e))


def _cmd_info(drs_file: DRSFile, _args: Namespace):
    header = drs_file.header

    console.print_info(f"Banner:         {header.banner_text}")
    console.print_info(f"Version:        {header.version_text}")
    console.print_info(f"Password:       {header.password_text}")
    console.print_info(f"Directory size: {header.directory_size}")
    console.print_info(f"Tables:         {len(drs_file)}")

    for table in drs_file.tables:
        console.print_info(f"  '{table.type_name}': {table.num_resources} resources at offset {table.offset}")


def _cmd_list(drs_file: DRSFile, _args: Namespace):
    for table, resource in drs_file.iter_resources():
        print(f"{table.type_name}\t{resource.id}\t{resource.offset}\t{resource.size}")


def _cmd_extract(drs_file: DRSFile, args: Namespace):
    type_filter = None if args.types is None else set(args.types)
    id_filter = None if args.ids is None else set(args.ids)

    output_dir = Path(args.output_dir)
    count = 0

    for table, dir_name in _table_dir_names(drs_file):
        if (type_filter is not None) and (table.resource_type not in type_filter):
            continue

        for resource in table.resources:
            if (id_filter is not None) and (resource.id not in id_filter):
                continue

            target = output_dir / dir_name / f"{resource.id}.{_table_extension(table)}"
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(drs_file.read_resource_data(resource))

            logging.debug("Extracted %s", target)
            count += 1

    if (count == 0) and ((type_filter is not None) or (id_filter is not None)):
        console.print_warning("No resources matched the selection")

    console.print_success(f"Extracted {count} resources to {output_dir}")


def _clean_type_name(table: DRSTable) -> str:
    return ''.join(c for c in table.type_name if c.isalnum())


def _table_dir_names(drs_file: DRSFile) -> Iterator[Tuple[DRSTable, str]]:
    # Tables sharing a type tag get numbered directories, starting from the second one
    seen_types = Counter()

    for table in drs_file.tables:
        seen_types[table.resource_type] += 1
        occurrence = seen_types[table.resource_type]

        base_name = _clean_type_name(table) or table.resource_type.hex()

        yield table, (base_name if occurrence == 1 else f"{base_name}-{occurrence}")


def _table_extension(table: DRSTable) -> str:
    return _clean_type_name(table).lower() or 'bin'
