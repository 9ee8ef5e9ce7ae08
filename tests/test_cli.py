import os
import tempfile
import unittest

from contextlib import redirect_stdout, redirect_stderr
from io import StringIO

from atmfjstc.lib.drs_file.cli import main

from drs_samples import make_drs


class CLITestBase(unittest.TestCase):
    def setUp(self):
        self.temp_dir = tempfile.TemporaryDirectory()
        self.archive_path = os.path.join(self.temp_dir.name, 'sounds.drs')
        self.output_dir = os.path.join(self.temp_dir.name, 'out')

        with open(self.archive_path, 'wb') as f:
            f.write(make_drs([
                (b' vaw', [(5000, b'RIFF-one'), (5001, b'RIFF-two')]),
                (b'anib', [(50500, b'palette')]),
            ]))

    def tearDown(self):
        self.temp_dir.cleanup()

    def run_main(self, *argv: str) -> str:
        stdout = StringIO()

        with redirect_stdout(stdout), redirect_stderr(StringIO()):
            main(list(argv))

        return stdout.getvalue()


class InfoCommandTest(CLITestBase):
    def test_info(self):
        output = self.run_main('info', self.archive_path)

        self.assertIn('Copyright (c) 1997 Ensemble Studios.', output)
        self.assertIn('1.00', output)
        self.assertIn("'wav ': 2 resources", output)
        self.assertIn("'bina': 1 resources", output)


class ListCommandTest(CLITestBase):
    def test_list(self):
        lines = self.run_main('list', self.archive_path).splitlines()

        self.assertEqual(len(lines), 3)
        self.assertEqual(lines[0].split('\t')[:2], ['wav ', '5000'])
        self.assertEqual(lines[2].split('\t')[:2], ['bina', '50500'])
        self.assertEqual(lines[2].split('\t')[3], '7')


class ExtractCommandTest(CLITestBase):
    def _read_output(self, *parts: str) -> bytes:
        with open(os.path.join(self.output_dir, *parts), 'rb') as f:
            return f.read()

    def test_extract_all(self):
        self.run_main('extract', self.archive_path, '-o', self.output_dir)

        self.assertEqual(self._read_output('wav', '5000.wav'), b'RIFF-one')
        self.assertEqual(self._read_output('wav', '5001.wav'), b'RIFF-two')
        self.assertEqual(self._read_output('bina', '50500.bina'), b'palette')

    def test_extract_by_type(self):
        self.run_main('extract', self.archive_path, '-o', self.output_dir, '-t', 'bina')

        self.assertEqual(os.listdir(self.output_dir), ['bina'])

    def test_extract_by_id(self):
        self.run_main('extract', self.archive_path, '-o', self.output_dir, '--id', '5001')

        self.assertEqual(os.listdir(os.path.join(self.output_dir, 'wav')), ['5001.wav'])

    def test_extract_repeated_type(self):
        with open(self.archive_path, 'wb') as f:
            f.write(make_drs([
                (b' vaw', [(1, b'first')]),
                (b' vaw', [(1, b'second'), (2, b'third')]),
            ]))

        self.run_main('extract', self.archive_path, '-o', self.output_dir)

        self.assertEqual(self._read_output('wav', '1.wav'), b'first')
        self.assertEqual(self._read_output('wav-2', '1.wav'), b'second')
        self.assertEqual(self._read_output('wav-2', '2.wav'), b'third')

    def test_bad_type_name(self):
        with self.assertRaises(SystemExit) as ctx:
            self.run_main('extract', self.archive_path, '-t', 'toolong')

        self.assertNotEqual(ctx.exception.code, 0)


class FailureTest(CLITestBase):
    def test_missing_file(self):
        with self.assertRaises(SystemExit) as ctx:
            self.run_main('list', os.path.join(self.temp_dir.name, 'missing.drs'))

        self.assertNotEqual(ctx.exception.code, 0)

    def test_corrupt_file(self):
        with open(self.archive_path, 'wb') as f:
            f.write(b'not a drs')

        with self.assertRaises(SystemExit) as ctx:
            self.run_main('info', self.archive_path)

        self.assertNotEqual(ctx.exception.code, 0)


if __name__ == '__main__':
    unittest.main()
