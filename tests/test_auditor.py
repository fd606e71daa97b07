import logging
import tempfile
import unittest
from pathlib import Path

from mirrorcheck import Auditor, AuditSettings, OutcomeKind, Processor, StalenessThreshold, TimeBasis

from .test_utils import make_tree, read_lines, set_times


class AuditorTest(unittest.TestCase):
    def setUp(self):
        self._tmpdir = tempfile.TemporaryDirectory()
        self.root = Path(self._tmpdir.name)
        self.source = self.root / 'source'
        self.backup = self.root / 'backup'
        self.results = self.root / 'res.txt'
        self.errors = self.root / 'error.txt'

    def tearDown(self):
        self._tmpdir.cleanup()

    def test_audit_appends_across_runs(self):
        make_tree(self.source, {'b.txt': b'hi'})
        make_tree(self.backup, {'b.txt': b'hi'})
        set_times(self.source / 'b.txt', 120)

        with Processor(2) as processor:
            auditor = Auditor(processor, results_path=self.results, errors_path=self.errors)
            auditor.audit(self.source, self.backup, StalenessThreshold(60))
            summary = auditor.audit(self.source, self.backup, StalenessThreshold(60))

        self.assertEqual([str(self.source / 'b.txt')] * 2, read_lines(self.results))
        self.assertEqual(1, summary.count(OutcomeKind.STALE))

    def test_missing_source_touches_no_report(self):
        with Processor(1) as processor:
            auditor = Auditor(processor, results_path=self.results, errors_path=self.errors)

            with self.assertRaises(NotADirectoryError):
                auditor.audit(self.root / 'missing', self.backup, StalenessThreshold(60))

        self.assertFalse(self.results.exists())
        self.assertFalse(self.errors.exists())

    def test_missing_backup_reports_every_file(self):
        make_tree(self.source, {'a.txt': b'1', 'sub/b.txt': b'2'})

        with Processor(2) as processor:
            auditor = Auditor(processor, results_path=self.results, errors_path=self.errors)
            summary = auditor.audit(self.source, self.backup, StalenessThreshold(60))

        self.assertEqual(2, summary.count(OutcomeKind.MISSING_IN_BACKUP))
        self.assertEqual(2, len(read_lines(self.errors)))

    def test_nested_backup_and_reports_are_not_audited(self):
        backup = self.source / 'backup'
        make_tree(self.source, {'a.txt': b'hi'})
        make_tree(backup, {'a.txt': b'hi'})
        results = self.source / 'res.txt'
        errors = self.source / 'error.txt'

        with Processor(2) as processor:
            auditor = Auditor(processor, results_path=results, errors_path=errors)
            summary = auditor.audit(self.source, backup, StalenessThreshold(60))

        self.assertEqual(1, summary.files_checked)
        self.assertEqual(1, summary.fresh)
        self.assertEqual([], read_lines(errors))

    def test_access_basis_runs(self):
        make_tree(self.source, {'a.txt': b'hi'})
        make_tree(self.backup, {'a.txt': b'hi'})
        set_times(self.source / 'a.txt', mtime_minutes_ago=0, atime_minutes_ago=120)

        with Processor(1) as processor:
            auditor = Auditor(processor, results_path=self.results, errors_path=self.errors)
            auditor.audit(self.source, self.backup, StalenessThreshold(60, TimeBasis.ACCESS))

        self.assertEqual([str(self.source / 'a.txt')], read_lines(self.results))

    def test_settings_and_overrides(self):
        settings_file = self.root / 'settings.toml'
        settings_file.write_text(
            '[report]\n'
            f'results = "{(self.root / "from_settings.txt").as_posix()}"\n'
            '[hash]\n'
            'algorithm = "murmur3"\n')
        settings = AuditSettings(settings_file)

        with Processor(1) as processor:
            from_settings = Auditor(processor, settings)
            overridden = Auditor(processor, settings, results_path=self.results, hash_algorithm='sha256')
            defaults = Auditor(processor)

        self.assertEqual(self.root / 'from_settings.txt', from_settings.results_path)
        self.assertEqual('murmur3', from_settings.hash_algorithm)
        self.assertEqual(Path('error.txt'), from_settings.errors_path)
        self.assertEqual(self.results, overridden.results_path)
        self.assertEqual('sha256', overridden.hash_algorithm)
        self.assertEqual(Path('res.txt'), defaults.results_path)
        self.assertEqual('md5', defaults.hash_algorithm)

    def test_unknown_hash_algorithm(self):
        with Processor(1) as processor:
            with self.assertRaises(ValueError):
                Auditor(processor, hash_algorithm='crc32')

    def test_configure_logging_from_settings(self):
        log_path = self.root / 'audit.log'
        settings_file = self.root / 'settings.toml'
        settings_file.write_text(f'[logging]\npath = "{log_path.as_posix()}"\nlevel = "DEBUG"\n')

        saved_handlers = logging.root.handlers[:]
        saved_level = logging.root.level
        try:
            for handler in saved_handlers:
                logging.root.removeHandler(handler)
            logging.root.setLevel(logging.NOTSET)

            with Processor(1) as processor:
                self.assertFalse(Auditor(processor).configure_logging_from_settings())
                self.assertTrue(Auditor(processor, AuditSettings(settings_file)).configure_logging_from_settings())

            self.assertEqual(logging.DEBUG, logging.root.level)
            logging.getLogger('mirrorcheck.test').debug("hello")
            for handler in logging.root.handlers:
                handler.flush()
            self.assertIn("hello", log_path.read_text())
        finally:
            for handler in logging.root.handlers[:]:
                logging.root.removeHandler(handler)
                handler.close()
            for handler in saved_handlers:
                logging.root.addHandler(handler)
            logging.root.setLevel(saved_level)

    def test_explicit_log_level_overrides_settings(self):
        log_path = self.root / 'audit.log'
        settings_file = self.root / 'settings.toml'
        settings_file.write_text(f'[logging]\npath = "{log_path.as_posix()}"\nlevel = "DEBUG"\n')

        saved_handlers = logging.root.handlers[:]
        saved_level = logging.root.level
        try:
            with Processor(1) as processor:
                auditor = Auditor(processor, AuditSettings(settings_file))
                self.assertTrue(auditor.configure_logging_from_settings('warning'))

            self.assertEqual(logging.WARNING, logging.root.level)
            logging.getLogger('mirrorcheck.test').info("quiet")
            logging.getLogger('mirrorcheck.test').warning("loud")
            for handler in logging.root.handlers:
                handler.flush()
            logged = log_path.read_text()
            self.assertNotIn("quiet", logged)
            self.assertIn("loud", logged)
        finally:
            for handler in logging.root.handlers[:]:
                logging.root.removeHandler(handler)
                handler.close()
            for handler in saved_handlers:
                logging.root.addHandler(handler)
            logging.root.setLevel(saved_level)


if __name__ == '__main__':
    unittest.main()
