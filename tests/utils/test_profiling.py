import os
import tempfile
import unittest
from pathlib import Path

from mirrorcheck.utils.profiling import (
    PROFILE_ENV,
    SESSION_ENV,
    generate_profile_filename,
    get_profile_dir,
    profile_main,
    profile_worker,
)


class ProfilingTest(unittest.TestCase):
    def setUp(self):
        self.saved = {key: os.environ.pop(key, None) for key in (PROFILE_ENV, SESSION_ENV)}

    def tearDown(self):
        for key, value in self.saved.items():
            if value is None:
                os.environ.pop(key, None)
            else:
                os.environ[key] = value

    def test_disabled_by_default(self):
        self.assertIsNone(get_profile_dir())

        @profile_worker
        def add(a, b):
            return a + b

        self.assertEqual(3, add(1, 2))

    def test_filename_format(self):
        prefix, pid, seq = generate_profile_filename("worker").removesuffix(".prof").split('_')

        self.assertEqual("worker", prefix)
        self.assertEqual(str(os.getpid()), pid)
        self.assertTrue(seq.isdigit())

    def test_main_and_worker_share_session_directory(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            os.environ[PROFILE_ENV] = tmpdir

            @profile_worker
            def work():
                return get_profile_dir()

            @profile_main
            def main():
                return get_profile_dir()

            session_dir = main()
            self.assertEqual(session_dir, work())

            self.assertEqual(Path(tmpdir), session_dir.parent)
            profiles = sorted(p.name.split('_')[0] for p in session_dir.glob('*.prof'))
            self.assertEqual(['main', 'worker'], profiles)


if __name__ == '__main__':
    unittest.main()
