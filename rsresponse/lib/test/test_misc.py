import unittest
import io
import numpy
from rsresponse import lib
from rsresponse.lib import logger

class KnowValues(unittest.TestCase):
    def test_prange(self):
        self.assertEqual(list(lib.prange(0, 8, 3)), [(0, 3), (3, 6), (6, 8)])
        self.assertEqual(list(lib.prange(5, 5, 3)), [])

    def test_stream_object(self):
        class Solver(lib.StreamObject):
            nstates = 3
            _keys = {'nstates', 'result'}
            def kernel(self):
                self.result = self.nstates * 2
                return self.result
        s = Solver().run(nstates=4)
        self.assertEqual(s.result, 8)
        s1 = s.copy()
        s1.nstates = 1
        self.assertEqual(s.nstates, 4)
        self.assertEqual(Solver()(nstates=5).nstates, 5)

    def test_check_sanity_warns(self):
        class Solver(lib.StreamObject):
            _keys = {'nstates'}
        s = Solver()
        s.verbose = 1
        s.stdout = io.StringIO()
        s.nstaets = 2
        s.check_sanity()
        self.assertIn('nstaets', s.stdout.getvalue())

    def test_h5tmpfile(self):
        with lib.H5TmpFile() as f:
            f['a'] = numpy.arange(4)
            self.assertEqual(f['a'].shape, (4,))

    def test_logger(self):
        out = io.StringIO()
        log = logger.Logger(out, logger.INFO)
        log.info('info %d', 1)
        log.debug('debug %d', 2)
        log.warn('warn')
        self.assertIn('info 1', out.getvalue())
        self.assertNotIn('debug 2', out.getvalue())
        self.assertIn('WARN: warn', out.getvalue())
        t0 = (logger.process_clock(), logger.perf_counter())
        t1 = log.timer('step', *t0)
        self.assertEqual(len(t1), 2)


if __name__ == "__main__":
    print("Full Tests for misc")
    unittest.main()
