import unittest
import numpy
from rsresponse.pbc import gto
from rsresponse.pbc.tools import vecfunc

def setUpModule():
    global cell, mo, f, dV
    cell = gto.M(a=6., gs=4, nelectron=4, verbose=0)
    dV = cell.dV
    rand = numpy.random.RandomState(5)
    mo = vecfunc.gram_schmidt(rand.random_sample((2,) + cell.mesh), dV)
    f = rand.random_sample((3, 2) + cell.mesh) - .5

def tearDownModule():
    global cell, mo, f, dV
    del cell, mo, f, dV

class KnowValues(unittest.TestCase):
    def test_inner(self):
        s = vecfunc.inner(f, f, dV)
        self.assertEqual(s.shape, (3, 3))
        self.assertAlmostEqual(abs(s - s.T).max(), 0, 12)
        ref = sum(numpy.vdot(f[0,p], f[1,p]) for p in range(2)) * dV
        self.assertAlmostEqual(s[0,1], ref, 10)
        self.assertRaises(ValueError, vecfunc.inner, f, f[:,:1], dV)

    def test_norms(self):
        norms = vecfunc.orbital_norms(f, dV)
        self.assertEqual(norms.shape, (3, 2))
        s = vecfunc.inner(f, f, dV)
        self.assertAlmostEqual(abs(vecfunc.norm2(f, dV)**2 - s.diagonal()).max(), 0, 10)

    def test_normalize(self):
        g = vecfunc.normalize(f, dV)
        self.assertAlmostEqual(abs(vecfunc.norm2(g, dV) - 1).max(), 0, 12)
        z = f.copy()
        z[1] = 0
        self.assertRaises(ValueError, vecfunc.normalize, z, dV)

    def test_transform(self):
        u = numpy.array([[1., 2.], [0., 1.], [3., 0.]])
        g = vecfunc.transform(f, u)
        self.assertEqual(g.shape, (2, 2) + cell.mesh)
        self.assertAlmostEqual(abs(g[0] - f[0] - 3*f[2]).max(), 0, 12)
        self.assertAlmostEqual(abs(g[1] - 2*f[0] - f[1]).max(), 0, 12)
        self.assertRaises(ValueError, vecfunc.transform, f, numpy.eye(2))

    def test_scale_2d(self):
        h = numpy.array([[1., .5], [.5, -1.]])
        g = vecfunc.scale_2d(f, h)
        self.assertAlmostEqual(abs(g[:,1] - .5*f[:,0] + f[:,1]).max(), 0, 12)

    def test_truncate(self):
        g = vecfunc.truncate(f, .3)
        self.assertTrue(numpy.all((g == 0) | (abs(g) >= .3)))
        self.assertTrue(vecfunc.truncate(f, None) is f)

    def test_gram_schmidt(self):
        g = numpy.concatenate((f, f[:1] * 2))
        q = vecfunc.gram_schmidt(g, dV)
        self.assertEqual(len(q), 3)
        self.assertAlmostEqual(abs(vecfunc.inner(q, q, dV) - numpy.eye(3)).max(), 0, 10)

    def test_qprojector(self):
        Q = vecfunc.QProjector(mo, dV)
        g = Q(f)
        self.assertAlmostEqual(abs(Q(g) - g).max(), 0, 12)
        ovlp = numpy.einsum('kpr,ir->kpi', g.reshape(3,2,-1), mo.reshape(2,-1)) * dV
        self.assertAlmostEqual(abs(ovlp).max(), 0, 12)
        self.assertAlmostEqual(abs(Q(mo)).max(), 0, 10)
        self.assertRaises(ValueError, Q, numpy.zeros((2, 3, 3, 3)))


if __name__ == "__main__":
    print("Full Tests for vecfunc")
    unittest.main()
