import unittest
import numpy
import scipy.linalg
from rsresponse.tdscf import _lr_eig

def near_identity_rotation(n, seed=2):
    rand = numpy.random.RandomState(seed)
    q = scipy.linalg.qr(numpy.eye(n) + .1 * rand.random_sample((n,n)))[0]
    return q * numpy.sign(q.diagonal())

class KnowValues(unittest.TestCase):
    def test_one_by_one(self):
        e, u, idx = _lr_eig.diagonalize([[2.]], [[1.]], 1e-10)
        self.assertAlmostEqual(e[0], 2, 14)
        self.assertAlmostEqual(u[0,0], 1, 14)
        e, u, idx = _lr_eig.diagonalize([[2.]], [[4.]], 1e-10, symmetric=False)
        self.assertAlmostEqual(e[0], .5, 14)

    def test_sorting(self):
        a = numpy.diag([3., 1., 2.])
        e, u, idx = _lr_eig.diagonalize(a, numpy.eye(3), 1e-10)
        self.assertAlmostEqual(abs(e - [1., 2., 3.]).max(), 0, 14)
        self.assertEqual(list(idx), [1, 2, 0])
        self.assertAlmostEqual(abs(u - numpy.eye(3)[:,[1,2,0]]).max(), 0, 14)

    def test_identity_idempotent(self):
        e = numpy.array([.5, .7, 1.1])
        u, e1 = _lr_eig.fix_degeneracy(numpy.eye(3), e, 1e-10)
        self.assertAlmostEqual(abs(u - numpy.eye(3)).max(), 0, 14)
        self.assertAlmostEqual(abs(e1 - e).max(), 0, 14)

    def test_sign_fix(self):
        u = numpy.diag([-1., 1.])
        u, e = _lr_eig.fix_degeneracy(u, numpy.array([1., 2.]), 1e-10)
        self.assertTrue(numpy.all(u.diagonal() > 0))

    def test_column_swap(self):
        u = numpy.eye(3)[:,[2,0,1]]
        e = numpy.array([3., 1., 2.])
        u, e = _lr_eig.fix_degeneracy(u, e, 1e-10)
        self.assertAlmostEqual(abs(u - numpy.eye(3)).max(), 0, 14)
        self.assertAlmostEqual(abs(e - [1., 2., 3.]).max(), 0, 14)

    def test_degenerate_basis(self):
        # any basis of a degenerate space is rotated to the same vectors
        e = numpy.array([1., 1., 2.])
        u0 = near_identity_rotation(3)
        c, s = numpy.cos(.4), numpy.sin(.4)
        r = numpy.eye(3)
        r[:2,:2] = [[c, -s], [s, c]]
        u1 = numpy.dot(u0, r)
        v0, e0 = _lr_eig.fix_degeneracy(u0, e, 1e-10)
        v1, e1 = _lr_eig.fix_degeneracy(u1, e, 1e-10)
        self.assertAlmostEqual(abs(v0 - v1).max(), 0, 12)
        self.assertAlmostEqual(abs(numpy.dot(v0.T, v0) - numpy.eye(3)).max(), 0, 12)
        self.assertAlmostEqual(abs(v0[:2,:2] - v0[:2,:2].T).max(), 0, 12)

    def test_degenerate_clusters(self):
        e = numpy.array([1., 1.+1e-12, 2., 3., 3.])
        self.assertEqual(_lr_eig.degenerate_clusters(e, 1e-10),
                         [(0, 2), (2, 3), (3, 5)])

    def test_coupled_degenerate(self):
        a, b = 2., .5
        eye = numpy.eye(2)
        m = numpy.block([[a*eye, b*eye], [-b*eye, -a*eye]])
        e, u, idx = _lr_eig.diagonalize(m, numpy.eye(4), 1e-10, symmetric=False)
        w = numpy.sqrt(a**2 - b**2)
        self.assertAlmostEqual(abs(e - [-w, -w, w, w]).max(), 0, 12)
        self.assertAlmostEqual(abs(numpy.dot(m, u) - u * e).max(), 0, 12)
        # the degenerate pair keeps two independent x components
        ux = u[:2,2:]
        self.assertTrue(abs(numpy.linalg.det(ux)) > .1)

    def test_coupled_two_states(self):
        rand = numpy.random.RandomState(3)
        a = numpy.array([[1.2, .1], [.1, 1.9]])
        b = numpy.array([[.3, .05], [.05, .2]])
        s = numpy.eye(2) + .1 * (rand.random_sample((2,2)) - .5)
        s = .5 * (s + s.T)
        # reference: orthonormal basis, omega^2 from (A-B)(A+B)
        w, v = scipy.linalg.eigh(s)
        l = numpy.dot(v / numpy.sqrt(w), v.T)
        at = l.dot(a).dot(l)
        bt = l.dot(b).dot(l)
        ref = numpy.sqrt(numpy.sort(numpy.linalg.eigvals(numpy.dot(at-bt, at+bt)).real))

        m = numpy.block([[a, b], [-b, -a]])
        ss = scipy.linalg.block_diag(s, s)
        e, u, idx = _lr_eig.diagonalize(m, ss, 1e-10, symmetric=False)
        self.assertAlmostEqual(abs(e[2:] - ref).max(), 0, 10)
        self.assertAlmostEqual(abs(e[:2] + ref[::-1]).max(), 0, 10)
        self.assertAlmostEqual(abs(numpy.dot(m, u) - numpy.dot(ss, u) * e).max(), 0, 10)

        x_omega, y_omega, ux, uy = _lr_eig.split_full_vectors(e, u)
        self.assertAlmostEqual(abs(x_omega - ref).max(), 0, 10)
        self.assertAlmostEqual(abs(y_omega - x_omega).max(), 0, 14)
        # A x + B y = omega S x for the same root
        lhs = numpy.dot(a, ux) + numpy.dot(b, uy)
        self.assertAlmostEqual(abs(lhs - numpy.dot(s, ux) * x_omega).max(), 0, 10)
        # |x|^2 - |y|^2 > 0 and |y| < |x|
        nx = numpy.einsum('ik,ij,jk->k', ux, s, ux)
        ny = numpy.einsum('ik,ij,jk->k', uy, s, uy)
        self.assertTrue(numpy.all(ny < nx))
        self.assertTrue(numpy.all(ny > 0))

    def test_coupled_empty_y_space(self):
        a = numpy.diag([1., 3., 1., 3.])
        a[2:] *= -1
        s = scipy.linalg.block_diag(numpy.eye(2), numpy.zeros((2,2)))
        e, u, idx = _lr_eig.diagonalize(a, s, 1e-10, symmetric=False)
        self.assertEqual(u.shape, (4, 2))
        x_omega, y_omega, ux, uy = _lr_eig.split_full_vectors(e, u)
        self.assertAlmostEqual(abs(x_omega - [1., 3.]).max(), 0, 12)
        self.assertAlmostEqual(abs(uy).max(), 0, 14)

    def test_split_decoupled(self):
        m = numpy.diag([1., 2., -1., -2.])
        e, u, idx = _lr_eig.diagonalize(m, numpy.eye(4), 1e-10, symmetric=False)
        x_omega, y_omega, ux, uy = _lr_eig.split_full_vectors(e, u)
        self.assertAlmostEqual(abs(x_omega - [1., 2.]).max(), 0, 14)
        self.assertAlmostEqual(abs(y_omega - [1., 2.]).max(), 0, 14)
        self.assertAlmostEqual(abs(ux - numpy.diag(ux.diagonal())).max(), 0, 14)
        self.assertTrue(numpy.all(ux.diagonal() > 0))
        # no coupling, no y amplitude
        self.assertAlmostEqual(abs(uy).max(), 0, 14)
        self.assertRaises(ValueError, _lr_eig.split_full_vectors,
                          numpy.zeros(3), numpy.eye(3))
        self.assertRaises(RuntimeError, _lr_eig.split_full_vectors,
                          numpy.array([-1., -.5, 1.]), numpy.eye(4)[:,:3])

    def test_non_symmetric_fallback(self):
        m = numpy.array([[1., .2, .1, 0.],
                         [.3, 2., 0., .1],
                         [-.1, 0., -1., -.2],
                         [0., -.1, -.3, -2.]])
        e, u, idx = _lr_eig.diagonalize(m, numpy.eye(4), 1e-10, symmetric=False)
        self.assertAlmostEqual(abs(numpy.dot(m, u) - u * e).max(), 0, 10)
        self.assertRaises(ValueError, _lr_eig.eig_coupled, m, numpy.eye(4))

    def test_unstable(self):
        m = numpy.array([[0., 1.], [-1., 0.]])
        self.assertRaises(RuntimeError, _lr_eig.diagonalize, m, numpy.eye(2),
                          1e-10, False)
        # B larger than A
        m = numpy.array([[1., 2.], [-2., -1.]])
        self.assertRaises(RuntimeError, _lr_eig.diagonalize, m, numpy.eye(2),
                          1e-10, False)

    def test_bad_shapes(self):
        self.assertRaises(ValueError, _lr_eig.diagonalize, numpy.ones((2,3)),
                          numpy.eye(2), 1e-10)
        self.assertRaises(ValueError, _lr_eig.diagonalize, numpy.eye(2),
                          numpy.eye(3), 1e-10)


if __name__ == "__main__":
    print("Full Tests for the reduced response eigenproblem")
    unittest.main()
