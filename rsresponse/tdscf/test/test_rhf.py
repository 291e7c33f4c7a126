import unittest
import numpy
from rsresponse import lib
from rsresponse import pbc
from rsresponse import scf
from rsresponse import tdscf
from rsresponse.pbc.tools import vecfunc
from rsresponse.tdscf import rhf

def well(r):
    r2 = numpy.einsum('...i,...i->...', r, r)
    return -5 * numpy.exp(-r2 / (2*1.5**2))

def aniso_well(r):
    return -5 * numpy.exp(-.5 * ((r[...,0]/1.2)**2 + (r[...,1]/1.5)**2
                                 + (r[...,2]/1.9)**2))

def dense_response(mf):
    '''Orbital energies and the A, B matrices of a one-orbital reference in
    the basis of all grid eigenfunctions of its Fock operator'''
    cell = mf.cell
    mesh = cell.mesh
    n = cell.ngrids
    dV = cell.dV
    unit = numpy.eye(n).reshape((n,) + mesh)
    fock = mf.apply_fock(unit).reshape(n, n)
    eps, c = numpy.linalg.eigh(.5 * (fock + fock.T))
    phi = c.T / numpy.sqrt(dV)
    occ, vir = phi[0], phi[1:]
    coul = mf.coulomb_operator
    p = vir * occ
    k = numpy.dot(p, coul(p.reshape((n-1,) + mesh)).reshape(n-1, -1).T) * dV
    j00 = coul((occ**2).reshape(mesh)).ravel()
    e00 = numpy.dot(vir * j00, vir.T) * dV
    a = numpy.diag(eps[1:] - eps[0]) + 2 * k - e00
    return eps, .5 * (a + a.T), .5 * (k + k.T)

def dense_rpa(a, b, nroots):
    '''Lowest RPA roots and |Y|/|X| of each root'''
    w, v = numpy.linalg.eigh(a - b)
    t = numpy.dot(v * numpy.sqrt(w), v.T)
    tinv = numpy.dot(v / numpy.sqrt(w), v.T)
    w2, z = numpy.linalg.eigh(t.dot(a + b).dot(t))
    omega = numpy.sqrt(w2[:nroots])
    z = z[:,:nroots]
    x = .5 * (t.dot(z) + tinv.dot(z) * omega)
    y = .5 * (t.dot(z) - tinv.dot(z) * omega)
    return omega, numpy.linalg.norm(y, axis=0) / numpy.linalg.norm(x, axis=0)

def setUpModule():
    global cell, mf0, mf, ref, small, mf_small, dense
    cell = pbc.M(a=10., gs=10, nelectron=2, vext=well, verbose=5,
                 output='/dev/null')
    mf0 = scf.RHF(cell, interaction=0).run()
    e = mf0.eig(cell.get_vext(), None, 4)[0]
    ref = e[1:] - e[0]
    mf = scf.RHF(cell, interaction=.5)
    mf.conv_tol = 1e-10
    mf.kernel()

    small = pbc.M(a=8., gs=5, nelectron=2, vext=well, verbose=0)
    mf_small = scf.RHF(small, interaction=.5)
    mf_small.conv_tol = 1e-11
    mf_small.conv_tol_vj = 1e-8
    mf_small.kernel()
    eps, a, b = dense_response(mf_small)
    omega, ratio = dense_rpa(a, b, 3)
    dense = {'eps': eps, 'tda': numpy.linalg.eigvalsh(a)[:3],
             'rpa': omega, 'ratio': ratio}

def tearDownModule():
    global cell, mf0, mf, ref, small, mf_small, dense
    cell.stdout.close()
    del cell, mf0, mf, ref, small, mf_small, dense

class KnowValues(unittest.TestCase):
    def test_tda_non_interacting(self):
        td = tdscf.TDA(mf0)
        td.nstates = 3
        td.max_iter = 50
        e, xy = td.kernel()
        self.assertTrue(td.converged)
        self.assertEqual(td.status, rhf.Status.CONVERGED)
        self.assertAlmostEqual(abs(e - ref).max(), 0, 4)
        self.assertEqual(len(xy), 3)
        self.assertEqual(xy[0][0].shape, (1,) + cell.mesh)
        norms = vecfunc.norm2(td.state.x, cell.dV)
        self.assertAlmostEqual(abs(norms - 1).max(), 0, 10)
        ovlp = numpy.einsum('kpr,pr->kp', td.state.x.reshape(3,1,-1),
                            mf0.mo_coeff.reshape(1,-1)) * cell.dV
        self.assertAlmostEqual(abs(ovlp).max(), 0, 8)

    def test_tda_single_state(self):
        td = tdscf.TDA(mf0).set(max_iter=50)
        e = td.kernel(nstates=1)[0]
        self.assertEqual(len(e), 1)
        self.assertAlmostEqual(e[0], ref[0], 4)

    def test_random_guess(self):
        td = tdscf.TDA(mf0).set(nstates=1, guess='random', max_iter=60)
        td.kernel()
        self.assertAlmostEqual(td.e[0], ref[0], 4)

    def test_tdhf_non_interacting(self):
        # three-fold degenerate p states
        td = tdscf.TDHF(mf0)
        td.nstates = 3
        td.max_iter = 25
        td.analysis = False
        e, xy = td.kernel()
        self.assertTrue(td.converged)
        self.assertAlmostEqual(abs(e - ref).max(), 0, 4)
        self.assertEqual(td.state.variant, rhf.Variant.FULL)
        self.assertEqual(td.state.y.shape, td.state.x.shape)
        self.assertAlmostEqual(abs(vecfunc.norm2(td.state.x, cell.dV) - 1).max(), 0, 10)
        # no coupling, no de-excitation amplitude
        self.assertAlmostEqual(abs(vecfunc.norm2(td.state.y, cell.dV)).max(), 0, 6)
        self.assertAlmostEqual(abs(td.state.y_omega - e).max(), 0, 12)
        self.assertEqual(td.residuals.shape, (2, 3))
        self.assertTrue(tdscf.RPA is tdscf.TDHF)

    def test_store_potential(self):
        td1 = tdscf.TDA(mf).set(nstates=2, max_iter=6, analysis=False)
        td1.kernel()
        td2 = tdscf.TDA(mf).set(nstates=2, max_iter=6, analysis=False,
                                store_potential=False)
        td2.kernel()
        self.assertAlmostEqual(abs(td1.e - td2.e).max(), 0, 8)

    def test_tda_interacting(self):
        td = tdscf.TDA(mf).set(nstates=3, max_iter=50)
        td.kernel()
        self.assertTrue(td.converged)
        self.assertTrue(numpy.all(td.e > 0))
        # p-like triplet
        self.assertAlmostEqual(td.e[2] - td.e[0], 0, 5)

    def test_dense_reference(self):
        self.assertAlmostEqual(dense['eps'][0], mf_small.mo_energy[0], 7)
        # p-like triplet on the cubic grid
        self.assertAlmostEqual(dense['rpa'][2] - dense['rpa'][0], 0, 8)
        self.assertAlmostEqual(dense['tda'][2] - dense['tda'][0], 0, 8)

    def test_tda_dense_reference(self):
        td = tdscf.TDA(mf_small).set(nstates=3, max_iter=60, econv=1e-8,
                                     analysis=False)
        td.kernel()
        self.assertTrue(td.converged)
        self.assertAlmostEqual(abs(td.e - dense['tda']).max(), 0, 5)

    def test_tdhf_dense_reference(self):
        td = tdscf.TDHF(mf_small).set(nstates=3, max_iter=60, econv=1e-8,
                                      analysis=False)
        td.kernel()
        self.assertTrue(td.converged)
        self.assertAlmostEqual(abs(td.e - dense['rpa']).max(), 0, 5)
        self.assertAlmostEqual(abs(td.state.y_omega - td.e).max(), 0, 12)
        # x is normalized, y carries the amplitude ratio
        xnorm = vecfunc.norm2(td.state.x, small.dV)
        ynorm = vecfunc.norm2(td.state.y, small.dV)
        self.assertAlmostEqual(abs(xnorm - 1).max(), 0, 10)
        self.assertAlmostEqual(abs(ynorm - dense['ratio']).max(), 0, 3)

    def test_tdhf_kain(self):
        td = tdscf.TDHF(mf_small).set(nstates=3, max_iter=60, econv=1e-8,
                                      kain=True, kain_size=5, analysis=False)
        td.kernel()
        self.assertTrue(td.converged)
        self.assertAlmostEqual(abs(td.e - dense['rpa']).max(), 0, 5)

    def test_kain(self):
        td = tdscf.TDA(mf0).set(nstates=3, max_iter=50, kain=True, kain_size=5,
                                analysis=False)
        td.kernel()
        self.assertAlmostEqual(abs(td.e - ref).max(), 0, 4)

    def test_larger_subspace(self):
        td = tdscf.TDA(mf0).set(nstates=2, max_iter=50, larger_subspace=3,
                                analysis=False)
        td.kernel()
        self.assertAlmostEqual(abs(td.e - ref[:2]).max(), 0, 4)

    def test_protocol(self):
        td = tdscf.TDA(mf0).set(nstates=1, max_iter=50, protocol=[1e-6, 1e-10],
                                analysis=False)
        td.kernel()
        self.assertAlmostEqual(td.e[0], ref[0], 4)

    def test_localized(self):
        cell4 = pbc.M(a=9., gs=8, nelectron=4, vext=aniso_well, verbose=0)
        mf4 = scf.RHF(cell4, interaction=0).run()
        e = mf4.eig(cell4.get_vext(), None, 10)[0]
        # non-interacting excitations are orbital energy differences
        exact = numpy.sort((e[2:,None] - e[None,:2]).ravel())[:2]

        td = tdscf.TDA(mf4).set(nstates=2, max_iter=50, analysis=False)
        td.kernel()
        self.assertAlmostEqual(abs(td.e - exact).max(), 0, 4)

        c, s = numpy.cos(.5), numpy.sin(.5)
        mf_loc = mf4.copy().localize(numpy.array([[c, -s], [s, c]]))
        td_loc = tdscf.TDA(mf_loc).set(nstates=2, max_iter=50, analysis=False)
        td_loc.kernel()
        self.assertTrue(td_loc.get_parameters().localized)
        self.assertAlmostEqual(abs(td_loc.e - exact).max(), 0, 4)

        td_full = tdscf.TDHF(mf_loc).set(nstates=2, max_iter=50, analysis=False)
        td_full.kernel()
        self.assertTrue(td_full.converged)
        self.assertAlmostEqual(abs(td_full.e - exact).max(), 0, 4)

    def test_exhausted(self):
        td = tdscf.TDA(mf0).set(nstates=1, max_iter=1, analysis=False)
        td.kernel()
        self.assertFalse(td.converged)
        self.assertEqual(td.status, rhf.Status.EXHAUSTED)

    def test_restart(self):
        td = tdscf.TDA(mf0).set(nstates=1, max_iter=50, analysis=False)
        td.kernel()
        td1 = tdscf.TDA(mf0).set(nstates=1, max_iter=5, analysis=False)
        td1.kernel(x0=td.state)
        self.assertTrue(td1.converged)
        self.assertAlmostEqual(td1.e[0], td.e[0], 5)
        self.assertRaises(ValueError, tdscf.TDHF(mf0).kernel, td.state)

    def test_analyze(self):
        td = tdscf.TDA(mf0).set(nstates=3, max_iter=50)
        td.kernel()
        f = td.oscillator_strength()
        self.assertEqual(f.shape, (3,))
        self.assertTrue(.5 < f.sum() < 1.05)
        dip = td.transition_dipole()
        self.assertAlmostEqual(abs(f - 2./3*td.e*numpy.einsum('kx,kx->k', dip, dip)).max(), 0, 12)
        # odd parity excitations carry no quadrupole
        quad = td.transition_quadrupole()
        self.assertEqual(quad.shape, (3, 3, 3))
        self.assertAlmostEqual(abs(quad).max(), 0, 6)
        rho = td.transition_density()
        self.assertEqual(rho.shape, (3,) + cell.mesh)
        self.assertAlmostEqual(abs(rho.sum(axis=(1,2,3))).max() * cell.dV, 0, 8)
        td.analyze(verbose=5)

    def test_parameters(self):
        td = tdscf.TDA(mf0)
        params = td.get_parameters(nstates=4)
        self.assertEqual(params.nstates, 4)
        self.assertEqual(params.variant, rhf.Variant.TDA)
        self.assertEqual(params.protocol, (td.thresh,))
        self.assertFalse(params.full)
        self.assertTrue(tdscf.TDHF(mf0).get_parameters().full)
        self.assertRaises(ValueError, td.get_parameters, nstates=0)
        self.assertRaises(ValueError, td.get_parameters, guess='unknown')
        td.nroots = 5
        self.assertEqual(td.nstates, 5)

    def test_not_initialized(self):
        mf1 = scf.RHF(cell)
        self.assertRaises(RuntimeError, tdscf.TDA(mf1).kernel)

    def test_response_state(self):
        x = numpy.zeros((2, 1) + cell.mesh)
        self.assertRaises(ValueError, rhf.ResponseState, rhf.Variant.FULL, x,
                          numpy.zeros(2))
        state = rhf.ResponseState(rhf.Variant.FULL, x, numpy.array([.3, .1]),
                                  x.copy())
        self.assertAlmostEqual(abs(state.y_omega - [.3, .1]).max(), 0, 14)
        state.x[1] = 1
        res = state.sort(numpy.array([5., 6.]), None)
        self.assertAlmostEqual(abs(state.x_omega - [.1, .3]).max(), 0, 14)
        self.assertAlmostEqual(state.x[0].max(), 1, 14)
        self.assertAlmostEqual(res[0][0], 6, 14)
        self.assertTrue(res[1] is None)


if __name__ == "__main__":
    print("Full Tests for TDA and TDHF")
    unittest.main()
