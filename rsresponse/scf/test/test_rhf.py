import unittest
import tempfile
import numpy
from rsresponse import pbc
from rsresponse import scf
from rsresponse.pbc.tools import vecfunc

def well(r):
    r2 = numpy.einsum('...i,...i->...', r, r)
    return -5 * numpy.exp(-r2 / (2*1.5**2))

def aniso_well(r):
    return -5 * numpy.exp(-.5 * ((r[...,0]/1.2)**2 + (r[...,1]/1.5)**2
                                 + (r[...,2]/1.9)**2))

def setUpModule():
    global cell, mf0, mf
    cell = pbc.M(a=10., gs=10, nelectron=2, vext=well, verbose=5,
                 output='/dev/null')
    mf0 = scf.RHF(cell, interaction=0)
    mf0.kernel()
    mf = scf.RHF(cell, interaction=.5)
    mf.conv_tol = 1e-10
    mf.kernel()

def tearDownModule():
    global cell, mf0, mf
    cell.stdout.close()
    del cell, mf0, mf

class KnowValues(unittest.TestCase):
    def test_non_interacting(self):
        self.assertTrue(mf0.converged)
        e, c = mf0.eig(cell.get_vext(), None, 4)
        self.assertAlmostEqual(mf0.mo_energy[0], e[0], 8)
        self.assertAlmostEqual(mf0.e_tot, 2*e[0], 7)
        # p shell is three-fold degenerate
        self.assertAlmostEqual(e[3] - e[1], 0, 6)
        self.assertTrue(e[0] < e[1] < 0)

    def test_degenerate_levels(self):
        e, c = mf0.eig(cell.get_vext(), None, 4)
        s = vecfunc.inner(c[:,None], c[:,None], cell.dV)
        self.assertAlmostEqual(abs(s - numpy.eye(4)).max(), 0, 8)
        hc = mf0.apply_fock(c, None, cell.get_vext())
        self.assertAlmostEqual(abs(hc - c * e[:,None,None,None]).max(), 0, 5)
        # all three p functions are resolved, with one node plane each
        self.assertTrue(abs(c[1:].sum(axis=(1,2,3))).max() * cell.dV < 1e-5)

    def test_filled_p_shell(self):
        cell8 = pbc.M(a=10., gs=10, nelectron=8, vext=well, verbose=0)
        mf8 = scf.RHF(cell8, interaction=0).run()
        e = mf0.eig(cell.get_vext(), None, 5)[0]
        self.assertAlmostEqual(abs(mf8.mo_energy - e[:4]).max(), 0, 7)
        self.assertAlmostEqual(mf8.e_tot, 2*e[:4].sum(), 6)
        self.assertAlmostEqual(mf8.mo_energy[3] - mf8.mo_energy[1], 0, 7)

    def test_orbitals_normalized(self):
        s = vecfunc.inner(mf.mo_coeff[:,None], mf.mo_coeff[:,None], cell.dV)
        self.assertAlmostEqual(abs(s - numpy.eye(1)).max(), 0, 10)

    def test_interacting(self):
        self.assertTrue(mf.converged)
        # repulsion raises the orbital energy
        self.assertTrue(mf.mo_energy[0] > mf0.mo_energy[0])
        self.assertAlmostEqual(mf.energy_tot(), mf.e_tot, 8)
        h = mf.get_hamiltonian()
        self.assertAlmostEqual(h[0,0], mf.mo_energy[0], 4)

    def test_exchange_cancels_self_interaction(self):
        # two electrons in one orbital: K phi = 1/2 v_J phi
        phi = mf.mo_coeff
        kphi = mf.get_k(phi, phi)
        vj = mf.get_j(phi)
        self.assertAlmostEqual(abs(kphi - .5*vj*phi).max(), 0, 10)

    def test_stored_potential(self):
        kpot = mf.get_stored_potential()
        self.assertEqual(kpot.shape, (1, 1) + cell.mesh)
        ref = mf.coulomb_operator(mf.mo_coeff[0]**2)
        self.assertAlmostEqual(abs(kpot[0,0] - ref).max(), 0, 12)

    def test_localize(self):
        cell4 = pbc.M(a=10., gs=10, nelectron=4, vext=aniso_well, verbose=0)
        mf4 = scf.RHF(cell4, interaction=0).run()
        h0 = mf4.get_hamiltonian()
        self.assertAlmostEqual(abs(h0 - numpy.diag(mf4.mo_energy)).max(), 0, 6)
        c, s = numpy.cos(.3), numpy.sin(.3)
        u = numpy.array([[c, -s], [s, c]])
        mf4.localize(u)
        self.assertTrue(mf4.localized)
        h = mf4.get_hamiltonian()
        self.assertAlmostEqual(abs(h - h.T).max(), 0, 12)
        self.assertAlmostEqual(numpy.trace(h), numpy.trace(h0), 8)
        self.assertAlmostEqual(abs(mf4.mo_energy - h.diagonal()).max(), 0, 12)
        self.assertTrue(abs(mf4.get_ham_no_diag()[0,1]) > 1e-3)
        self.assertRaises(ValueError, mf4.localize, numpy.ones((2,2)))

    def test_chkfile(self):
        with tempfile.NamedTemporaryFile() as ftmp:
            mf1 = scf.RHF(cell, interaction=0)
            mf1.chkfile = ftmp.name
            mf1.kernel()
            cell1, dat = scf.hf.load_scf(ftmp.name)
            self.assertAlmostEqual(dat['e_tot'], mf1.e_tot, 12)
            self.assertEqual(dat['mo_coeff'].shape, (1,) + cell.mesh)
            self.assertEqual(cell1.mesh, cell.mesh)
            self.assertEqual(cell1.nelectron, 2)
            self.assertTrue(cell1.vext is None)

    def test_no_electrons(self):
        cell0 = pbc.M(a=10., gs=4, nelectron=0, verbose=0)
        self.assertRaises(RuntimeError, scf.RHF(cell0).kernel)


if __name__ == "__main__":
    print("Full Tests for grid RHF")
    unittest.main()
