#!/usr/bin/env python
# Copyright 2024 The RSResponse Developers. All Rights Reserved.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
#

'''
Dipole polarizability from the frequency-dependent response equations

    (F - e_p - omega) x[k,p] + gamma[k,p](x) + B[k,p](y) + P[k,p] = 0
    (F - e_p + omega) y[k,p] + gamma[k,p](y) + B[k,p](x) + P[k,p] = 0

with the dipole perturbation P[k,p] = Q r_k phi_p, k = x, y, z.
'''

import numpy
from rsresponse import lib
from rsresponse.lib import logger
from rsresponse.pbc.tools import vecfunc
from rsresponse.tdscf import rhf
from rsresponse.tdscf import _bsh
from rsresponse.tdscf.rhf import Status
from rsresponse import __config__


def get_property_vectors(mf, projector=None):
    '''P[k,p] = Q r_k phi_p, shape (3, nocc) + mesh'''
    cell = mf.cell
    mo_coeff = mf.mo_coeff
    if projector is None:
        projector = vecfunc.QProjector(mo_coeff, cell.dV)
    r = numpy.moveaxis(cell.get_coords(), -1, 0)
    p = numpy.einsum('k...,p...->kp...', r, mo_coeff)
    return projector(p)

def polarizability(p, x, y, dV):
    '''alpha[i,j] = -2 sum_p (<P_i[p]|x_j[p]> + <P_i[p]|y_j[p]>)'''
    return -2 * (vecfunc.inner(p, x, dV) + vecfunc.inner(p, y, dV))

def kernel(pol, omega, p, x0=None, y0=None, ctx=None, log=None):
    '''Iterate the frequency-response equations to self-consistency.

    Args:
        pol : Polarizability
        omega : float
            Frequency of the perturbation.  y is identical to x at omega=0.
        p : (nprop, nocc) + mesh ndarray
            Property vectors.

    Returns:
        status, x, y, residuals
    '''
    if log is None:
        log = logger.new_logger(pol)
    mf = pol._scf
    if ctx is None:
        ctx = rhf.make_ground_context(mf, pol.store_potential)
    params = pol.get_parameters()
    dV = ctx.dV
    Q = ctx.projector
    static = omega == 0
    nprop = p.shape[0]

    x = numpy.zeros_like(p) if x0 is None else Q(x0)
    y = x.copy() if (y0 is None or static) else Q(y0)
    omegas = numpy.repeat(float(omega), nprop)
    accel = lib.diis.StateDIIS(pol, pol.kain_size) if pol.kain else None

    status = Status.ITERATING
    res = None
    cput1 = (logger.process_clock(), logger.perf_counter())
    for it in range(pol.max_iter):
        x = Q(x)
        y = Q(y)
        gamma_x, v_x, fe_x = rhf._build_terms(mf, x, ctx, params)
        rhs_x = (gamma_x + rhf._build_b(mf, y, ctx, params) + p
                 + _bsh.apply_shift(_bsh.create_shift(ctx.mo_energy, omegas),
                                    v_x, x))
        if ctx.ham_no_diag is not None:
            rhs_x -= vecfunc.scale_2d(x, ctx.ham_no_diag)
        new_x = rhf._bsh_update(mf, ctx, params, rhs_x, omegas)

        if static:
            new_y = new_x
        else:
            gamma_y, v_y, fe_y = rhf._build_terms(mf, y, ctx, params)
            rhs_y = (gamma_y + rhf._build_b(mf, x, ctx, params) + p
                     + _bsh.apply_shift(_bsh.create_shift(ctx.mo_energy, -omegas),
                                        v_y, y))
            if ctx.ham_no_diag is not None:
                rhs_y -= vecfunc.scale_2d(y, ctx.ham_no_diag)
            new_y = rhf._bsh_update(mf, ctx, params, rhs_y, -omegas)

        res_x = x - new_x
        res_y = y - new_y
        res = numpy.maximum(vecfunc.norm2(res_x, dV), vecfunc.norm2(res_y, dV))

        if accel is not None:
            if static:
                new_x = new_y = Q(accel.update(new_x, res_x))
            else:
                n = x.shape[1]
                xy = accel.update(numpy.concatenate((new_x, new_y), axis=1),
                                  numpy.concatenate((res_x, res_y), axis=1))
                new_x, new_y = Q(xy[:,:n]), Q(xy[:,n:])
        if it > 0:
            new_x, damped = rhf.restrict_step(x, new_x, pol.max_step, dV)
            if static:
                new_y = new_x
            else:
                new_y, damped_y = rhf.restrict_step(y, new_y, pol.max_step, dV)
                damped = sorted(set(damped + damped_y))
            if damped:
                log.debug('Step restriction applied to components %s', damped)

        x = vecfunc.truncate(new_x, params.thresh)
        y = x if static else vecfunc.truncate(new_y, params.thresh)

        log.info('cycle= %d  max|dx|= %4.3g  alpha_diag= %s', it+1, res.max(),
                 polarizability(p, x, y, dV).diagonal())
        cput1 = log.timer('frequency response cycle %d' % (it+1), *cput1)
        if it > 0 and res.max() < pol.dconv:
            status = Status.CONVERGED
            break
    else:
        status = Status.EXHAUSTED

    if accel is not None:
        accel.reset()
    return status, x, y, res


class Polarizability(lib.StreamObject):
    '''Dipole polarizability at a fixed frequency

    Attributes:
        omega : float
            Frequency of the perturbation (Hartree).
        dconv : float
            Convergence threshold of the response functions.
        max_iter, thresh, store_potential, kain, kain_size, max_step
            As in :class:`rhf.TDA`.

    Saved results:

        converged : bool
        alpha : (3,3) ndarray
            Polarizability tensor.
        xy : (x, y)
            Response functions, each of shape (3, nocc) + mesh.

    Examples:

    >>> mf = scf.RHF(cell).run()
    >>> pol = Polarizability(mf, omega=0.)
    >>> pol.kernel()
    '''
    max_iter = getattr(__config__, 'tdscf_freq_Polarizability_max_iter', 50)
    dconv = getattr(__config__, 'tdscf_freq_Polarizability_dconv', 1e-5)
    thresh = getattr(__config__, 'tdscf_rhf_TDA_thresh', 1e-10)
    store_potential = getattr(__config__, 'tdscf_rhf_TDA_store_potential', True)
    kain = getattr(__config__, 'tdscf_rhf_TDA_kain', False)
    kain_size = getattr(__config__, 'tdscf_rhf_TDA_kain_size', 10)
    max_step = getattr(__config__, 'tdscf_rhf_TDA_max_step', 1.)

    _keys = {'omega', 'max_iter', 'dconv', 'thresh', 'store_potential', 'kain',
             'kain_size', 'max_step', 'chkfile', 'converged', 'status',
             'alpha', 'xy', 'residuals'}

    def __init__(self, mf, omega=0.):
        self.verbose = mf.verbose
        self.stdout = mf.stdout
        self._scf = mf
        self.max_memory = mf.max_memory
        self.chkfile = mf.chkfile
        self.omega = omega

##################################################
# don't modify the following attributes, they are not input options
        self.converged = False
        self.status = Status.INIT
        self.alpha = None
        self.xy = None
        self.residuals = None

    def dump_flags(self, verbose=None):
        log = logger.new_logger(self, verbose)
        log.info('\n')
        log.info('******** %s for %s ********',
                 self.__class__, self._scf.__class__)
        log.info('omega = %g', self.omega)
        log.info('max_iter = %d', self.max_iter)
        log.info('dconv = %g', self.dconv)
        log.info('thresh = %g', self.thresh)
        log.info('kain = %s', self.kain)
        log.info('max_step = %g', self.max_step)
        return self

    def check_sanity(self):
        if self._scf.mo_coeff is None:
            raise RuntimeError('SCF object is not initialized')
        if self.omega < 0:
            raise ValueError('Negative frequency %s' % self.omega)
        return lib.StreamObject.check_sanity(self)

    def get_parameters(self):
        return rhf.ResponseParameters(
            nstates=3, variant=rhf.Variant.FULL, max_iter=self.max_iter,
            dconv=self.dconv, thresh=self.thresh,
            store_potential=self.store_potential,
            localized=self._scf.localized, kain=self.kain,
            kain_size=self.kain_size, max_step=self.max_step)

    def get_property_vectors(self):
        return get_property_vectors(self._scf)

    def kernel(self, x0=None, y0=None):
        cpu0 = (logger.process_clock(), logger.perf_counter())
        self.check_sanity()
        self.dump_flags()
        p = self.get_property_vectors()
        self.status, x, y, self.residuals = kernel(self, self.omega, p, x0, y0)
        self.converged = self.status is Status.CONVERGED
        self.xy = (x, y)
        self.alpha = polarizability(p, x, y, self._scf.cell.dV)
        if self.chkfile:
            self.dump_chk(p)
        logger.timer(self, 'Polarizability', *cpu0)
        self._finalize()
        return self.alpha

    def dump_chk(self, p=None):
        from rsresponse.tdscf import chkfile as td_chkfile
        if p is None: p = self.get_property_vectors()
        x, y = self.xy
        mf = self._scf
        state = rhf.ResponseState(rhf.Variant.FULL, x,
                                  numpy.repeat(float(self.omega), len(x)),
                                  y, numpy.repeat(-float(self.omega), len(y)))
        td_chkfile.save(self.chkfile, state, label='Polarizability',
                        density=rhf._transition_density(x + y, mf.mo_coeff),
                        property_vector=numpy.moveaxis(mf.cell.get_coords(), -1, 0),
                        p=p, q=mf.mo_coeff)
        return self

    def _finalize(self):
        log = logger.new_logger(self)
        if not self.converged:
            log.warn('Polarizability not converged, max residual %s',
                     self.residuals.max())
        log.note('Polarizability at omega = %g (AU)', self.omega)
        for i, label in enumerate('XYZ'):
            log.note('%s  %14.8f %14.8f %14.8f', label, *self.alpha[i])
        log.note('isotropic = %.8f', self.alpha.trace() / 3)
        return self
