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
Linear response of the grid Hartree-Fock ground state

Excitation energies from the Tamm-Dancoff approximation (TDA) and the full
time-dependent Hartree-Fock (TDHF, RPA) response equations, and the dipole
polarizability of a frequency-dependent perturbation.

Examples:

>>> from rsresponse import pbc, scf, tdscf
>>> cell = pbc.M(a=12., gs=12, atom=[(2., (0., 0., 0.))])
>>> mf = scf.RHF(cell).run()
>>> td = tdscf.TDA(mf)
>>> td.nstates = 3
>>> td.kernel()
'''

from rsresponse.tdscf import rhf
from rsresponse.tdscf import freq
from rsresponse.tdscf import chkfile
from rsresponse.tdscf.rhf import (TDA, CIS, TDHF, RPA, TDRHF, Variant, Status,
                                  ResponseParameters, ResponseState)
from rsresponse.tdscf.freq import Polarizability
