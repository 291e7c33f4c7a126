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
*********************************************************
RSResponse: real-space linear response for closed shells
*********************************************************

Excitation energies (TDHF/RPA and Tamm-Dancoff) and frequency dependent
polarizabilities solved in function space with bound-state Helmholtz
preconditioned iterations.  Fields live on a uniform periodic grid::

    >>> from rsresponse import pbc, scf, tdscf
    >>> cell = pbc.gto.Cell(a=12., gs=12, nelectron=2,
    ...                     atom=[(2., (0., 0., 0.))]).build()
    >>> mf = scf.RHF(cell).run()
    >>> td = tdscf.TDA(mf).run(nstates=3)
    >>> td.e
'''

__version__ = '0.3.0'

from rsresponse import __config__
from rsresponse import lib
from rsresponse import pbc
from rsresponse import scf
from rsresponse import tdscf

DEBUG = __config__.DEBUG
