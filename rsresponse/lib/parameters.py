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
Global parameters.

Scratch files (out-of-core DIIS history) are created in :data:`TMPDIR`, which
follows the environment variable ``RSRESPONSE_TMPDIR`` or the user config
file.  :data:`MAX_MEMORY` (MB) decides when the DIIS history is kept in
memory.
'''

from rsresponse import __config__

MAX_MEMORY = getattr(__config__, 'MAX_MEMORY', 4000)  # MB
TMPDIR = getattr(__config__, 'TMPDIR', '.')
OUTPUT_DIGITS = getattr(__config__, 'OUTPUT_DIGITS', 5)
LOOSE_ZERO_TOL = getattr(__config__, 'LOOSE_ZERO_TOL', 1e-9)

# Hartree to eV
HARTREE2EV = 27.211386245988
BOHR = 0.52917721092  # Angstrom

VERBOSE_DEBUG  = 5
VERBOSE_INFO   = 4
VERBOSE_NOTICE = 3
VERBOSE_WARN   = 2
VERBOSE_ERR    = 1
VERBOSE_QUIET  = 0

H5F_WRITE_KWARGS = getattr(__config__, 'H5F_WRITE_KWARGS', {})
