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

from rsresponse.lib import parameters
from rsresponse.lib import parameters as param
from rsresponse.lib import logger
from rsresponse.lib import misc
from rsresponse.lib.misc import (StreamObject, check_sanity, prange, view,
                                 H5FileWrap, H5TmpFile)
from rsresponse.lib import diis
from rsresponse.lib import chkfile
