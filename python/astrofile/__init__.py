# This file is part of astrofile.
#
# See the COPYRIGHT file at the top-level directory of this distribution
# for details of code ownership.
#
# Use of this source code is governed by a 3-clause BSD-style
# license that can be found in the LICENSE file.

"""A multi-block astronomical data file model.

An `AstroFile` holds an ordered sequence of blocks (images, tables, and
astrometry/photometry observation lists), each with its own typed keyword
store, and keeps geometric transforms of the primary image consistent with
its coordinate solution and registered observations.  The FITS codec lives
in `astrofile.fits`.
"""

from ._astro_file import *
from ._blocks import *
from ._collaborators import *
from ._context import *
from ._dtypes import *
from ._errors import *
from ._geom import *
from ._keywords import *
from ._observations import *
from ._options import *
from ._registry import *
from ._render import *
from ._solution import *
from ._transforms import *
