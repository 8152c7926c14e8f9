#!/usr/bin/env python3
###############################################################################
#                                                                             #
#    This program is free software: you can redistribute it and/or modify     #
#    it under the terms of the GNU General Public License as published by     #
#    the Free Software Foundation, either version 3 of the License, or        #
#    (at your option) any later version.                                      #
#                                                                             #
#    This program is distributed in the hope that it will be useful,          #
#    but WITHOUT ANY WARRANTY; without even the implied warranty of           #
#    MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the            #
#    GNU General Public License for more details.                             #
#                                                                             #
#    You should have received a copy of the GNU General Public License        #
#    along with this program. If not, see <http://www.gnu.org/licenses/>.     #
#                                                                             #
###############################################################################
"""
errors.py

Exception hierarchy for coocnet.

Malformed input (InputShapeError) and bad options (InvalidConfigurationError)
are fatal at the operation that receives them. DegenerateDataError is raised
for a single organism pair and is normally recovered where the pair is
correlated. EmptyGraphError is raised by the community algorithms and turned
into an explicit "no communities" result by detect_communities().
"""


class CoocnetError(Exception):
    """Base class for all coocnet errors."""


class InputShapeError(CoocnetError, ValueError):
    """A matrix is not square, not symmetric, or its labels do not line up."""


class DegenerateDataError(CoocnetError, ValueError):
    """A correlation (or a statistic built on it) is undefined for the data."""


class InvalidConfigurationError(CoocnetError, ValueError):
    """An option is outside its valid range."""


class EmptyGraphError(CoocnetError):
    """Community detection was requested on a graph without edges."""
