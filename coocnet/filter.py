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
filter.py

Prevalence filters applied to an AbundanceMatrix before correlation.

Organisms detected in only a handful of samples produce rank correlations
dominated by ties at zero, so it is common to drop them first. Each filter
returns a new AbundanceMatrix, or None when nothing would survive;
filter_abundance_obj() chains them and raises when a step empties the table.
"""

import logging

from coocnet.pantry import AbundanceMatrix

logger = logging.getLogger(__name__)


def filter_organisms_by_sample_count(abundance: AbundanceMatrix, min_sample_count: int):
    # keep organisms detected (> 0) in at least min_sample_count samples
    mask = abundance.detection_counts(axis=1) >= min_sample_count
    if not mask.any():
        logger.warning("No organisms meet the sample count threshold.")
        return None
    return abundance.subset_organisms(mask)


def filter_samples_by_organism_count(abundance: AbundanceMatrix, min_organism_count: int):
    # keep samples in which at least min_organism_count organisms were detected
    mask = abundance.detection_counts(axis=0) >= min_organism_count
    if not mask.any():
        logger.warning("No samples meet the organism count threshold.")
        return None
    return abundance.subset_samples(mask)


def filter_abundance_obj(abundance: AbundanceMatrix, min_organism_count=None, min_sample_count=None) -> AbundanceMatrix:
    filtered = abundance

    if min_organism_count is not None:
        filtered = filter_samples_by_organism_count(filtered, min_organism_count)
        if filtered is None:
            raise ValueError(
                f"Filtering by minimum organism count of {min_organism_count} resulted in no samples."
            )

    if min_sample_count is not None:
        filtered = filter_organisms_by_sample_count(filtered, min_sample_count)
        if filtered is None:
            raise ValueError(
                f"Filtering by minimum sample count of {min_sample_count} resulted in no organisms."
            )

    if filtered is not abundance:
        logger.info(
            "Filtered abundance matrix from %d x %d to %d x %d (organisms x samples).",
            abundance.n_organisms, abundance.n_samples, filtered.n_organisms, filtered.n_samples,
        )
    return filtered
