"""End-to-end likelihood run: tag PDT table + reference fields -> combined field.

Engines run per source, each stack is aligned to the analysis grid, then the
combiner fuses them (fixes applied last). Reference data access and the
downstream movement model stay with the caller.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, List, Optional, Sequence
import logging
import time

import pandas as pd

from ..config import LikelihoodConfig
from ..models.combine import combine_likelihoods
from ..models.ohc_lik import DailyMinimumIsotherm, Isotherm, OHCLikelihoodEngine, SnapshotSource
from ..models.profile_lik import Climatology, ProfileLikelihoodEngine
from ..models.regrid import align_stack
from ..models.stack import LikelihoodStack
from ..profiles import group_daily_profiles
from ..utils_geo import GridSpec
from ..utils_time import to_days
from .io import SnapshotDirectory

logger = logging.getLogger(__name__)


def build_likelihood(
    pdt: pd.DataFrame,
    date_vec: Any,
    *,
    grid: Optional[GridSpec] = None,
    climatology: Optional[Climatology] = None,
    snapshots: Optional[SnapshotSource] = None,
    snapshot_dir: Optional[Path] = None,
    isotherm: Isotherm = DailyMinimumIsotherm(),
    extra_stacks: Sequence[LikelihoodStack] = (),
    known_fixes: Any = None,
    initial_fixes: Any = None,
    config: Optional[LikelihoodConfig] = None,
) -> LikelihoodStack:
    """Compute every configured source and return the combined likelihood field.

    grid defaults to the first produced stack's grid. `snapshot_dir` is a
    shortcut for a SnapshotDirectory using the config's file prefix/variable.
    """
    cfg = config or LikelihoodConfig()
    days = to_days(date_vec)
    profiles = group_daily_profiles(pdt)
    logger.info(f"{len(profiles)} tag days over {days.size} timesteps")

    if snapshots is None and snapshot_dir is not None:
        snapshots = SnapshotDirectory(snapshot_dir, prefix=cfg.snapshot_prefix, variable=cfg.snapshot_variable)

    t0 = time.perf_counter()
    stacks: List[LikelihoodStack] = []
    if climatology is not None:
        stacks.append(ProfileLikelihoodEngine(climatology, cfg).run(profiles, days))
    if snapshots is not None:
        stacks.append(OHCLikelihoodEngine(snapshots, isotherm, cfg).run(profiles, days))
    stacks.extend(extra_stacks)
    if not stacks:
        raise ValueError("no likelihood source: pass a climatology, snapshots or extra_stacks")

    target = grid if grid is not None else stacks[0].grid
    aligned = [align_stack(s, target, cfg.resampling) for s in stacks]
    L = combine_likelihoods(aligned, days, known_fixes=known_fixes, initial_fixes=initial_fixes, epsilon=cfg.epsilon_floor)
    logger.info(f"combined {len(stacks)} sources in {time.perf_counter() - t0:.2f}s")
    return L
