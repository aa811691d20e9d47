from __future__ import annotations

from dataclasses import dataclass, asdict
from pathlib import Path
from typing import Any, Dict, Optional
import json


@dataclass(frozen=True)
class LikelihoodConfig:
    """Tunables for the likelihood engines and the combiner.

    Fields:
      - epsilon_floor: smallest value left in the combined field (keeps convolution finite)
      - profile_offset: subtracted after max-normalizing a climatology surface
      - profile_window / ohc_window: neighbourhood size for the local SD
      - heat_capacity (kJ/kg/degC), density (kg/m3), ohc_scale: OHC integral scaling
      - fit_alpha / fit_degree: local regression bandwidth fraction and polynomial degree
      - workers: day-level pool size (None -> os.cpu_count())
    """

    epsilon_floor: float = 1e-15
    profile_offset: float = 0.2
    profile_window: int = 3
    ohc_window: int = 9
    heat_capacity: float = 3.993
    density: float = 1025.0
    ohc_scale: float = 10000.0
    fit_alpha: float = 0.7
    fit_degree: int = 2
    workers: Optional[int] = None
    snapshot_prefix: str = "Lyd_"
    snapshot_variable: str = "water_temp"
    resampling: str = "nearest"

    def __post_init__(self) -> None:
        for name in ("profile_window", "ohc_window"):
            w = int(getattr(self, name))
            if w < 1 or w % 2 == 0:
                raise ValueError(f"{name} must be a positive odd integer, got {w}")
        if self.profile_offset < 0:
            raise ValueError("profile_offset must be >= 0")
        if not (0.0 < self.epsilon_floor < 1.0):
            raise ValueError("epsilon_floor must be in (0, 1)")
        if not (0.0 < self.fit_alpha <= 1.0):
            raise ValueError("fit_alpha must be in (0, 1]")
        if self.fit_degree not in (0, 1, 2):
            raise ValueError("fit_degree must be 0, 1 or 2")
        if self.workers is not None and int(self.workers) < 1:
            raise ValueError("workers must be >= 1")
        if self.resampling not in ("nearest", "bilinear"):
            raise ValueError("resampling must be 'nearest' or 'bilinear'")

    @property
    def ohc_factor(self) -> float:
        return self.heat_capacity * self.density / self.ohc_scale

    @classmethod
    def from_dict(cls, priors: Dict[str, Any]) -> "LikelihoodConfig":
        # accept {"likelihood": {...}} or a flat mapping
        if isinstance(priors, dict) and isinstance(priors.get("likelihood"), dict):
            priors = priors["likelihood"]
        d = cls()
        workers = priors.get("workers", d.workers)
        return cls(
            epsilon_floor=float(priors.get("epsilon_floor", d.epsilon_floor)),
            profile_offset=float(priors.get("profile_offset", d.profile_offset)),
            profile_window=int(priors.get("profile_window", d.profile_window)),
            ohc_window=int(priors.get("ohc_window", d.ohc_window)),
            heat_capacity=float(priors.get("heat_capacity", d.heat_capacity)),
            density=float(priors.get("density", d.density)),
            ohc_scale=float(priors.get("ohc_scale", d.ohc_scale)),
            fit_alpha=float(priors.get("fit_alpha", d.fit_alpha)),
            fit_degree=int(priors.get("fit_degree", d.fit_degree)),
            workers=None if workers is None else int(workers),
            snapshot_prefix=str(priors.get("snapshot_prefix", d.snapshot_prefix)),
            snapshot_variable=str(priors.get("snapshot_variable", d.snapshot_variable)),
            resampling=str(priors.get("resampling", d.resampling)),
        )

    @classmethod
    def from_json(cls, path: Path) -> "LikelihoodConfig":
        return cls.from_dict(json.loads(Path(path).read_text(encoding="utf-8")))

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
