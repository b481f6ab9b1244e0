import math, random
from dataclasses import dataclass


def sample_cloudlet_length(rng=random) -> float:
    """Cloudlet length (MI), lognormal around 2.16e6 MI (~6h on a 100-MIPS VM)."""
    mu, sigma = math.log(2_160_000), 0.5
    return max(1000.0, rng.lognormvariate(mu, sigma))


def expovariate_safe(lmbda: float, rng=random) -> float:
    return float('inf') if lmbda <= 0 else rng.expovariate(lmbda)


@dataclass
class ArrivalConfig:
    mode: str  # 'poisson' | 'burst' | 'off'
    rate: float = 0.0  # cloudlets / s

    def next_interarrival(self, t: float, rng=random) -> float:
        if self.mode == 'poisson':
            return expovariate_safe(self.rate, rng)
        elif self.mode == 'burst':
            # tất cả đến cùng lúc tại t
            return 0.0
        elif self.mode == 'off':
            return float('inf')
        raise ValueError("Unknown mode")
