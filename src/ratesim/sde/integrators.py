# src/ratesim/sde/integrators.py
from __future__ import annotations

import math
from typing import List

import numpy as np

# Floor for the state when the CEV exponent is fractional.
CEV_FLOOR = float(np.finfo(float).eps)

# |gamma - round(gamma)| at or below this counts as an integer exponent.
GAMMA_INTEGER_TOL = 1e-9


def path_generators(n_paths: int, seed: int | None) -> List[np.random.Generator]:
    """
    One independent Generator per path, spawned from a single SeedSequence.

    Path j always gets the same stream for a given seed, whatever the
    number of workers the paths are later distributed over.
    """
    children = np.random.SeedSequence(seed).spawn(n_paths)
    return [np.random.default_rng(child) for child in children]


def is_integer_exponent(gamma: float, tol: float = GAMMA_INTEGER_TOL) -> bool:
    return abs(gamma - round(gamma)) <= tol


def euler_maruyama_step(
    x: float, drift: float, diffusion: float, dt: float, dW: float
) -> float:
    """
    Single Euler-Maruyama step:
    X_{t+dt} = X_t + a(X_t)*dt + b(X_t)*dW
    Here we pass precomputed drift and diffusion scalars for speed.
    """
    return x + drift * dt + diffusion * dW


def wiener_increments(rng, n_steps: int, dt: float) -> List[float]:
    """n_steps fresh N(0, sqrt(dt)) draws, in step order."""
    dW = rng.normal(0.0, math.sqrt(dt), size=n_steps)
    return np.asarray(dW, dtype=float).tolist()
