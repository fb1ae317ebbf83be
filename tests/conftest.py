"""
Shared fixtures for the epigeo test suite.

Structure:
- unit/: one module per component
- integration/: verification and reconstruction end to end on synthetic scenes
"""

import numpy as np
import pytest

from epigeo.dataset.synthetic import make_two_view_scene


@pytest.fixture
def reference_words():
    """a=[1 2 3 4 6 6], b=[1 1 2 4 5 6 6], distinct coordinates per occurrence."""
    words_a = {
        1: [(10.0, 10.0)],
        2: [(20.0, 20.0)],
        3: [(30.0, 30.0)],
        4: [(40.0, 40.0)],
        6: [(60.0, 60.0), (61.0, 61.0)],
    }
    words_b = {
        1: [(11.0, 10.0), (12.0, 10.0)],
        2: [(21.0, 20.0)],
        4: [(41.0, 40.0)],
        5: [(51.0, 50.0)],
        6: [(62.0, 60.0), (63.0, 61.0)],
    }
    return words_a, words_b


@pytest.fixture
def clean_scene():
    return make_two_view_scene(150, seed=7)


@pytest.fixture
def noisy_scene():
    return make_two_view_scene(200, noise_px=0.5, outlier_ratio=0.2, duplicate_ratio=0.1, seed=11)


@pytest.fixture
def rng():
    return np.random.default_rng(1234)
