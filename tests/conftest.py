import matplotlib
matplotlib.use('Agg')

import numpy as np
import pytest


def make_blob_image(size=64, center=(32, 32), sigma=3.0):
    rows, cols = np.mgrid[0:size, 0:size]
    dist2 = (rows - center[0]) ** 2 + (cols - center[1]) ** 2
    return np.exp(-dist2 / (2 * sigma ** 2))


@pytest.fixture
def blob_image():
    return make_blob_image()


@pytest.fixture
def constant_image():
    return np.full((64, 64), 0.7)


@pytest.fixture
def no_show(monkeypatch):
    import matplotlib.pyplot as plt
    monkeypatch.setattr(plt, 'show', lambda *args, **kwargs: None)
    yield
    plt.close('all')
