import numpy as np
import pytest
import matplotlib.pyplot as plt

from src.ScaleSpace.image_pyramid import build_gaussian_pyramid, build_dog_pyramid
from src.ScaleSpace.find_extrema_pixel import (
    is_pixel_extremum, find_local_extrema, compute_octave_sigma,
    find_scale_space_extrema, visualize_keypoints
)
from src.ScaleSpace.constants import GAUSSIAN_PYR_SIGMA0


def brute_force_is_extremum(below, current, above, i, j):
    center = current[i, j]
    neighbors = []
    for image in (below, current, above):
        for di in (-1, 0, 1):
            for dj in (-1, 0, 1):
                if image is current and di == 0 and dj == 0:
                    continue
                neighbors.append(image[i + di, j + dj])
    assert len(neighbors) == 26
    return all(center > n for n in neighbors) or all(center < n for n in neighbors)


def test_is_pixel_extremum_max_and_min():
    patches = [np.zeros((3, 3)) for _ in range(3)]
    patches[1][1, 1] = 1.0
    assert is_pixel_extremum(*patches)
    patches[1][1, 1] = -1.0
    assert is_pixel_extremum(*patches)


def test_is_pixel_extremum_tie_disqualifies():
    patches = [np.zeros((3, 3)) for _ in range(3)]
    patches[1][1, 1] = 1.0
    patches[2][0, 2] = 1.0
    assert not is_pixel_extremum(*patches)


def test_plateau_is_never_an_extremum():
    patches = [np.full((3, 3), 0.25) for _ in range(3)]
    assert not is_pixel_extremum(*patches)


def test_find_local_extrema_matches_brute_force():
    rng = np.random.default_rng(7)
    below, current, above = (rng.random((20, 24)) for _ in range(3))

    found = find_local_extrema(below, current, above)
    expected = [(i, j) for i in range(1, 19) for j in range(1, 23)
                if brute_force_is_extremum(below, current, above, i, j)]

    assert found == expected
    assert len(found) > 0


def test_find_local_extrema_ignores_border():
    below, current, above = (np.zeros((6, 6)) for _ in range(3))
    current[0, 3] = 5.0
    current[5, 5] = -5.0
    current[3, 0] = 5.0
    assert find_local_extrema(below, current, above) == []


def test_compute_octave_sigma():
    assert compute_octave_sigma(0) == pytest.approx(GAUSSIAN_PYR_SIGMA0)
    assert compute_octave_sigma(2) == pytest.approx(4 * GAUSSIAN_PYR_SIGMA0)


def test_find_scale_space_extrema_keypoint_fields():
    octave0 = [np.zeros((7, 7)) for _ in range(4)]
    octave1 = [np.zeros((5, 5)) for _ in range(4)]
    octave1[2][2, 3] = -0.5

    keypoints = find_scale_space_extrema([octave0, octave1])

    assert keypoints == [{
        'x': 3,
        'y': 2,
        'size': compute_octave_sigma(1),
        'octave': 1,
        'layer': 2,
        'response': -0.5,
    }]


def test_first_and_last_levels_are_not_searched():
    octave = [np.zeros((5, 5)) for _ in range(4)]
    octave[0][2, 2] = 1.0
    octave[3][2, 2] = 1.0
    assert find_scale_space_extrema([octave]) == []


def test_random_dog_stack_extrema_are_strict():
    rng = np.random.default_rng(11)
    dog_pyramid = [[rng.normal(size=(16, 16)) for _ in range(4)],
                   [rng.normal(size=(8, 8)) for _ in range(4)]]

    keypoints = find_scale_space_extrema(dog_pyramid)

    assert len(keypoints) > 0
    for kp in keypoints:
        octave = dog_pyramid[kp['octave']]
        layer, i, j = kp['layer'], kp['y'], kp['x']
        rows, cols = octave[layer].shape
        assert 1 <= layer <= len(octave) - 2
        assert 1 <= i <= rows - 2 and 1 <= j <= cols - 2
        assert brute_force_is_extremum(octave[layer - 1], octave[layer], octave[layer + 1], i, j)
        assert kp['response'] == octave[layer][i, j]


def test_constant_image_has_no_extrema(constant_image):
    dog_pyramid = build_dog_pyramid(build_gaussian_pyramid(constant_image, 3))
    assert find_scale_space_extrema(dog_pyramid) == []


def test_blob_extremum_near_center(blob_image):
    dog_pyramid = build_dog_pyramid(build_gaussian_pyramid(blob_image, 1))
    keypoints = find_scale_space_extrema(dog_pyramid)

    near_center = [kp for kp in keypoints
                   if abs(kp['y'] - 32) <= 1 and abs(kp['x'] - 32) <= 1]
    assert near_center
    assert all(kp['layer'] in (1, 2) for kp in near_center)


def test_visualize_keypoints(no_show):
    keypoints = [
        {'x': 3, 'y': 4, 'size': 1.6, 'octave': 0, 'layer': 1, 'response': 0.1},
        {'x': 2, 'y': 2, 'size': 3.2, 'octave': 1, 'layer': 1, 'response': 0.1},
    ]
    visualize_keypoints(np.zeros((16, 16)), keypoints)
    assert len(plt.gca().patches) == 2
