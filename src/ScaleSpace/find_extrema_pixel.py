import numpy as np
import matplotlib.pyplot as plt
import logging

from src.ScaleSpace.constants import GAUSSIAN_PYR_SIGMA0

logger = logging.getLogger(__name__)


def is_pixel_extremum(first_sub, second_sub, third_sub):
    """
    判断一个像素是否是尺度空间中的严格极值点（极大值或极小值）

    参数:
    first_sub (np.ndarray): 上一尺度的3x3邻域
    second_sub (np.ndarray): 当前尺度的3x3邻域
    third_sub (np.ndarray): 下一尺度的3x3邻域

    返回:
    bool: 中心像素严格大于全部26个邻域点，或严格小于全部26个邻域点时返回True

    注意: 只要有一个邻域点与中心值相等就不是极值点，所以平坦区域永远不会产生极值点。
    """
    center_val = second_sub[1, 1]

    # 9 (first_sub) + 9 (third_sub) + 3 (上排) + 3 (下排) + 2 (左右) = 26个元素
    all_neighbors = np.concatenate([
        first_sub.ravel(),
        third_sub.ravel(),
        second_sub[0, :],    # 上排
        second_sub[2, :],    # 下排
        [second_sub[1, 0], second_sub[1, 2]]  # 左右两点
    ])

    return bool((center_val > all_neighbors).all() or (center_val < all_neighbors).all())


def find_local_extrema(below, current, above):
    """
    在三张相邻的DoG图像中寻找中间一张的极值点

    参数:
    below, current, above (np.ndarray): 同尺寸的三层DoG图像

    返回:
    list: 极值点坐标 (row, col) 列表，按行优先顺序

    边界像素（第0行/列、最后一行/列）不参与检测。
    """
    height, width = current.shape
    extrema = []

    for i in range(1, height - 1):
        for j in range(1, width - 1):
            if is_pixel_extremum(below[i-1:i+2, j-1:j+2],
                                 current[i-1:i+2, j-1:j+2],
                                 above[i-1:i+2, j-1:j+2]):
                extrema.append((i, j))

    return extrema


def compute_octave_sigma(octave_idx, sigma0=GAUSSIAN_PYR_SIGMA0):
    """组的尺度: sigma0 * 2^octave_idx"""
    return sigma0 * (2 ** octave_idx)


def find_scale_space_extrema(dog_pyramid, sigma0=GAUSSIAN_PYR_SIGMA0):
    """
    在DoG金字塔中检测尺度空间极值点（候选关键点）

    参数:
    dog_pyramid (list): DoG金字塔 [组][层]
    sigma0 (float): 基础sigma，用于计算关键点的尺度

    返回:
    list: 关键点字典列表，每个关键点包含:
        'x': 列索引, 'y': 行索引（均为该组图像坐标系下）
        'size': 尺度 sigma0 * 2^octave
        'octave': 组索引
        'layer': DoG层索引
        'response': 该点的DoG原始值（未做亚像素插值）

    处理流程:
    1. 遍历每个组
    2. 只在中间层（不含每组第一层和最后一层）检测，因为需要上下两层做比较
    3. 对每个非边界像素做3x3x3邻域比较
    """
    keypoints = []

    for octave_idx, dog_octave in enumerate(dog_pyramid):
        octave_sigma = compute_octave_sigma(octave_idx, sigma0)
        octave_count = 0

        for middle_layer_idx in range(1, len(dog_octave) - 1):
            second = dog_octave[middle_layer_idx]
            extrema = find_local_extrema(dog_octave[middle_layer_idx - 1],
                                         second,
                                         dog_octave[middle_layer_idx + 1])

            # TODO: 用泰勒展开做亚像素插值，同时计算插值后的响应值
            for i, j in extrema:
                keypoints.append({
                    'x': j,
                    'y': i,
                    'size': octave_sigma,
                    'octave': octave_idx,
                    'layer': middle_layer_idx,
                    'response': float(second[i, j])
                })
            octave_count += len(extrema)

        logger.debug(f"octave {octave_idx}: {octave_count} 个候选极值点")

    return keypoints


def visualize_keypoints(image, keypoints, title="检测到的SIFT关键点"):
    """
    在图像上可视化关键点

    参数:
    image (np.ndarray or PIL.Image): 原始图像（第0组的尺寸）
    keypoints (list): 关键点列表，每个关键点是一个字典
    title (str): 图像标题
    """
    img_array = np.array(image)
    height, width = img_array.shape[:2]

    plt.figure(figsize=(10, 8))
    plt.imshow(img_array, cmap='gray')

    for kp in keypoints:
        # 关键点坐标是所在组的坐标，乘以2^octave恢复到第0组
        scale = 2 ** kp['octave']
        x, y = kp['x'] * scale, kp['y'] * scale

        if 0 <= x < width and 0 <= y < height:
            circle = plt.Circle((x, y), kp['size'], color='r', fill=False, linewidth=1.5)
            plt.gca().add_patch(circle)
            plt.plot(x, y, 'r.', markersize=3)

    plt.title(f"{title} - 共{len(keypoints)}个关键点")
    plt.axis('off')
    plt.tight_layout()
    plt.show(block=True)
