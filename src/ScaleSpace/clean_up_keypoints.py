import numpy as np
import logging

from src.ScaleSpace.constants import KP_CURVATURE_THRESHOLD, KP_CONTRAST_THRESHOLD
from src.util.errors import KeypointOutOfBoundsError

logger = logging.getLogger(__name__)


def compute_hessian_at_pixel(image, row, col):
    """
    计算图像在 (row, col) 处的2x2 Hessian矩阵

    参数:
    image (np.ndarray): DoG图像
    row, col (int): 像素位置，必须不在图像边界上

    返回:
    ndarray: [[dxx, dxy], [dxy, dyy]]

    数学原理:
    二阶纯导数使用中心差分：
        dxx = f(x+1,y) - 2f(x,y) + f(x-1,y)
        dyy = f(x,y+1) - 2f(x,y) + f(x,y-1)
    混合导数使用四角差分：
        dxy = 0.25 * (f(x+1,y+1) - f(x+1,y-1) - f(x-1,y+1) + f(x-1,y-1))
    """
    patch = image[row-1:row+2, col-1:col+2]
    center_value = patch[1, 1]
    dxx = patch[1, 2] - 2 * center_value + patch[1, 0]
    dyy = patch[2, 1] - 2 * center_value + patch[0, 1]
    dxy = 0.25 * (patch[2, 2] - patch[0, 2] - patch[2, 0] + patch[0, 0])
    return np.array([
        [dxx, dxy],
        [dxy, dyy]
    ])


def get_keypoint_image(dog_pyramid, keypoint):
    """返回关键点所在的DoG图像，组/层不存在时抛出 KeypointOutOfBoundsError"""
    octave, layer = keypoint['octave'], keypoint['layer']
    if not 0 <= octave < len(dog_pyramid) or not 0 <= layer < len(dog_pyramid[octave]):
        raise KeypointOutOfBoundsError(
            f"关键点所在的组/层 ({octave}, {layer}) 不在DoG金字塔中"
        )
    return dog_pyramid[octave][layer]


def compute_keypoint_curvature(dog_pyramid, keypoint):
    """
    计算关键点的主曲率比 tr(H)^2 / det(H)

    参数:
    dog_pyramid (list): DoG金字塔 [组][层]
    keypoint (dict): 关键点

    返回:
    float: 主曲率比；det(H) == 0 时返回 inf

    边缘上的点在一个方向曲率很大、另一个方向很小，比值会很大。
    """
    image = get_keypoint_image(dog_pyramid, keypoint)
    row, col = keypoint['y'], keypoint['x']
    rows, cols = image.shape
    if not (1 <= row < rows - 1 and 1 <= col < cols - 1):
        raise KeypointOutOfBoundsError(
            f"关键点 ({row}, {col}) 超出了 {rows}x{cols} 图像的内部区域"
        )

    hessian = compute_hessian_at_pixel(image, row, col)
    trace_hessian = np.trace(hessian)
    det_hessian = hessian[0, 0] * hessian[1, 1] - hessian[0, 1] * hessian[1, 0]

    if det_hessian == 0:
        return float('inf')
    return float(trace_hessian ** 2 / det_hessian)


def clean_keypoints(dog_pyramid, keypoints,
                    curvature_threshold=KP_CURVATURE_THRESHOLD,
                    reject_low_contrast=False,
                    contrast_threshold=KP_CONTRAST_THRESHOLD):
    """
    根据主曲率比（以及可选的对比度）清理关键点

    参数:
    dog_pyramid (list): DoG金字塔
    keypoints (list): 候选关键点列表
    curvature_threshold (float): 主曲率比阈值，超过则丢弃
    reject_low_contrast (bool): 是否启用对比度检测（默认关闭）
    contrast_threshold (float): |response| 小于该值时丢弃（仅在启用时生效）

    返回:
    list: 保留下来的关键点，顺序与输入一致，关键点本身不做修改

    超出图像范围的候选点直接跳过，不会中断整个批次。
    """
    good_keypoints = []
    skipped = 0

    for keypoint in keypoints:
        if reject_low_contrast and abs(keypoint['response']) < contrast_threshold:
            continue

        try:
            curvature = compute_keypoint_curvature(dog_pyramid, keypoint)
        except KeypointOutOfBoundsError as e:
            logger.warning(f"跳过关键点: {e}")
            skipped += 1
            continue

        if curvature > curvature_threshold:
            continue
        good_keypoints.append(keypoint)

    logger.debug(f"清理关键点: {len(keypoints)} -> {len(good_keypoints)} (越界跳过 {skipped})")
    return good_keypoints
