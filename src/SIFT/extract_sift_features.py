import logging

from src.ScaleSpace.image_pyramid import to_float_image, compute_number_of_octaves, build_gaussian_pyramid, build_dog_pyramid
from src.ScaleSpace.find_extrema_pixel import find_scale_space_extrema
from src.ScaleSpace.clean_up_keypoints import clean_keypoints
from src.Orientation.orientation_histogram import compute_orientation_histograms

logger = logging.getLogger(__name__)


def find_sift_interest_points(image, num_octaves=None, reject_low_contrast=False):
    """
    检测关键点并计算每个关键点的方向直方图

    参数:
        image (PIL.Image or np.ndarray): 已解码的输入图像
        num_octaves (int): 金字塔组数，None时根据图像尺寸自动计算
        reject_low_contrast (bool): 是否启用对比度检测

    返回:
        keypoints (list): 关键点列表
        histograms (list): 与关键点一一对应的36柱方向直方图
    """
    # 1. 转为二维浮点灰度图
    base_image = to_float_image(image)

    # 2. 计算金字塔组数
    if num_octaves is None:
        num_octaves = compute_number_of_octaves(base_image.shape)
    logger.info(f"金字塔组数: {num_octaves}")

    # 3. 构建高斯金字塔和DoG金字塔
    gaussian_pyramid = build_gaussian_pyramid(base_image, num_octaves)
    dog_pyramid = build_dog_pyramid(gaussian_pyramid)

    # 4. 检测尺度空间极值点
    keypoints = find_scale_space_extrema(dog_pyramid)
    logger.info(f"候选关键点数: {len(keypoints)}")

    # 5. 清理关键点（边缘响应）
    keypoints = clean_keypoints(dog_pyramid, keypoints, reject_low_contrast=reject_low_contrast)
    logger.info(f"清理后关键点数: {len(keypoints)}")

    # 6. 方向直方图
    histograms = compute_orientation_histograms(dog_pyramid, keypoints)

    return keypoints, histograms
