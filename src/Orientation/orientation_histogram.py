import numpy as np
import logging
import cv2

from src.ScaleSpace.constants import ORIENTATION_NUM_BINS, NEIGHBOURHOOD_MIN_SIZE
from src.ScaleSpace.clean_up_keypoints import get_keypoint_image
from src.Orientation.gradient_field import GradientField, LazyMatrix
from src.util.errors import KeypointOutOfBoundsError

logger = logging.getLogger(__name__)


class Neighbourhood:
    """
    以 (row, col) 为中心、裁剪到图像范围内的矩形邻域

    kernel_size = max(3 * scale, min_size) 取整，偶数再加1；
    行范围为 [row_start, row_end)，列范围为 [col_start, col_end)。
    """
    def __init__(self, num_rows, num_cols, row, col, scale, min_size=NEIGHBOURHOOD_MIN_SIZE):
        kernel_size = int(max(3 * scale, min_size))
        if kernel_size % 2 == 0:
            kernel_size += 1
        kernel_half = kernel_size // 2

        self.kernel_size = kernel_size
        self.row_start = row - kernel_half if row > kernel_half else 0
        self.row_end = row + kernel_half + 1 if row + kernel_half < num_rows - 1 else num_rows
        self.col_start = col - kernel_half if col > kernel_half else 0
        self.col_end = col + kernel_half + 1 if col + kernel_half < num_cols - 1 else num_cols

    def __iter__(self):
        for i in range(self.row_start, self.row_end):
            for j in range(self.col_start, self.col_end):
                yield i, j


def create_gaussian_weights(kernel_size, sigma):
    """二维高斯权重: 两个一维高斯核的外积"""
    gauss = cv2.getGaussianKernel(kernel_size, sigma, cv2.CV_64F)
    return gauss @ gauss.T


def create_smoothing_func(magnitudes, keypoint, kernel_size):
    """
    创建幅值平滑函数

    参数:
    magnitudes (LazyMatrix): 梯度幅值
    keypoint (dict): 关键点，其 'size' 作为高斯核的标准差
    kernel_size (int): 高斯核边长

    返回:
    function: smooth(row, col)，在以 (row, col) 为中心的邻域内做高斯加权求和

    注意: 邻域在图像边界被裁剪时，权重仍从核的左上角开始取。
    """
    scale = keypoint['size']
    gauss = create_gaussian_weights(kernel_size, scale)

    def apply_gauss(row, col):
        area = Neighbourhood(magnitudes.rows, magnitudes.cols, row, col, scale)
        value = 0.0
        for i, j in area:
            value += magnitudes.at(i, j) * gauss[i - area.row_start, j - area.col_start]
        return value

    return apply_gauss


def compute_orientation_histogram(field, keypoint, num_bins=ORIENTATION_NUM_BINS):
    """
    计算单个关键点的方向直方图

    参数:
    field (GradientField): 关键点所在DoG层的梯度场
    keypoint (dict): 关键点
    num_bins (int): 直方图柱数，默认36（每柱10度）

    返回:
    np.ndarray: 长度为num_bins的直方图，未归一化

    处理流程:
    1. 根据关键点尺度确定邻域
    2. 邻域内每个像素的幅值再用同尺寸的高斯窗口平滑
    3. 平滑后的幅值按角度累积到对应的柱
    """
    histogram = np.zeros(num_bins)
    bin_width = 360.0 / num_bins

    area = Neighbourhood(field.rows, field.cols, keypoint['y'], keypoint['x'], keypoint['size'])
    smoothing_func = create_smoothing_func(field.magnitude, keypoint, area.kernel_size)
    smoothed_magnitudes = LazyMatrix(smoothing_func, field.rows, field.cols)

    for i, j in area:
        # 角度范围是 [0, 359]
        angle = field.angle.at(i, j)
        index = min(int(angle // bin_width), num_bins - 1)
        histogram[index] += smoothed_magnitudes.at(i, j)

    return histogram


def compute_orientation_histograms(dog_pyramid, keypoints, num_bins=ORIENTATION_NUM_BINS):
    """
    计算每个关键点的方向直方图

    参数:
    dog_pyramid (list): DoG金字塔 [组][层]
    keypoints (list): 关键点列表
    num_bins (int): 直方图柱数

    返回:
    list: 与keypoints顺序一致的直方图列表

    每个(组, 层)的梯度场只在第一次用到时创建，缓存只在本次调用内有效。
    """
    fields = {}
    histograms = []

    for keypoint in keypoints:
        key = (keypoint['octave'], keypoint['layer'])
        field = fields.get(key)
        if field is None:
            field = GradientField(get_keypoint_image(dog_pyramid, keypoint))
            fields[key] = field

        if not (0 <= keypoint['y'] < field.rows and 0 <= keypoint['x'] < field.cols):
            raise KeypointOutOfBoundsError(
                f"关键点 ({keypoint['y']}, {keypoint['x']}) 超出了 {field.rows}x{field.cols} 图像"
            )

        histograms.append(compute_orientation_histogram(field, keypoint, num_bins))

    logger.debug(f"计算了 {len(histograms)} 个方向直方图, 梯度场 {len(fields)} 个")
    return histograms
