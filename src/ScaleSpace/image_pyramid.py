import numpy as np
from PIL import Image
import matplotlib.pyplot as plt
import logging
import cv2

from src.ScaleSpace.constants import (
    GAUSSIAN_PYR_OCTAVE_SIZE,
    GAUSSIAN_PYR_SIGMA0,
    GAUSSIAN_PYR_K,
    GAUSSIAN_PYR_KERNEL_SIZE,
    MIN_IMAGE_DIM,
)
from src.util.errors import ImageDimensionError

logger = logging.getLogger(__name__)


def to_float_image(image):
    """
    将输入图像转换为二维float64灰度数组

    参数:
    image (PIL.Image or np.ndarray): 已解码的图像，可以是灰度或彩色(BGR/BGRA)

    返回:
    np.ndarray: 二维float64数组，rows x cols（输入已是二维float64数组时直接返回，不复制）
    """
    if isinstance(image, Image.Image):
        # 和加载图片时一样，先转成灰度图
        return np.array(image.convert('L')).astype(np.float64)

    array = np.asarray(image)
    if array.size == 0:
        raise ImageDimensionError("输入图像为空")

    if array.ndim == 3:
        channels = array.shape[2]
        if channels == 1:
            array = array[:, :, 0]
        elif channels == 3:
            array = cv2.cvtColor(array.astype(np.float32), cv2.COLOR_BGR2GRAY)
        elif channels == 4:
            array = cv2.cvtColor(array.astype(np.float32), cv2.COLOR_BGRA2GRAY)
        else:
            raise ImageDimensionError(f"不支持的通道数: {channels}")
    elif array.ndim != 2:
        raise ImageDimensionError(f"图像必须是二维或三维数组, 实际维度: {array.ndim}")

    return array.astype(np.float64, copy=False)


def down_sample(image):
    """
    面积减半的降采样：每隔一行、一列取一个像素

    输出尺寸为 (rows // 2, cols // 2)，奇数边多出来的最后一行/列被丢弃。
    """
    rows, cols = image.shape
    new_rows, new_cols = rows // 2, cols // 2
    if new_rows == 0 or new_cols == 0:
        raise ImageDimensionError(
            f"图像尺寸 {rows}x{cols} 太小，无法继续降采样"
        )
    return image[0:new_rows * 2:2, 0:new_cols * 2:2].copy()


def compute_number_of_octaves(image_shape, min_dim=MIN_IMAGE_DIM):
    """
    计算图像金字塔的组数(octaves)

    参数:
    image_shape (tuple): 输入图像的 (rows, cols)
    min_dim (int): 最后一组图像允许的最小边长，默认3（3x3邻域）

    返回:
    int: 金字塔的组数，至少为1

    解释:
    每组尺寸减半（向下取整），一直减到短边小于min_dim为止。
    例如 64x64、min_dim=3: 64 -> 32 -> 16 -> 8 -> 4 -> (2) ，共5组
    """
    rows, cols = image_shape[:2]
    num_octaves = 1
    while min(rows // 2, cols // 2) >= min_dim:
        rows, cols = rows // 2, cols // 2
        num_octaves += 1
    return num_octaves


def build_gaussian_pyramid(image, num_octaves,
                           octave_size=GAUSSIAN_PYR_OCTAVE_SIZE,
                           sigma0=GAUSSIAN_PYR_SIGMA0,
                           k=GAUSSIAN_PYR_K,
                           kernel_size=GAUSSIAN_PYR_KERNEL_SIZE):
    """
    构建高斯金字塔

    参数:
    image (np.array): 基础图像（二维浮点数组）
    num_octaves (int): 金字塔的组数
    octave_size (int): 每组的层数 S
    sigma0 (float): 基础模糊量
    k (float): 组内相邻层之间的尺度因子
    kernel_size (int): 高斯核边长（奇数）

    返回:
    list: 高斯金字塔，结构为 [组][层]，pyramid[0][0] 是模糊最少的图像

    金字塔结构:
    1. 每组包含 octave_size 层
    2. 第i层 = 本组基础图像用 sigma0 * k^i 模糊（都从同一张基础图像出发，不是逐层累积模糊）
    3. 下一组的基础图像 = 本组第 octave_size-3 层降采样得到

    注意: 调用者需保证图像足够大，能经受 num_octaves-1 次减半；
    如果中途降采样得到0尺寸，会抛出 ImageDimensionError。
    """
    if num_octaves < 1:
        raise ValueError(f"num_octaves 必须 >= 1, 实际为 {num_octaves}")
    if octave_size < 4:
        raise ValueError(f"octave_size 必须 >= 4, 实际为 {octave_size}")

    gaussian_pyramid = []
    current_image = to_float_image(image)

    for octave_index in range(num_octaves):
        octave_images = []
        sigma = sigma0
        for _ in range(octave_size):
            blurred = cv2.GaussianBlur(
                current_image,
                (kernel_size, kernel_size),
                sigmaX=sigma,
                sigmaY=sigma,
                borderType=cv2.BORDER_REFLECT_101
            )
            octave_images.append(blurred)
            sigma *= k

        gaussian_pyramid.append(octave_images)
        logger.debug(f"octave {octave_index}: {current_image.shape[0]}x{current_image.shape[1]}")

        # 最后一组不需要降采样
        if octave_index < num_octaves - 1:
            current_image = down_sample(octave_images[octave_size - 3])

    return gaussian_pyramid


def build_dog_pyramid(gaussian_pyramid):
    """
    构建高斯差分金字塔(DoG)，用于近似尺度方向的导数

    参数:
    gaussian_pyramid (list): 高斯金字塔，结构为 [组][层]

    返回:
    list: DoG金字塔，结构为 [组][层]，每组的层数比高斯金字塔少1

    DoG[i] = Gaussian[i+1] - Gaussian[i]
    """
    logger.debug('Generating Difference-of-Gaussian images...')
    dog_pyramid = []

    for gaussian_octave in gaussian_pyramid:
        dog_octave = [gaussian_octave[i + 1] - gaussian_octave[i] for i in range(len(gaussian_octave) - 1)]
        dog_pyramid.append(dog_octave)

    return dog_pyramid


def visualize_pyramids(gaussian_pyramid, dog_pyramid, octave_indices=None):
    """
    可视化金字塔结构

    参数:
    gaussian_pyramid (list): 高斯金字塔
    dog_pyramid (list): DoG金字塔
    octave_indices (list, optional): 要显示的组索引列表，None表示显示所有组
    """
    if octave_indices is None:
        octave_indices = range(len(gaussian_pyramid))
    else:
        octave_indices = [idx for idx in octave_indices
                          if 0 <= idx < len(gaussian_pyramid)]

    for title, pyramid in (('Gaussian Pyramid', gaussian_pyramid),
                           ('Difference of Gaussian Pyramid', dog_pyramid)):
        plt.figure(figsize=(13, 10))
        plt.suptitle(title)
        num_layers = max(len(pyramid[idx]) for idx in octave_indices)
        plot_index = 1
        for octave_idx in octave_indices:
            for layer_idx, img in enumerate(pyramid[octave_idx]):
                plt.subplot(len(octave_indices), num_layers, plot_index)
                plt.imshow(img, cmap='gray')
                if pyramid is dog_pyramid:
                    # DoG[i] = Gaussian[i+1] - Gaussian[i]
                    subtitle = f'Gaussian[{layer_idx+1}] - Gaussian[{layer_idx}]'
                else:
                    subtitle = f'Layer_idx:{layer_idx}'
                plt.title(f'Octave_idx:{octave_idx}\n{subtitle}', fontsize=10)
                plt.axis('off')
                plot_index += 1
            # 每组占满一行
            plot_index += num_layers - len(pyramid[octave_idx])
        plt.tight_layout()

    plt.show(block=True)
