class SiftError(Exception):
    """关键点检测流程中所有异常的基类"""


class ImageDimensionError(SiftError, ValueError):
    """
    图像尺寸不满足要求

    典型情况: 图像为空、维度不是2/3，或者在降采样时尺寸缩减为0
    （即图像太小，撑不起所请求的组数）
    """


class KeypointOutOfBoundsError(SiftError, IndexError):
    """关键点的组/层索引或位置超出了对应DoG图像的范围"""
