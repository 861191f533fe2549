import numpy as np
import math


class LazyMatrix:
    """
    按需计算并缓存的矩阵

    第一次访问 (row, col) 时调用 func(row, col) 计算，之后直接返回缓存值。
    func 引用的图像必须在本矩阵的生命周期内保持不变。
    """
    def __init__(self, func, rows, cols):
        self.func = func
        self.rows = rows
        self.cols = cols
        self._values = np.zeros((rows, cols), dtype=np.float64)
        self._computed = np.zeros((rows, cols), dtype=bool)

    @property
    def shape(self):
        return self.rows, self.cols

    def is_computed(self, row, col):
        return bool(self._computed[row, col])

    def at(self, row, col):
        if not self._computed[row, col]:
            self._values[row, col] = self.func(row, col)
            self._computed[row, col] = True
        return self._values[row, col]


def delta_x(image, row, col):
    """
    列方向的差分

    后一个采样点: col+1（最后一列时取当前列）
    前一个采样点: 固定为第0列（col > 0时）或第1列（col == 0时）

    返回: image[row, 前] - image[row, 后]
    """
    after = col + 1 if col < image.shape[1] - 1 else col
    before = 0 if col > 0 else 1
    return image[row, before] - image[row, after]


def delta_y(image, row, col):
    """行方向的差分，规则与 delta_x 相同"""
    after = row + 1 if row < image.shape[0] - 1 else row
    before = 0 if row > 0 else 1
    return image[before, col] - image[after, col]


def gradient_angle(dx, dy):
    """
    由梯度分量计算角度（度），范围 [0, 359]

    参数:
    dx, dy (float): 列方向、行方向的差分

    返回:
    float: 角度

    规则:
    1. dx == 0: dy >= 0 时为90度，否则为270度
    2. 否则 atan(dy/dx) 转为角度，限制在[-90, 90]后加90 -> [0, 180]
    3. dy/dx 为负时再加180（按符号位判断，-0.0 也算负）
    4. 最后限制在 [0, 359]
    """
    if dx == 0:
        return 90.0 if dy >= 0 else 270.0

    ratio = dy / dx
    angle = math.degrees(math.atan(ratio))
    angle = max(-90.0, min(angle, 90.0)) + 90.0
    if math.copysign(1.0, ratio) < 0:
        angle += 180.0
    return max(0.0, min(angle, 359.0))


class GradientField:
    """
    一张DoG图像上的梯度场: dx, dy, 幅值和角度，全部按像素懒计算并缓存
    """
    def __init__(self, image):
        self.image = image
        rows, cols = image.shape
        self.rows = rows
        self.cols = cols

        self.dx = LazyMatrix(lambda r, c: delta_x(image, r, c), rows, cols)
        self.dy = LazyMatrix(lambda r, c: delta_y(image, r, c), rows, cols)
        self.magnitude = LazyMatrix(self._compute_magnitude, rows, cols)
        self.angle = LazyMatrix(self._compute_angle, rows, cols)

    def _compute_magnitude(self, row, col):
        return math.hypot(self.dx.at(row, col), self.dy.at(row, col))

    def _compute_angle(self, row, col):
        return gradient_angle(self.dx.at(row, col), self.dy.at(row, col))
