# 每组(octave)的图像数 S
GAUSSIAN_PYR_OCTAVE_SIZE = 5

# 基础模糊量 σ0
GAUSSIAN_PYR_SIGMA0 = 1.6

# 组内相邻层的尺度因子 k = 2^(1/(S-3))
GAUSSIAN_PYR_K = 2 ** (1.0 / (GAUSSIAN_PYR_OCTAVE_SIZE - 3))

# 高斯模糊核边长（必须为奇数）
GAUSSIAN_PYR_KERNEL_SIZE = 41

# 边缘响应检测: r = 主曲率比，阈值为 (r+1)^2 / r
KP_CURVATURE_RATIO = 10
KP_CURVATURE_THRESHOLD = (KP_CURVATURE_RATIO + 1) ** 2 / KP_CURVATURE_RATIO

# 对比度阈值（默认不启用对比度检测）
KP_CONTRAST_THRESHOLD = 0.03

# 方向直方图
ORIENTATION_NUM_BINS = 36

# 邻域核的最小边长
NEIGHBOURHOOD_MIN_SIZE = 5.0

# 最后一组图像允许的最小边长（3x3邻域）
MIN_IMAGE_DIM = 3
