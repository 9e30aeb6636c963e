"""项目内使用的自定义异常定义。"""


class RegressionError(Exception):
    """基础异常类型。"""


class InvalidConfigurationError(RegressionError):
    """配置不合法时抛出。"""


class RendererUnavailableError(RegressionError):
    """渲染服务完全不可用时抛出，属于进程级错误。"""


class RenderError(RegressionError):
    """单个用例渲染失败。"""


class ComparisonError(RegressionError):
    """像素对比过程本身失败（区别于“图片不一致”）。"""
