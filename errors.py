"""
异常定义模块
测试用例生成流程中各环节抛出的异常类型
"""


class Commit2TestError(Exception):
    """所有可向用户展示的错误的基类，str(e) 即为提示信息"""


class ConfigurationMissing(Commit2TestError):
    """缺少必要配置（如 API 密钥），在会话开始前由调用方抛出"""


class UnsupportedProvider(Commit2TestError):
    """不支持的 AI 提供商"""


class TransportFailure(Commit2TestError):
    """网络/连接层面的故障"""


class ProviderError(Commit2TestError):
    """
    AI 服务返回了非成功状态码。
    category 取值: unauthorized, rate_limited, server_fault, other
    """

    def __init__(self, message, status, category):
        super().__init__(message)
        self.status = status
        self.category = category


class GitError(Commit2TestError):
    """git 命令执行失败"""
